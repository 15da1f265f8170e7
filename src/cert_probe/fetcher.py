"""
Fetcher — retry, timeout and cancellation policy around the TLS probe.

Orchestrates one logical certificate fetch:

  validate arguments
    → attempt 1..max_attempts (sequential, tenacity AsyncRetrying)
        → asyncio.timeout(timeout)
            → probe.capture(hostname, port)      (handshake-complete capture)
        → no certificate?  raise CertificateAbsentError  (retried after a fixed delay)
    → record_from_peer(peer)                     (decode + normalize)

Only CertificateAbsentError is retried. Network, handshake and timeout
failures end the fetch immediately. Cancelling the awaiting task aborts the
in-flight attempt (the probe closes its socket) and is never retried.

Every outcome is returned as Result[CertificateRecord]; the only exception
that escapes is asyncio.CancelledError.
"""

from __future__ import annotations

import asyncio

import structlog
from railway import ErrorCode
from railway.result import Result
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from cert_probe.adapters.tls_probe import TlsHandshakeProbe
from cert_probe.domain.errors import (
    CertificateAbsentError,
    CertificateProbeError,
    FetchTimeoutError,
)
from cert_probe.domain.models import CertificateRecord, PeerCertificate
from cert_probe.domain.ports import CertificateDecoder, CertificateProbe
from cert_probe.normalizer import record_from_peer

log = structlog.get_logger()

DEFAULT_PORT = 443
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0


def _log_retry(retry_state: RetryCallState) -> None:
    """tenacity before_sleep hook — one event per scheduled retry."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "fetch.retrying",
        attempt=retry_state.attempt_number,
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc),
    )


def _validate(hostname: str, port: int, timeout: float, max_attempts: int) -> Result[str]:
    if not hostname or not hostname.strip():
        return Result.failure(ErrorCode.VALIDATION_ERROR, "Hostname must not be empty")
    if not 1 <= port <= 65535:
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"Port must be in 1-65535, got {port}")
    if timeout <= 0:
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"Timeout must be positive, got {timeout}")
    if max_attempts < 1:
        return Result.failure(
            ErrorCode.VALIDATION_ERROR, f"max_attempts must be at least 1, got {max_attempts}"
        )
    return Result.success(hostname.strip())


class CertificateFetcher:
    """
    Fetch and normalize a remote endpoint's TLS certificate.

    Holds only immutable collaborators and policy, so a single instance can
    serve any number of concurrent fetches; each fetch owns its own
    connection.
    """

    def __init__(
        self,
        probe: CertificateProbe | None = None,
        decoder: CertificateDecoder | None = None,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self._probe = probe or TlsHandshakeProbe()
        self._decoder = decoder
        self._retry_delay = retry_delay

    async def fetch(
        self,
        hostname: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> Result[CertificateRecord]:
        """
        Capture and normalize the certificate served at hostname:port.

        Returns Result[CertificateRecord] on success, or a failure with one of
        VALIDATION_ERROR, NETWORK_ERROR, HANDSHAKE_ERROR, CERTIFICATE_ABSENT,
        TIMEOUT_ERROR, DECODE_ERROR (or TECHNICAL_ERROR for anything unexpected).
        """
        validated = _validate(hostname, port, timeout, max_attempts)
        if validated.is_failure():
            return Result.failure_from(validated.error())
        hostname = validated.value()
        bound = log.bind(host=hostname, port=port)

        try:
            peer = await self._capture_with_retry(hostname, port, timeout, max_attempts)
        except CertificateProbeError as exc:
            bound.warning("fetch.failed", error_code=exc.code.value, error=str(exc))
            return Result.failure(exc.code, str(exc), exc)
        except Exception as exc:
            bound.error("fetch.unexpected_error", error=str(exc))
            return Result.failure(
                ErrorCode.TECHNICAL_ERROR,
                f"Unexpected failure fetching certificate from {hostname}:{port}: {exc}",
                exc,
            )

        return (
            record_from_peer(peer, decoder=self._decoder)
            .peek(
                lambda record: bound.info(
                    "fetch.complete",
                    subject=record.subject,
                    days_remaining=record.days_remaining,
                    tls_version=peer.tls_version,
                )
            )
            .peek_failure(
                lambda failure: bound.warning(
                    "fetch.failed", error_code=failure.code.value, error=failure.message
                )
            )
        )

    async def _capture_with_retry(
        self,
        hostname: str,
        port: int,
        timeout: float,
        max_attempts: int,
    ) -> PeerCertificate:
        """Sequential attempts; re-raises the last error when the budget runs out."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(CertificateAbsentError),
            before_sleep=_log_retry,
            reraise=True,
        )
        peer: PeerCertificate | None = None
        async for attempt in retrying:
            with attempt:
                peer = await self._attempt(
                    hostname, port, timeout, attempt.retry_state.attempt_number
                )
        assert peer is not None  # tenacity either returns after success or re-raises
        return peer

    async def _attempt(
        self,
        hostname: str,
        port: int,
        timeout: float,
        number: int,
    ) -> PeerCertificate:
        """One bounded capture. The probe closes its socket on every exit path."""
        log.debug("fetch.attempt_started", host=hostname, port=port, attempt=number)
        try:
            async with asyncio.timeout(timeout):
                peer = await self._probe.capture(hostname, port)
        except TimeoutError as exc:
            raise FetchTimeoutError(
                f"Fetching certificate from {hostname}:{port} timed out after {timeout:g}s"
            ) from exc
        if not peer.der:
            raise CertificateAbsentError(
                f"{hostname}:{port} did not provide a certificate after a successful TLS handshake"
            )
        return peer


async def fetch_certificate(
    hostname: str,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Result[CertificateRecord]:
    """Fetch with the default TLS probe and the standard 1-second retry delay."""
    return await CertificateFetcher().fetch(hostname, port, timeout, max_attempts)
