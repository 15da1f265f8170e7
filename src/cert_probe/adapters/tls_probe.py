"""
TLS probe adapter — capture a server's leaf certificate during the handshake.

Adapter layer — implements the CertificateProbe port using asyncio streams
and the standard-library ssl module.

One capture walks the connection state machine:

  CONNECTING ──TCP up──→ HANDSHAKING ──handshake done──→ CERTIFICATE_EXTRACTED
       │                      │                                   │
       └──────────────────────┴──→ ERROR                          ↓
                                                  CLOSING ──abort──→ DONE

The certificate is read exactly when `StreamWriter.start_tls()` returns,
which is the moment the TLS session becomes secure. Nothing is written to
or read from the application stream, and the transport is aborted right
after extraction (or on any error / cancellation) without waiting for a
close_notify exchange.

Verification is switched off: this probe inspects certificates, it does not
police trust, so expired, self-signed and mismatched certificates are all
captured.
"""

from __future__ import annotations

import asyncio
import ssl
from enum import Enum

import structlog

from cert_probe.domain.errors import HandshakeError, NetworkError
from cert_probe.domain.models import PeerCertificate

log = structlog.get_logger()


class ProbeState(Enum):
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    CERTIFICATE_EXTRACTED = "certificate_extracted"
    CLOSING = "closing"
    DONE = "done"
    ERROR = "error"


def _inspection_context() -> ssl.SSLContext:
    """Client context that completes the handshake whatever the peer presents."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class TlsHandshakeProbe:
    """
    Perform one TLS handshake and capture the peer's leaf certificate.

    Implements the CertificateProbe port. Each capture owns a fresh socket
    and SSL context; instances hold no per-connection state and can be shared
    by concurrent fetches.
    """

    async def capture(self, hostname: str, port: int) -> PeerCertificate:
        """
        Connect, handshake with SNI = hostname, read the certificate, abort.

        Raises NetworkError when the TCP connection cannot be established,
        HandshakeError when TLS negotiation fails. asyncio.CancelledError
        (timeouts, external cancellation) propagates after the socket is closed.
        """
        bound = log.bind(host=hostname, port=port)
        bound.debug("probe.state", state=ProbeState.CONNECTING.value)
        try:
            _reader, writer = await asyncio.open_connection(hostname, port)
        except TimeoutError:
            raise
        except OSError as exc:
            bound.debug("probe.state", state=ProbeState.ERROR.value, error=str(exc))
            raise NetworkError(f"Cannot connect to {hostname}:{port}: {exc}") from exc

        try:
            bound.debug("probe.state", state=ProbeState.HANDSHAKING.value)
            try:
                await writer.start_tls(_inspection_context(), server_hostname=hostname)
            except TimeoutError:
                raise
            except (ssl.SSLError, OSError) as exc:
                bound.debug("probe.state", state=ProbeState.ERROR.value, error=str(exc))
                raise HandshakeError(
                    f"TLS handshake with {hostname}:{port} failed: {exc}"
                ) from exc

            ssl_object = writer.get_extra_info("ssl_object")
            der = ssl_object.getpeercert(binary_form=True) if ssl_object is not None else None
            cipher = writer.get_extra_info("cipher")
            peer = PeerCertificate(
                hostname=hostname,
                port=port,
                der=der,
                tls_version=ssl_object.version() if ssl_object is not None else None,
                cipher=cipher[0] if cipher else None,
            )
            bound.debug(
                "probe.state",
                state=ProbeState.CERTIFICATE_EXTRACTED.value,
                tls_version=peer.tls_version,
                cipher=peer.cipher,
                size_bytes=len(der) if der else 0,
            )
            return peer
        finally:
            bound.debug("probe.state", state=ProbeState.CLOSING.value)
            writer.transport.abort()
            bound.debug("probe.state", state=ProbeState.DONE.value)
