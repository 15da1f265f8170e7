"""
Domain exceptions raised inside adapters.

Adapters raise these; the public boundaries (fetcher, decoder, pem)
convert them into Result failures using the `code` each one carries,
so callers only ever see the failure track.
"""

from __future__ import annotations

from railway import ErrorCode


class CertificateProbeError(Exception):
    """Base class for certificate acquisition and decoding failures."""

    code = ErrorCode.TECHNICAL_ERROR


class NetworkError(CertificateProbeError):
    """Address resolution failed, or the connection was refused or reset."""

    code = ErrorCode.NETWORK_ERROR


class HandshakeError(CertificateProbeError):
    """TLS negotiation failed."""

    code = ErrorCode.HANDSHAKE_ERROR


class CertificateAbsentError(CertificateProbeError):
    """The handshake completed but the server presented no usable certificate."""

    code = ErrorCode.CERTIFICATE_ABSENT


class FetchTimeoutError(CertificateProbeError):
    """A fetch attempt exceeded its deadline."""

    code = ErrorCode.TIMEOUT_ERROR


class DecodeError(CertificateProbeError):
    """Malformed or unsupported DER content in a named certificate field."""

    code = ErrorCode.DECODE_ERROR

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason
