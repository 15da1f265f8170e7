"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the fetcher and normalizer need without specifying HOW.
Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters, and the fakes
used in tests, satisfy the contract simply by implementing the methods.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from railway.result import Result

from cert_probe.domain.models import CertificateInfo, PeerCertificate


@runtime_checkable
class CertificateProbe(Protocol):
    """
    Port: perform ONE TLS handshake and capture the peer's leaf certificate.

    The capture must happen once the handshake has completed and before any
    application data is exchanged; the connection must be closed on every
    exit path, including cancellation.

    Raises NetworkError or HandshakeError on transport/TLS failure.
    Returns a PeerCertificate whose `der` is None when nothing was presented;
    the fetcher decides whether that is worth another attempt.
    """

    async def capture(self, hostname: str, port: int) -> PeerCertificate: ...


@runtime_checkable
class CertificateDecoder(Protocol):
    """
    Port: decode exactly one DER-encoded certificate.

    Stateless; safe to call concurrently. Returns Result[CertificateInfo],
    or a DECODE_ERROR failure naming the offending field.
    """

    def parse(self, data: bytes) -> Result[CertificateInfo]: ...
