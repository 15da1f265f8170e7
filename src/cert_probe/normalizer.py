"""
Normalizer — maps decoded certificates into the canonical CertificateRecord.

Domain layer — PURE TRANSFORMATION. No I/O, no shared state, inputs are
never mutated and every call returns a new record.

Two entry paths converge here:

  PeerCertificate (handshake capture) ─┐
                                       ├→ parse_certificate(der) → build_record → CertificateRecord
  DER bytes (uploaded file) ───────────┘

Python's TLS stack exposes no parsed fields for an unverified peer, so the
handshake path also goes through the decoder; the capture contributes the
raw bytes the fingerprint and PEM armor are computed from.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

from cryptography.hazmat.primitives import hashes
from railway import ErrorCode
from railway.result import Result

from cert_probe.adapters.der_decoder import DerCertificateDecoder
from cert_probe.domain.models import CertificateInfo, CertificateRecord, PeerCertificate
from cert_probe.domain.ports import CertificateDecoder
from cert_probe.pem import armor

_SECONDS_PER_DAY = 86_400


def days_remaining(valid_to: datetime, now: datetime) -> int:
    """Whole days until `valid_to`, rounded up and clamped at zero."""
    seconds = (valid_to - now).total_seconds()
    return max(0, math.ceil(seconds / _SECONDS_PER_DAY))


def fingerprint(der: bytes) -> str:
    """SHA-256 over the DER bytes as colon-separated uppercase hex pairs."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(der)
    return digest.finalize().hex(":").upper()


def build_record(
    info: CertificateInfo,
    der: bytes,
    now: datetime | None = None,
) -> CertificateRecord:
    """Assemble a record from decoded fields plus the bytes they came from."""
    now = now or datetime.now(UTC)
    return CertificateRecord(
        subject=info.subject,
        issuer=info.issuer,
        valid_from=info.valid_from,
        valid_to=info.valid_to,
        days_remaining=days_remaining(info.valid_to, now),
        serial_number=info.serial_number,
        fingerprint=fingerprint(der),
        pem_certificate=armor(der) if der else None,
        version=info.version,
        subject_alt_names=info.subject_alt_names,
    )


def record_from_der(
    der: bytes,
    now: datetime | None = None,
    decoder: CertificateDecoder | None = None,
) -> Result[CertificateRecord]:
    """Decoder path: DER bytes → CertificateRecord, or the decoder's failure."""
    decoder = decoder or DerCertificateDecoder()
    return decoder.parse(der).map(lambda info: build_record(info, der, now))


def record_from_peer(
    peer: PeerCertificate,
    now: datetime | None = None,
    decoder: CertificateDecoder | None = None,
) -> Result[CertificateRecord]:
    """Handshake path: a PeerCertificate capture → CertificateRecord."""
    if not peer.der:
        return Result.failure(
            ErrorCode.CERTIFICATE_ABSENT,
            f"{peer.hostname}:{peer.port} did not provide a certificate",
        )
    return record_from_der(peer.der, now, decoder)
