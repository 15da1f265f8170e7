"""
Domain models — immutable data structures for decoded certificates.

These are pure value objects with no behavior beyond derived properties
and serialization. They are created per fetch/decode call and handed to
consumers (API, CLI, external storage); nothing in the core keeps them.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Records with at most this many days left are reported as expiring soon.
EXPIRING_SOON_DAYS = 30


class CertificateStatus(Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class CertificateInfo:
    """
    Fields extracted from a DER-encoded X.509 certificate by the decoder.

    `version` is the raw encoded value: 0, 1 or 2 for certificate versions 1–3.
    `serial_number` is the uppercase hex of the INTEGER content octets.
    """

    subject: str
    issuer: str
    valid_from: datetime
    valid_to: datetime
    serial_number: str
    version: int
    subject_alt_names: tuple[str, ...] = ()
    signature_algorithm: str | None = None


@dataclass(frozen=True, slots=True)
class PeerCertificate:
    """
    What a single TLS handshake captured from the remote endpoint.

    `der` is the leaf certificate exactly as presented; None when the
    server completed the handshake without presenting one.
    """

    hostname: str
    port: int
    der: bytes | None = field(default=None, repr=False)
    tls_version: str | None = None
    cipher: str | None = None


@dataclass(frozen=True, slots=True)
class CertificateRecord:
    """
    The canonical, consumer-facing certificate record.

    Invariant: valid_from <= valid_to and days_remaining >= 0.
    `pem_certificate` is None when the raw certificate bytes were unavailable.
    """

    subject: str
    issuer: str
    valid_from: datetime
    valid_to: datetime
    days_remaining: int
    serial_number: str
    fingerprint: str
    pem_certificate: str | None = field(default=None, repr=False)
    version: int | None = None
    subject_alt_names: tuple[str, ...] = ()

    @property
    def status(self) -> CertificateStatus:
        if self.days_remaining <= 0:
            return CertificateStatus.EXPIRED
        if self.days_remaining <= EXPIRING_SOON_DAYS:
            return CertificateStatus.EXPIRING_SOON
        return CertificateStatus.VALID

    def to_dict(self) -> dict[str, Any]:
        """JSON-encodable form using the camelCase keys consumers expect."""
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "validFrom": self.valid_from.isoformat(),
            "validTo": self.valid_to.isoformat(),
            "daysRemaining": self.days_remaining,
            "serialNumber": self.serial_number,
            "fingerprint": self.fingerprint,
            "pemCertificate": self.pem_certificate,
            "version": self.version,
            "subjectAltNames": list(self.subject_alt_names),
            "status": self.status.value,
        }
