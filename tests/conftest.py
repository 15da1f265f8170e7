"""
Shared test fixtures and helpers for the cert-probe test suite.

Two ways of producing certificates:
  - `issue_certificate()` uses cryptography's CertificateBuilder to create a
    real, signed, self-signed certificate (what a TLS server would present).
  - `build_der_certificate()` assembles DER by hand from the tlv helpers below,
    for shapes a well-behaved library refuses to produce (v1 certificates,
    notBefore after notAfter, odd attribute values, non-UTC times).
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Drop any logging configuration a test installed, with the streams it captured."""
    yield
    structlog.reset_defaults()


# ─────────────────────── Issued Certificates ───────────────────────

SUBJECT_TEXT = "C=US, O=Example Org, CN=example.test"
SERIAL = 0x0A1B2C
NOT_BEFORE = datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC)
NOT_AFTER = datetime(2049, 12, 31, 23, 59, 59, tzinfo=UTC)


@dataclass(frozen=True)
class IssuedCertificate:
    """A self-signed certificate plus the key that signed it."""

    certificate: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    def write(self, directory: Path) -> tuple[Path, Path]:
        """Write cert.pem and key.pem into `directory` for ssl.load_cert_chain."""
        cert_path = directory / "cert.pem"
        key_path = directory / "key.pem"
        cert_path.write_bytes(self.pem)
        key_path.write_bytes(self.key_pem)
        return cert_path, key_path


def issue_certificate(
    common_name: str = "example.test",
    not_before: datetime = NOT_BEFORE,
    not_after: datetime = NOT_AFTER,
    serial: int = SERIAL,
) -> IssuedCertificate:
    """Create an ECDSA P-256 self-signed v3 certificate with a SAN extension."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName(common_name),
                    x509.DNSName(f"www.{common_name}"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return IssuedCertificate(certificate=certificate, key=key)


@pytest.fixture(scope="session")
def issued() -> IssuedCertificate:
    """One self-signed certificate shared by the whole session."""
    return issue_certificate()


@pytest.fixture(scope="session")
def der_bytes(issued: IssuedCertificate) -> bytes:
    return issued.der


@pytest.fixture(scope="session")
def pem_bytes(issued: IssuedCertificate) -> bytes:
    return issued.pem


# ─────────────────────── Hand-assembled DER ───────────────────────

SHA256_WITH_RSA = "1.2.840.113549.1.1.11"
EC_PUBLIC_KEY = "1.2.840.10045.2.1"
PRIME256V1 = "1.2.840.10045.3.1.7"
COMMON_NAME = "2.5.4.3"
COUNTRY = "2.5.4.6"
SUBJECT_ALT_NAME = "2.5.29.17"


def tlv(tag: int, content: bytes) -> bytes:
    """Encode one element with a DER definite length."""
    length = len(content)
    if length < 0x80:
        header = bytes([length])
    else:
        size = length.to_bytes((length.bit_length() + 7) // 8, "big")
        header = bytes([0x80 | len(size)]) + size
    return bytes([tag]) + header + content


def seq(*parts: bytes) -> bytes:
    return tlv(0x30, b"".join(parts))


def oid(dotted: str) -> bytes:
    arcs = [int(arc) for arc in dotted.split(".")]
    body = bytearray()
    for arc in [arcs[0] * 40 + arcs[1], *arcs[2:]]:
        chunk = [arc & 0x7F]
        arc >>= 7
        while arc:
            chunk.append(0x80 | (arc & 0x7F))
            arc >>= 7
        body.extend(reversed(chunk))
    return tlv(0x06, bytes(body))


def utf8(text: str) -> bytes:
    return tlv(0x0C, text.encode("utf-8"))


def utc_time(text: str) -> bytes:
    return tlv(0x17, text.encode("ascii"))


def generalized_time(text: str) -> bytes:
    return tlv(0x18, text.encode("ascii"))


def name(*attributes: tuple[str, bytes]) -> bytes:
    """Name with one attribute per RDN; values are pre-encoded elements."""
    return seq(*(tlv(0x31, seq(oid(type_), value)) for type_, value in attributes))


def san_extension(*general_names: bytes) -> bytes:
    return seq(oid(SUBJECT_ALT_NAME), tlv(0x04, seq(*general_names)))


def build_der_certificate(
    *,
    version: int | None = 2,
    serial: bytes = b"\x01\x02\x03",
    issuer: bytes | None = None,
    subject: bytes | None = None,
    not_before: bytes | None = None,
    not_after: bytes | None = None,
    extensions: tuple[bytes, ...] = (),
) -> bytes:
    """Assemble a structurally valid (unsigned) certificate from parts."""
    issuer = issuer if issuer is not None else name((COMMON_NAME, utf8("Hand CA")))
    subject = subject if subject is not None else name((COMMON_NAME, utf8("hand.test")))
    not_before = not_before if not_before is not None else utc_time("200101000000Z")
    not_after = not_after if not_after is not None else utc_time("300101000000Z")

    fields: list[bytes] = []
    if version is not None:
        fields.append(tlv(0xA0, tlv(0x02, bytes([version]))))
    fields += [
        tlv(0x02, serial),
        seq(oid(SHA256_WITH_RSA), tlv(0x05, b"")),
        issuer,
        seq(not_before, not_after),
        subject,
        seq(seq(oid(EC_PUBLIC_KEY), oid(PRIME256V1)), tlv(0x03, b"\x00\x04" + b"\x11" * 64)),
    ]
    if extensions:
        fields.append(tlv(0xA3, seq(*extensions)))

    return seq(
        seq(*fields),
        seq(oid(SHA256_WITH_RSA), tlv(0x05, b"")),
        tlv(0x03, b"\x00" + b"\x5a" * 32),
    )
