"""
DER certificate decoder adapter — minimal X.509 walk without trust checks.

Adapter layer — implements the CertificateDecoder port using:
  - asn1crypto.parser: bounds-checked TLV reads (tag, length, contents)
  - hand-written primitive decoding for the handful of types a
    certificate's identity fields use (INTEGER, OID, strings, times)

Walk:
  DER bytes
    → Certificate SEQUENCE { tbsCertificate, signatureAlgorithm, signatureValue }
    → tbsCertificate SEQUENCE {
          [0] version, serialNumber, signature, issuer, validity,
          subject, subjectPublicKeyInfo, [1] issuerUID, [2] subjectUID,
          [3] extensions }
    → CertificateInfo (domain model)

No signature, chain or trust validation is performed. Every required field
either decodes or the whole call fails with a DecodeError naming that field.
The decoder holds no state, so one instance can serve any number of callers.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from asn1crypto import parser
from railway import ErrorCode
from railway.result import Result

from cert_probe.domain.errors import DecodeError
from cert_probe.domain.models import CertificateInfo

log = structlog.get_logger()

# ─────────────────────── ASN.1 Tags ───────────────────────

_UNIVERSAL = 0
_CONTEXT = 2
_CONSTRUCTED = 1

_BOOLEAN = 1
_INTEGER = 2
_BIT_STRING = 3
_OCTET_STRING = 4
_OBJECT_IDENTIFIER = 6
_SEQUENCE = 16
_SET = 17
_UTC_TIME = 23
_GENERALIZED_TIME = 24

# Character string tags and the codec each one maps to.
_STRING_CODECS = {
    12: "utf-8",  # UTF8String
    18: "ascii",  # NumericString
    19: "ascii",  # PrintableString
    20: "latin-1",  # TeletexString
    22: "ascii",  # IA5String
    26: "ascii",  # VisibleString
    28: "utf-32-be",  # UniversalString
    30: "utf-16-be",  # BMPString
}

_SUBJECT_ALT_NAME = "2.5.29.17"

_NAME_ATTRIBUTES = {
    "2.5.4.3": "CN",
    "2.5.4.4": "SN",
    "2.5.4.5": "serialNumber",
    "2.5.4.6": "C",
    "2.5.4.7": "L",
    "2.5.4.8": "ST",
    "2.5.4.9": "street",
    "2.5.4.10": "O",
    "2.5.4.11": "OU",
    "2.5.4.12": "title",
    "2.5.4.15": "businessCategory",
    "2.5.4.17": "postalCode",
    "2.5.4.42": "GN",
    "2.5.4.97": "organizationIdentifier",
    "1.2.840.113549.1.9.1": "emailAddress",
    "0.9.2342.19200300.100.1.1": "UID",
    "0.9.2342.19200300.100.1.25": "DC",
    "1.3.6.1.4.1.311.60.2.1.2": "jurisdictionST",
    "1.3.6.1.4.1.311.60.2.1.3": "jurisdictionC",
}

_SIGNATURE_ALGORITHMS = {
    "1.2.840.113549.1.1.4": "md5WithRSAEncryption",
    "1.2.840.113549.1.1.5": "sha1WithRSAEncryption",
    "1.2.840.113549.1.1.10": "rsassaPss",
    "1.2.840.113549.1.1.11": "sha256WithRSAEncryption",
    "1.2.840.113549.1.1.12": "sha384WithRSAEncryption",
    "1.2.840.113549.1.1.13": "sha512WithRSAEncryption",
    "1.2.840.10045.4.1": "ecdsa-with-SHA1",
    "1.2.840.10045.4.3.2": "ecdsa-with-SHA256",
    "1.2.840.10045.4.3.3": "ecdsa-with-SHA384",
    "1.2.840.10045.4.3.4": "ecdsa-with-SHA512",
    "1.3.101.112": "Ed25519",
    "1.3.101.113": "Ed448",
}


# ─────────────────────── TLV Reading ───────────────────────


@dataclass(frozen=True, slots=True)
class _Tlv:
    """One decoded tag-length-value element."""

    class_: int
    method: int
    tag: int
    header: bytes
    contents: bytes

    @property
    def encoded(self) -> bytes:
        return self.header + self.contents

    def describe(self) -> str:
        kind = {0: "universal", 1: "application", 2: "context", 3: "private"}[self.class_]
        return f"{kind} tag {self.tag}"


def _to_tlv(field: str, parsed: tuple[int, int, int, bytes, bytes, bytes]) -> _Tlv:
    class_, method, tag, header, contents, trailer = parsed
    if trailer:
        raise DecodeError(field, "indefinite length encoding is not allowed in DER")
    return _Tlv(class_, method, tag, header, contents)


def _read_single(data: bytes, field: str) -> _Tlv:
    """Read exactly one element spanning all of `data`."""
    try:
        parsed = parser.parse(data, strict=True)
    except ValueError as exc:
        raise DecodeError(field, str(exc)) from exc
    return _to_tlv(field, parsed)


def _children(parent: _Tlv, field: str) -> list[_Tlv]:
    """Split a constructed element's contents into its child elements."""
    if parent.method != _CONSTRUCTED:
        raise DecodeError(field, f"expected a constructed value, got primitive {parent.describe()}")
    data = parent.contents
    items: list[_Tlv] = []
    offset = 0
    while offset < len(data):
        try:
            parsed = parser.parse(data[offset:])
        except ValueError as exc:
            raise DecodeError(field, str(exc)) from exc
        item = _to_tlv(field, parsed)
        items.append(item)
        offset += len(item.header) + len(item.contents)
    return items


class _Cursor:
    """Sequential reader over the children of a SEQUENCE."""

    def __init__(self, parent: _Tlv, field: str) -> None:
        self._items = _children(parent, field)
        self._field = field
        self._index = 0

    def take_any(self, field: str) -> _Tlv:
        """Consume the next element whatever its tag."""
        if self._index >= len(self._items):
            raise DecodeError(field, "missing")
        item = self._items[self._index]
        self._index += 1
        return item

    def take(self, field: str, tag: int) -> _Tlv:
        """Consume the next element, which must be the given universal tag."""
        item = self.take_any(field)
        if item.class_ != _UNIVERSAL or item.tag != tag:
            raise DecodeError(field, f"unexpected {item.describe()}")
        return item

    def skip(self, tag: int) -> None:
        """Consume the next element only if it is the given universal tag."""
        if self._index < len(self._items):
            item = self._items[self._index]
            if item.class_ == _UNIVERSAL and item.tag == tag:
                self._index += 1

    def take_context(self, tag: int) -> _Tlv | None:
        """Consume the next element only if it is the given context-specific tag."""
        if self._index < len(self._items):
            item = self._items[self._index]
            if item.class_ == _CONTEXT and item.tag == tag:
                self._index += 1
                return item
        return None

    def finish(self) -> None:
        if self._index != len(self._items):
            extra = self._items[self._index]
            raise DecodeError(self._field, f"unexpected trailing {extra.describe()}")


# ─────────────────────── Primitive Decoding ───────────────────────


def _decode_oid(tlv: _Tlv, field: str) -> str:
    content = tlv.contents
    if not content or content[-1] & 0x80:
        raise DecodeError(field, "malformed object identifier")
    arcs: list[int] = []
    value = 0
    for byte in content:
        value = (value << 7) | (byte & 0x7F)
        if not byte & 0x80:
            arcs.append(value)
            value = 0
    first = arcs[0]
    head = [first // 40, first % 40] if first < 80 else [2, first - 80]
    return ".".join(str(arc) for arc in head + arcs[1:])


def _decode_string(tlv: _Tlv, field: str) -> str:
    """Decode a character string; values of other types render as #hex."""
    codec = _STRING_CODECS.get(tlv.tag) if tlv.class_ == _UNIVERSAL else None
    if codec is None:
        return "#" + tlv.encoded.hex()
    try:
        return tlv.contents.decode(codec)
    except UnicodeDecodeError as exc:
        raise DecodeError(field, f"invalid character data for string tag {tlv.tag}") from exc


def _decode_time(tlv: _Tlv, field: str) -> datetime:
    if tlv.class_ != _UNIVERSAL or tlv.tag not in (_UTC_TIME, _GENERALIZED_TIME):
        raise DecodeError(field, f"expected UTCTime or GeneralizedTime, got {tlv.describe()}")
    try:
        text = tlv.contents.decode("ascii")
    except UnicodeDecodeError as exc:
        raise DecodeError(field, "time value is not ASCII") from exc
    if not text.endswith("Z"):
        raise DecodeError(field, f"time must be expressed in UTC, got {text!r}")
    body = text[:-1]
    if tlv.tag == _UTC_TIME:
        if len(body) not in (10, 12) or not body[:2].isdigit():
            raise DecodeError(field, f"malformed UTCTime {text!r}")
        # RFC 5280: two-digit years 50-99 are 19xx, 00-49 are 20xx.
        year = int(body[:2])
        body = f"{1900 + year if year >= 50 else 2000 + year}{body[2:]}"
    digits, _, fraction = body.partition(".")
    # strptime accepts single-digit fields, so the layout is chosen by length.
    layouts = {14: "%Y%m%d%H%M%S", 12: "%Y%m%d%H%M"}
    if not digits.isdigit() or len(digits) not in layouts or (fraction and not fraction.isdigit()):
        raise DecodeError(field, f"malformed time value {text!r}")
    try:
        moment = datetime.strptime(digits, layouts[len(digits)])
    except ValueError as exc:
        raise DecodeError(field, f"malformed time value {text!r}") from exc
    if fraction:
        moment = moment.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return moment.replace(tzinfo=UTC)


# ─────────────────────── Field Decoding ───────────────────────


def _decode_version(tagged: _Tlv | None) -> int:
    """[0] EXPLICIT INTEGER DEFAULT v1."""
    if tagged is None:
        return 0
    inner = _read_single(tagged.contents, "version")
    if inner.class_ != _UNIVERSAL or inner.tag != _INTEGER or not inner.contents:
        raise DecodeError("version", f"expected INTEGER, got {inner.describe()}")
    version = int.from_bytes(inner.contents, "big", signed=True)
    if version not in (0, 1, 2):
        raise DecodeError("version", f"unsupported certificate version {version}")
    return version


def _decode_serial(tlv: _Tlv) -> str:
    if not tlv.contents:
        raise DecodeError("serialNumber", "empty INTEGER")
    return tlv.contents.hex().upper()


def _render_name(name: _Tlv, field: str) -> str:
    """
    Render a Name as `ATTR=value` pairs in encounter order.

    Name ::= SEQUENCE OF RelativeDistinguishedName
    RelativeDistinguishedName ::= SET OF AttributeTypeAndValue
    AttributeTypeAndValue ::= SEQUENCE { type OID, value ANY }
    """
    parts: list[str] = []
    for rdn in _children(name, field):
        if rdn.class_ != _UNIVERSAL or rdn.tag != _SET:
            raise DecodeError(field, f"expected SET in name, got {rdn.describe()}")
        for attribute in _children(rdn, field):
            if attribute.class_ != _UNIVERSAL or attribute.tag != _SEQUENCE:
                raise DecodeError(field, f"expected SEQUENCE in RDN, got {attribute.describe()}")
            cursor = _Cursor(attribute, field)
            oid = _decode_oid(cursor.take(field, _OBJECT_IDENTIFIER), field)
            raw_value = cursor.take_any(field)
            cursor.finish()
            label = _NAME_ATTRIBUTES.get(oid, oid)
            parts.append(f"{label}={_decode_string(raw_value, field)}")
    return ", ".join(parts)


def _decode_validity(validity: _Tlv) -> tuple[datetime, datetime]:
    cursor = _Cursor(validity, "validity")
    not_before = _decode_time(cursor.take_any("notBefore"), "notBefore")
    not_after = _decode_time(cursor.take_any("notAfter"), "notAfter")
    cursor.finish()
    if not_before > not_after:
        raise DecodeError(
            "validity",
            f"notBefore {not_before.isoformat()} is later than notAfter {not_after.isoformat()}",
        )
    return not_before, not_after


def _algorithm_name(identifier: _Tlv, field: str) -> str:
    """AlgorithmIdentifier ::= SEQUENCE { algorithm OID, parameters ANY OPTIONAL }"""
    items = _children(identifier, field)
    if not items or items[0].class_ != _UNIVERSAL or items[0].tag != _OBJECT_IDENTIFIER:
        raise DecodeError(field, "missing algorithm object identifier")
    oid = _decode_oid(items[0], field)
    return _SIGNATURE_ALGORITHMS.get(oid, oid)


def _render_general_name(item: _Tlv) -> str | None:
    field = "subjectAltName"
    if item.class_ != _CONTEXT:
        raise DecodeError(field, f"unexpected {item.describe()} in GeneralNames")
    match item.tag:
        case 0:
            return "othername:<unsupported>"
        case 1:
            return "email:" + _ascii(item.contents, field)
        case 2:
            return "DNS:" + _ascii(item.contents, field)
        case 4:
            return "DirName:" + _render_name(_read_single(item.contents, field), field)
        case 6:
            return "URI:" + _ascii(item.contents, field)
        case 7:
            try:
                return f"IP Address:{ipaddress.ip_address(item.contents)}"
            except ValueError as exc:
                raise DecodeError(field, f"malformed iPAddress of {len(item.contents)} bytes") from exc
        case 8:
            return "Registered ID:" + _decode_oid(item, field)
    return None


def _ascii(data: bytes, field: str) -> str:
    try:
        return data.decode("ascii")
    except UnicodeDecodeError as exc:
        raise DecodeError(field, "IA5String contains non-ASCII data") from exc


def _decode_subject_alt_names(tagged: _Tlv) -> tuple[str, ...]:
    """
    Find subjectAltName inside [3] EXPLICIT Extensions and render its entries.

    Extension ::= SEQUENCE { extnID OID, critical BOOLEAN DEFAULT FALSE, extnValue OCTET STRING }
    """
    extensions = _read_single(tagged.contents, "extensions")
    if extensions.class_ != _UNIVERSAL or extensions.tag != _SEQUENCE:
        raise DecodeError("extensions", f"expected SEQUENCE, got {extensions.describe()}")
    for extension in _children(extensions, "extensions"):
        if extension.class_ != _UNIVERSAL or extension.tag != _SEQUENCE:
            raise DecodeError("extensions", f"expected SEQUENCE, got {extension.describe()}")
        cursor = _Cursor(extension, "extensions")
        oid = _decode_oid(cursor.take("extensions", _OBJECT_IDENTIFIER), "extensions")
        cursor.skip(_BOOLEAN)
        value = cursor.take("extensions", _OCTET_STRING)
        cursor.finish()
        if oid != _SUBJECT_ALT_NAME:
            continue
        general_names = _read_single(value.contents, "subjectAltName")
        if general_names.class_ != _UNIVERSAL or general_names.tag != _SEQUENCE:
            raise DecodeError("subjectAltName", f"expected SEQUENCE, got {general_names.describe()}")
        rendered = (_render_general_name(item) for item in _children(general_names, "subjectAltName"))
        return tuple(entry for entry in rendered if entry is not None)
    return ()


# ─────────────────────── Certificate Walk ───────────────────────


def _decode(data: bytes) -> CertificateInfo:
    """Internal walk — raises DecodeError (caught by DerCertificateDecoder.parse)."""
    if not data:
        raise DecodeError("certificate", "empty input")

    certificate = _read_single(data, "certificate")
    if certificate.class_ != _UNIVERSAL or certificate.tag != _SEQUENCE:
        raise DecodeError("certificate", f"expected SEQUENCE, got {certificate.describe()}")

    outer = _Cursor(certificate, "certificate")
    tbs = outer.take("tbsCertificate", _SEQUENCE)
    signature_algorithm = _algorithm_name(
        outer.take("signatureAlgorithm", _SEQUENCE), "signatureAlgorithm"
    )
    outer.take("signatureValue", _BIT_STRING)
    outer.finish()

    fields = _Cursor(tbs, "tbsCertificate")
    version = _decode_version(fields.take_context(0))
    serial_number = _decode_serial(fields.take("serialNumber", _INTEGER))
    fields.take("signature", _SEQUENCE)
    issuer = _render_name(fields.take("issuer", _SEQUENCE), "issuer")
    valid_from, valid_to = _decode_validity(fields.take("validity", _SEQUENCE))
    subject = _render_name(fields.take("subject", _SEQUENCE), "subject")
    fields.take("subjectPublicKeyInfo", _SEQUENCE)
    fields.take_context(1)
    fields.take_context(2)
    extensions = fields.take_context(3)
    fields.finish()

    subject_alt_names = _decode_subject_alt_names(extensions) if extensions else ()

    return CertificateInfo(
        subject=subject,
        issuer=issuer,
        valid_from=valid_from,
        valid_to=valid_to,
        serial_number=serial_number,
        version=version,
        subject_alt_names=subject_alt_names,
        signature_algorithm=signature_algorithm,
    )


# ─────────────────────── Public Decoder ───────────────────────


class DerCertificateDecoder:
    """
    Decode one DER-encoded X.509 certificate into a CertificateInfo.

    Implements the CertificateDecoder port. The input must already be DER:
    PEM armor is stripped by the caller (see cert_probe.pem).
    """

    def parse(self, data: bytes) -> Result[CertificateInfo]:
        """
        Walk the certificate structure and extract its identity fields.

        Returns Result[CertificateInfo] on success.
        Returns Result.failure(DECODE_ERROR, ...) naming the failing field
        on any malformed length, truncation or unexpected tag.
        """
        try:
            info = _decode(bytes(data))
        except DecodeError as exc:
            log.debug("decoder.failed", field=exc.field, reason=exc.reason, size_bytes=len(data))
            return Result.failure(
                ErrorCode.DECODE_ERROR,
                f"Failed to decode certificate field {exc}",
                exc,
            )
        return Result.success(info)


def parse_certificate(data: bytes) -> Result[CertificateInfo]:
    """Decode `data` with a fresh, stateless decoder."""
    return DerCertificateDecoder().parse(data)
