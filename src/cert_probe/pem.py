"""
PEM armor — convert between DER bytes and `-----BEGIN CERTIFICATE-----` text.

Uses asn1crypto.pem for the armor format itself (64-character base64 lines
between delimiter lines) so the round trip unarmor(armor(x)) == x holds for
any byte buffer.

Also implements the file-input contract: an uploaded file may be PEM text
or raw DER, and only DER ever reaches the decoder.
"""

from __future__ import annotations

import structlog
from asn1crypto import pem
from railway import ErrorCode
from railway.result import Result

from cert_probe.domain.errors import DecodeError

log = structlog.get_logger()

_CERTIFICATE = "CERTIFICATE"


def armor(der: bytes) -> str:
    """Wrap DER bytes in CERTIFICATE armor."""
    return pem.armor(_CERTIFICATE, bytes(der)).decode("ascii")


def unarmor(text: bytes | str) -> bytes:
    """
    Strip the armor from the first certificate block and base64-decode it.

    Blocks of other types (keys, CSRs) that precede it are skipped.
    Raises DecodeError(field="pem") when no certificate block can be decoded.
    """
    data = text.encode("ascii", errors="replace") if isinstance(text, str) else bytes(text)
    try:
        for object_type, _headers, der in pem.unarmor(data, multiple=True):
            if object_type.endswith(_CERTIFICATE):
                return der
    except ValueError as exc:
        raise DecodeError("pem", str(exc)) from exc
    raise DecodeError("pem", "no CERTIFICATE block found")


def load_certificate_bytes(data: bytes) -> Result[bytes]:
    """
    Resolve an uploaded file to DER bytes.

    PEM (detected by its BEGIN line) is un-armored; anything else is assumed
    to already be DER and is passed through untouched for the decoder to judge.
    """
    if not data:
        return Result.failure(ErrorCode.VALIDATION_ERROR, "Certificate file is empty")
    if not pem.detect(data):
        return Result.success(bytes(data))
    try:
        der = unarmor(data)
    except DecodeError as exc:
        log.debug("pem.unarmor_failed", reason=exc.reason)
        return Result.failure(ErrorCode.DECODE_ERROR, f"Failed to read PEM file: {exc.reason}", exc)
    if not der:
        return Result.failure(ErrorCode.DECODE_ERROR, "PEM certificate block is empty")
    return Result.success(der)
