"""
Failure description — structured error information for the failure track.

Every failure carries an ErrorCode (what kind of failure), a human-readable
message, the originating exception when there is one, and a UTC timestamp.

The codes are the failure taxonomy of certificate acquisition and decoding,
plus the generic validation/technical buckets every boundary needs.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Organized by HTTP status range for natural REST API mapping:
    - Client errors (4xx): VALIDATION, DECODE
    - Upstream errors (5xx): NETWORK, HANDSHAKE, CERTIFICATE_ABSENT, TIMEOUT
    - Server errors (5xx): CONFIGURATION, TECHNICAL, UNKNOWN
    """

    # --- Client-side errors (4xx HTTP range) ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Invalid input: blank hostname, bad port, empty upload (→ 400)."""

    DECODE_ERROR = "DECODE_ERROR"
    """Malformed or unsupported DER/PEM content (→ 422)."""

    # --- Remote endpoint errors (5xx HTTP range) ---
    NETWORK_ERROR = "NETWORK_ERROR"
    """Address resolution, connection refused or reset (→ 502)."""

    HANDSHAKE_ERROR = "HANDSHAKE_ERROR"
    """TLS negotiation failed (→ 502)."""

    CERTIFICATE_ABSENT = "CERTIFICATE_ABSENT"
    """Handshake succeeded but no usable certificate was presented (→ 502)."""

    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    """Attempt exceeded its deadline (→ 504)."""

    # --- Server-side errors (5xx HTTP range) ---
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration (→ 500)."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected infrastructure failure (→ 500)."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unclassified failures (→ 500)."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.DECODE_ERROR, "serialNumber: truncated")
    >>> desc.code
    <ErrorCode.DECODE_ERROR: 'DECODE_ERROR'>
    >>> desc.message
    'serialNumber: truncated'
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
