"""
HTTP integration — ErrorCode→HTTP status mapping and response builders.

Framework-agnostic core plus a FastAPI adapter.

Usage (standalone):
    status = HttpStatusMapper.map_error_code(ErrorCode.TIMEOUT_ERROR)  # → 504

Usage (FastAPI):
    from railway.http_support import build_fastapi_response
    return build_fastapi_response(result.map(lambda record: record.to_dict()))
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, TypeVar

from fastapi.responses import JSONResponse

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


# ──────────────────────── Error Code → HTTP Status Mapping ────────────────────────


class HttpStatusMapper:
    """Maps ErrorCode enum values to HTTP status codes."""

    _CODE_TO_STATUS: dict[ErrorCode, int] = {
        # Client errors (4xx)
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.DECODE_ERROR: 422,
        # Remote endpoint errors (5xx)
        ErrorCode.NETWORK_ERROR: 502,
        ErrorCode.HANDSHAKE_ERROR: 502,
        ErrorCode.CERTIFICATE_ABSENT: 502,
        ErrorCode.TIMEOUT_ERROR: 504,
        # Server errors (5xx)
        ErrorCode.CONFIGURATION_ERROR: 500,
        ErrorCode.TECHNICAL_ERROR: 500,
        ErrorCode.UNKNOWN_ERROR: 500,
    }

    @classmethod
    def map_error_code(cls, code: ErrorCode) -> int:
        return cls._CODE_TO_STATUS.get(code, 500)

    @classmethod
    def map_failure(cls, failure: FailureDescription) -> int:
        return cls.map_error_code(failure.code)


# ──────────────────────── Error Response DTO ────────────────────────


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """
    Standardized error response body.

        {
            "error_code": "CERTIFICATE_ABSENT",
            "message": "example.com:443 did not provide a certificate ...",
            "timestamp": "2026-02-17T10:30:00+00:00"
        }
    """

    error_code: str
    message: str
    timestamp: str

    @staticmethod
    def from_failure(failure: FailureDescription) -> ErrorResponse:
        return ErrorResponse(
            error_code=failure.code.value,
            message=failure.message,
            timestamp=failure.timestamp.isoformat(),
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


# ──────────────────────── Response Builders ────────────────────────


def build_response(
    result: Result[T],
    success_status: int = 200,
) -> tuple[Any, int]:
    """
    Build a (body, status_code) tuple from a Result.

        body, status = build_response(result)
    """
    return result.either(
        on_success=lambda value: (value, success_status),
        on_failure=lambda error: (
            ErrorResponse.from_failure(error).to_dict(),
            HttpStatusMapper.map_failure(error),
        ),
    )


def build_fastapi_response(
    result: Result[T],
    success_status: int = 200,
) -> JSONResponse:
    """
    Build a FastAPI JSONResponse from a Result whose value is JSON-encodable.

        @app.get("/certificate")
        async def certificate(domain: str) -> JSONResponse:
            result = await fetcher.fetch(domain)
            return build_fastapi_response(result.map(lambda r: r.to_dict()))
    """
    body, status = build_response(result, success_status)
    return JSONResponse(content=body, status_code=status)
