"""
FastAPI + Uvicorn ASGI application — certificate inspection as a web service.

Endpoints:
  - GET  /certificate?domain=<host>&port=<n>   fetch and normalize a remote certificate
  - POST /certificate/decode                   decode an uploaded PEM or DER file (raw body)
  - GET  /health                               liveness (fetcher initialised, config valid)
  - GET  /info                                 metadata and the active fetch policy

Failures are rendered through railway.http_support: a JSON body
{"error_code", "message", "timestamp"} with the status mapped from the ErrorCode.

Entry point for production: uvicorn cert_probe.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from railway import ErrorCode
from railway.http_support import build_fastapi_response
from railway.result import Result

from cert_probe import __version__
from cert_probe.config import AppSettings, ApiSettings, FetchSettings
from cert_probe.fetcher import CertificateFetcher
from cert_probe.main import configure_structlog, create_fetcher
from cert_probe.normalizer import record_from_der
from cert_probe.pem import load_certificate_bytes

# ─────────────────────── Global State ───────────────────────
# Set during app startup and read by the request handlers.

_settings: AppSettings | None = None
_fetcher: CertificateFetcher | None = None
_error_message: str | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: load settings, configure logging and build the fetcher.
    Shutdown: nothing to release; every fetch owns and closes its own socket.
    """
    global _settings, _fetcher, _error_message

    log.info("asgi.startup")

    try:
        settings = AppSettings()
    except Exception as e:
        error_msg = f"Configuration error: {e}"
        _error_message = error_msg
        log.error("asgi.startup_error", error=error_msg)
        raise

    configure_structlog(settings.log_level)
    _settings = settings
    _fetcher = create_fetcher(settings)

    log.info(
        "asgi.startup_config",
        version=__version__,
        log_level=settings.log_level,
        timeout_seconds=settings.fetch.timeout_seconds,
        max_attempts=settings.fetch.max_attempts,
    )

    yield  # ← App is running here; Uvicorn handles requests

    log.info("asgi.shutdown_complete")


def _fetch_settings() -> FetchSettings:
    return _settings.fetch if _settings is not None else FetchSettings()


def _api_settings() -> ApiSettings:
    return _settings.api if _settings is not None else ApiSettings()


async def _read_upload(request: Request, limit: int) -> bytes | None:
    """Read the request body, or return None as soon as it exceeds limit bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return None
    return bytes(body)


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="cert-probe",
    description="Capture, decode and normalize TLS server certificates",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/certificate")
async def certificate(domain: str | None = None, port: int | None = None) -> JSONResponse:
    """
    Fetch the certificate served at domain:port.

    Returns 200 with the normalized record.
    Returns 400 when domain is missing, 502/504 for upstream failures.
    Returns 503 if the fetcher is not initialised yet.
    """
    if _fetcher is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "Fetcher not initialized"},
        )
    if not domain or not domain.strip():
        return build_fastapi_response(
            Result.failure(ErrorCode.VALIDATION_ERROR, "Query parameter 'domain' is required")
        )

    policy = _fetch_settings()
    target_port = policy.port if port is None else port
    log.info("certificate.requested", domain=domain, port=target_port)
    result = await _fetcher.fetch(
        domain,
        target_port,
        timeout=policy.timeout_seconds,
        max_attempts=policy.max_attempts,
    )
    return build_fastapi_response(result.map(lambda record: record.to_dict()))


@app.post("/certificate/decode")
async def decode_certificate(request: Request) -> JSONResponse:
    """
    Decode a certificate file sent as the raw request body (PEM or DER).

    Returns 200 with the normalized record, 400 for an empty or oversized
    body, 422 when the content is not a decodable certificate.
    """
    limit = _api_settings().max_upload_bytes
    body = await _read_upload(request, limit)
    if body is None:
        return build_fastapi_response(
            Result.failure(
                ErrorCode.VALIDATION_ERROR,
                f"Certificate file exceeds the limit of {limit} bytes",
            )
        )

    result = load_certificate_bytes(body).flat_map(record_from_der)
    result.peek_failure(
        lambda failure: log.info(
            "decode.rejected", error_code=failure.code.value, error=failure.message
        )
    )
    return build_fastapi_response(result.map(lambda record: record.to_dict()))


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe.

    Returns 200 once the fetcher is ready.
    Returns 503 if configuration failed or startup has not completed.
    """
    if _error_message:
        log.warning("health.check_failed", error=_error_message)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )

    if _fetcher is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "fetcher not initialized"},
        )

    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata and the fetch policy requests are served with."""
    policy = _fetch_settings()
    return {
        "name": "cert-probe",
        "version": __version__,
        "default_port": policy.port,
        "timeout_seconds": policy.timeout_seconds,
        "max_attempts": policy.max_attempts,
        "retry_delay_seconds": policy.retry_delay_seconds,
        "fetcher_ready": _fetcher is not None,
        "has_error": _error_message is not None,
    }


if __name__ == "__main__":
    # For local testing: python -m uvicorn cert_probe.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "cert_probe.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
