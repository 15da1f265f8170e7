"""
Application entry point — command line and composition root.

Responsibilities:
  1. Configure structlog for structured logging (to stderr, so stdout
     carries only JSON results)
  2. Load and validate configuration from environment
  3. Create the fetcher with the configured retry policy
  4. Dispatch the sub-command:

     cert-probe fetch example.com [example.org:8443 ...]   concurrent fetches
     cert-probe decode cert.pem [cert.der ...]             decode local files
     cert-probe serve                                      run the HTTP API

Each fetched/decoded item is printed as one JSON line. The exit status is 1
when any item failed.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from cert_probe import __version__
from cert_probe.config import AppSettings
from cert_probe.domain.models import CertificateRecord
from cert_probe.fetcher import CertificateFetcher
from cert_probe.normalizer import record_from_der
from cert_probe.pem import load_certificate_bytes


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured, human-readable console logging.

    Log lines go to stderr so they never interleave with JSON on stdout.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def create_fetcher(settings: AppSettings) -> CertificateFetcher:
    """The single place where the production fetcher is assembled."""
    return CertificateFetcher(retry_delay=settings.fetch.retry_delay_seconds)


def parse_target(target: str, default_port: int) -> tuple[str, int]:
    """
    Split HOST[:PORT]; IPv6 literals use brackets ("[::1]:8443").

    Raises ValueError for a non-numeric port.
    """
    if target.startswith("["):
        host, _, rest = target[1:].partition("]")
        port = rest.removeprefix(":")
        return host, int(port) if port else default_port
    if target.count(":") == 1:
        host, port = target.split(":")
        return host, int(port)
    return target, default_port


def _failure_line(target: str, failure: FailureDescription) -> dict[str, str]:
    return {"target": target, "error_code": failure.code.value, "message": failure.message}


def _emit(target: str, result: Result[CertificateRecord]) -> bool:
    """Print one JSON line for the result; True when it was a success."""
    line = result.either(
        on_success=lambda record: {"target": target, **record.to_dict()},
        on_failure=lambda failure: _failure_line(target, failure),
    )
    print(json.dumps(line))  # noqa: T201
    return result.is_success()


async def _fetch_all(targets: list[str], settings: AppSettings) -> int:
    fetcher = create_fetcher(settings)

    async def fetch_one(target: str) -> Result[CertificateRecord]:
        try:
            host, port = parse_target(target, settings.fetch.port)
        except ValueError:
            return Result.failure(ErrorCode.VALIDATION_ERROR, f"Invalid target {target!r}")
        return await fetcher.fetch(
            host,
            port,
            timeout=settings.fetch.timeout_seconds,
            max_attempts=settings.fetch.max_attempts,
        )

    results = await asyncio.gather(*(fetch_one(target) for target in targets))
    outcomes = [_emit(target, result) for target, result in zip(targets, results)]
    return 0 if all(outcomes) else 1


def decode_file(path: Path) -> Result[CertificateRecord]:
    """Read a PEM or DER file and normalize the certificate it holds."""
    return (
        Result.from_computation(
            path.read_bytes,
            ErrorCode.VALIDATION_ERROR,
            f"Cannot read {path}",
        )
        .flat_map(load_certificate_bytes)
        .flat_map(record_from_der)
    )


def _decode_all(paths: list[str]) -> int:
    outcomes = [_emit(path, decode_file(Path(path))) for path in paths]
    return 0 if all(outcomes) else 1


def _serve(settings: AppSettings) -> int:
    import uvicorn

    uvicorn.run(
        "cert_probe.asgi:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cert-probe",
        description="Capture TLS certificates from servers or decode certificate files.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    fetch = commands.add_parser("fetch", help="fetch certificates from HOST[:PORT] targets")
    fetch.add_argument("targets", nargs="+", metavar="HOST[:PORT]")
    fetch.add_argument("--timeout", type=float, help="per-attempt timeout in seconds")
    fetch.add_argument("--attempts", type=int, help="maximum attempts per target")

    decode = commands.add_parser("decode", help="decode PEM or DER certificate files")
    decode.add_argument("paths", nargs="+", metavar="FILE")

    commands.add_parser("serve", help="run the HTTP API")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, wire dependencies and run the sub-command."""
    args = _build_parser().parse_args(argv)

    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    if args.command == "fetch":
        overrides = {
            "timeout_seconds": args.timeout,
            "max_attempts": args.attempts,
        }
        fetch_settings = settings.fetch.model_copy(
            update={key: value for key, value in overrides.items() if value is not None}
        )
        settings = settings.model_copy(update={"fetch": fetch_settings})

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    log.debug("app.starting", version=__version__, command=args.command)

    match args.command:
        case "fetch":
            code = asyncio.run(_fetch_all(args.targets, settings))
        case "decode":
            code = _decode_all(args.paths)
        case _:
            code = _serve(settings)
    sys.exit(code)


if __name__ == "__main__":
    main()
