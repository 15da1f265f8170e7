"""
Integration test fixtures — real loopback servers for the TLS probe.

Each fixture starts an asyncio server on 127.0.0.1 with an ephemeral port:
  - tls_server:       completes TLS handshakes with a throwaway self-signed cert
  - silent_server:    accepts TCP connections and never answers
  - plaintext_server: answers a ClientHello with an HTTP error and hangs up
  - closed_port:      a port nothing listens on

Servers record accepted/closed connections so tests can assert that the
client released its socket.
"""

from __future__ import annotations

import asyncio
import socket
import ssl
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import pytest_asyncio

from tests.conftest import IssuedCertificate

Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


@dataclass
class LocalServer:
    host: str
    port: int
    accepted: asyncio.Event = field(default_factory=asyncio.Event)
    closed: asyncio.Event = field(default_factory=asyncio.Event)
    connections: int = 0


async def _drain_until_eof(reader: asyncio.StreamReader) -> None:
    try:
        await reader.read()
    except (ConnectionError, ssl.SSLError):
        pass


@asynccontextmanager
async def serve(
    respond: Handler | None = None,
    ssl_context: ssl.SSLContext | None = None,
) -> AsyncIterator[LocalServer]:
    """Run a loopback server; `respond` runs before waiting for the client to hang up."""
    state = LocalServer(host="127.0.0.1", port=0)

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        state.connections += 1
        state.accepted.set()
        try:
            if respond is not None:
                await respond(reader, writer)
            await _drain_until_eof(reader)
        finally:
            state.closed.set()
            writer.close()

    server = await asyncio.start_server(handle, state.host, 0, ssl=ssl_context)
    state.port = server.sockets[0].getsockname()[1]
    try:
        yield state
    finally:
        server.close()
        try:
            await asyncio.wait_for(server.wait_closed(), timeout=5)
        except TimeoutError:
            pass


def server_context(issued: IssuedCertificate, directory: Path) -> ssl.SSLContext:
    cert_path, key_path = issued.write(directory)
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)
    return context


@pytest_asyncio.fixture()
async def tls_server(issued: IssuedCertificate, tmp_path: Path) -> AsyncIterator[LocalServer]:
    async with serve(ssl_context=server_context(issued, tmp_path)) as server:
        yield server


@pytest_asyncio.fixture()
async def silent_server() -> AsyncIterator[LocalServer]:
    async with serve() as server:
        yield server


@pytest_asyncio.fixture()
async def plaintext_server() -> AsyncIterator[LocalServer]:
    async def respond(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.read(1)  # wait for the ClientHello
        writer.write(b"HTTP/1.1 400 Bad Request\r\nConnection: close\r\n\r\n")
        await writer.drain()
        writer.close()

    async with serve(respond) as server:
        yield server


@pytest.fixture()
def closed_port() -> int:
    """A loopback port that was bound and released, so connecting is refused."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
