"""
Pytest configuration and fixtures for panopticon tests.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any

import pytest
import pytest_asyncio

from panopticon.models import ElectrumServer

# BIP84 test vector: account 0 of "abandon abandon ... about"
BIP84_ZPUB = (
    "zpub6rFR7y4Q2AijBEqTUquhVz398htDFrtymD9xYYfG1m4wAcvPhXNfE3EfH1r1"
    "ADqtfSdVCToUG868RvUUkgDKf31mGDtKsAYz2oz2AGutZYs"
)
BIP84_RECEIVE_0 = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
BIP84_RECEIVE_1 = "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g"
BIP84_RECEIVE_0_PUBKEY = "0330d54fd0dd420a6e5f8d3624f5f3482cae350f79d5f0753bf5beef9c2d91af3c"
BIP84_RECEIVE_0_SCRIPT = "0014c0cebcd6c3d3ca8c75dc5ec62ebe55330ef910e2"

GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
GENESIS_SCRIPTHASH = "8b01df4e368ea28f8dc0423bcf7a4923e3a12d307c875e47a0cfbf90b5c39161"


@pytest.fixture
def bip84_zpub() -> str:
    return BIP84_ZPUB


def split_payload(payload: bytes, sizes: list[int] | None) -> list[bytes]:
    """Split payload into chunks of the given sizes (remainder goes last)."""
    if not sizes:
        return [payload]
    chunks = []
    offset = 0
    for size in sizes:
        chunks.append(payload[offset : offset + size])
        offset += size
    if offset < len(payload):
        chunks.append(payload[offset:])
    return [c for c in chunks if c]


class FakeElectrumServer:
    """
    Minimal line-oriented Electrum server for one request per connection.

    results maps method -> result. raw_reply overrides the serialized
    response; chunk_sizes splits the reply; hold_open keeps the connection
    open after replying until the server is stopped.
    """

    def __init__(self) -> None:
        self.results: dict[str, Any] = {}
        self.raw_reply: bytes | None = None
        self.chunk_sizes: list[int] | None = None
        self.hold_open = False
        self.requests: list[dict[str, Any]] = []
        self.connections = 0
        self._server: asyncio.AbstractServer | None = None
        self._release = asyncio.Event()
        self.port = 0

    @property
    def electrum_server(self) -> ElectrumServer:
        return ElectrumServer(host="127.0.0.1", port=self.port, use_ssl=False)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._release.set()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def reply_for(self, request: dict[str, Any]) -> bytes:
        if self.raw_reply is not None:
            return self.raw_reply
        method = request.get("method", "")
        if method in self.results:
            body: dict[str, Any] = {
                "jsonrpc": "2.0",
                "id": request.get("id"),
                "result": self.results[method],
            }
        else:
            body = {
                "jsonrpc": "2.0",
                "id": request.get("id"),
                "error": {"code": -32601, "message": f"unknown method {method}"},
            }
        return json.dumps(body).encode() + b"\n"

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        try:
            line = await reader.readline()
            request = json.loads(line)
            self.requests.append(request)

            for chunk in split_payload(self.reply_for(request), self.chunk_sizes):
                writer.write(chunk)
                await writer.drain()
                await asyncio.sleep(0.01)

            if self.hold_open:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._release.wait(), timeout=5.0)
        except (ConnectionError, json.JSONDecodeError):
            pass
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()


@pytest_asyncio.fixture
async def electrum_server():
    server = FakeElectrumServer()
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def closed_port() -> int:
    """A local port with nothing listening on it."""
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()
    return port
