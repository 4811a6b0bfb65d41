"""
Single-request Electrum JSON-RPC session over TCP or TLS.

Each session opens one connection, sends one request, reads until one
complete JSON document has arrived and closes the connection on every
exit path. Sessions are not reused.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import ssl
from enum import Enum
from typing import Any

from loguru import logger

from panopticon.constants import (
    DEFAULT_SOCKET_TIMEOUT,
    ELECTRUM_READ_CHUNK,
    ELECTRUM_REQUEST_ID,
    SENSITIVE_LOGGING,
)
from panopticon.electrum.framing import DEFAULT_MAX_FRAME_SIZE, FrameReader
from panopticon.errors import (
    ElectrumConnectionError,
    ElectrumError,
    ElectrumTimeoutError,
    ProtocolError,
)
from panopticon.models import ElectrumServer


class SessionState(str, Enum):
    CONNECTING = "connecting"
    SENDING = "sending"
    READING = "reading"
    COMPLETE = "complete"
    FAILED = "failed"


def make_ssl_context(allow_insecure: bool = False) -> ssl.SSLContext:
    """
    Build the client TLS context.

    With allow_insecure the server is trusted by host/port alone and its
    certificate chain is not validated (self-signed Electrum servers).
    """
    context = ssl.create_default_context()
    if allow_insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_request(method: str, params: list[Any], request_id: int = ELECTRUM_REQUEST_ID) -> bytes:
    """Serialize a JSON-RPC request terminated by the newline delimiter."""
    payload = {
        "jsonrpc": "2.0",
        "method": method,
        "params": params,
        "id": request_id,
    }
    return json.dumps(payload).encode("utf-8") + b"\n"


class ElectrumSession:
    def __init__(
        self,
        server: ElectrumServer,
        timeout: float = DEFAULT_SOCKET_TIMEOUT,
        allow_insecure_tls: bool = False,
        chunk_size: int = ELECTRUM_READ_CHUNK,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ):
        self.server = server
        self.timeout = timeout
        self.allow_insecure_tls = allow_insecure_tls
        self.chunk_size = chunk_size
        self.max_frame_size = max_frame_size
        self.state = SessionState.CONNECTING
        self._used = False

    async def call(self, method: str, params: list[Any]) -> dict[str, Any]:
        """
        Run one request/response exchange.

        Returns:
            The decoded JSON-RPC response object

        Raises:
            ElectrumConnectionError: Connect or write failed
            ElectrumTimeoutError: A connect or read exceeded the timeout
            FramingError: Stream ended before a complete document
            ProtocolError: Response is not a JSON-RPC object for this request
        """
        if self._used:
            raise ElectrumError("ElectrumSession is single-use")
        self._used = True

        self.state = SessionState.CONNECTING
        try:
            reader, writer = await self._connect()
        except ElectrumError:
            self.state = SessionState.FAILED
            raise

        try:
            self.state = SessionState.SENDING
            await self._send(writer, build_request(method, params))

            self.state = SessionState.READING
            response = await self._read(reader)

            if not isinstance(response, dict):
                raise ProtocolError(f"Expected JSON object, got {type(response).__name__}")
            if response.get("id") not in (None, ELECTRUM_REQUEST_ID):
                raise ProtocolError(f"Response id {response.get('id')!r} does not match request")

            self.state = SessionState.COMPLETE
            return response
        except BaseException:
            self.state = SessionState.FAILED
            raise
        finally:
            writer.close()
            with contextlib.suppress(OSError, asyncio.TimeoutError):
                await asyncio.wait_for(writer.wait_closed(), timeout=self.timeout)
            logger.debug(f"Closed connection to {self.server}")

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        ssl_context = make_ssl_context(self.allow_insecure_tls) if self.server.use_ssl else None
        logger.debug(
            f"Connecting to {self.server.host}:{self.server.port} (SSL: {self.server.use_ssl})"
        )
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(self.server.host, self.server.port, ssl=ssl_context),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ElectrumTimeoutError(f"Connection to {self.server} timed out") from e
        except OSError as e:
            raise ElectrumConnectionError(f"Could not connect to {self.server}: {e}") from e

    async def _send(self, writer: asyncio.StreamWriter, message: bytes) -> None:
        if SENSITIVE_LOGGING:
            logger.debug(f"ElectrumSession.send: {message[:200]!r}")
        try:
            writer.write(message)
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ElectrumTimeoutError(f"Write to {self.server} timed out") from e
        except OSError as e:
            raise ElectrumConnectionError(f"Write to {self.server} failed: {e}") from e

    async def _read(self, reader: asyncio.StreamReader) -> Any:
        frame = FrameReader(max_size=self.max_frame_size)

        while True:
            try:
                chunk = await asyncio.wait_for(reader.read(self.chunk_size), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise ElectrumTimeoutError(
                    f"No complete response from {self.server} within {self.timeout}s"
                ) from e
            except OSError as e:
                raise ElectrumConnectionError(f"Read from {self.server} failed: {e}") from e

            if not chunk:
                logger.warning(
                    f"End of stream from {self.server} without complete response "
                    f"({frame.buffered} bytes buffered)"
                )
                return frame.finish()

            logger.debug(f"ElectrumSession.read: received {len(chunk)} bytes")
            if frame.feed(chunk):
                return frame.document
