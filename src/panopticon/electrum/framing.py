"""
Incremental JSON framing for Electrum responses.

Electrum servers terminate messages with a newline but give no length
prefix, and TCP may split a response anywhere. The reader keeps the
received bytes and re-parses the whole buffer after every chunk until
one complete JSON document is available.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from panopticon.errors import FramingError

DEFAULT_MAX_FRAME_SIZE = 2097152  # 2MB

_decoder = json.JSONDecoder()


class FrameReader:
    def __init__(self, max_size: int = DEFAULT_MAX_FRAME_SIZE):
        self.max_size = max_size
        self._buffer = bytearray()
        self._document: Any = None
        self._complete = False

    @property
    def complete(self) -> bool:
        return self._complete

    @property
    def document(self) -> Any:
        """The parsed document; only meaningful once complete is True."""
        return self._document

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> bool:
        """
        Append a chunk and try to parse the buffer.

        Returns:
            True once a complete document has been parsed

        Raises:
            FramingError: If the buffer grows beyond max_size without completing
        """
        if self._complete:
            return True

        self._buffer.extend(chunk)
        if len(self._buffer) > self.max_size:
            raise FramingError(
                f"Response exceeds {self.max_size} bytes without a complete document"
            )

        parsed, ok = self._try_parse()
        if ok:
            self._document = parsed
            self._complete = True
            logger.debug(f"FrameReader: complete document after {len(self._buffer)} bytes")
        return self._complete

    def _try_parse(self) -> tuple[Any, bool]:
        whole = True
        try:
            text = self._buffer.decode("utf-8")
        except UnicodeDecodeError as e:
            # Split multi-byte character or junk after the document: only the
            # valid prefix can hold a complete document.
            text = self._buffer[: e.start].decode("utf-8")
            whole = False

        text = text.lstrip()
        if not text:
            return None, False

        try:
            value, _ = _decoder.raw_decode(text)
        except json.JSONDecodeError:
            return None, False

        # Containers are self-delimiting; a bare scalar such as "12" could
        # still be the prefix of "123", so it must span the whole buffer.
        if isinstance(value, (dict, list)):
            return value, True
        if not whole:
            return None, False

        try:
            return json.loads(text), True
        except json.JSONDecodeError:
            return None, False

    def finish(self) -> Any:
        """
        Signal end of stream.

        Raises:
            FramingError: If no complete document was received
        """
        if not self._complete:
            raise FramingError(
                f"Stream ended before a complete JSON document ({len(self._buffer)} bytes buffered)"
            )
        return self._document


def parse_chunks(chunks: list[bytes], max_size: int = DEFAULT_MAX_FRAME_SIZE) -> Any:
    """Feed chunks in order and return the first complete document."""
    reader = FrameReader(max_size=max_size)
    for chunk in chunks:
        if reader.feed(chunk):
            break
    return reader.finish()
