from __future__ import annotations

import logging
from typing import AsyncIterator, Iterator, List, Optional

import anyio.from_thread
from starlette.requests import ClientDisconnect

from providers.storage import ObjectReader

log = logging.getLogger(__name__)


class RequestBodyReader:
    """
    Blocking file-like view over an async request body.

    Meant to be handed to a storage SDK running in a worker thread: every
    read() pulls at most the chunks it needs from the event loop, so only the
    current chunk is held in memory.
    """

    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        self._chunks = chunks.__aiter__()
        self._chunk = b""
        self._pos = 0
        self._eof = False
        self.bytes_read = 0

    async def _next_chunk(self) -> Optional[bytes]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None
        except ClientDisconnect as exc:
            raise OSError("client disconnected before the request body was complete") from exc

    def _pull(self) -> bool:
        while not self._eof:
            chunk = anyio.from_thread.run(self._next_chunk)
            if chunk is None:
                self._eof = True
                break
            if chunk:
                self._chunk, self._pos = chunk, 0
                return True
        return False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = -1
        parts: List[bytes] = []
        remaining = size
        while remaining != 0:
            if self._pos >= len(self._chunk) and not self._pull():
                break
            end = len(self._chunk) if remaining < 0 else self._pos + remaining
            piece = self._chunk[self._pos:end]
            self._pos += len(piece)
            if remaining > 0:
                remaining -= len(piece)
            parts.append(piece)

        data = b"".join(parts)
        self.bytes_read += len(data)
        return data


def iter_object_chunks(reader: ObjectReader, chunk_size: int, label: str = "") -> Iterator[bytes]:
    """
    Copy an object reader into a response body, chunk by chunk.

    The status line and headers are already on the wire once this runs, so a
    read failure can only be logged; the body simply ends. The reader is
    closed on every exit path.
    """
    try:
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            yield chunk
    except Exception:
        log.exception("Error writing response: %s", label)
    finally:
        reader.close()
