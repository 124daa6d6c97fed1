from typing import AsyncIterator, Protocol

import httpx

from subconscious.errors import StreamUnavailableError, TransportError


class IByteSource(Protocol):
    """Asynchronous source of raw stream bytes, owned by a single decoder."""

    async def read(self) -> bytes | None:
        """Return the next chunk, or None once the stream is exhausted."""
        ...

    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        ...


class HttpxByteSource:
    """Reads the body of a streamed `httpx.Response` chunk by chunk."""

    def __init__(self, response: httpx.Response):
        if response.is_stream_consumed or response.is_closed:
            raise StreamUnavailableError("Response body is not readable")
        self._response = response
        self._chunks: AsyncIterator[bytes] = response.aiter_bytes()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes | None:
        if self._closed:
            return None
        try:
            return await anext(self._chunks)
        except StopAsyncIteration:
            return None
        except httpx.TransportError as exc:
            raise TransportError(f"Stream interrupted: {exc}") from exc

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()
