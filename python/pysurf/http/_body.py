from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Self

from pysurf.exceptions import BodyConsumedError
from pysurf.types import Stream


class RequestBody:
    """Body of a request. Either buffered bytes or a single-pass stream of byte chunks."""

    __slots__ = ("_data", "_stream", "_consumed")

    def __init__(self, data: bytes | None = None, stream: Stream | None = None) -> None:
        """Do not use directly. Instead, use RequestBody.from_bytes(), from_text() or from_stream()."""
        assert (data is None) != (stream is None), "Exactly one of data or stream is required"
        self._data = data
        self._stream = stream
        self._consumed = False

    @classmethod
    def from_bytes(cls, body: bytes | bytearray | memoryview) -> Self:
        return cls(data=bytes(body))

    @classmethod
    def from_text(cls, body: str) -> Self:
        return cls(data=body.encode())

    @classmethod
    def from_stream(cls, stream: Stream) -> Self:
        """Body from a sync or async iterable of byte chunks. The stream can be read only once."""
        return cls(stream=stream)

    def copy_bytes(self) -> bytes | None:
        """Return the buffered bytes, or None if this is a stream body."""
        return self._data

    def get_stream(self) -> Stream | None:
        """Return the underlying stream, or None if this is a bytes body."""
        return self._stream

    @property
    def is_replayable(self) -> bool:
        """Whether the body can be sent more than once."""
        return self._data is not None

    def take_stream(self) -> AsyncIterator[bytes]:
        """Take the body as an async iterator of chunks. A stream body can be taken only once."""
        if self._data is not None:
            return single_chunk(self._data)
        if self._consumed:
            raise BodyConsumedError("Request body stream was already consumed")
        self._consumed = True
        assert self._stream is not None
        return aiter_chunks(self._stream)

    async def buffer(self) -> "RequestBody":
        """Read a stream body into memory so it can be replayed. Bytes bodies are returned as is."""
        if self._data is not None:
            return self
        return RequestBody.from_bytes(b"".join([chunk async for chunk in self.take_stream()]))

    def __repr__(self) -> str:
        if self._data is not None:
            return f"RequestBody(bytes, len={len(self._data)})"
        return f"RequestBody(stream, consumed={self._consumed})"


async def single_chunk(data: bytes) -> AsyncIterator[bytes]:
    if data:
        yield data


async def aiter_chunks(stream: Stream) -> AsyncIterator[bytes]:
    if isinstance(stream, AsyncIterable):
        async for chunk in stream:
            yield bytes(chunk)
    else:
        assert isinstance(stream, Iterable)
        for chunk in stream:
            yield bytes(chunk)
