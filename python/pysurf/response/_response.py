import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Self

from pysurf.exceptions import BuilderError, DecodeError, StatusError
from pysurf.http import HeaderMap
from pysurf.http._body import aiter_chunks, single_chunk
from pysurf.types import ExtensionsType, HeadersType, Stream


class ResponseBodyReader:
    """Reads the response body chunk by chunk. The body can be read only once; `read_all` caches it."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes] | None = None,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._chunks = chunks
        self._on_close = on_close
        self._buffer: bytes | None = None
        self._closed = False

    @classmethod
    def from_bytes(cls, body: bytes) -> Self:
        return cls(single_chunk(body))

    async def read_chunk(self) -> bytes | None:
        """Read the next chunk. Returns None when the body is exhausted."""
        if self._chunks is None or self._buffer is not None:
            return None
        try:
            chunk = await anext(self._chunks, None)
        except BaseException:
            await self.aclose()
            raise
        if chunk is None:
            await self.aclose()
        return chunk

    async def read_all(self) -> bytes:
        """Read the remaining body and cache it. Releases the underlying connection."""
        if self._buffer is not None:
            return self._buffer
        parts: list[bytes] = []
        try:
            while (chunk := await self.read_chunk()) is not None:
                parts.append(chunk)
        finally:
            await self.aclose()
        self._buffer = b"".join(parts)
        return self._buffer

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Release the resources held by the body. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._chunks is not None and (aclose := getattr(self._chunks, "aclose", None)) is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()


class Response:
    """HTTP response. Owned by whichever middleware last produced it until it is returned to the caller."""

    def __init__(
        self,
        status: int = 200,
        headers: HeadersType | None = None,
        version: str = "HTTP/1.1",
        body_reader: ResponseBodyReader | None = None,
        extensions: ExtensionsType | None = None,
    ) -> None:
        """Do not use directly. Instead, use ResponseBuilder or a client."""
        self.status = status
        self._headers = HeaderMap(headers)
        self.version = version
        self._body_reader = body_reader if body_reader is not None else ResponseBodyReader.from_bytes(b"")
        self.extensions: dict[str, Any] = dict(extensions or {})

    @property
    def status(self) -> int:
        return self._status

    @status.setter
    def status(self, value: int) -> None:
        if not isinstance(value, int) or not 100 <= value <= 999:
            raise ValueError(f"invalid status code: {value!r}")
        self._status = value

    @property
    def headers(self) -> HeaderMap:
        return self._headers

    @headers.setter
    def headers(self, value: HeadersType) -> None:
        self._headers = value if isinstance(value, HeaderMap) else HeaderMap(value)

    @property
    def body_reader(self) -> ResponseBodyReader:
        return self._body_reader

    @body_reader.setter
    def body_reader(self, value: ResponseBodyReader) -> None:
        self._body_reader = value

    async def next_chunk(self) -> bytes | None:
        """Read the next body chunk, None when the body is exhausted."""
        return await self._body_reader.read_chunk()

    async def bytes(self) -> bytes:
        """Read the whole body. Subsequent calls return the cached bytes."""
        return await self._body_reader.read_all()

    async def text(self) -> str:
        body = await self.bytes()
        try:
            return body.decode(self._charset())
        except (LookupError, UnicodeDecodeError) as e:
            raise DecodeError(f"error decoding response body: {e}") from e

    async def json(self) -> Any:
        body = await self.bytes()
        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(f"error decoding response body as JSON: {e}") from e

    def error_for_status(self) -> None:
        """Raise StatusError if the status is a client or server error."""
        if 400 <= self._status < 500:
            raise StatusError("HTTP status client error", {"status": self._status})
        if 500 <= self._status < 600:
            raise StatusError("HTTP status server error", {"status": self._status})

    async def aclose(self) -> None:
        """Release the connection without reading the rest of the body."""
        await self._body_reader.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _charset(self) -> str:
        content_type = self._headers.get("content-type", "")
        for param in content_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip('"')
        return "utf-8"

    def __repr__(self) -> str:
        return f"<Response status={self._status} version={self.version!r}>"


class ResponseBuilder:
    """Builds responses. Used by middleware that produce a response without calling the rest of the chain."""

    def __init__(self) -> None:
        self._status = 200
        self._headers = HeaderMap()
        self._version = "HTTP/1.1"
        self._body: bytes | Stream = b""
        self._extensions: dict[str, Any] = {}

    def status(self, value: int) -> Self:
        if not isinstance(value, int) or not 100 <= value <= 999:
            raise BuilderError(f"invalid status code: {value!r}")
        self._status = value
        return self

    def header(self, name: str, value: str) -> Self:
        self._headers.append(name, value)
        return self

    def headers(self, headers: HeadersType) -> Self:
        self._headers.extend(headers)
        return self

    def version(self, value: str) -> Self:
        self._version = value
        return self

    def extensions(self, extensions: ExtensionsType) -> Self:
        self._extensions.update(extensions)
        return self

    def body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        self._body = bytes(body)
        return self

    def body_text(self, body: str) -> Self:
        if "content-type" not in self._headers:
            self._headers["content-type"] = "text/plain; charset=utf-8"
        self._body = body.encode()
        return self

    def body_json(self, body: Any) -> Self:
        if "content-type" not in self._headers:
            self._headers["content-type"] = "application/json"
        self._body = json.dumps(body).encode()
        return self

    def body_stream(self, stream: Stream) -> Self:
        self._body = stream
        return self

    async def build(self) -> Response:
        if isinstance(self._body, bytes):
            reader = ResponseBodyReader.from_bytes(self._body)
        else:
            reader = ResponseBodyReader(aiter_chunks(self._body))
        return Response(
            status=self._status,
            headers=self._headers.copy(),
            version=self._version,
            body_reader=reader,
            extensions=self._extensions,
        )

