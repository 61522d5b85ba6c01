import json
import re
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self, cast

from pysurf.exceptions import BodyConsumedError
from pysurf.http import HeaderMap, RequestBody, Url
from pysurf.response import Response
from pysurf.types import ExtensionsType, HeadersType, QueryParams, Stream

if TYPE_CHECKING:
    from pysurf.client import Client
    from pysurf.middleware.types import Middleware

_METHOD_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class Request:
    """HTTP request passed through the middleware chain. Mutable until sent."""

    def __init__(
        self,
        method: str,
        url: Url | str,
        headers: HeadersType | None = None,
        body: RequestBody | None = None,
        version: str = "HTTP/1.1",
        extensions: ExtensionsType | None = None,
    ) -> None:
        self.method = method
        self.url = url  # type: ignore[assignment]
        self._headers = HeaderMap(headers)
        self.body = body
        self.version = version
        self.extensions: dict[str, Any] = dict(extensions or {})

    @property
    def method(self) -> str:
        return self._method

    @method.setter
    def method(self, value: str) -> None:
        if not isinstance(value, str) or not _METHOD_RE.match(value):
            raise ValueError(f"invalid HTTP method: {value!r}")
        self._method = value.upper()

    @property
    def url(self) -> Url:
        return self._url

    @url.setter
    def url(self, value: Url | str) -> None:
        self._url = value if isinstance(value, Url) else Url(value)

    @property
    def headers(self) -> HeaderMap:
        return self._headers

    @headers.setter
    def headers(self, value: HeadersType) -> None:
        self._headers = value if isinstance(value, HeaderMap) else HeaderMap(value)

    def copy(self) -> Self:
        """Copy the request. Fails for a streaming body, which can be read only once. Buffer it first."""
        if self.body is not None and not self.body.is_replayable:
            raise BodyConsumedError("Cannot copy a request with a streaming body, use `await request.body.buffer()`")
        return self._clone(self.body)

    @classmethod
    def from_request_and_body(cls, request: "Request", body: RequestBody | None) -> Self:
        """Copy the request replacing its body."""
        return cast(Self, request._clone(body))

    def _clone(self, body: RequestBody | None) -> Self:
        new = object.__new__(type(self))
        new.__dict__.update(self.__dict__)
        new._headers = self._headers.copy()
        new.extensions = dict(self.extensions)
        new.body = body
        return new

    def __copy__(self) -> Self:
        return self.copy()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._method} {self._url}>"


class ConsumedRequest(Request):
    """Request that reads the whole response body when sent. Use `await request.send()`."""

    def __init__(
        self,
        client: "Client",
        request: Request,
        middlewares: "tuple[Middleware, ...]" = (),
    ) -> None:
        """Do not use directly. Instead, use RequestBuilder.build()."""
        self.__dict__.update(request.__dict__)
        self._client = client
        self._middlewares = middlewares
        self._sent = False

    async def send(self) -> Response:
        """Send the request through the client's middleware chain and read the response body."""
        if self._sent:
            raise RuntimeError("Request was already sent")
        self._sent = True
        response = await self._client._dispatch(self, self._middlewares)
        await response.bytes()
        return response


class StreamRequest(Request):
    """Request with a streamed response. Use `async with request as response:` to read the body incrementally."""

    def __init__(
        self,
        client: "Client",
        request: Request,
        middlewares: "tuple[Middleware, ...]" = (),
    ) -> None:
        """Do not use directly. Instead, use RequestBuilder.build_streamed()."""
        self.__dict__.update(request.__dict__)
        self._client = client
        self._middlewares = middlewares
        self._response: Response | None = None
        self._sent = False

    async def __aenter__(self) -> Response:
        if self._sent:
            raise RuntimeError("Request was already sent")
        self._sent = True
        self._response = await self._client._dispatch(self, self._middlewares)
        return self._response

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._response is not None:
            await self._response.aclose()


class RequestBuilder:
    """Builds a request for a client. Created by `client.request(method, url)`, `client.get(url)` etc."""

    def __init__(self, client: "Client", method: str, url: Url) -> None:
        """Do not use directly. Instead, use client.request() or the method helpers."""
        self._client = client
        self._request = Request(method, url)
        self._middlewares: list[Middleware] = []
        self._interceptor: Middleware | None = None

    def header(self, name: str, value: str) -> Self:
        """Append a header. Raises InvalidHeaderError if the header cannot be represented."""
        self._request.headers.append(name, value)
        return self

    def headers(self, headers: HeadersType) -> Self:
        self._request.headers.extend(headers)
        return self

    def query(self, query: QueryParams) -> Self:
        """Add query parameters keeping the existing ones."""
        self._request.url = self._request.url.extend_query(query)
        return self

    def version(self, version: str) -> Self:
        self._request.version = version
        return self

    def extensions(self, extensions: ExtensionsType) -> Self:
        self._request.extensions.update(extensions)
        return self

    def body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        self._request.body = RequestBody.from_bytes(body)
        return self

    def body_text(self, body: str) -> Self:
        self._request.body = RequestBody.from_text(body)
        return self

    def body_json(self, body: Any) -> Self:
        if "content-type" not in self._request.headers:
            self._request.headers["content-type"] = "application/json"
        self._request.body = RequestBody.from_bytes(json.dumps(body).encode())
        return self

    def body_stream(self, stream: Stream) -> Self:
        self._request.body = RequestBody.from_stream(stream)
        return self

    def with_middleware(self, middleware: "Middleware") -> Self:
        """Add a middleware for this request only. It runs after the client's middleware."""
        self._middlewares.append(middleware)
        return self

    def _set_interceptor(self, middleware: "Middleware") -> Self:
        """Set the innermost middleware, run right before the transport."""
        self._interceptor = middleware
        return self

    def build(self) -> ConsumedRequest:
        """Build a request which reads the whole response body when sent."""
        return ConsumedRequest(self._client, self._finish(), self._chain())

    def build_streamed(self) -> StreamRequest:
        """Build a request whose response body is read incrementally."""
        return StreamRequest(self._client, self._finish(), self._chain())

    def _finish(self) -> Request:
        request = self._request._clone(self._request.body)
        defaults = self._client.config.headers
        seen: set[str] = set()
        for name in defaults:
            if name.lower() in seen:
                continue
            seen.add(name.lower())
            if name not in request.headers:
                for value in defaults.getall(name):
                    request.headers.append(name, value)
        return request

    def _chain(self) -> "tuple[Middleware, ...]":
        interceptor = () if self._interceptor is None else (self._interceptor,)
        return (*self._middlewares, *interceptor)
