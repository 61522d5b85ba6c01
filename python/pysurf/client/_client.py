from datetime import timedelta
from types import TracebackType
from typing import Self

from pysurf.client._config import Config
from pysurf.exceptions import ClientClosedError, StatusError
from pysurf.http import Url
from pysurf.http._headers import header_pairs
from pysurf.middleware import Next
from pysurf.middleware.types import Middleware
from pysurf.request import Request, RequestBuilder
from pysurf.response import Response
from pysurf.transport import AiohttpTransport
from pysurf.transport.types import Transport
from pysurf.types import HeadersType


class Client:
    """Asynchronous HTTP client. Use ClientBuilder to create a client.

    The client is a cheap handle passed to every middleware. Many requests can be in flight concurrently, they share
    only the immutable middleware tuple and the transport.
    """

    def __init__(
        self,
        config: Config,
        middlewares: tuple[Middleware, ...] = (),
        *,
        error_for_status: bool = False,
    ) -> None:
        """Do not use directly. Instead, use ClientBuilder.build()."""
        self._config = config
        self._middlewares = middlewares
        self._error_for_status = error_for_status
        self._transport: Transport | None = config.transport
        self._closed = False

    @property
    def config(self) -> Config:
        return self._config

    @property
    def middlewares(self) -> tuple[Middleware, ...]:
        """Client middleware in invocation order."""
        return self._middlewares

    def request(self, method: str, url: Url | str) -> RequestBuilder:
        """Start building a request. Relative URLs are joined onto the configured base_url."""
        return RequestBuilder(self, method, self._config.join_url(url))

    def get(self, url: Url | str) -> RequestBuilder:
        return self.request("GET", url)

    def post(self, url: Url | str) -> RequestBuilder:
        return self.request("POST", url)

    def put(self, url: Url | str) -> RequestBuilder:
        return self.request("PUT", url)

    def patch(self, url: Url | str) -> RequestBuilder:
        return self.request("PATCH", url)

    def delete(self, url: Url | str) -> RequestBuilder:
        return self.request("DELETE", url)

    def head(self, url: Url | str) -> RequestBuilder:
        return self.request("HEAD", url)

    def options(self, url: Url | str) -> RequestBuilder:
        return self.request("OPTIONS", url)

    async def send(self, request: Request) -> Response:
        """Send a request through the client's middleware chain. The response body is not read."""
        return await self._dispatch(request)

    async def _dispatch(self, request: Request, request_middlewares: tuple[Middleware, ...] = ()) -> Response:
        if self._closed:
            raise ClientClosedError("Client was closed")

        response = await Next(self._middlewares + request_middlewares, send_with_transport, self).run(request)

        if self._error_for_status:
            try:
                response.error_for_status()
            except StatusError:
                await response.aclose()
                raise
        return response

    def _get_transport(self) -> Transport:
        if self._closed:
            raise ClientClosedError("Client was closed")
        if self._transport is None:
            self._transport = AiohttpTransport(self._config)
        return self._transport

    async def close(self) -> None:
        """Close the client. A transport given in the config is left open for its owner."""
        if self._closed:
            return
        self._closed = True
        if self._config.transport is None and self._transport is not None:
            await self._transport.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


async def send_with_transport(client: Client, request: Request) -> Response:
    """Endpoint of every middleware chain."""
    return await client._get_transport().send(request)


class ClientBuilder:
    """Builds a Client. Middleware is attached in order, the first attached runs first."""

    def __init__(self, config: Config | None = None) -> None:
        self._config = config if config is not None else Config()
        self._middlewares: list[Middleware] = []
        self._error_for_status = False

    def config(self, config: Config) -> Self:
        """Replace the whole configuration."""
        self._config = config
        return self

    def base_url(self, url: Url | str | None) -> Self:
        """Set the base URL. A trailing slash is significant, see Config.base_url."""
        self._config = self._config.set_base_url(url)
        return self

    def default_header(self, name: str, *values: str) -> Self:
        self._config = self._config.add_header(name, *values)
        return self

    def default_headers(self, headers: HeadersType) -> Self:
        for name, value in header_pairs(headers):
            self._config = self._config.add_header(name, value)
        return self

    def http_keep_alive(self, keep_alive: bool) -> Self:
        self._config = self._config.set_http_keep_alive(keep_alive)
        return self

    def tcp_no_delay(self, no_delay: bool) -> Self:
        self._config = self._config.set_tcp_no_delay(no_delay)
        return self

    def timeout(self, timeout: timedelta | None) -> Self:
        self._config = self._config.set_timeout(timeout)
        return self

    def transport(self, transport: Transport | None) -> Self:
        self._config = self._config.set_transport(transport)
        return self

    def error_for_status(self, enable: bool) -> Self:
        """Raise StatusError for responses with 4xx or 5xx status."""
        self._error_for_status = enable
        return self

    def with_middleware(self, middleware: Middleware) -> Self:
        """Append a middleware to the chain."""
        self._middlewares.append(middleware)
        return self

    def build(self) -> Client:
        return Client(self._config, tuple(self._middlewares), error_for_status=self._error_for_status)
