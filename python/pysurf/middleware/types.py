"""Middleware types and interfaces."""

from typing import TYPE_CHECKING, Protocol

from pysurf.request import Request
from pysurf.response import Response

if TYPE_CHECKING:
    from pysurf.client import Client
    from pysurf.middleware import Next


class Middleware(Protocol):
    """Middleware interface for processing HTTP requests and responses.

    Plain `async def` functions and objects with an async `__call__` both satisfy it.
    """

    async def __call__(self, client: "Client", request: Request, next_handler: "Next") -> Response:
        """Invoked with a request before sending it.

        Call `await next_handler.run(request)` to continue processing the request. Each call performs a full trip
        through the rest of the chain, so calling it more than once (with separate request copies) sends the request
        more than once. Alternatively, you can return a custom response built with `ResponseBuilder` without calling
        the rest of the chain. You can also use `client` to send additional request(s).
        If you need to forward data down the middleware stack, you can use request.extensions.

        Args:
            client: HTTP client dispatching the request
            request: HTTP request to process
            next_handler: The rest of the middleware chain, ending with the transport

        Returns:
            HTTP response from the next middleware or a custom response.
        """
        ...


class EndpointInvoker(Protocol):
    """Terminal step of the chain: sends the request with the client's transport."""

    async def __call__(self, client: "Client", request: Request) -> Response: ...
