"""Middleware chain.

A client holds an ordered tuple of middleware. The first attached middleware is the outermost one: it sees the
request first and the response last. `Next` is a cursor over the rest of the tuple which ends with the endpoint that
sends the request using the client's transport.
"""

import inspect
from collections.abc import Sequence
from typing import TYPE_CHECKING, Self

from pysurf.middleware.types import EndpointInvoker, Middleware
from pysurf.request import Request
from pysurf.response import Response

if TYPE_CHECKING:
    from pysurf.client import Client


class Next:
    """The remainder of a middleware chain, including the endpoint.

    Immutable value: running it never changes it, so it can be run multiple times (for example concurrently with
    `asyncio.gather`) and every run walks the same remaining middleware independently.
    """

    __slots__ = ("_client", "_endpoint", "_index", "_middlewares")

    def __init__(
        self,
        middlewares: Sequence[Middleware],
        endpoint: EndpointInvoker,
        client: "Client",
        index: int = 0,
    ) -> None:
        self._middlewares = tuple(middlewares)
        self._endpoint = endpoint
        self._client = client
        self._index = index

    @property
    def remaining(self) -> int:
        """Number of middleware left before the endpoint."""
        return len(self._middlewares) - self._index

    async def run(self, request: Request, client: "Client | None" = None) -> Response:
        """Run the rest of the chain with the request.

        Args:
            request: Request to send. Pass a copy when running more than once.
            client: Client passed downstream. Defaults to the client dispatching the request.
        """
        client = self._client if client is None else client

        if self._index < len(self._middlewares):
            middleware = self._middlewares[self._index]
            next_handler = Next(self._middlewares, self._endpoint, client, self._index + 1)
            result = middleware(client, request, next_handler)
            if not inspect.isawaitable(result):
                msg = f"a coroutine was expected from middleware {middleware!r}, got {type(result).__name__!r}"
                raise TypeError(msg)
            response = await result
        else:
            response = await self._endpoint(client, request)

        if not isinstance(response, Response):
            raise TypeError(f"'{type(response).__name__}' object cannot be converted to 'Response'")
        return response

    def __copy__(self) -> Self:
        return self

    def __repr__(self) -> str:
        return f"<Next remaining={self.remaining}>"


__all__ = [
    "EndpointInvoker",
    "Middleware",
    "Next",
]
