from collections.abc import Awaitable, Callable

from pysurf.request import Request
from pysurf.response import Response, ResponseBuilder


class StubTransport:
    """Transport answering from a handler instead of the network. Records every request it receives."""

    def __init__(self, handler: Callable[[Request], Awaitable[Response]] | None = None) -> None:
        self._handler = handler or ok_response
        self.requests: list[Request] = []
        self.closed = False

    async def send(self, request: Request) -> Response:
        self.requests.append(request)
        return await self._handler(request)

    async def close(self) -> None:
        self.closed = True


async def ok_response(request: Request) -> Response:
    return await ResponseBuilder().status(200).body_text("ok").build()
