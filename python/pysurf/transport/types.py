"""Transport types and interfaces."""

from typing import Protocol

from pysurf.request import Request
from pysurf.response import Response


class Transport(Protocol):
    """Sends requests over the network. Used as the endpoint of every middleware chain.

    Must be safe to use from concurrent requests.
    """

    async def send(self, request: Request) -> Response:
        """Send the request and return the response with an unread body.

        Closing the response body (`await response.aclose()`) must release the resources held for it.
        """
        ...

    async def close(self) -> None:
        """Release the resources of the transport."""
        ...
