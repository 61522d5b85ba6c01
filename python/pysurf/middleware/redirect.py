"""Redirect following middleware."""

import logging
from typing import TYPE_CHECKING

from pysurf.exceptions import RedirectError, TooManyRedirectsError
from pysurf.http import Url
from pysurf.middleware import Next
from pysurf.request import Request
from pysurf.response import Response

if TYPE_CHECKING:
    from pysurf.client import Client

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 10

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
_BODY_HEADERS = ("content-type", "content-length", "content-encoding", "transfer-encoding")
_CREDENTIAL_HEADERS = ("authorization", "cookie", "proxy-authorization")


class Redirect:
    """Follow redirect responses.

    The rest of the chain is run again for every hop, so middleware attached after this one sees each redirected
    request. 303, and 301/302 for methods other than GET and HEAD, switch to GET without a body. 307 and 308 keep the
    method and body. Credentials are not sent to another origin.

    Receiving a redirect after `max_redirects` hops raises TooManyRedirectsError. The followed URLs are stored in
    `response.extensions["redirect_history"]`.
    """

    def __init__(self, max_redirects: int = DEFAULT_MAX_REDIRECTS) -> None:
        if max_redirects < 0:
            raise ValueError("max_redirects must be non-negative")
        self.max_redirects = max_redirects

    async def __call__(self, client: "Client", request: Request, next_handler: Next) -> Response:
        history: list[Url] = []

        while True:
            response = await next_handler.run(request)

            if response.status not in REDIRECT_STATUSES or (location := response.headers.get("location")) is None:
                break

            if len(history) >= self.max_redirects:
                await response.aclose()
                raise TooManyRedirectsError(
                    f"too many redirects, limit is {self.max_redirects}",
                    {"max_redirects": self.max_redirects, "url": str(request.url), "location": location},
                )

            try:
                next_request = self._redirect_request(request, response.status, location)
            except BaseException:
                await response.aclose()
                raise
            if next_request is None:
                break

            await response.aclose()
            history.append(next_request.url)
            logger.debug("following redirect %s -> %s (%d)", request.url, next_request.url, response.status)
            request = next_request

        response.extensions["redirect_history"] = history
        return response

    def _redirect_request(self, request: Request, status: int, location: str) -> Request | None:
        try:
            url = request.url.join(location)
        except ValueError as e:
            raise RedirectError(f"invalid redirect location: {location!r}", {"location": location}) from e

        if _switches_to_get(status, request.method):
            new_request = Request.from_request_and_body(request, None)
            new_request.method = "GET"
            for name in _BODY_HEADERS:
                new_request.headers.pop(name, None)
        elif request.body is not None and not request.body.is_replayable:
            logger.debug("not following redirect to %s, the streamed request body cannot be sent again", url)
            return None
        else:
            new_request = request.copy()

        if url.origin != request.url.origin:
            for name in _CREDENTIAL_HEADERS:
                new_request.headers.pop(name, None)
        new_request.url = url
        return new_request


def _switches_to_get(status: int, method: str) -> bool:
    if status == 303:
        return method != "HEAD"
    return status in (301, 302) and method not in ("GET", "HEAD")
