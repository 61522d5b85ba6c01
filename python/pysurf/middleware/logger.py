"""Logging middleware."""

import asyncio
import itertools
import logging
import time
from typing import TYPE_CHECKING

from pysurf.middleware import Next
from pysurf.request import Request
from pysurf.response import Response

if TYPE_CHECKING:
    from pysurf.client import Client

_request_ids = itertools.count(1)


class Logger:
    """Log every request and its outcome.

    Emits one record before sending and one record after the rest of the chain finished, also when it failed
    or was cancelled.
    Never changes the request or the response. Client and server error statuses are logged as warnings and errors.

    Example:
        client = ClientBuilder().with_middleware(Logger()).build()
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._level = level

    async def __call__(self, client: "Client", request: Request, next_handler: Next) -> Response:
        req_id = next(_request_ids)
        self._logger.log(
            self._level,
            "sending request",
            extra={"req_id": req_id, "method": request.method, "uri": str(request.url)},
        )

        start = time.perf_counter()
        try:
            response = await next_handler.run(request)
        except asyncio.CancelledError:
            self._logger.warning("request cancelled", extra={"req_id": req_id, "elapsed": _elapsed(start)})
            raise
        except Exception as e:
            self._logger.error(
                "request failed",
                extra={"req_id": req_id, "elapsed": _elapsed(start), "error": repr(e)},
            )
            raise

        status = response.status
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = self._level
        self._logger.log(
            level,
            "request completed",
            extra={"req_id": req_id, "status": status, "elapsed": _elapsed(start)},
        )
        return response


def _elapsed(start: float) -> str:
    return f"{(time.perf_counter() - start) * 1000:.3f}ms"
