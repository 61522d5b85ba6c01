import inspect
import logging
import socket
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import aiohttp

from pysurf.exceptions import ConnectError, ConnectTimeoutError, ReadTimeoutError, RequestError
from pysurf.request import Request
from pysurf.response import Response, ResponseBodyReader

if TYPE_CHECKING:
    from pysurf.client import Config

logger = logging.getLogger(__name__)


class AiohttpTransport:
    """Default transport based on an `aiohttp.ClientSession`.

    The session is created on first use so the transport can be constructed outside of an event loop. Redirects are
    never followed here, that is the job of the Redirect middleware.
    """

    def __init__(self, config: "Config | None" = None) -> None:
        if config is None:
            from pysurf.client import Config

            config = Config()
        self._config = config
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector_kwargs: dict[str, Any] = {"force_close": not self._config.http_keep_alive}
            if not self._config.tcp_no_delay:
                connector_kwargs["socket_factory"] = _socket_without_no_delay

            timeout = self._config.timeout
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(**connector_kwargs),
                timeout=aiohttp.ClientTimeout(total=timeout.total_seconds() if timeout is not None else None),
            )
        return self._session

    async def send(self, request: Request) -> Response:
        session = self._get_session()

        data: bytes | AsyncIterator[bytes] | None = None
        if request.body is not None:
            data = request.body.copy_bytes()
            if data is None:
                data = request.body.take_stream()

        with _map_errors(request):
            resp = await session.request(
                request.method,
                str(request.url),
                headers=list(request.headers.items()),
                data=data,
                allow_redirects=False,
            )

        async def release() -> None:
            res = resp.release()
            if inspect.isawaitable(res):
                await res

        return Response(
            status=resp.status,
            headers=list(resp.headers.items()),
            version=f"HTTP/{resp.version.major}.{resp.version.minor}" if resp.version else "HTTP/1.1",
            body_reader=ResponseBodyReader(_read_content(request, resp), on_close=release),
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


async def _read_content(request: Request, resp: aiohttp.ClientResponse) -> AsyncIterator[bytes]:
    with _map_errors(request):
        async for chunk in resp.content.iter_any():
            yield chunk


@contextmanager
def _map_errors(request: Request) -> Iterator[None]:
    details = {"method": request.method, "url": str(request.url)}
    try:
        yield
    except aiohttp.ConnectionTimeoutError as e:
        raise ConnectTimeoutError(f"connection timed out: {request.url}", details) from e
    except TimeoutError as e:
        raise ReadTimeoutError(f"request timed out: {request.url}", details) from e
    except aiohttp.ClientConnectorError as e:
        raise ConnectError(f"error connecting to {request.url}: {e}", details) from e
    except aiohttp.ClientError as e:
        logger.debug("transport error for %s %s", request.method, request.url, exc_info=True)
        raise RequestError(f"error sending request to {request.url}: {e}", details) from e


def _socket_without_no_delay(addr_info: Any) -> socket.socket:
    family, type_, proto, _, _ = addr_info
    sock = socket.socket(family=family, type=type_, proto=proto)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 0)
    return sock
