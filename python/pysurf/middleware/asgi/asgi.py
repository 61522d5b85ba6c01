import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import unquote

from pysurf.exceptions import ReadTimeoutError
from pysurf.middleware import Next
from pysurf.request import Request
from pysurf.response import Response, ResponseBodyReader

if TYPE_CHECKING:
    from pysurf.client import Client

ASGIApp = Callable[..., Coroutine[Any, Any, None]]
ScopeUpdate = Callable[[dict[str, Any], Request], Coroutine[Any, Any, None]]
Message = dict[str, Any]


class ASGITestMiddleware:
    """Middleware that routes requests into an in-process ASGI application instead of the network.

    The rest of the chain is never called, so attach it as the last middleware. Entering the middleware as an async
    context manager runs the application lifespan, the state yielded by the lifespan is given to every request scope.

    Example:
        async with ASGITestMiddleware(app) as asgi:
            client = ClientBuilder().base_url("http://localhost").with_middleware(asgi).build()
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        timeout: timedelta | None = None,
        scope_update: ScopeUpdate | None = None,
    ) -> None:
        """Initialize the ASGI test middleware.

        Args:
            app: ASGI application callable
            timeout: Timeout for waiting on the application (default: 5 seconds)
            scope_update: Optional coroutine to modify the ASGI scope per request
        """
        self._app = app
        self._scope_update = scope_update
        self._timeout = (timeout or timedelta(seconds=5)).total_seconds()
        self._lifespan = _Lifespan(app, self._timeout)

    async def __aenter__(self) -> Self:
        await self._lifespan.startup()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._lifespan.shutdown()

    async def __call__(self, client: "Client", request: Request, next_handler: Next) -> Response:
        scope = build_scope(request, self._lifespan.state)
        if self._scope_update is not None:
            await self._scope_update(scope, request)
        return await _Exchange(self._app, scope, request, self._timeout).response()


def build_scope(request: Request, state: dict[str, Any]) -> dict[str, Any]:
    """HTTP connection scope for the request."""
    url = request.url
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": request.version.removeprefix("HTTP/"),
        "method": request.method,
        "scheme": url.scheme,
        "path": unquote(url.path),
        "raw_path": url.path.encode(),
        "root_path": "",
        "query_string": (url.query_string or "").encode(),
        "headers": [[name.lower().encode(), value.encode("latin-1")] for name, value in request.headers.items()],
        "client": ("127.0.0.1", 0),
        "server": (url.host_str, url.port_or_known_default),
        "state": state.copy(),
    }


class _Exchange:
    """A single request/response cycle. The application runs as a task while the response body is read."""

    def __init__(self, app: ASGIApp, scope: dict[str, Any], request: Request, timeout: float) -> None:
        self._timeout = timeout
        self._request_chunks = request.body.take_stream() if request.body is not None else None
        self._request_complete = False
        self._response_complete = False
        self._closed = asyncio.Event()
        self._messages: asyncio.Queue[Message] = asyncio.Queue()
        self._task = asyncio.create_task(app(scope, self._receive, self._messages.put))

    async def response(self) -> Response:
        message = await self._next_message()
        while message["type"] != "http.response.start":
            message = await self._next_message()

        return Response(
            status=message["status"],
            headers=[(k.decode(), v.decode("latin-1")) for k, v in message.get("headers", [])],
            body_reader=ResponseBodyReader(self._body_chunks(), on_close=self._close),
        )

    async def _receive(self) -> Message:
        if self._request_complete:
            # Nothing more to send, the client disconnects once the response was consumed
            await self._closed.wait()
            return {"type": "http.disconnect"}

        if self._request_chunks is not None and (chunk := await anext(self._request_chunks, None)) is not None:
            return {"type": "http.request", "body": chunk, "more_body": True}

        self._request_complete = True
        return {"type": "http.request", "body": b"", "more_body": False}

    async def _body_chunks(self) -> AsyncIterator[bytes]:
        while not self._response_complete:
            message = await self._next_message()
            if message["type"] != "http.response.body":
                continue
            self._response_complete = not message.get("more_body", False)
            if body := message.get("body"):
                yield body

    async def _next_message(self) -> Message:
        if not self._messages.empty():
            return self._messages.get_nowait()

        getter = asyncio.ensure_future(self._messages.get())
        try:
            done, _ = await asyncio.wait(
                {getter, self._task},
                timeout=self._timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not getter.done():
                getter.cancel()

        if getter in done:
            return getter.result()
        if self._task in done:
            self._task.result()
            raise RuntimeError("ASGI application returned without completing the response")
        self._task.cancel()
        raise ReadTimeoutError("ASGI application did not respond in time", details={"timeout": self._timeout})

    async def _close(self) -> None:
        self._closed.set()
        if not self._response_complete:
            self._task.cancel()
        await asyncio.wait({self._task}, timeout=self._timeout)
        if not self._task.done():
            self._task.cancel()
        elif not self._task.cancelled() and (exc := self._task.exception()) is not None:
            raise exc


class _Lifespan:
    """Runs the lifespan protocol of the application in a background task."""

    def __init__(self, app: ASGIApp, timeout: float) -> None:
        self._app = app
        self._timeout = timeout
        self._task: asyncio.Task[None] | None = None
        self._to_app: asyncio.Queue[Message] = asyncio.Queue()
        self._from_app: asyncio.Queue[Message] = asyncio.Queue()
        self.state: dict[str, Any] = {}

    async def startup(self) -> None:
        scope = {"type": "lifespan", "asgi": {"version": "3.0"}, "state": self.state}
        self._task = asyncio.create_task(self._app(scope, self._to_app.get, self._from_app.put))
        await self._send("startup")

    async def shutdown(self) -> None:
        try:
            await self._send("shutdown")
        finally:
            self._task = None

    async def _send(self, action: str) -> None:
        task = self._task
        assert task is not None, "Lifespan was not started"

        await self._to_app.put({"type": f"lifespan.{action}"})
        message = await asyncio.wait_for(self._from_app.get(), timeout=self._timeout)

        if message["type"] == f"lifespan.{action}.failed":
            # The application re-raises its error right after reporting the failure
            await asyncio.wait({task}, timeout=self._timeout)
            if task.done() and not task.cancelled() and (exc := task.exception()) is not None:
                raise exc
            raise RuntimeError(message.get("message") or message)
