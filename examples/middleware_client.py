"""Middleware usage examples for pysurf.

Run directly:
    uv run python -m examples.middleware_client

Set HTTPBIN env var to point elsewhere if needed.
"""

import asyncio
import logging
import sys

from pysurf.client import Client, ClientBuilder
from pysurf.middleware import Next
from pysurf.middleware.logger import Logger
from pysurf.middleware.redirect import Redirect
from pysurf.request import Request
from pysurf.response import Response, ResponseBodyReader, ResponseBuilder

from ._utils import httpbin_url


async def example_function_middleware() -> None:
    """Example 1: Plain function as middleware"""

    async def printer(client: Client, request: Request, next_handler: Next) -> Response:
        print("sending a request!")
        response = await next_handler.run(request)
        print("request completed!")
        return response

    async with ClientBuilder().with_middleware(printer).error_for_status(True).build() as client:
        resp = await client.get(httpbin_url() / "get").build().send()
        print({"example": "function_middleware", "status": resp.status})


async def example_logger() -> None:
    """Example 2: Built-in logger middleware"""
    records: list[str] = []

    class Collect(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record.getMessage())

    log = logging.getLogger("examples.logger")
    log.addHandler(Collect())
    log.setLevel(logging.INFO)

    async with ClientBuilder().with_middleware(Logger(log)).error_for_status(True).build() as client:
        resp = await client.get(httpbin_url() / "get").build().send()
        print({"example": "logger", "status": resp.status, "records": records})


async def example_redirect() -> None:
    """Example 3: Following redirects"""
    async with ClientBuilder().with_middleware(Redirect(max_redirects=3)).error_for_status(True).build() as client:
        url = (httpbin_url() / "redirect").with_query({"status": 302, "header_location": "/final"})
        resp = await client.get(url).build().send()
        data = await resp.json()
        print(
            {
                "example": "redirect",
                "status": resp.status,
                "path": data.get("path"),
                "hops": len(resp.extensions["redirect_history"]),
            }
        )


class Doubler:
    """Sends safe requests twice concurrently and concatenates the response bodies."""

    async def __call__(self, client: Client, request: Request, next_handler: Next) -> Response:
        if request.method not in ("GET", "HEAD", "OPTIONS"):
            return await next_handler.run(request)

        res1, res2 = await asyncio.gather(next_handler.run(request.copy()), next_handler.run(request))
        body = await res1.bytes() + await res2.bytes()
        res2.body_reader = ResponseBodyReader.from_bytes(body)
        return res2


async def example_fan_out() -> None:
    """Example 4: Running the rest of the chain twice"""
    calls = 0

    async def count(client: Client, request: Request, next_handler: Next) -> Response:
        nonlocal calls
        calls += 1
        return await next_handler.run(request)

    async with ClientBuilder().with_middleware(Doubler()).with_middleware(count).build() as client:
        resp = await client.get(httpbin_url() / "get").build().send()
        body = await resp.bytes()
        print({"example": "fan_out", "status": resp.status, "calls": calls, "bodies": body.count(b'"method"')})


async def example_short_circuit() -> None:
    """Example 5: Answering from a cache without calling the rest of the chain"""
    cache: dict[str, bytes] = {}

    async def caching(client: Client, request: Request, next_handler: Next) -> Response:
        key = str(request.url)
        if request.method == "GET" and key in cache:
            return await ResponseBuilder().status(200).header("x-cache", "hit").body_bytes(cache[key]).build()
        response = await next_handler.run(request)
        cache[key] = await response.bytes()
        return response

    async with ClientBuilder().with_middleware(caching).error_for_status(True).build() as client:
        first = await client.get(httpbin_url() / "get").build().send()
        second = await client.get(httpbin_url() / "get").build().send()
        print(
            {
                "example": "short_circuit",
                "first_cache": first.headers.get("x-cache"),
                "second_cache": second.headers.get("x-cache"),
                "same_body": await first.bytes() == await second.bytes(),
            }
        )


if __name__ == "__main__":  # pragma: no cover
    from ._utils import run_examples

    asyncio.run(run_examples(sys.modules[__name__]))
