"""Module providing HTTP request mocking capabilities for pysurf clients in tests."""

import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal, Self

import pytest

from pysurf.middleware import Next
from pysurf.middleware.types import Middleware
from pysurf.pytest_plugin.internal import format_request, matches
from pysurf.pytest_plugin.types import (
    BodyContentMatcher,
    CustomHandler,
    CustomMatcher,
    JsonMatcher,
    Matcher,
    MethodMatcher,
    UrlMatcher,
)
from pysurf.request import ConsumedRequest, Request, RequestBuilder, StreamRequest
from pysurf.response import Response, ResponseBuilder

if TYPE_CHECKING:
    from pysurf.client import Client


class Mock:
    """Class representing a single mock rule."""

    def __init__(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> None:
        """Do not use directly. Instead, use ClientMocker.mock()."""
        self._method_matcher = method
        self._path_matcher = path
        self._query_matchers: dict[str, Matcher] = {}
        self._header_matchers: dict[str, Matcher] = {}
        self._body_matcher: tuple[Any, Literal["content", "json"]] | None = None
        self._custom_matcher: CustomMatcher | None = None
        self._custom_handler: CustomHandler | None = None

        self._matched_requests: list[Request] = []
        self._unmatched_requests_repr: list[str] = []

        self._response_builder: ResponseBuilder | None = None
        self._response_body: tuple[Literal["bytes", "text", "json"], Any] | None = None

    def assert_called(
        self,
        *,
        count: int | None = None,
        min_count: int | None = None,
        max_count: int | None = None,
    ) -> None:
        """Assert that this mock was called the expected number of times. By default, exactly once."""
        if count is None and min_count is None and max_count is None:
            count = 1

        if self._assertion_passes(count, min_count, max_count):
            return

        from pysurf.pytest_plugin.internal import format_assert_called_error

        raise AssertionError(format_assert_called_error(self, count=count, min_count=min_count, max_count=max_count))

    def _assertion_passes(self, count: int | None, min_count: int | None, max_count: int | None) -> bool:
        actual_count = len(self._matched_requests)
        if count is not None:
            return actual_count == count

        min_satisfied = min_count is None or actual_count >= min_count
        max_satisfied = max_count is None or actual_count <= max_count

        return min_satisfied and max_satisfied

    def get_requests(self) -> list[Request]:
        """Get all captured requests by this mock."""
        return [*self._matched_requests]

    def get_call_count(self) -> int:
        """Get the total number of calls to this mock."""
        return len(self._matched_requests)

    def reset_requests(self) -> None:
        """Reset all captured requests for this mock."""
        self._matched_requests.clear()
        self._unmatched_requests_repr.clear()

    def match_query_param(self, name: str, value: Matcher) -> Self:
        """Set a matcher to match a specific query parameter."""
        self._query_matchers[name] = value
        return self

    def match_header(self, name: str, value: Matcher) -> Self:
        """Set a matcher to match a specific request header."""
        self._header_matchers[name] = value
        return self

    def match_body(self, matcher: BodyContentMatcher) -> Self:
        """Set a matcher to match the request body. Bytes match the raw body, others the decoded text."""
        self._body_matcher = (matcher, "content")
        return self

    def match_body_json(self, matcher: JsonMatcher) -> Self:
        """Set a matcher to match the request body parsed as JSON."""
        self._body_matcher = (matcher, "json")
        return self

    def match_request(self, matcher: CustomMatcher) -> Self:
        """Set a custom async predicate for matching requests."""
        self._custom_matcher = matcher
        return self

    def match_request_with_response(self, handler: CustomHandler) -> Self:
        """Set a custom handler to generate the response for matched requests. Returning None means no match."""
        assert self._response_builder is None, "Cannot use response builder and custom handler together"
        self._custom_handler = handler
        return self

    def with_status(self, status: int) -> Self:
        """Set the mocked response status code."""
        self._builder.status(status)
        return self

    def with_header(self, name: str, value: str) -> Self:
        """Add a header to the mocked response."""
        self._builder.header(name, value)
        return self

    def with_body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        """Set the mocked response body to the given bytes."""
        self._response_body = ("bytes", bytes(body))
        return self

    def with_body_text(self, body: str) -> Self:
        """Set the mocked response body to the given text."""
        self._response_body = ("text", body)
        return self

    def with_body_json(self, json_body: Any) -> Self:
        """Set the mocked response body to the given JSON-serializable object."""
        self._response_body = ("json", json_body)
        return self

    @property
    def _builder(self) -> ResponseBuilder:
        assert self._custom_handler is None, "Cannot use response builder and custom handler together"
        if self._response_builder is None:
            self._response_builder = ResponseBuilder()
        return self._response_builder

    async def _handle(self, request: Request) -> Response | None:
        matched = (
            self._matches_method(request)
            and self._matches_path(request)
            and self._matches_query(request)
            and self._matches_headers(request)
            and self._matches_body(request)
            and await self._matches_custom(request)
        )
        response = await self._response(request) if matched else None

        if response is None:
            self._unmatched_requests_repr.append(format_request(request))
            return None
        self._matched_requests.append(request)
        return response

    async def _response(self, request: Request) -> Response | None:
        if self._custom_handler is not None:
            return await self._custom_handler(request)

        # A fresh response per call, a response body can be read only once
        builder = ResponseBuilder()
        if self._response_builder is not None:
            builder.status(self._response_builder._status).headers(self._response_builder._headers)
        if self._response_body is not None:
            kind, body = self._response_body
            if kind == "bytes":
                builder.body_bytes(body)
            elif kind == "text":
                builder.body_text(body)
            else:
                builder.body_json(body)
        return await builder.build()

    def _matches_method(self, request: Request) -> bool:
        return self._method_matcher is None or matches(self._method_matcher, request.method)

    def _matches_path(self, request: Request) -> bool:
        if self._path_matcher is None:
            return True
        return matches(self._path_matcher, request.url) or matches(self._path_matcher, request.url.path)

    def _matches_query(self, request: Request) -> bool:
        query = request.url.query_dict_multi_value
        return all(
            name in query and matches(expected, query[name]) for name, expected in self._query_matchers.items()
        )

    def _matches_headers(self, request: Request) -> bool:
        for header_name, expected_value in self._header_matchers.items():
            actual_value = request.headers.get(header_name)
            if actual_value is None or not matches(expected_value, actual_value):
                return False
        return True

    def _matches_body(self, request: Request) -> bool:
        if self._body_matcher is None:
            return True

        if request.body is None:
            return False

        body_bytes = request.body.copy_bytes()
        assert body_bytes is not None, "Stream should have been buffered by the mock middleware"

        matcher, kind = self._body_matcher
        if kind == "json":
            try:
                return matches(matcher, json.loads(body_bytes))
            except ValueError:
                return False
        if isinstance(matcher, bytes):
            return matcher == body_bytes
        return matches(matcher, body_bytes.decode())

    async def _matches_custom(self, request: Request) -> bool:
        if self._custom_matcher is None:
            return True
        return await self._custom_matcher(request)


class ClientMocker:
    """Main class for mocking HTTP requests."""

    def __init__(self) -> None:
        """Initialize the ClientMocker."""
        self._mocks: list[Mock] = []
        self._strict = False

    def mock(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> Mock:
        """Add a mock rule for requests matching the given criteria."""
        mock = Mock(method, path)
        self._mocks.append(mock)
        return mock

    def get(self, path: UrlMatcher | None = None) -> Mock:
        """Mock GET requests to the given URL."""
        return self.mock("GET", path)

    def post(self, path: UrlMatcher | None = None) -> Mock:
        """Mock POST requests to the given URL."""
        return self.mock("POST", path)

    def put(self, path: UrlMatcher | None = None) -> Mock:
        """Mock PUT requests to the given URL."""
        return self.mock("PUT", path)

    def patch(self, path: UrlMatcher | None = None) -> Mock:
        """Mock PATCH requests to the given URL."""
        return self.mock("PATCH", path)

    def delete(self, path: UrlMatcher | None = None) -> Mock:
        """Mock DELETE requests to the given URL."""
        return self.mock("DELETE", path)

    def head(self, path: UrlMatcher | None = None) -> Mock:
        """Mock HEAD requests to the given URL."""
        return self.mock("HEAD", path)

    def options(self, path: UrlMatcher | None = None) -> Mock:
        """Mock OPTIONS requests to the given URL."""
        return self.mock("OPTIONS", path)

    def strict(self, enabled: bool = True) -> Self:
        """Enable strict mode - unmatched requests will raise an error."""
        self._strict = enabled
        return self

    def get_requests(self) -> list[Request]:
        """Get all captured requests in all mocks."""
        return [request for mock in self._mocks for request in mock.get_requests()]

    def get_call_count(self) -> int:
        """Get the total number of calls in all mocks."""
        return sum(mock.get_call_count() for mock in self._mocks)

    def clear(self) -> None:
        """Remove all mocks."""
        self._mocks.clear()

    def reset_requests(self) -> None:
        """Reset all captured requests in all mocks."""
        for mock in self._mocks:
            mock.reset_requests()

    def _create_middleware(self) -> Middleware:
        async def mock_middleware(client: "Client", request: Request, next_handler: Next) -> Response:
            if request.body is not None and not request.body.is_replayable:
                request = Request.from_request_and_body(request, await request.body.buffer())

            for mock in self._mocks:
                if (response := await mock._handle(request)) is not None:
                    return response

            # No rule matched
            if self._strict:
                msg = f"No mock rule matched request: {request.method} {request.url}"
                raise AssertionError(msg)
            return await next_handler.run(request)  # Proceed normally

        return mock_middleware


@pytest.fixture
def client_mocker(monkeypatch: pytest.MonkeyPatch) -> ClientMocker:
    """Fixture that provides a ClientMocker for mocking HTTP requests in tests."""
    mocker = ClientMocker()

    orig_build = RequestBuilder.build
    orig_build_streamed = RequestBuilder.build_streamed

    def build_patch(
        self: RequestBuilder,
        orig: Callable[[RequestBuilder], ConsumedRequest | StreamRequest],
    ) -> ConsumedRequest | StreamRequest:
        return orig(self._set_interceptor(mocker._create_middleware()))

    monkeypatch.setattr(RequestBuilder, "build", lambda slf: build_patch(slf, orig_build))
    monkeypatch.setattr(RequestBuilder, "build_streamed", lambda slf: build_patch(slf, orig_build_streamed))

    return mocker
