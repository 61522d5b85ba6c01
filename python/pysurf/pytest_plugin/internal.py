import json
import re
from typing import TYPE_CHECKING, Any, Literal, assert_never

from pysurf.pytest_plugin.types import Matcher
from pysurf.request import Request

if TYPE_CHECKING:
    from pysurf.pytest_plugin.mock import Mock


def matches(matcher: Matcher, value: Any) -> bool:
    if isinstance(matcher, re.Pattern):
        return isinstance(value, str) and matcher.search(value) is not None
    return bool(matcher == value)


def format_matcher(matcher: Any) -> str:
    if isinstance(matcher, re.Pattern):
        return f"{matcher.pattern} (regex)"
    return str(matcher)


def format_request(request: Request) -> str:
    return f"{request.method} {request.url}"


def format_assert_called_error(
    mock: "Mock",
    *,
    count: int | None = None,
    min_count: int | None = None,
    max_count: int | None = None,
) -> str:
    actual_count = mock.get_call_count()
    error_parts = ["Mock was not called as expected."]

    if count is not None:
        error_parts.append(f"Expected exactly {count} call(s), but got {actual_count}.")
    else:
        expectations = []
        if min_count is not None:
            expectations.append(f"at least {min_count}")
        if max_count is not None:
            expectations.append(f"at most {max_count}")
        expected_desc = " and ".join(expectations)
        error_parts.append(f"Expected {expected_desc} call(s), but got {actual_count}.")

    error_parts.append("\nMock configuration:")
    error_parts.append(_format_mock_matchers(mock))

    if mock._unmatched_requests_repr:
        error_parts.append(f"\nUnmatched requests ({len(mock._unmatched_requests_repr)}):")
        for i, request_repr in enumerate(mock._unmatched_requests_repr[-5:], 1):
            error_parts.append(f"  {i}. {request_repr}")
        if len(mock._unmatched_requests_repr) > 5:
            error_parts.append(f"  ... and {len(mock._unmatched_requests_repr) - 5} more")

    matched = mock.get_requests()
    if matched:
        error_parts.append(f"\nMatched requests ({len(matched)}):")
        for i, request in enumerate(matched[-3:], 1):
            error_parts.append(f"  {i}. {format_request(request)}")
        if len(matched) > 3:
            error_parts.append(f"  ... and {len(matched) - 3} more")

    return "\n".join(error_parts)


def _format_mock_matchers(mock: "Mock") -> str:
    parts = [
        f"  Method: {'Any' if mock._method_matcher is None else format_matcher(mock._method_matcher)}",
        f"  Path: {'Any' if mock._path_matcher is None else format_matcher(mock._path_matcher)}",
    ]

    if mock._query_matchers:
        query_parts = [f"{k}={format_matcher(v)}" for k, v in mock._query_matchers.items()]
        parts.append(f"  Query: {', '.join(query_parts)}")

    if mock._header_matchers:
        header_parts = [f"{k}: {format_matcher(v)}" for k, v in mock._header_matchers.items()]
        parts.append(f"  Headers: {', '.join(header_parts)}")

    if mock._body_matcher is not None:
        parts.append(_format_body_matcher(*mock._body_matcher))

    if mock._custom_matcher is not None:
        parts.append(f"  Custom matcher: {mock._custom_matcher.__name__}")

    if mock._custom_handler is not None:
        parts.append(f"  Custom handler: {mock._custom_handler.__name__}")

    return "\n".join(parts)


def _format_body_matcher(matcher: Any, kind: Literal["content", "json"]) -> str:
    if kind == "json":
        return f"  Body (JSON): {json.dumps(matcher, separators=(',', ':'), default=str)}"
    elif kind == "content":
        if isinstance(matcher, bytes):
            return f"  Body (bytes): {matcher!r}"
        elif isinstance(matcher, re.Pattern):
            return f"  Body (text): {matcher.pattern} (regex)"
        else:
            return f"  Body (text): {matcher!r}"
    else:
        assert_never(kind)
