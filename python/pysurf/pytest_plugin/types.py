"""Types used in the pytest plugin."""

from collections.abc import Awaitable, Callable
from re import Pattern
from typing import Any

from pysurf.http import Url
from pysurf.request import Request
from pysurf.response import Response

# Strings match exactly, patterns with `search`, anything else (e.g. dirty_equals) with `==`.
Matcher = str | Pattern[str] | Any
JsonMatcher = Any

MethodMatcher = Matcher
UrlMatcher = Matcher | Url
BodyContentMatcher = bytes | Matcher
CustomMatcher = Callable[[Request], Awaitable[bool]]
CustomHandler = Callable[[Request], Awaitable[Response | None]]
