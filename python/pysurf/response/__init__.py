"""Response classes and builders."""

from pysurf.response._response import Response, ResponseBodyReader, ResponseBuilder

__all__ = [
    "Response",
    "ResponseBodyReader",
    "ResponseBuilder",
]
