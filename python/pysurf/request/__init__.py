"""Requests classes and builders."""

from pysurf.request._request import ConsumedRequest, Request, RequestBuilder, StreamRequest

__all__ = [
    "ConsumedRequest",
    "Request",
    "RequestBuilder",
    "StreamRequest",
]
