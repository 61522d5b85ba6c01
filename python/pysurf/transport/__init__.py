"""Transports performing the network call at the end of the middleware chain."""

from pysurf.transport._aiohttp import AiohttpTransport
from pysurf.transport.types import Transport

__all__ = [
    "AiohttpTransport",
    "Transport",
]
