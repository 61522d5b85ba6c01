"""ASGI test middleware."""

from pysurf.middleware.asgi.asgi import ASGITestMiddleware

__all__ = ["ASGITestMiddleware"]
