"""pysurf - Asynchronous HTTP client built around a composable middleware chain.

Every request passes through an ordered chain of middleware before a pluggable transport (aiohttp by default) sends
it over the network.

Features:
- Middleware as plain async functions or callable objects
- Built-in logging and redirect following middleware
- Base URL, default headers, keep-alive, TCP_NODELAY and timeout configuration
- Streaming request and response bodies
- Pluggable transport
- In-process ASGI routing for tests
- Mocking and testing utilities
"""
