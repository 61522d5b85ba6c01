from collections.abc import Generator

import pytest

from tests.servers.echo_body_parts_server import EchoBodyPartsServer
from tests.servers.echo_server import EchoServer


@pytest.fixture(scope="session")
def echo_server() -> Generator[EchoServer, None, None]:
    with EchoServer().serve_context() as server:
        assert str(server.url).startswith("http://")
        yield server


@pytest.fixture(scope="session")
def echo_body_parts_server() -> Generator[EchoBodyPartsServer, None, None]:
    with EchoBodyPartsServer().serve_context() as server:
        assert str(server.url).startswith("http://")
        yield server
