"""Client classes and builders."""

from pysurf.client._client import Client, ClientBuilder
from pysurf.client._config import Config

__all__ = [
    "Client",
    "ClientBuilder",
    "Config",
]
