"""HTTP utils classes and types."""

from pysurf.http._body import RequestBody
from pysurf.http._headers import HeaderMap, validate_header
from pysurf.http._url import Url

__all__ = [
    "HeaderMap",
    "RequestBody",
    "Url",
    "validate_header",
]
