from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import TYPE_CHECKING, Self

from multidict import CIMultiDict, CIMultiDictProxy

from pysurf.exceptions import BuilderError, InvalidHeaderError
from pysurf.http import Url, validate_header
from pysurf.http._headers import header_pairs
from pysurf.types import HeadersType

if TYPE_CHECKING:
    from pysurf.transport.types import Transport


@dataclass(frozen=True)
class Config:
    """Configuration for clients and their transport.

    Every setter returns an updated copy and leaves the original untouched.
    """

    base_url: Url | None = None
    """The base URL for a client. Relative request URLs are joined onto it.

    Note: a trailing slash is significant. Without it, the last path component is considered to be a "file" name to be
    removed to get at the "directory" that is used as the base.
    """
    headers: CIMultiDictProxy[str] = field(default_factory=lambda: _frozen_headers(()))
    """Headers added to every request that does not set them itself. Read-only, use add_header to change."""
    http_keep_alive: bool = True
    tcp_no_delay: bool = True
    timeout: timedelta | None = None
    """Total timeout of a request, interpreted by the transport. None means no timeout."""
    transport: "Transport | None" = None
    """Transport used instead of the default aiohttp one."""

    def __post_init__(self) -> None:
        # Always an owned read-only copy
        object.__setattr__(self, "headers", _frozen_headers(self.headers))

    def set_base_url(self, base_url: Url | str | None) -> Self:
        return replace(self, base_url=None if base_url is None else Url(base_url))

    def add_header(self, name: str, *values: str) -> Self:
        """Add a header to every request. Values of repeated calls for the same name are all kept.

        Raises InvalidHeaderError immediately if the header cannot be represented.
        """
        if not values:
            raise InvalidHeaderError(f"no values given for header {name!r}", {"name": name})
        headers = _frozen_headers([*self.headers.items(), *((name, value) for value in values)])
        return replace(self, headers=headers)

    def set_http_keep_alive(self, keep_alive: bool) -> Self:
        """Set HTTP/1.1 keep-alive (connection pooling)."""
        return replace(self, http_keep_alive=keep_alive)

    def set_tcp_no_delay(self, no_delay: bool) -> Self:
        """Set TCP_NODELAY."""
        return replace(self, tcp_no_delay=no_delay)

    def set_timeout(self, timeout: timedelta | None) -> Self:
        return replace(self, timeout=timeout)

    def set_transport(self, transport: "Transport | None") -> Self:
        """Override the transport entirely. The client does not close a transport given here."""
        return replace(self, transport=transport)

    def join_url(self, url: Url | str) -> Url:
        """Resolve a request URL. Absolute URLs are kept, relative ones are joined onto base_url."""
        if isinstance(url, Url):
            return url
        try:
            return Url(url) if self.base_url is None else self.base_url.join(url)
        except ValueError as e:
            raise BuilderError(f"invalid request URL {url!r}: {e}", {"url": url}) from e


def _frozen_headers(headers: HeadersType) -> CIMultiDictProxy[str]:
    items: CIMultiDict[str] = CIMultiDict()
    for name, value in header_pairs(headers):
        validate_header(name, value)
        items.add(name, value)
    return CIMultiDictProxy(items)
