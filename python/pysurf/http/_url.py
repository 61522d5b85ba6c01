from typing import Any, Self

from yarl import URL

from pysurf.types import QueryParams


class Url:
    """Immutable parsed absolute URL. Lightweight wrapper around `yarl.URL`."""

    __slots__ = ("_url",)

    def __init__(self, url: "str | Url | URL") -> None:
        """Parse an absolute URL from a string."""
        if isinstance(url, Url):
            parsed = url._url
        elif isinstance(url, URL):
            parsed = url
        else:
            parsed = URL(url)
        if not parsed.is_absolute():
            raise ValueError(f"relative URL without a base: {str(url)!r}")
        self._url = parsed

    @staticmethod
    def parse(url: str) -> "Url":
        """Parse an absolute URL from a string. Same as Url(url)."""
        return Url(url)

    def join(self, join_input: "str | Url") -> Self:
        """Parse a string as an URL, with this URL as the base URL.

        Notes:
        - A trailing slash is significant. Without it, the last path component is considered to be a "file" name to be
        removed to get at the "directory" that is used as the base.
        - An absolute URL (with a scheme) as input replaces the whole base URL.
        """
        ref = join_input._url if isinstance(join_input, Url) else URL(join_input)
        return self._new(self._url.join(ref))

    @property
    def scheme(self) -> str:
        """Return the scheme of this URL, lower-cased, without the ':' delimiter."""
        return self._url.scheme

    @property
    def host_str(self) -> str | None:
        """Return the host (domain or IP address) for this URL, if any."""
        return self._url.host

    @property
    def port(self) -> int | None:
        """Return the explicit port number for this URL, if any."""
        return self._url.explicit_port

    @property
    def port_or_known_default(self) -> int | None:
        """Return the port number for this URL, or the default port number of the scheme if it is known."""
        return self._url.port

    @property
    def origin(self) -> str:
        """Return the serialized origin (scheme, host and port) of this URL."""
        return str(self._url.origin())

    @property
    def path(self) -> str:
        """Return the percent-encoded path. Always starts with '/'."""
        return self._url.raw_path or "/"

    @property
    def query_string(self) -> str | None:
        """Return this URL's percent-encoded query string, if any."""
        return self._url.raw_query_string or None

    @property
    def query_pairs(self) -> list[tuple[str, str]]:
        """Parse the URL's query string, if any, as urlencoded and return list of (key, value) pairs."""
        return list(self._url.query.items())

    @property
    def query_dict_multi_value(self) -> dict[str, str | list[str]]:
        """Return the query as a dict where repeated keys become a list preserving order."""
        res: dict[str, str | list[str]] = {}
        for key in self._url.query:
            values = self._url.query.getall(key)
            res[key] = values[0] if len(values) == 1 else list(values)
        return res

    @property
    def fragment(self) -> str | None:
        """Return this URL's fragment identifier, if any."""
        return self._url.fragment or None

    def with_query(self, query: QueryParams | None) -> Self:
        """Replace the entire query with provided params (None removes query)."""
        return self._new(self._url.with_query(query))

    def extend_query(self, query: QueryParams) -> Self:
        """Append additional key/value pairs to existing query keeping original order."""
        return self._new(self._url.extend_query(query))

    def with_path(self, path: str) -> Self:
        """Return a copy with a new path. Accepts with/without leading '/'. Empty path means '/'."""
        return self._new(self._url.with_path(path if path.startswith("/") else f"/{path}"))

    def with_fragment(self, fragment: str | None) -> Self:
        """Change this URL's fragment identifier."""
        return self._new(self._url.with_fragment(fragment))

    def _new(self, url: URL) -> Self:
        new = object.__new__(type(self))
        new._url = url
        return new

    def __truediv__(self, join_input: str) -> Self:
        """Path join shorthand: url / 'segment' == url.join('segment')."""
        return self.join(join_input)

    def __copy__(self) -> Self:
        return self

    def __str__(self) -> str:
        return str(self._url)

    def __repr__(self) -> str:
        return f"Url({str(self._url)!r})"

    def __hash__(self) -> int:
        return hash(self._url)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            try:
                other = Url(other)
            except ValueError:
                return False
        if isinstance(other, Url):
            return self._url == other._url
        return NotImplemented

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Url):
            return NotImplemented
        return str(self) < str(other)
