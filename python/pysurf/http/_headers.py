import re
from collections.abc import ItemsView, Iterator, Mapping, MutableMapping
from typing import Any, Self, TypeVar

from multidict import CIMultiDict

from pysurf.exceptions import InvalidHeaderError
from pysurf.types import HeadersType

_T = TypeVar("_T")
_MISSING: Any = object()

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = frozenset("\r\n\0")


def validate_header(name: str, value: str) -> None:
    """Check that the header can be represented in an HTTP message. Raises InvalidHeaderError otherwise."""
    if not isinstance(name, str) or not _TOKEN_RE.match(name):
        raise InvalidHeaderError(f"invalid header name: {name!r}", {"name": name})
    if not isinstance(value, str):
        raise InvalidHeaderError(f"invalid header value type for {name!r}: {type(value).__name__}", {"name": name})
    if _FORBIDDEN_VALUE_CHARS.intersection(value):
        raise InvalidHeaderError(f"invalid header value for {name!r}", {"name": name, "value": value})
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as e:
        raise InvalidHeaderError(f"invalid header value for {name!r}", {"name": name, "value": value}) from e


def header_pairs(headers: HeadersType) -> list[tuple[str, str]]:
    if isinstance(headers, HeaderMap):
        return list(headers.items())
    if isinstance(headers, Mapping):
        return list(headers.items())
    return list(headers)


class HeaderMap(MutableMapping[str, str]):
    """Ordered multimap of headers. Name lookups are case-insensitive.

    Indexing returns the first value of a name and assigning replaces all its values. Use `getall`, `append` and
    `popall` for multi-value access. Iteration and `len` cover every (name, value) entry, like `multidict`.
    """

    def __init__(self, other: HeadersType | None = None) -> None:
        self._items: CIMultiDict[str] = CIMultiDict()
        if other is not None:
            self.extend(other)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __getitem__(self, key: str, /) -> str:
        return self._items[key]

    def __setitem__(self, key: str, value: str, /) -> None:
        validate_header(key, value)
        self._items[key] = value

    def __delitem__(self, key: str, /) -> None:
        del self._items[key]

    def __contains__(self, key: object, /) -> bool:
        return key in self._items

    def items(self) -> ItemsView[str, str]:  # type: ignore[override]
        return self._items.items()

    def len(self) -> int:
        """Number of entries, counting every value of repeated names."""
        return len(self._items)

    def keys_len(self) -> int:
        """Number of distinct header names."""
        return len({key.lower() for key in self._items})

    def getall(self, key: str) -> list[str]:
        """All values for the name in insertion order. Empty list when missing."""
        return list(self._items.getall(key, []))

    def insert(self, key: str, value: str) -> list[str]:
        """Replace all values of the name, returning the previous values."""
        validate_header(key, value)
        previous = self.getall(key)
        self._items[key] = value
        return previous

    def append(self, key: str, value: str) -> bool:
        """Add a value keeping the existing ones. Returns whether the name was already present."""
        validate_header(key, value)
        existed = key in self._items
        self._items.add(key, value)
        return existed

    def extend(self, other: HeadersType) -> None:
        for key, value in header_pairs(other):
            self.append(key, value)

    def popall(self, key: str, /, default: Any = _MISSING) -> list[str] | Any:
        if key not in self._items:
            if default is _MISSING:
                raise KeyError(key)
            return default
        return list(self._items.popall(key))

    def dict_multi_value(self) -> dict[str, str | list[str]]:
        res: dict[str, str | list[str]] = {}
        for key in self._items:
            lower = key.lower()
            if lower not in res:
                values = self.getall(key)
                res[lower] = values[0] if len(values) == 1 else values
        return res

    def copy(self) -> Self:
        new = type(self)()
        new._items = self._items.copy()
        return new

    def __copy__(self) -> Self:
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        mine = sorted((key.lower(), value) for key, value in self.items())
        theirs = sorted((key.lower(), value) for key, value in header_pairs(other))
        return mine == theirs

    def __repr__(self) -> str:
        return f"HeaderMap({list(self.items())!r})"
