import inspect
import os
from collections.abc import Callable, Coroutine
from types import ModuleType
from typing import Any

from pysurf.http import Url

Example = Callable[[], Coroutine[Any, Any, None]]


def httpbin_url() -> Url:
    """Base URL of the echo service, read from the HTTPBIN env var."""
    return Url(os.environ.get("HTTPBIN", "https://httpbin.org"))


async def run_examples(mod: ModuleType) -> None:
    """Run every `example_*` coroutine function of the module in definition order."""
    for example in _examples(mod):
        title = (inspect.getdoc(example) or "").splitlines()[0:1]
        print(f"\n# running: {example.__name__}", *title, sep="\n")
        await example()


def _examples(mod: ModuleType) -> list[Example]:
    found = [fn for name, fn in vars(mod).items() if name.startswith("example_") and inspect.iscoroutinefunction(fn)]
    return sorted(found, key=lambda fn: fn.__code__.co_firstlineno)
