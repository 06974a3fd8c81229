import inspect
import warnings
from functools import lru_cache, partial
from typing import TYPE_CHECKING, overload

import anyio.to_thread
from fast_depends import inject

from .exceptions import UnregisteredHandlerError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Callable, Iterator
    from typing import Any

    from .models import WorkUnit

    HandlerFn = Callable[..., Awaitable[Any] | Any]


@lru_cache(maxsize=None)
def _get_resolved_fn(fn: "HandlerFn") -> "HandlerFn":
    return inject(fn)


class HandlerRegistry:
    """
    Maps unit kinds to the callables that execute them. A handler receives the
    unit as its first argument and returns the unit's output; it may be sync or
    async and may declare additional `Depends(...)` parameters.

    ```python
    registry = HandlerRegistry()

    @registry.register("polygon_area")
    async def polygon_area(unit: WorkUnit) -> dict[str, float]: ...
    ```
    """

    def __init__(self, handlers: "dict[str, HandlerFn] | None" = None) -> None:
        self._handlers: dict[str, "HandlerFn"] = {}

        for kind, fn in (handlers or {}).items():
            self.register(kind, fn)

    @overload
    def register(self, kind: str) -> "Callable[[HandlerFn], HandlerFn]": ...

    @overload
    def register(self, kind: str, fn: "HandlerFn") -> "HandlerFn": ...

    def register(self, kind, fn=None):
        if fn is None:
            return lambda fn: self.register(kind, fn)

        if kind in self._handlers:
            warnings.warn(
                f"Handler for kind '{kind}' is already registered. This will override"
                " that implementation.",
                stacklevel=3,
            )

        self._handlers[kind] = fn
        return fn

    def get(self, kind: str) -> "HandlerFn":
        if fn := self._handlers.get(kind):
            return fn

        raise UnregisteredHandlerError(kind)

    async def invoke(self, unit: "WorkUnit") -> "Any":
        """Run the handler registered for the unit's kind and return its output."""
        fn = self.get(unit.kind)
        handler_fn = _get_resolved_fn(fn)

        if inspect.iscoroutinefunction(fn):
            return await handler_fn(unit)

        # sync handlers must never block the event loop
        output = await anyio.to_thread.run_sync(partial(handler_fn, unit))
        if inspect.isawaitable(output):
            output = await output

        return output

    @property
    def kinds(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def __iter__(self) -> "Iterator[str]":
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)
