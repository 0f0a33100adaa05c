"""Lifecycle hooks: ordered listener lists per lifecycle point."""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Callable
from typing import Any

POST_INIT = "post-init"
PRE_SAVE = "pre-save"
POST_SAVE = "post-save"
PRE_REMOVE = "pre-remove"
POST_REMOVE = "post-remove"

Listener = Callable[..., Any]


class HookRegistry:
    """Registers listeners per lifecycle point and runs them in registration order.

    Async listeners are awaited one after another; a listener that raises
    stops the chain and the exception propagates to the caller.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def hook(self, event: str, listener: Listener) -> None:
        """Append *listener* to the list for *event*."""
        self._listeners[event].append(listener)

    def listeners(self, event: str) -> list[Listener]:
        return list(self._listeners.get(event, ()))

    async def trigger(self, event: str, *args: Any) -> None:
        """Run every listener for *event*, awaiting coroutine results in order."""
        for listener in self.listeners(event):
            result = listener(*args)
            if inspect.isawaitable(result):
                await result

    def trigger_sync(self, event: str, *args: Any) -> None:
        """Run listeners for a synchronous lifecycle point such as ``post-init``.

        Raises:
            TypeError: If a listener returns an awaitable.
        """
        for listener in self.listeners(event):
            result = listener(*args)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(f"Hook {event!r} is synchronous; listener {listener!r} returned an awaitable.")
