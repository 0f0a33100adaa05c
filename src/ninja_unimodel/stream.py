"""Document streams: async record sources with explicit release.

A :class:`DocumentStream` is what ``Model.find_stream()`` returns. Backends
subclass it and implement :meth:`DocumentStream._read` (and usually
:meth:`DocumentStream._release` to close their cursor).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ninja_unimodel.exceptions import StreamClosedError, UnsupportedOperationError

if TYPE_CHECKING:
    from ninja_unimodel.model import FindResult, Model

logger = logging.getLogger(__name__)


class DocumentStream:
    """Async iterator over documents.

    Reading after :meth:`close` was called before the natural end raises
    :class:`StreamClosedError`; reading after the natural end simply stops.
    The underlying resource is released exactly once, on exhaustion or close.
    """

    def __init__(self, *, name: str | None = None) -> None:
        self._name = name
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        """True once the stream reached its natural end."""
        return self._exhausted

    def __aiter__(self) -> DocumentStream:
        return self

    async def __anext__(self) -> Any:
        if self._closed:
            if self._exhausted:
                raise StopAsyncIteration
            raise StreamClosedError(
                operation="find_stream",
                detail="stream was closed before all documents were read",
                model_name=self._name,
            )
        try:
            return await self._read()
        except StopAsyncIteration:
            self._exhausted = True
            self._closed = True
            await self._release()
            raise

    async def close(self) -> None:
        """Release the underlying resource. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing document stream for %s before exhaustion", self._name)
        await self._release()

    async def total(self) -> int:
        """Total number of matching documents, ignoring skip/limit."""
        raise UnsupportedOperationError(
            operation="total",
            detail="Getting the total is not supported on this stream",
            model_name=self._name,
        )

    async def to_list(self) -> list[Any]:
        """Drain the stream into a list, closing it afterwards."""
        try:
            return [item async for item in self]
        finally:
            await self.close()

    async def _read(self) -> Any:
        """Return the next document or raise ``StopAsyncIteration``."""
        raise NotImplementedError

    async def _release(self) -> None:
        """Free backend resources (cursors, connections)."""


class ListDocumentStream(DocumentStream):
    """Stream over an in-memory sequence."""

    def __init__(self, items: Sequence[Any], *, total: int | None = None, name: str | None = None) -> None:
        super().__init__(name=name)
        self._items = items
        self._position = 0
        self._total = total

    async def _read(self) -> Any:
        if self._position >= len(self._items):
            raise StopAsyncIteration
        item = self._items[self._position]
        self._position += 1
        return item

    async def total(self) -> int:
        return len(self._items) if self._total is None else self._total


class FindDocumentStream(DocumentStream):
    """Stream backed by a model's bulk ``find()``.

    The query runs lazily on the first read; :meth:`total` reuses the total
    returned by ``find()`` when present and falls back to ``model.count()``.
    """

    def __init__(self, model: Model, query: dict[str, Any] | None, find_options: dict[str, Any]) -> None:
        super().__init__(name=model.name)
        self._model = model
        self._query = query
        self._find_options = find_options
        self._results: FindResult | None = None
        self._position = 0

    async def _read(self) -> Any:
        if self._results is None:
            self._results = await self._model.find(self._query, **self._find_options)
        if self._position >= len(self._results):
            raise StopAsyncIteration
        item = self._results[self._position]
        self._position += 1
        return item

    async def total(self) -> int:
        if self._results is not None and self._results.total is not None:
            return self._results.total
        return await self._model.count(self._query)
