"""Backend-agnostic collection and record protocols."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RecordSource(Protocol):
    """A lazily-produced sequence of records that can be released early."""

    def __aiter__(self) -> AsyncIterator[Any]: ...

    async def close(self) -> None: ...


@runtime_checkable
class CollectionHandle(Protocol):
    """Operations across many records.

    Every model (in-memory, Mongo, search index, external API) satisfies this
    protocol so that calling code can treat backends interchangeably.
    """

    name: str

    async def find(self, query: dict[str, Any] | None = None, **options: Any) -> list[Any]:
        """Retrieve documents matching *query*."""
        ...

    def find_stream(self, query: dict[str, Any] | None = None, **options: Any) -> RecordSource:
        """Stream documents matching *query*."""
        ...

    async def count(self, query: dict[str, Any] | None = None) -> int:
        """Count documents matching *query*."""
        ...

    async def aggregate(self, query: dict[str, Any] | None, spec: Mapping[str, Any], options: Any = None) -> Any:
        """Run an aggregate spec over documents matching *query*."""
        ...

    async def insert(self, data: dict[str, Any]) -> None:
        """Insert a record directly."""
        ...

    async def update(self, query: dict[str, Any] | None, update: dict[str, Any], **options: Any) -> int:
        """Update every match; returns the number updated."""
        ...

    async def remove(self, query: dict[str, Any] | None) -> int:
        """Remove every match; returns the number removed."""
        ...


@runtime_checkable
class RecordHandle(Protocol):
    """Operations on one record."""

    def get_data(self) -> dict[str, Any]: ...

    async def save(self) -> Any: ...

    async def remove(self) -> Any: ...
