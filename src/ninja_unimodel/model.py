"""Model base class with the collection-wide operations shared by every backend.

A model is NOT a document: the model queries, counts, aggregates and bulk
modifies; documents returned by it carry their own ``save``/``remove``.

Every operation raises :class:`UnsupportedOperationError` unless the backend
provides it. Where one operation can be expressed through another, the
default is opted into by composition rather than detected at runtime:

- :class:`StreamFindMixin` builds ``find()`` on top of ``find_stream()``.
- :class:`ListFindMixin` builds ``find_stream()`` on top of ``find()``.
- :class:`EngineAggregateMixin` builds ``aggregate()`` by streaming
  ``find_stream()`` through the in-process aggregate engine.

A backend must not combine the two find mixins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ninja_unimodel.aggregate.engine import AggregateOptions, AggregateResult, run_aggregate
from ninja_unimodel.aggregate.normalizer import normalize_aggregate
from ninja_unimodel.aggregate.spec import AggregateSpec
from ninja_unimodel.config import ModelOptions
from ninja_unimodel.document import Document
from ninja_unimodel.exceptions import NotFoundError, UnsupportedOperationError
from ninja_unimodel.hooks import HookRegistry, Listener
from ninja_unimodel.stream import DocumentStream, FindDocumentStream

logger = logging.getLogger(__name__)

Query = dict[str, Any]


class FindResult(list):
    """List of documents returned by ``find()``.

    ``total`` holds the number of matches ignoring skip/limit when the caller
    asked for it, else ``None``.
    """

    def __init__(self, items: Iterable[Any] = (), total: int | None = None) -> None:
        super().__init__(items)
        self.total = total


class Model:
    """Abstract collection handle. Subclass per backend; by convention
    ``AnimalModel`` produces ``Animal`` documents."""

    def __init__(self, name: str, *, options: ModelOptions | None = None) -> None:
        self.name = name
        self.options = options or ModelOptions()
        self.hooks = HookRegistry()

    @staticmethod
    def is_model(obj: Any) -> bool:
        return isinstance(obj, Model)

    def hook(self, event: str, listener: Listener) -> None:
        """Register a lifecycle listener (``post-init``, ``pre-save``, ...)."""
        self.hooks.hook(event, listener)

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            operation=operation,
            detail=f"{operation}() is not implemented for this model",
            model_name=self.name,
        )

    # -- queries ----------------------------------------------------------------

    async def find(
        self,
        query: Query | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
        total: bool = False,
    ) -> FindResult:
        """Return documents matching *query*.

        Args:
            query: Field-path equality filter.
            skip: Number of matches to skip.
            limit: Maximum number of documents to return.
            fields: Dot-separated field paths to return.
            sort: Field paths to sort by; prefix ``-`` for descending.
            total: Also report the number of matches ignoring skip/limit.
        """
        raise self._unsupported("find")

    def find_stream(
        self,
        query: Query | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> DocumentStream:
        """Return a :class:`DocumentStream` over documents matching *query*."""
        raise self._unsupported("find_stream")

    async def find_one(
        self, query: Query | None = None, *, fields: list[str] | None = None, sort: list[str] | None = None
    ) -> Document:
        """Return the first matching document.

        Raises:
            NotFoundError: If nothing matches.
        """
        results = await self.find(query, limit=1, fields=fields, sort=sort)
        if not results:
            raise NotFoundError(operation="find_one", detail="No document matches the query.", model_name=self.name)
        return results[0]

    async def count(self, query: Query | None = None) -> int:
        """Number of documents matching *query*. Defaults to ``find(total=True)``."""
        results = await self.find(query, total=True)
        if results.total is None:
            raise self._unsupported("count")
        return results.total

    # -- aggregates -------------------------------------------------------------

    def normalize_aggregate(self, spec: AggregateSpec | Mapping[str, Any]) -> AggregateSpec:
        """Normalize *spec* with this model's aggregate options."""
        return normalize_aggregate(spec, self.options.aggregate)

    async def aggregate(
        self,
        query: Query | None,
        spec: AggregateSpec | Mapping[str, Any],
        options: AggregateOptions | Mapping[str, Any] | None = None,
    ) -> AggregateResult:
        """Run one aggregate over the documents matching *query*."""
        raise self._unsupported("aggregate")

    async def aggregate_multi(
        self,
        query: Query | None,
        specs: Mapping[str, AggregateSpec | Mapping[str, Any]],
        options: AggregateOptions | Mapping[str, Any] | None = None,
    ) -> dict[str, AggregateResult]:
        """Run several named aggregates; defaults to one ``aggregate()`` call per name, in order."""
        results: dict[str, AggregateResult] = {}
        for name, spec in specs.items():
            results[name] = await self.aggregate(query, spec, options)
        return results

    # -- writes -----------------------------------------------------------------

    def create(self, data: dict[str, Any] | None = None) -> Document:
        """Create an unsaved document of this model."""
        raise self._unsupported("create")

    async def insert(self, data: dict[str, Any]) -> None:
        """Insert *data* directly, without building a document."""
        raise self._unsupported("insert")

    async def update(
        self, query: Query | None, update: dict[str, Any], *, allow_full_replace: bool | None = None
    ) -> int:
        """Apply a Mongo-style update expression to every match; returns the number updated.

        An expression without ``$``-operators is wrapped in ``$set`` unless
        *allow_full_replace* (or the model option of the same name) is set.
        """
        raise self._unsupported("update")

    async def remove(self, query: Query | None) -> int:
        """Remove every match; returns the number removed."""
        raise self._unsupported("remove")

    async def upsert(self, query: Query, data: dict[str, Any]) -> None:
        """Update the matches of *query*, or insert ``query`` merged with *data* when there are none."""
        if await self.count(query) > 0:
            await self.update(query, data)
            return
        document = {key: value for key, value in query.items() if not key.startswith("$")}
        if all(not key.startswith("$") for key in data):
            document.update(data)
        else:
            document.update(data.get("$set", {}))
        await self.insert(document)


class StreamFindMixin:
    """``find()`` expressed through the backend's native ``find_stream()``."""

    async def find(
        self,
        query: Query | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
        total: bool = False,
    ) -> FindResult:
        stream = self.find_stream(query, skip=skip, limit=limit, fields=fields, sort=sort)
        items = await stream.to_list()
        return FindResult(items, total=await stream.total() if total else None)


class ListFindMixin:
    """``find_stream()`` expressed through the backend's native ``find()``."""

    def find_stream(
        self,
        query: Query | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> DocumentStream:
        return FindDocumentStream(self, query, {"skip": skip, "limit": limit, "fields": fields, "sort": sort})


class EngineAggregateMixin:
    """``aggregate()`` computed client-side over ``find_stream()``."""

    async def aggregate(
        self,
        query: Query | None,
        spec: AggregateSpec | Mapping[str, Any],
        options: AggregateOptions | Mapping[str, Any] | None = None,
    ) -> AggregateResult:
        normalized = self.normalize_aggregate(spec)
        logger.debug("Aggregating %s client-side", self.name)
        return await run_aggregate(normalized, self.find_stream(query), options)
