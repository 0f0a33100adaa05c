"""Motor/MongoDB model implementing the collection contract."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from ninja_unimodel.adapters import _is_operator_update, _validate_limit, _validate_skip
from ninja_unimodel.config import ModelOptions
from ninja_unimodel.document import Document
from ninja_unimodel.exceptions import (
    ConnectionFailedError,
    DuplicateRecordError,
    NotFoundError,
    QueryError,
    UnimodelError,
)
from ninja_unimodel.hooks import POST_REMOVE, POST_SAVE, PRE_REMOVE, PRE_SAVE
from ninja_unimodel.model import EngineAggregateMixin, Model, Query, StreamFindMixin
from ninja_unimodel.stream import DocumentStream

logger = logging.getLogger(__name__)


class MongoDocumentStream(DocumentStream):
    """Stream over a Motor cursor; closing the stream closes the cursor."""

    def __init__(self, model: MongoModel, cursor: Any, query: Query) -> None:
        super().__init__(name=model.name)
        self._model = model
        self._cursor = cursor
        self._query = query

    async def _read(self) -> Any:
        try:
            raw = await anext(self._cursor)
        except StopAsyncIteration:
            raise
        except Exception as exc:
            raise self._model._translate(exc, "find_stream", "read") from exc
        return MongoDocument(self._model, dict(raw))

    async def _release(self) -> None:
        result = self._cursor.close()
        if inspect.isawaitable(result):
            await result

    async def total(self) -> int:
        return await self._model.count(self._query)


class MongoDocument(Document):
    """A document of a :class:`MongoModel`, keyed by ``_id``."""

    model: MongoModel

    async def save(self) -> MongoDocument:
        model = self.model
        await model.hooks.trigger(PRE_SAVE, self)
        coll = model._get_collection()
        try:
            if "_id" in self.data:
                await coll.replace_one({"_id": self.data["_id"]}, self.data, upsert=True)
            else:
                result = await coll.insert_one(self.data)
                self.data["_id"] = result.inserted_id
        except Exception as exc:
            raise model._translate(exc, "save", "write") from exc
        await model.hooks.trigger(POST_SAVE, self)
        return self

    async def remove(self) -> MongoDocument:
        model = self.model
        if "_id" not in self.data:
            raise NotFoundError(operation="remove", detail="Document was never saved.", model_name=model.name)
        await model.hooks.trigger(PRE_REMOVE, self)
        coll = model._get_collection()
        try:
            result = await coll.delete_one({"_id": self.data["_id"]})
        except Exception as exc:
            raise model._translate(exc, "remove", "write") from exc
        if not result.deleted_count:
            raise NotFoundError(
                operation="remove", detail=f"No stored document with _id={self.data['_id']!r}.", model_name=model.name
            )
        await model.hooks.trigger(POST_REMOVE, self)
        return self


class MongoModel(StreamFindMixin, EngineAggregateMixin, Model):
    """Async MongoDB model backed by Motor.

    Queries are field-path equality filters; ``$``-prefixed keys are rejected
    anywhere in a filter. Aggregates stream matching documents through the
    in-process engine rather than translating to an aggregation pipeline.

    Requires the ``motor`` optional dependency:
        pip install ninja-unimodel[mongo]
    """

    def __init__(
        self,
        name: str,
        database: Any = None,
        *,
        collection_name: str | None = None,
        options: ModelOptions | None = None,
    ) -> None:
        super().__init__(name, options=options)
        self._database = database
        self._collection_name = collection_name or name.lower()

    def _get_collection(self) -> Any:
        """Return the Motor collection, raising if no database is configured."""
        if self._database is None:
            raise RuntimeError(
                "MongoModel requires a Motor database instance. Pass it via the `database` constructor parameter."
            )
        return self._database[self._collection_name]

    def _translate(self, exc: Exception, operation: str, phase: str) -> UnimodelError:
        """Map a driver exception to the matching domain error, logging it first."""
        if _is_duplicate_key_error(exc):
            logger.error("Mongo %s duplicate key for %s: %s", operation, self.name, type(exc).__name__)
            return DuplicateRecordError(
                operation=operation, detail="A document with this key already exists.", model_name=self.name, cause=exc
            )
        if _is_connection_error(exc):
            logger.error("Mongo %s connection error for %s: %s", operation, self.name, type(exc).__name__)
            return ConnectionFailedError(
                operation=operation,
                detail=f"Database connection failed during {phase}.",
                model_name=self.name,
                cause=exc,
            )
        logger.error("Mongo %s failed for %s: %s", operation, self.name, type(exc).__name__)
        if phase == "read":
            return QueryError(operation=operation, detail="Query execution failed.", model_name=self.name, cause=exc)
        return UnimodelError(operation=operation, detail="Database write failed.", model_name=self.name, cause=exc)

    # -- queries ----------------------------------------------------------------

    def find_stream(
        self,
        query: Query | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> DocumentStream:
        skip = _validate_skip(skip)
        limit = _validate_limit(limit, self.options.max_query_limit)
        query = query or {}
        _reject_mongo_operators(query, self.name, "find_stream")
        projection = dict.fromkeys(fields, 1) if fields else None
        cursor = self._get_collection().find(query, projection)
        if sort:
            cursor = cursor.sort([(path.lstrip("-"), -1 if path.startswith("-") else 1) for path in sort])
        if skip:
            cursor = cursor.skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)
        return MongoDocumentStream(self, cursor, query)

    async def count(self, query: Query | None = None) -> int:
        query = query or {}
        _reject_mongo_operators(query, self.name, "count")
        try:
            return await self._get_collection().count_documents(query)
        except Exception as exc:
            raise self._translate(exc, "count", "read") from exc

    # -- writes -----------------------------------------------------------------

    def create(self, data: dict[str, Any] | None = None) -> MongoDocument:
        return MongoDocument(self, data)

    async def insert(self, data: dict[str, Any]) -> None:
        try:
            await self._get_collection().insert_one(dict(data))
        except Exception as exc:
            raise self._translate(exc, "insert", "write") from exc

    async def update(
        self, query: Query | None, update: dict[str, Any], *, allow_full_replace: bool | None = None
    ) -> int:
        query = query or {}
        _reject_mongo_operators(query, self.name, "update")
        try:
            is_operator = _is_operator_update(update)
        except ValueError as exc:
            raise QueryError(operation="update", detail=str(exc), model_name=self.name, cause=exc) from exc
        if not is_operator:
            if allow_full_replace or (allow_full_replace is None and self.options.allow_full_replace):
                raise self._unsupported("update with full replace")
            update = {"$set": update}
        try:
            result = await self._get_collection().update_many(query, update)
        except Exception as exc:
            raise self._translate(exc, "update", "write") from exc
        return result.matched_count

    async def remove(self, query: Query | None) -> int:
        query = query or {}
        _reject_mongo_operators(query, self.name, "remove")
        try:
            result = await self._get_collection().delete_many(query)
        except Exception as exc:
            raise self._translate(exc, "remove", "write") from exc
        return result.deleted_count


def _reject_mongo_operators(filters: dict[str, Any], model_name: str, operation: str) -> None:
    """Raise ``QueryError`` if any filter key (recursively) starts with ``$``."""

    def _check(obj: Any) -> None:
        if isinstance(obj, dict):
            for key in obj:
                if isinstance(key, str) and key.startswith("$"):
                    raise QueryError(
                        operation=operation,
                        detail=f"Filter key '{key}' is not allowed: only field-path equality is supported.",
                        model_name=model_name,
                    )
                _check(obj[key])
        elif isinstance(obj, list):
            for item in obj:
                _check(item)

    _check(filters)


def _is_duplicate_key_error(exc: Exception) -> bool:
    """Check whether *exc* is a MongoDB duplicate-key error without importing pymongo."""
    if type(exc).__name__ == "DuplicateKeyError":
        return True
    # PyMongo reports duplicate keys as WriteError with code 11000.
    return getattr(exc, "code", None) == 11000


def _is_connection_error(exc: Exception) -> bool:
    """Check whether *exc* indicates a connection-level failure."""
    type_names = {cls.__name__ for cls in type(exc).__mro__}
    return bool(type_names & {"ConnectionFailure", "ServerSelectionTimeoutError", "AutoReconnect", "NetworkTimeout"})
