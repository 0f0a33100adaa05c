"""In-memory model: a list-backed reference backend.

Useful for tests and for small static collections. Queries are plain
field-path equality filters; aggregates run through the in-process engine.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from ninja_unimodel.adapters import SUPPORTED_UPDATE_OPERATORS, _is_operator_update, _validate_limit, _validate_skip
from ninja_unimodel.config import ModelOptions
from ninja_unimodel.document import Document
from ninja_unimodel.exceptions import DuplicateRecordError, NotFoundError, QueryError
from ninja_unimodel.hooks import POST_REMOVE, POST_SAVE, PRE_REMOVE, PRE_SAVE
from ninja_unimodel.model import EngineAggregateMixin, Model, Query, StreamFindMixin
from ninja_unimodel.paths import MISSING, get_path, is_absent, set_path, sort_by_paths, unset_path
from ninja_unimodel.stream import DocumentStream, ListDocumentStream

logger = logging.getLogger(__name__)


class MemoryDocument(Document):
    """A document of a :class:`MemoryModel`, keyed by the model's ``key_field``."""

    model: MemoryModel

    async def save(self) -> MemoryDocument:
        model = self.model
        await model.hooks.trigger(PRE_SAVE, self)
        if model.key_field not in self.data:
            self.data[model.key_field] = uuid.uuid4().hex
        model._store(self.data)
        await model.hooks.trigger(POST_SAVE, self)
        return self

    async def remove(self) -> MemoryDocument:
        model = self.model
        key = self.data.get(model.key_field)
        await model.hooks.trigger(PRE_REMOVE, self)
        if key is None or not await model.remove({model.key_field: key}):
            raise NotFoundError(
                operation="remove", detail=f"No stored document with {model.key_field}={key!r}.", model_name=model.name
            )
        await model.hooks.trigger(POST_REMOVE, self)
        return self


class MemoryModel(StreamFindMixin, EngineAggregateMixin, Model):
    """List-backed model implementing the full collection contract."""

    def __init__(
        self,
        name: str,
        records: Iterable[dict[str, Any]] | None = None,
        *,
        key_field: str = "id",
        options: ModelOptions | None = None,
    ) -> None:
        super().__init__(name, options=options)
        self.key_field = key_field
        self._records: list[dict[str, Any]] = [copy.deepcopy(record) for record in records or ()]

    def __len__(self) -> int:
        return len(self._records)

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
        matches = self._matching(query, operation="find_stream")
        if sort:
            try:
                matches = sort_by_paths(matches, sort)
            except TypeError as exc:
                raise QueryError(
                    operation="find_stream", detail=f"Cannot sort by {sort}.", model_name=self.name, cause=exc
                ) from exc
        window = matches[skip:] if limit is None else matches[skip : skip + limit]
        documents = [MemoryDocument(self, _project(record, fields)) for record in window]
        return ListDocumentStream(documents, total=len(matches), name=self.name)

    async def count(self, query: Query | None = None) -> int:
        return len(self._matching(query, operation="count"))

    # -- writes -----------------------------------------------------------------

    def create(self, data: dict[str, Any] | None = None) -> MemoryDocument:
        return MemoryDocument(self, data)

    async def insert(self, data: dict[str, Any]) -> None:
        record = copy.deepcopy(data)
        key = record.get(self.key_field)
        if key is None:
            record[self.key_field] = uuid.uuid4().hex
        elif self._index_of(key) is not None:
            raise DuplicateRecordError(
                operation="insert",
                detail=f"A document with {self.key_field}={key!r} already exists.",
                model_name=self.name,
            )
        self._records.append(record)

    async def update(
        self, query: Query | None, update: dict[str, Any], *, allow_full_replace: bool | None = None
    ) -> int:
        if allow_full_replace is None:
            allow_full_replace = self.options.allow_full_replace
        try:
            is_operator = _is_operator_update(update)
        except ValueError as exc:
            raise QueryError(operation="update", detail=str(exc), model_name=self.name, cause=exc) from exc
        if not is_operator and not allow_full_replace:
            update = {"$set": update}
            is_operator = True
        if is_operator:
            for operator in update:
                if operator not in SUPPORTED_UPDATE_OPERATORS:
                    raise QueryError(
                        operation="update", detail=f"Unsupported update operator {operator!r}.", model_name=self.name
                    )

        matches = self._matching(query, operation="update")
        updated = []
        for record in matches:
            if is_operator:
                replacement = copy.deepcopy(record)
                self._apply_operators(replacement, update)
            else:
                replacement = copy.deepcopy(update)
                replacement.setdefault(self.key_field, record.get(self.key_field))
            updated.append(replacement)
        # Swap in only once every record has been updated.
        for record, replacement in zip(matches, updated):
            record.clear()
            record.update(replacement)
        logger.debug("Updated %d %s documents", len(matches), self.name)
        return len(matches)

    async def remove(self, query: Query | None) -> int:
        matches = {id(record) for record in self._matching(query, operation="remove")}
        self._records = [record for record in self._records if id(record) not in matches]
        return len(matches)

    # -- internals --------------------------------------------------------------

    def _matching(self, query: Query | None, *, operation: str) -> list[dict[str, Any]]:
        if not query:
            return list(self._records)
        for path in query:
            if path.startswith("$"):
                raise QueryError(
                    operation=operation,
                    detail=f"Query operator {path!r} is not supported; use field-path equality.",
                    model_name=self.name,
                )
        return [
            record
            for record in self._records
            if all(_field_equals(get_path(record, path), expected) for path, expected in query.items())
        ]

    def _index_of(self, key: Any) -> int | None:
        for index, record in enumerate(self._records):
            if record.get(self.key_field) == key:
                return index
        return None

    def _store(self, data: dict[str, Any]) -> None:
        record = copy.deepcopy(data)
        index = self._index_of(record[self.key_field])
        if index is None:
            self._records.append(record)
        else:
            self._records[index] = record

    def _apply_operators(self, record: dict[str, Any], update: dict[str, Any]) -> None:
        for path, value in update.get("$set", {}).items():
            set_path(record, path, copy.deepcopy(value))
        for path in update.get("$unset", {}):
            unset_path(record, path)
        for path, amount in update.get("$inc", {}).items():
            current = get_path(record, path)
            current = 0 if is_absent(current) else current
            if not all(isinstance(n, (int, float)) and not isinstance(n, bool) for n in (current, amount)):
                raise QueryError(
                    operation="update", detail=f"$inc requires numbers at {path!r}.", model_name=self.name
                )
            set_path(record, path, current + amount)


def _field_equals(actual: Any, expected: Any) -> bool:
    if expected is None:
        return is_absent(actual)
    return actual is not MISSING and actual == expected


def _project(record: dict[str, Any], fields: list[str] | None) -> dict[str, Any]:
    if not fields:
        return copy.deepcopy(record)
    projected: dict[str, Any] = {}
    for path in fields:
        value = get_path(record, path)
        if value is not MISSING:
            set_path(projected, path, copy.deepcopy(value))
    return projected
