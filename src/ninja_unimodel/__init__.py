"""Ninja Unimodel: one collection/record contract across storage backends."""

from ninja_unimodel.adapters.memory import MemoryDocument, MemoryModel
from ninja_unimodel.adapters.mongo import MongoDocument, MongoModel
from ninja_unimodel.aggregate import AggregateOptions, normalize_aggregate, run_aggregate
from ninja_unimodel.config import ModelOptions, UnimodelConfig
from ninja_unimodel.document import Document
from ninja_unimodel.exceptions import (
    AggregateError,
    AggregateInterruptedError,
    AggregateValidationError,
    ConnectionFailedError,
    DuplicateRecordError,
    NotFoundError,
    QueryError,
    StreamClosedError,
    TypeMismatchError,
    UnimodelError,
    UnsupportedOperationError,
)
from ninja_unimodel.model import EngineAggregateMixin, FindResult, ListFindMixin, Model, StreamFindMixin
from ninja_unimodel.protocols import CollectionHandle, RecordHandle, RecordSource
from ninja_unimodel.stream import DocumentStream, ListDocumentStream

__all__ = [
    "AggregateError",
    "AggregateInterruptedError",
    "AggregateOptions",
    "AggregateValidationError",
    "CollectionHandle",
    "ConnectionFailedError",
    "Document",
    "DocumentStream",
    "DuplicateRecordError",
    "EngineAggregateMixin",
    "FindResult",
    "ListDocumentStream",
    "ListFindMixin",
    "MemoryDocument",
    "MemoryModel",
    "Model",
    "ModelOptions",
    "MongoDocument",
    "MongoModel",
    "NotFoundError",
    "QueryError",
    "RecordHandle",
    "RecordSource",
    "StreamClosedError",
    "StreamFindMixin",
    "TypeMismatchError",
    "UnimodelConfig",
    "UnimodelError",
    "UnsupportedOperationError",
    "normalize_aggregate",
    "run_aggregate",
]
