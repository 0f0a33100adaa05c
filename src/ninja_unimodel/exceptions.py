"""Domain exceptions for the unimodel layer.

Backends catch their driver exceptions and re-raise one of these so that
callers never see raw database errors. Aggregate errors additionally carry the
offending field path and groupBy clause index.
"""

from __future__ import annotations


class UnimodelError(Exception):
    """Base exception for all unimodel errors.

    Attributes:
        operation: The operation that failed (e.g. ``"find"``, ``"aggregate"``).
        detail: A sanitised description of what went wrong.
        model_name: The name of the model/collection involved, if any.
    """

    def __init__(
        self,
        *,
        operation: str,
        detail: str,
        model_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.operation = operation
        self.detail = detail
        self.model_name = model_name
        prefix = f"[{model_name}] " if model_name else ""
        super().__init__(f"{prefix}{operation} failed: {detail}")
        if cause is not None:
            self.__cause__ = cause


class UnsupportedOperationError(UnimodelError):
    """Raised when a model does not implement a requested operation or stat type."""


class NotFoundError(UnimodelError):
    """Raised when an expected record does not exist."""


class DuplicateRecordError(UnimodelError):
    """Raised when an insert violates a uniqueness constraint."""


class ConnectionFailedError(UnimodelError):
    """Raised when the backend cannot be reached."""


class QueryError(UnimodelError):
    """Raised for invalid queries, bad filter expressions, or rejected update operators."""


class StreamClosedError(UnimodelError):
    """Raised when reading from a document stream that was closed before its end."""


class AggregateError(UnimodelError):
    """Base class for errors raised by the aggregate sublanguage.

    Attributes:
        field: Dot-separated field path the error refers to, if any.
        clause_index: Zero-based index of the groupBy clause involved, if any.
    """

    def __init__(
        self,
        detail: str,
        *,
        field: str | None = None,
        clause_index: int | None = None,
        operation: str = "aggregate",
        model_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.field = field
        self.clause_index = clause_index
        location = []
        if field is not None:
            location.append(f"field {field!r}")
        if clause_index is not None:
            location.append(f"groupBy clause {clause_index}")
        if location:
            detail = f"{detail} ({', '.join(location)})"
        super().__init__(operation=operation, detail=detail, model_name=model_name, cause=cause)


class AggregateValidationError(AggregateError):
    """Raised for a malformed or self-inconsistent aggregate spec."""


class TypeMismatchError(AggregateError):
    """Raised when a record value cannot be compared or bucketed under a clause or stat."""


class AggregateInterruptedError(AggregateError):
    """Raised when the record source was closed before the aggregate reached its end."""
