"""Backend models for each storage engine."""

from __future__ import annotations

from typing import Any

MIN_QUERY_LIMIT = 1
SUPPORTED_UPDATE_OPERATORS = ("$set", "$unset", "$inc")


def _validate_limit(limit: int | None, maximum: int) -> int | None:
    """Validate and clamp the *limit* parameter for query methods.

    ``None`` means unlimited and is passed through. Raises ``ValueError`` for non-positive
    values. Values exceeding *maximum* are silently capped.
    """
    if limit is None:
        return None
    if limit < MIN_QUERY_LIMIT:
        raise ValueError(f"limit must be >= {MIN_QUERY_LIMIT}, got {limit}")
    return min(limit, maximum)


def _validate_skip(skip: int) -> int:
    """Validate the *skip* parameter for query methods.

    Raises ``ValueError`` for negative values.
    """
    if skip < 0:
        raise ValueError(f"skip must be >= 0, got {skip}")
    return skip


def _is_operator_update(update: dict[str, Any]) -> bool:
    """True when every key of *update* is a ``$``-operator.

    Raises ``ValueError`` when operators and plain fields are mixed.
    """
    operator_keys = [key for key in update if key.startswith("$")]
    if operator_keys and len(operator_keys) != len(update):
        raise ValueError("update expression mixes $-operators with plain fields")
    return bool(operator_keys)
