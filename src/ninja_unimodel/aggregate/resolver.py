"""Group-key resolution for groupBy clauses."""

from __future__ import annotations

import bisect
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from ninja_unimodel.aggregate.spec import (
    DiscreteClause,
    GroupByClause,
    IntervalClause,
    RangesClause,
    TimeComponentClause,
)
from ninja_unimodel.aggregate.timeutil import (
    UNIX_EPOCH,
    calendar_bucket_start,
    format_instant,
    parse_duration,
    parse_timestamp,
    to_instant,
)
from ninja_unimodel.exceptions import TypeMismatchError
from ninja_unimodel.paths import is_absent


class _NoGroup:
    def __repr__(self) -> str:
        return "NO_GROUP"

    def __bool__(self) -> bool:
        return False


NO_GROUP: Any = _NoGroup()
"""Returned when a record belongs to no group for a clause."""

KeyResolver = Callable[[Any], Any]


def resolve_key(clause: GroupByClause, value: Any, *, clause_index: int = 0) -> Any:
    """Return the group key component of *value* under *clause*, or :data:`NO_GROUP`.

    Null and absent values always yield ``NO_GROUP``.

    Raises:
        TypeMismatchError: If *value* cannot be bucketed under the clause.
    """
    return compile_clause(clause, clause_index)(value)


def compile_clause(clause: GroupByClause, clause_index: int = 0) -> KeyResolver:
    """Pre-parse *clause* into a one-argument key resolver.

    The engine compiles each clause once per aggregate run so that duration
    and timestamp strings are not re-parsed for every record.
    """
    if isinstance(clause, DiscreteClause):
        resolver = _compile_discrete(clause, clause_index)
    elif isinstance(clause, RangesClause):
        resolver = _compile_ranges(clause, clause_index)
    elif isinstance(clause, IntervalClause):
        resolver = _compile_interval(clause, clause_index)
    elif isinstance(clause, TimeComponentClause):
        resolver = _compile_time_component(clause, clause_index)
    else:
        raise TypeError(f"unsupported groupBy clause: {type(clause).__name__}")

    def resolve(value: Any) -> Any:
        if is_absent(value):
            return NO_GROUP
        return resolver(value)

    return resolve


def freeze_key(value: Any) -> Any:
    """Return a hashable stand-in for *value* that preserves deep equality.

    Booleans are tagged so that ``True`` and ``1`` land in different groups.
    """
    if isinstance(value, bool):
        return ("__bool__", value)
    if isinstance(value, Mapping):
        return ("__map__", frozenset((k, freeze_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("__seq__", tuple(freeze_key(v) for v in value))
    if isinstance(value, set):
        return ("__set__", frozenset(freeze_key(v) for v in value))
    return value


def _compile_discrete(clause: DiscreteClause, clause_index: int) -> KeyResolver:
    def resolve(value: Any) -> Any:
        try:
            hash(freeze_key(value))
        except TypeError as exc:
            raise TypeMismatchError(
                f"cannot group by unhashable {type(value).__name__} value",
                field=clause.field,
                clause_index=clause_index,
                cause=exc,
            ) from exc
        return value

    return resolve


def _compile_ranges(clause: RangesClause, clause_index: int) -> KeyResolver:
    temporal = clause.temporal
    convert = parse_timestamp if temporal else (lambda b: b)
    starts = [None if r.start is None else convert(r.start) for r in clause.ranges]
    ends = [convert(r.end) for r in clause.ranges if r.end is not None]
    last = len(clause.ranges) - 1
    coerce = _instant_coercer(clause.field, clause_index) if temporal else _number_coercer(clause.field, clause_index)

    def resolve(value: Any) -> Any:
        point = coerce(value)
        index = bisect.bisect_right(ends, point)
        if index == len(ends) and len(ends) == last:
            index = last
        if index > last:
            return NO_GROUP
        start = starts[index]
        if start is not None and point < start:
            return NO_GROUP
        return index

    return resolve


def _compile_interval(clause: IntervalClause, clause_index: int) -> KeyResolver:
    if clause.temporal:
        step = parse_duration(clause.interval)
        origin = UNIX_EPOCH if clause.base is None else parse_timestamp(clause.base)
        coerce = _instant_coercer(clause.field, clause_index)

        def resolve_instant(value: Any) -> str:
            return format_instant(_bucket_instant(coerce(value), origin, step))

        return resolve_instant

    step_number = clause.interval
    base = 0 if clause.base is None else clause.base
    coerce_number = _number_coercer(clause.field, clause_index)

    def resolve_number(value: Any) -> int | float:
        return _bucket_number(coerce_number(value), base, step_number)

    return resolve_number


def _compile_time_component(clause: TimeComponentClause, clause_index: int) -> KeyResolver:
    coerce = _instant_coercer(clause.field, clause_index)
    unit = clause.time_component
    count = clause.time_component_count

    def resolve(value: Any) -> str:
        return format_instant(calendar_bucket_start(coerce(value), unit, count))

    return resolve


def _bucket_number(value: int | float, base: int | float, step: int | float) -> int | float:
    index = (value - base) // step
    key = base + index * step
    # Float rounding can leave the key one bucket off; nudge it back into range.
    if key > value:
        key -= step
    elif key + step <= value:
        key += step
    if isinstance(key, float) and key.is_integer() and all(isinstance(n, int) for n in (base, step)):
        return int(key)
    return key


def _bucket_instant(value: datetime, origin: datetime, step: timedelta) -> datetime:
    index = (value - origin) // step
    return origin + index * step


def _number_coercer(field: str, clause_index: int) -> Callable[[Any], int | float]:
    def coerce(value: Any) -> int | float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        raise TypeMismatchError(
            f"expected a number, got {type(value).__name__}", field=field, clause_index=clause_index
        )

    return coerce


def _instant_coercer(field: str, clause_index: int) -> Callable[[Any], datetime]:
    def coerce(value: Any) -> datetime:
        try:
            return to_instant(value)
        except (TypeError, ValueError) as exc:
            raise TypeMismatchError(
                f"expected a date or ISO-8601 timestamp, got {value!r}",
                field=field,
                clause_index=clause_index,
                cause=exc,
            ) from exc

    return coerce
