"""Aggregate spec normalizer: shorthand expansion, validation, canonicalization."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from ninja_unimodel.aggregate.spec import (
    BUILTIN_STATS,
    AggregateSpec,
    DiscreteClause,
    GroupByClause,
    GroupSpec,
    IntervalClause,
    NormalizerConfig,
    RangeBound,
    RangesClause,
    StatRequest,
    StatsSpec,
    TimeComponentClause,
)
from ninja_unimodel.aggregate.timeutil import TimeComponent, format_instant, parse_duration, to_instant
from ninja_unimodel.exceptions import AggregateValidationError

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = frozenset({"type", "aggregateType", "stats", "groupBy", "total"})
_CLAUSE_MODE_KEYS = ("ranges", "interval", "timeComponent")
_CLAUSE_KEYS = frozenset({"field", "ranges", "interval", "base", "timeComponent", "timeComponentCount"})
_SPEC_TYPES = ("stats", "group")


def normalize_aggregate(
    raw: Mapping[str, Any] | AggregateSpec,
    config: NormalizerConfig | Mapping[str, Any] | None = None,
) -> AggregateSpec:
    """Expand and validate a raw aggregate request into an :data:`AggregateSpec`.

    Accepts a plain mapping (the JSON wire form) or an already-normalized
    spec; normalizing a normalized spec returns an equal spec.

    Raises:
        AggregateValidationError: If the request is malformed.
    """
    if config is None:
        config = NormalizerConfig()
    elif isinstance(config, Mapping):
        config = NormalizerConfig.model_validate(config)
    if isinstance(raw, (StatsSpec, GroupSpec)):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raise AggregateValidationError(f"aggregate spec must be an object, got {type(raw).__name__}")

    unknown = [key for key in raw if key not in _TOP_LEVEL_KEYS]
    if unknown and not config.allow_unknown_keys:
        raise AggregateValidationError(f"unknown aggregate keys: {sorted(map(str, unknown))}")
    extra = {key: raw[key] for key in unknown}

    total = raw.get("total", False)
    if not isinstance(total, bool):
        raise AggregateValidationError("'total' must be a boolean")

    spec_type = _spec_type(raw)
    if spec_type == "group":
        if "groupBy" not in raw:
            raise AggregateValidationError("group aggregate requires 'groupBy'")
        group_by = _normalize_group_by(raw["groupBy"], config)
        stats = _normalize_stats(raw["stats"], config) if raw.get("stats") is not None else None
        spec: AggregateSpec = GroupSpec(group_by=group_by, stats=stats or None, total=total, extra=extra)
    else:
        if "groupBy" in raw:
            raise AggregateValidationError("stats aggregate must not contain 'groupBy'")
        stats = _normalize_stats(raw.get("stats") or {}, config)
        if not stats and not total:
            raise AggregateValidationError("stats aggregate requires at least one stats field or 'total'")
        spec = StatsSpec(stats=stats, total=total, extra=extra)

    logger.debug("Normalized %s aggregate: %s", spec.kind, spec.to_dict())
    return spec


def _spec_type(raw: Mapping[str, Any]) -> str:
    declared = raw.get("type", raw.get("aggregateType"))
    if declared is None:
        return "group" if "groupBy" in raw else "stats"
    if not isinstance(declared, str) or declared not in _SPEC_TYPES:
        raise AggregateValidationError(f"unknown aggregate type {declared!r}; expected 'stats' or 'group'")
    return declared


# -- stats --------------------------------------------------------------------


def _normalize_stats(raw: Any, config: NormalizerConfig) -> dict[str, StatRequest]:
    if isinstance(raw, str):
        raw = {raw: True}
    elif isinstance(raw, Sequence):
        for path in raw:
            if not isinstance(path, str):
                raise AggregateValidationError(f"stats field list entries must be strings, got {path!r}")
        raw = {path: True for path in raw}
    elif not isinstance(raw, Mapping):
        raise AggregateValidationError(f"'stats' must be a field path, a list or an object, got {raw!r}")

    stats: dict[str, StatRequest] = {}
    for path, request in raw.items():
        _check_field_path(path, config)
        stats[path] = _normalize_stat_request(path, request, config)
    return stats


def _normalize_stat_request(path: str, raw: Any, config: NormalizerConfig) -> StatRequest:
    if raw is True or (isinstance(raw, Mapping) and not raw):
        return StatRequest(count=True)
    if not isinstance(raw, Mapping):
        raise AggregateValidationError(f"stat request must be true or an object, got {raw!r}", field=path)

    flags: dict[str, Any] = {}
    for name, value in raw.items():
        if name in BUILTIN_STATS:
            if not isinstance(value, bool):
                raise AggregateValidationError(f"stat flag {name!r} must be a boolean", field=path)
            flags[name] = value
        elif config.allow_unknown_stats:
            flags[name] = value
        else:
            raise AggregateValidationError(f"unknown stat type {name!r}", field=path)

    request = StatRequest(**flags)
    if not request.requested and not request.extensions:
        raise AggregateValidationError("stat request does not enable any statistic", field=path)
    return request


# -- groupBy ------------------------------------------------------------------


def _normalize_group_by(raw: Any, config: NormalizerConfig) -> list[GroupByClause]:
    if isinstance(raw, (str, Mapping)):
        raw = [raw]
    if not isinstance(raw, Sequence) or not raw:
        raise AggregateValidationError("'groupBy' must be a field path, a clause, or a non-empty list of clauses")
    return [_normalize_clause(clause, index, config) for index, clause in enumerate(raw)]


def _normalize_clause(raw: Any, index: int, config: NormalizerConfig) -> GroupByClause:
    if isinstance(raw, str):
        raw = {"field": raw}
    if not isinstance(raw, Mapping):
        raise AggregateValidationError(
            f"groupBy clause must be a field path or an object, got {raw!r}", clause_index=index
        )

    field = raw.get("field")
    _check_field_path(field, config, clause_index=index)
    unknown = [key for key in raw if key not in _CLAUSE_KEYS]
    if unknown:
        raise AggregateValidationError(
            f"unknown groupBy clause keys: {sorted(map(str, unknown))}", field=field, clause_index=index
        )

    modes = [key for key in _CLAUSE_MODE_KEYS if key in raw]
    if len(modes) > 1:
        raise AggregateValidationError(
            f"groupBy clause combines {modes}; use exactly one grouping mode", field=field, clause_index=index
        )
    mode = modes[0] if modes else None
    if "base" in raw and mode != "interval":
        raise AggregateValidationError("'base' is only valid with 'interval'", field=field, clause_index=index)
    if "timeComponentCount" in raw and mode != "timeComponent":
        raise AggregateValidationError(
            "'timeComponentCount' is only valid with 'timeComponent'", field=field, clause_index=index
        )

    if mode == "ranges":
        return RangesClause(field=field, ranges=_normalize_ranges(raw["ranges"], field, index))
    if mode == "interval":
        return _normalize_interval(raw, field, index)
    if mode == "timeComponent":
        return _normalize_time_component(raw, field, index)
    return DiscreteClause(field=field)


def _normalize_ranges(raw: Any, field: str, index: int) -> list[RangeBound]:
    if not isinstance(raw, Sequence) or isinstance(raw, str) or not raw:
        raise AggregateValidationError("'ranges' must be a non-empty list", field=field, clause_index=index)

    if all(not isinstance(item, Mapping) for item in raw):
        bounds = [_range_boundary(value, field, index) for value in raw]
        _check_ascending(bounds, field, index)
        ranges = [RangeBound(end=bounds[0])]
        ranges.extend(RangeBound(start=lo, end=hi) for lo, hi in zip(bounds, bounds[1:]))
        ranges.append(RangeBound(start=bounds[-1]))
    elif all(isinstance(item, Mapping) for item in raw):
        ranges = []
        for item in raw:
            unknown = [key for key in item if key not in ("start", "end")]
            if unknown:
                raise AggregateValidationError(
                    f"unknown range keys: {sorted(map(str, unknown))}", field=field, clause_index=index
                )
            start = item.get("start")
            end = item.get("end")
            ranges.append(
                RangeBound(
                    start=None if start is None else _range_boundary(start, field, index),
                    end=None if end is None else _range_boundary(end, field, index),
                )
            )
        _check_ranges(ranges, field, index)
    else:
        raise AggregateValidationError(
            "'ranges' must be all boundary values or all {start, end} objects", field=field, clause_index=index
        )

    kinds = {isinstance(b, str) for r in ranges for b in (r.start, r.end) if b is not None}
    if len(kinds) > 1:
        raise AggregateValidationError(
            "range boundaries mix numbers and timestamps", field=field, clause_index=index
        )
    return ranges


def _range_boundary(value: Any, field: str, index: int) -> int | float | str:
    if _is_number(value):
        return value
    if isinstance(value, (str, date)):
        try:
            return format_instant(to_instant(value))
        except ValueError as exc:
            raise AggregateValidationError(
                f"range boundary {value!r} is neither a number nor an ISO-8601 timestamp",
                field=field,
                clause_index=index,
                cause=exc,
            ) from exc
    raise AggregateValidationError(
        f"range boundary {value!r} is neither a number nor an ISO-8601 timestamp", field=field, clause_index=index
    )


def _check_ascending(bounds: list[Any], field: str, index: int) -> None:
    for lo, hi in zip(bounds, bounds[1:]):
        if _boundary_key(lo) >= _boundary_key(hi):
            raise AggregateValidationError("unsorted ranges", field=field, clause_index=index)


def _check_ranges(ranges: list[RangeBound], field: str, index: int) -> None:
    last = len(ranges) - 1
    for position, rng in enumerate(ranges):
        if rng.start is None and position != 0:
            raise AggregateValidationError(
                "only the first range may omit 'start'", field=field, clause_index=index
            )
        if rng.end is None and position != last:
            raise AggregateValidationError("only the last range may omit 'end'", field=field, clause_index=index)
        if rng.start is not None and rng.end is not None and _boundary_key(rng.start) >= _boundary_key(rng.end):
            raise AggregateValidationError("unsorted ranges", field=field, clause_index=index)
        if position and _boundary_key(ranges[position - 1].end) > _boundary_key(rng.start):
            raise AggregateValidationError("unsorted ranges", field=field, clause_index=index)


def _boundary_key(value: Any) -> Any:
    # Canonical timestamp strings share one fixed-width format, so they order lexically.
    if isinstance(value, str):
        return (1, value)
    return (0, value)


def _normalize_interval(raw: Mapping[str, Any], field: str, index: int) -> IntervalClause:
    interval = raw["interval"]
    base = raw.get("base")
    if _is_number(interval):
        if interval <= 0:
            raise AggregateValidationError("'interval' must be greater than 0", field=field, clause_index=index)
        if base is not None and not _is_number(base):
            raise AggregateValidationError(
                "a numeric 'interval' requires a numeric 'base'", field=field, clause_index=index
            )
        return IntervalClause(field=field, interval=interval, base=base)

    if not isinstance(interval, str):
        raise AggregateValidationError(
            "'interval' must be a number or an ISO-8601 duration", field=field, clause_index=index
        )
    try:
        step = parse_duration(interval)
    except ValueError as exc:
        raise AggregateValidationError(
            f"invalid duration {interval!r}: {exc}", field=field, clause_index=index, cause=exc
        ) from exc
    if step.total_seconds() <= 0:
        raise AggregateValidationError("'interval' must be greater than 0", field=field, clause_index=index)
    if base is not None:
        if not isinstance(base, (str, date)):
            raise AggregateValidationError(
                "a duration 'interval' requires an ISO-8601 timestamp 'base'", field=field, clause_index=index
            )
        try:
            base = format_instant(to_instant(base))
        except ValueError as exc:
            raise AggregateValidationError(
                f"invalid base timestamp {base!r}", field=field, clause_index=index, cause=exc
            ) from exc
    return IntervalClause(field=field, interval=interval, base=base)


def _normalize_time_component(raw: Mapping[str, Any], field: str, index: int) -> TimeComponentClause:
    try:
        unit = TimeComponent(raw["timeComponent"])
    except ValueError as exc:
        choices = ", ".join(member.value for member in TimeComponent)
        raise AggregateValidationError(
            f"'timeComponent' must be one of {choices}", field=field, clause_index=index, cause=exc
        ) from exc
    count = raw.get("timeComponentCount", 1)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise AggregateValidationError(
            "'timeComponentCount' must be an integer >= 1", field=field, clause_index=index
        )
    return TimeComponentClause(field=field, time_component=unit, time_component_count=count)


# -- shared -------------------------------------------------------------------


def _check_field_path(path: Any, config: NormalizerConfig, clause_index: int | None = None) -> None:
    if not isinstance(path, str) or not path:
        raise AggregateValidationError(
            f"field path must be a non-empty string, got {path!r}", clause_index=clause_index
        )
    if config.strict_field_paths and any(not segment for segment in path.split(".")):
        raise AggregateValidationError("field path has an empty segment", field=path, clause_index=clause_index)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
