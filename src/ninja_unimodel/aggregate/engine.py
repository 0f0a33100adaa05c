"""Aggregate engine: one pass over a record source into grouped statistics."""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ninja_unimodel.aggregate.accumulator import AccumulatorSet
from ninja_unimodel.aggregate.normalizer import normalize_aggregate
from ninja_unimodel.aggregate.resolver import NO_GROUP, compile_clause, freeze_key
from ninja_unimodel.aggregate.spec import AggregateSpec, GroupSpec, NormalizerConfig, StatsSpec
from ninja_unimodel.exceptions import (
    AggregateInterruptedError,
    AggregateValidationError,
    StreamClosedError,
    TypeMismatchError,
    UnsupportedOperationError,
)
from ninja_unimodel.paths import MISSING, get_path, sort_by_paths

logger = logging.getLogger(__name__)

AggregateResult = dict[str, Any] | list[dict[str, Any]]
_ENTRY_ROOTS = ("key", "stats", "total")


class AggregateOptions(BaseModel):
    """Caller options applied around the aggregate itself."""

    sort: list[str] = Field(
        default_factory=list,
        description="Result entry paths to sort by (e.g. 'total', 'key.0', 'age.avg'); prefix '-' for descending.",
    )
    limit: int | None = Field(default=None, ge=1, description="Maximum number of group entries to return.")
    allow_partial: bool = Field(
        default=False,
        alias="allowPartial",
        description="Render what was seen when the source is closed early instead of raising.",
    )

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class _GroupState:
    __slots__ = ("key", "total", "stats")

    def __init__(self, key: list[Any], stats: AccumulatorSet | None) -> None:
        self.key = key
        self.total = 0
        self.stats = stats


class _AggregateRun:
    """Per-invocation state. Never shared between runs."""

    def __init__(self, spec: AggregateSpec, options: AggregateOptions) -> None:
        _reject_extension_stats(spec)
        if isinstance(spec, StatsSpec) and (options.sort or options.limit is not None):
            raise AggregateValidationError("sort and limit only apply to group aggregates")
        self.spec = spec
        self.options = options
        self.records_seen = 0
        if isinstance(spec, GroupSpec):
            self._resolvers = [
                (clause.field, compile_clause(clause, index)) for index, clause in enumerate(spec.group_by)
            ]
            self._groups: dict[tuple[Any, ...], _GroupState] = {}
        else:
            self._total = 0
            self._stats = AccumulatorSet(spec.stats)

    def feed(self, record: Any) -> None:
        self.records_seen += 1
        if isinstance(self.spec, StatsSpec):
            self._total += 1
            self._stats.ingest_record(record)
            return

        key = []
        for field, resolve in self._resolvers:
            component = resolve(get_path(record, field))
            if component is NO_GROUP:
                return
            key.append(component)

        frozen = tuple(freeze_key(component) for component in key)
        state = self._groups.get(frozen)
        if state is None:
            stats = AccumulatorSet(self.spec.stats) if self.spec.stats else None
            state = self._groups[frozen] = _GroupState(key, stats)
        state.total += 1
        if state.stats is not None:
            state.stats.ingest_record(record)

    def render(self) -> AggregateResult:
        if isinstance(self.spec, StatsSpec):
            result: dict[str, Any] = {}
            if self.spec.total:
                result["total"] = self._total
            result.update(self._stats.render())
            return result

        entries = []
        for state in self._groups.values():
            entry: dict[str, Any] = {"key": list(state.key)}
            if state.stats is not None:
                entry["stats"] = state.stats.render()
            if self.spec.total:
                entry["total"] = state.total
            entries.append(entry)
        entries = _sort_entries(entries, self.options.sort)
        if self.options.limit is not None:
            entries = entries[: self.options.limit]
        return entries

    def interrupted(self, exc: StreamClosedError) -> AggregateResult:
        if not self.options.allow_partial:
            raise AggregateInterruptedError(
                f"record source closed after {self.records_seen} records", cause=exc
            ) from exc
        logger.warning("Aggregate source closed early after %d records; rendering partial result", self.records_seen)
        return self.render()


def aggregate_records(
    spec: AggregateSpec | Mapping[str, Any],
    records: Iterable[Any],
    options: AggregateOptions | Mapping[str, Any] | None = None,
    *,
    config: NormalizerConfig | None = None,
) -> AggregateResult:
    """Run an aggregate over a synchronous iterable of records.

    Raises:
        AggregateValidationError: If *spec* is malformed (before any record is read).
        TypeMismatchError: If a record value cannot be bucketed or compared.
        UnsupportedOperationError: If *spec* requests extension stats.
    """
    try:
        run = _start(spec, options, config)
        for record in records:
            run.feed(record)
    except StreamClosedError as exc:
        return run.interrupted(exc)
    finally:
        closer = getattr(records, "close", None)
        if callable(closer):
            closer()
    return _finish(run)


async def run_aggregate(
    spec: AggregateSpec | Mapping[str, Any],
    source: AsyncIterable[Any] | Iterable[Any],
    options: AggregateOptions | Mapping[str, Any] | None = None,
    *,
    config: NormalizerConfig | None = None,
) -> AggregateResult:
    """Run an aggregate over an async (or plain) record source.

    Records are processed strictly one at a time in delivery order. The
    source is closed on every exit path, including cancellation.
    """
    try:
        run = _start(spec, options, config)
        if isinstance(source, AsyncIterable):
            async for record in source:
                run.feed(record)
        else:
            for record in source:
                run.feed(record)
    except StreamClosedError as exc:
        return run.interrupted(exc)
    finally:
        await _close_source(source)
    return _finish(run)


def _start(
    spec: AggregateSpec | Mapping[str, Any],
    options: AggregateOptions | Mapping[str, Any] | None,
    config: NormalizerConfig | None,
) -> _AggregateRun:
    if not isinstance(spec, (StatsSpec, GroupSpec)):
        spec = normalize_aggregate(spec, config)
    if options is None:
        options = AggregateOptions()
    elif isinstance(options, Mapping):
        options = AggregateOptions.model_validate(options)
    logger.debug("Starting %s aggregate %s", spec.kind, spec.to_dict())
    return _AggregateRun(spec, options)


def _finish(run: _AggregateRun) -> AggregateResult:
    result = run.render()
    logger.debug("Aggregate finished after %d records", run.records_seen)
    return result


async def _close_source(source: Any) -> None:
    for name in ("aclose", "close"):
        closer = getattr(source, name, None)
        if callable(closer):
            result = closer()
            if inspect.isawaitable(result):
                await result
            return


def _reject_extension_stats(spec: AggregateSpec) -> None:
    for field, request in (spec.stats or {}).items():
        if request.extensions:
            names = ", ".join(sorted(request.extensions))
            raise UnsupportedOperationError(
                operation="aggregate",
                detail=f"stat types [{names}] on field {field!r} are not supported by the in-process engine",
            )


def _sort_value(entry: dict[str, Any], path: str) -> Any:
    value = get_path(entry, path)
    if value is MISSING and path.split(".", 1)[0] not in _ENTRY_ROOTS:
        value = get_path(entry.get("stats", {}), path)
    return value


def _sort_entries(entries: list[dict[str, Any]], sort: list[str]) -> list[dict[str, Any]]:
    try:
        return sort_by_paths(entries, sort, _sort_value)
    except TypeError as exc:
        raise TypeMismatchError(f"cannot sort results by {sort}", cause=exc) from exc
