"""Incremental per-field statistics."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ninja_unimodel.aggregate.spec import StatRequest
from ninja_unimodel.exceptions import TypeMismatchError
from ninja_unimodel.paths import get_path, is_absent


class StatsAccumulator:
    """Running count/avg/min/max for one field of one group.

    Each :meth:`ingest` is O(1); no raw values are buffered. Null and absent
    values are ignored by every statistic.
    """

    __slots__ = ("field", "request", "_count", "_sum", "_avg_count", "_min", "_max", "_seen")

    def __init__(self, field: str, request: StatRequest) -> None:
        self.field = field
        self.request = request
        self._count = 0
        self._sum: int | float = 0
        self._avg_count = 0
        self._min: Any = None
        self._max: Any = None
        self._seen = False

    def ingest(self, value: Any) -> None:
        if is_absent(value):
            return
        request = self.request
        self._count += 1
        if request.avg:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise TypeMismatchError(f"avg requires numbers, got {type(value).__name__}", field=self.field)
            self._sum += value
            self._avg_count += 1
        if request.min or request.max:
            self._track_extremes(value)

    def _track_extremes(self, value: Any) -> None:
        if not self._seen:
            self._min = self._max = value
            self._seen = True
            return
        try:
            if value < self._min:
                self._min = value
            if value > self._max:
                self._max = value
        except TypeError as exc:
            raise TypeMismatchError(
                f"cannot compare {type(value).__name__} with {type(self._min).__name__}",
                field=self.field,
                cause=exc,
            ) from exc

    def render(self) -> dict[str, Any]:
        """Return only the requested statistics; avg/min/max are omitted when nothing was seen."""
        result: dict[str, Any] = {}
        request = self.request
        if request.count:
            result["count"] = self._count
        if request.avg and self._avg_count:
            result["avg"] = self._sum / self._avg_count
        if request.min and self._seen:
            result["min"] = self._min
        if request.max and self._seen:
            result["max"] = self._max
        return result


class AccumulatorSet:
    """One :class:`StatsAccumulator` per stats field, fed whole records."""

    __slots__ = ("_accumulators",)

    def __init__(self, stats: Mapping[str, StatRequest]) -> None:
        self._accumulators = [StatsAccumulator(field, request) for field, request in stats.items()]

    def ingest_record(self, record: Any) -> None:
        for accumulator in self._accumulators:
            accumulator.ingest(get_path(record, accumulator.field))

    def render(self) -> dict[str, dict[str, Any]]:
        return {accumulator.field: accumulator.render() for accumulator in self._accumulators}
