"""Typed aggregate spec models.

These are the fully-expanded forms produced by
:func:`ninja_unimodel.aggregate.normalizer.normalize_aggregate`. Build them
through the normalizer; constructing them directly skips shorthand expansion
and cross-field validation.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from ninja_unimodel.aggregate.timeutil import TimeComponent

BUILTIN_STATS = ("count", "avg", "min", "max")


class NormalizerConfig(BaseModel):
    """Options recognised by the aggregate normalizer."""

    allow_unknown_stats: bool = Field(
        default=True,
        alias="allowUnknownStats",
        description="Pass unrecognised stat keys through as backend extensions instead of rejecting them.",
    )
    strict_field_paths: bool = Field(
        default=True,
        alias="strictFieldPaths",
        description="Reject field paths with empty dot segments such as 'a..b' or '.a'.",
    )
    allow_unknown_keys: bool = Field(
        default=False,
        alias="allowUnknownKeys",
        description="Carry unrecognised top-level spec keys in AggregateSpec.extra instead of rejecting them.",
    )

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class StatRequest(BaseModel):
    """Which statistics to compute for one field.

    Unknown stat keys are kept as model extras so that backends can offer
    stat types beyond count/avg/min/max.
    """

    count: StrictBool = False
    avg: StrictBool = False
    min: StrictBool = False
    max: StrictBool = False

    model_config = ConfigDict(extra="allow")

    @property
    def requested(self) -> list[str]:
        """Built-in stats that are switched on, in canonical order."""
        return [name for name in BUILTIN_STATS if getattr(self, name)]

    @property
    def extensions(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: True for name in self.requested}
        out.update(self.extensions)
        return out


class RangeBound(BaseModel):
    """One half-open range ``[start, end)``. ``None`` means unbounded."""

    start: Any = None
    end: Any = None

    model_config = ConfigDict(extra="forbid")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class _Clause(BaseModel):
    field: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DiscreteClause(_Clause):
    """One group per distinct value."""

    mode: Literal["discrete"] = Field(default="discrete", exclude=True)


class RangesClause(_Clause):
    """One group per range; the key is the zero-based range index."""

    mode: Literal["ranges"] = Field(default="ranges", exclude=True)
    ranges: list[RangeBound] = Field(min_length=1)

    @property
    def temporal(self) -> bool:
        """True when the boundaries are ISO-8601 timestamps."""
        return any(isinstance(b, str) for r in self.ranges for b in (r.start, r.end))

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "ranges": [r.to_dict() for r in self.ranges]}


class IntervalClause(_Clause):
    """Fixed-width buckets; the key is the bucket start."""

    mode: Literal["interval"] = Field(default="interval", exclude=True)
    interval: Union[int, float, str]
    base: Union[int, float, str, None] = None

    @property
    def temporal(self) -> bool:
        """True when the interval is an ISO-8601 duration."""
        return isinstance(self.interval, str)


class TimeComponentClause(_Clause):
    """Calendar-aligned buckets; the key is the ISO timestamp of the bucket start."""

    mode: Literal["time_component"] = Field(default="time_component", exclude=True)
    time_component: TimeComponent = Field(alias="timeComponent")
    time_component_count: int = Field(default=1, ge=1, alias="timeComponentCount")


GroupByClause = Union[DiscreteClause, RangesClause, IntervalClause, TimeComponentClause]


class StatsSpec(BaseModel):
    """Statistics over the whole matched record set."""

    kind: Literal["stats"] = Field(default="stats", exclude=True)
    stats: dict[str, StatRequest] = Field(default_factory=dict)
    total: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.stats:
            out["stats"] = {path: request.to_dict() for path, request in self.stats.items()}
        if self.total:
            out["total"] = True
        out.update(self.extra)
        return out


class GroupSpec(BaseModel):
    """Statistics per group of records sharing the same composite key."""

    kind: Literal["group"] = Field(default="group", exclude=True)
    group_by: list[GroupByClause] = Field(min_length=1, alias="groupBy")
    stats: dict[str, StatRequest] | None = None
    total: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"groupBy": [clause.to_dict() for clause in self.group_by]}
        if self.stats:
            out["stats"] = {path: request.to_dict() for path, request in self.stats.items()}
        if self.total:
            out["total"] = True
        out.update(self.extra)
        return out


AggregateSpec = Union[StatsSpec, GroupSpec]
