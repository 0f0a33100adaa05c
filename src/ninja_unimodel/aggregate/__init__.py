"""Aggregate query sublanguage: normalize, bucket, accumulate."""

from ninja_unimodel.aggregate.engine import AggregateOptions, AggregateResult, aggregate_records, run_aggregate
from ninja_unimodel.aggregate.normalizer import normalize_aggregate
from ninja_unimodel.aggregate.resolver import NO_GROUP, resolve_key
from ninja_unimodel.aggregate.spec import (
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
from ninja_unimodel.aggregate.timeutil import TimeComponent

__all__ = [
    "NO_GROUP",
    "AggregateOptions",
    "AggregateResult",
    "AggregateSpec",
    "DiscreteClause",
    "GroupByClause",
    "GroupSpec",
    "IntervalClause",
    "NormalizerConfig",
    "RangeBound",
    "RangesClause",
    "StatRequest",
    "StatsSpec",
    "TimeComponent",
    "TimeComponentClause",
    "aggregate_records",
    "normalize_aggregate",
    "resolve_key",
    "run_aggregate",
]
