"""Tests for aggregate spec normalization: shorthands, validation, idempotence."""

import pytest
from ninja_unimodel.aggregate.normalizer import normalize_aggregate
from ninja_unimodel.aggregate.spec import (
    DiscreteClause,
    GroupSpec,
    IntervalClause,
    NormalizerConfig,
    RangeBound,
    RangesClause,
    StatsSpec,
    TimeComponentClause,
)
from ninja_unimodel.aggregate.timeutil import TimeComponent
from ninja_unimodel.exceptions import AggregateValidationError

# ---------------------------------------------------------------------------
# Type inference and stats shorthands
# ---------------------------------------------------------------------------


def test_stats_type_is_inferred_without_group_by():
    spec = normalize_aggregate({"stats": {"age": {"avg": True}}})
    assert isinstance(spec, StatsSpec)
    assert spec.stats["age"].requested == ["avg"]
    assert spec.total is False


def test_group_type_is_inferred_from_group_by():
    spec = normalize_aggregate({"groupBy": "species", "total": True})
    assert isinstance(spec, GroupSpec)
    assert spec.group_by == [DiscreteClause(field="species")]
    assert spec.stats is None
    assert spec.total is True


def test_aggregate_type_alias():
    spec = normalize_aggregate({"aggregateType": "group", "groupBy": ["species"], "total": True})
    assert isinstance(spec, GroupSpec)


@pytest.mark.parametrize("stats", ["age", ["age"], {"age": True}, {"age": {}}])
def test_stats_shorthands_mean_count(stats):
    spec = normalize_aggregate({"stats": stats})
    assert spec.stats["age"].requested == ["count"]


def test_stats_list_of_several_fields():
    spec = normalize_aggregate({"stats": ["age", "weight"]})
    assert list(spec.stats) == ["age", "weight"]


def test_all_false_stat_flags_rejected():
    with pytest.raises(AggregateValidationError, match="does not enable any statistic") as exc_info:
        normalize_aggregate({"stats": {"age": {"avg": False}}})
    assert exc_info.value.field == "age"


def test_non_boolean_stat_flag_rejected():
    with pytest.raises(AggregateValidationError, match="must be a boolean"):
        normalize_aggregate({"stats": {"age": {"avg": "yes"}}})


def test_unknown_stats_pass_through_by_default():
    spec = normalize_aggregate({"stats": {"age": {"median": True, "count": True}}})
    assert spec.stats["age"].extensions == {"median": True}
    assert spec.stats["age"].to_dict() == {"count": True, "median": True}


def test_unknown_stats_rejected_when_configured():
    with pytest.raises(AggregateValidationError, match="unknown stat type 'median'"):
        normalize_aggregate({"stats": {"age": {"median": True}}}, {"allowUnknownStats": False})


def test_stats_spec_requires_stats_or_total():
    with pytest.raises(AggregateValidationError, match="at least one stats field"):
        normalize_aggregate({"type": "stats"})
    assert normalize_aggregate({"total": True}).total is True


# ---------------------------------------------------------------------------
# Top-level validation
# ---------------------------------------------------------------------------


def test_unknown_top_level_key_rejected():
    with pytest.raises(AggregateValidationError, match="unknown aggregate keys"):
        normalize_aggregate({"total": True, "having": 1})


def test_unknown_top_level_key_carried_when_allowed():
    spec = normalize_aggregate({"total": True, "having": 1}, NormalizerConfig(allow_unknown_keys=True))
    assert spec.extra == {"having": 1}
    assert spec.to_dict() == {"total": True, "having": 1}


def test_unknown_type_rejected():
    with pytest.raises(AggregateValidationError, match="unknown aggregate type"):
        normalize_aggregate({"type": "histogram", "total": True})


def test_group_type_requires_group_by():
    with pytest.raises(AggregateValidationError, match="requires 'groupBy'"):
        normalize_aggregate({"type": "group", "total": True})


def test_stats_type_rejects_group_by():
    with pytest.raises(AggregateValidationError, match="must not contain 'groupBy'"):
        normalize_aggregate({"type": "stats", "groupBy": "species", "total": True})


def test_total_must_be_boolean():
    with pytest.raises(AggregateValidationError, match="'total' must be a boolean"):
        normalize_aggregate({"total": "yes"})


def test_non_mapping_spec_rejected():
    with pytest.raises(AggregateValidationError, match="must be an object"):
        normalize_aggregate(["total"])


# ---------------------------------------------------------------------------
# groupBy clauses
# ---------------------------------------------------------------------------


def test_single_clause_object_is_wrapped():
    spec = normalize_aggregate({"groupBy": {"field": "age", "interval": 10}, "total": True})
    assert spec.group_by == [IntervalClause(field="age", interval=10)]


def test_empty_group_by_rejected():
    with pytest.raises(AggregateValidationError, match="non-empty list"):
        normalize_aggregate({"groupBy": [], "total": True})


def test_clause_with_two_modes_rejected():
    with pytest.raises(AggregateValidationError, match="exactly one grouping mode") as exc_info:
        normalize_aggregate({"groupBy": ["species", {"field": "age", "interval": 5, "ranges": [1]}], "total": True})
    assert exc_info.value.clause_index == 1
    assert exc_info.value.field == "age"


def test_unknown_clause_key_rejected():
    with pytest.raises(AggregateValidationError, match="unknown groupBy clause keys"):
        normalize_aggregate({"groupBy": {"field": "age", "bucket": 5}, "total": True})


def test_base_requires_interval():
    with pytest.raises(AggregateValidationError, match="'base' is only valid with 'interval'"):
        normalize_aggregate({"groupBy": {"field": "age", "base": 5}, "total": True})


def test_time_component_count_requires_time_component():
    with pytest.raises(AggregateValidationError, match="only valid with 'timeComponent'"):
        normalize_aggregate({"groupBy": {"field": "born", "timeComponentCount": 2}, "total": True})


@pytest.mark.parametrize("field", ["", "a..b", ".a", None, 3])
def test_bad_field_paths_rejected(field):
    with pytest.raises(AggregateValidationError, match="field path"):
        normalize_aggregate({"groupBy": {"field": field}, "total": True})


def test_lenient_field_paths():
    spec = normalize_aggregate({"groupBy": "a..b", "total": True}, NormalizerConfig(strict_field_paths=False))
    assert spec.group_by[0].field == "a..b"


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


def test_range_boundary_shorthand_expands():
    spec = normalize_aggregate({"groupBy": {"field": "age", "ranges": [1, 3, 9]}, "total": True})
    clause = spec.group_by[0]
    assert isinstance(clause, RangesClause)
    assert clause.ranges == [
        RangeBound(end=1),
        RangeBound(start=1, end=3),
        RangeBound(start=3, end=9),
        RangeBound(start=9),
    ]


def test_single_boundary_expands_to_two_ranges():
    spec = normalize_aggregate({"groupBy": {"field": "age", "ranges": [5]}, "total": True})
    assert spec.group_by[0].ranges == [RangeBound(end=5), RangeBound(start=5)]


@pytest.mark.parametrize("ranges", [[3, 1], [1, 1]])
def test_unsorted_boundaries_rejected(ranges):
    with pytest.raises(AggregateValidationError, match="unsorted ranges") as exc_info:
        normalize_aggregate({"groupBy": {"field": "age", "ranges": ranges}, "total": True})
    assert exc_info.value.field == "age"
    assert exc_info.value.clause_index == 0


def test_object_ranges_keep_gaps():
    spec = normalize_aggregate(
        {"groupBy": {"field": "age", "ranges": [{"end": 2}, {"start": 5, "end": 8}]}, "total": True}
    )
    assert spec.group_by[0].ranges == [RangeBound(end=2), RangeBound(start=5, end=8)]


def test_object_ranges_only_first_may_omit_start():
    with pytest.raises(AggregateValidationError, match="only the first range may omit 'start'"):
        normalize_aggregate(
            {"groupBy": {"field": "age", "ranges": [{"start": 0, "end": 2}, {"end": 5}]}, "total": True}
        )


def test_object_ranges_only_last_may_omit_end():
    with pytest.raises(AggregateValidationError, match="only the last range may omit 'end'"):
        normalize_aggregate(
            {"groupBy": {"field": "age", "ranges": [{"start": 0}, {"start": 2, "end": 5}]}, "total": True}
        )


def test_overlapping_object_ranges_rejected():
    with pytest.raises(AggregateValidationError, match="unsorted ranges"):
        normalize_aggregate(
            {"groupBy": {"field": "age", "ranges": [{"start": 0, "end": 5}, {"start": 3, "end": 9}]}, "total": True}
        )


def test_mixed_range_forms_rejected():
    with pytest.raises(AggregateValidationError, match="all boundary values or all"):
        normalize_aggregate({"groupBy": {"field": "age", "ranges": [1, {"start": 3}]}, "total": True})


def test_mixed_boundary_kinds_rejected():
    with pytest.raises(AggregateValidationError):
        normalize_aggregate({"groupBy": {"field": "age", "ranges": [1, "2012-01-01"]}, "total": True})


def test_timestamp_boundaries_are_canonicalized():
    spec = normalize_aggregate(
        {"groupBy": {"field": "born", "ranges": ["2012-01-01", "2013-01-01T02:00:00+02:00"]}, "total": True}
    )
    clause = spec.group_by[0]
    assert clause.temporal is True
    assert clause.ranges[0].end == "2012-01-01T00:00:00Z"
    assert clause.ranges[1].end == "2013-01-01T00:00:00Z"


def test_bad_boundary_rejected():
    with pytest.raises(AggregateValidationError, match="neither a number nor an ISO-8601 timestamp"):
        normalize_aggregate({"groupBy": {"field": "age", "ranges": [True]}, "total": True})


# ---------------------------------------------------------------------------
# Interval and time component
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_interval_rejected(interval):
    with pytest.raises(AggregateValidationError, match="greater than 0"):
        normalize_aggregate({"groupBy": {"field": "age", "interval": interval}, "total": True})


def test_numeric_interval_requires_numeric_base():
    with pytest.raises(AggregateValidationError, match="numeric 'base'"):
        normalize_aggregate({"groupBy": {"field": "age", "interval": 5, "base": "2012-01-01"}, "total": True})


def test_duration_interval_with_base():
    spec = normalize_aggregate(
        {"groupBy": {"field": "born", "interval": "P1D", "base": "2012-01-01T06:00:00+01:00"}, "total": True}
    )
    clause = spec.group_by[0]
    assert clause.temporal is True
    assert clause.base == "2012-01-01T05:00:00Z"


def test_invalid_duration_rejected():
    with pytest.raises(AggregateValidationError, match="invalid duration"):
        normalize_aggregate({"groupBy": {"field": "born", "interval": "P1M"}, "total": True})


def test_time_component_defaults_count_to_one():
    spec = normalize_aggregate({"groupBy": {"field": "born", "timeComponent": "week"}, "total": True})
    assert spec.group_by[0] == TimeComponentClause(field="born", time_component=TimeComponent.WEEK)
    assert spec.group_by[0].time_component_count == 1


def test_unknown_time_component_rejected():
    with pytest.raises(AggregateValidationError, match="must be one of"):
        normalize_aggregate({"groupBy": {"field": "born", "timeComponent": "fortnight"}, "total": True})


@pytest.mark.parametrize("count", [0, 1.5, True, "2"])
def test_bad_time_component_count_rejected(count):
    with pytest.raises(AggregateValidationError, match="'timeComponentCount' must be an integer"):
        normalize_aggregate(
            {"groupBy": {"field": "born", "timeComponent": "day", "timeComponentCount": count}, "total": True}
        )


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    [
        {"stats": "age"},
        {"stats": {"age": {"avg": True, "max": True}}, "total": True},
        {"groupBy": ["species", {"field": "age", "ranges": [1, 3, 9]}], "stats": ["weight"]},
        {"groupBy": {"field": "born", "interval": "PT6H", "base": "2012-01-01"}, "total": True},
        {"groupBy": {"field": "born", "timeComponent": "day", "timeComponentCount": 2}, "total": True},
        {"groupBy": {"field": "age", "interval": 2.5, "base": 1}, "total": True},
    ],
)
def test_normalizing_twice_is_stable(raw):
    once = normalize_aggregate(raw)
    assert normalize_aggregate(once) == once
    assert normalize_aggregate(once.to_dict()) == once
