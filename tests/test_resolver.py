"""Tests for group-key resolution per groupBy clause."""

import random
from datetime import date, datetime, timedelta, timezone

import pytest
from ninja_unimodel.aggregate.normalizer import normalize_aggregate
from ninja_unimodel.aggregate.resolver import NO_GROUP, freeze_key, resolve_key
from ninja_unimodel.aggregate.timeutil import parse_duration, parse_timestamp
from ninja_unimodel.exceptions import TypeMismatchError
from ninja_unimodel.paths import MISSING


def _clause(raw_clause):
    return normalize_aggregate({"groupBy": [raw_clause], "total": True}).group_by[0]


# ---------------------------------------------------------------------------
# Discrete
# ---------------------------------------------------------------------------


def test_discrete_returns_value_unchanged():
    clause = _clause("species")
    assert resolve_key(clause, "dog") == "dog"
    assert resolve_key(clause, {"a": 1}) == {"a": 1}


@pytest.mark.parametrize("raw_clause", ["species", {"field": "age", "ranges": [1]}, {"field": "age", "interval": 5}])
def test_absent_values_yield_no_group(raw_clause):
    clause = _clause(raw_clause)
    assert resolve_key(clause, None) is NO_GROUP
    assert resolve_key(clause, MISSING) is NO_GROUP


def test_freeze_key_separates_bools_from_ints():
    assert freeze_key(True) != freeze_key(1)
    assert freeze_key([1, {"a": [2]}]) == freeze_key([1, {"a": [2]}])
    hash(freeze_key({"a": [1, 2], "b": {3}}))


def test_discrete_rejects_unhashable_values():
    with pytest.raises(TypeMismatchError) as exc_info:
        resolve_key(_clause("tags"), [bytearray(b"x")], clause_index=2)
    assert exc_info.value.field == "tags"
    assert exc_info.value.clause_index == 2


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(("value", "expected"), [(0, 0), (1, 1), (2.5, 1), (3, 2), (8.99, 2), (9, 3), (1e9, 3)])
def test_boundary_shorthand_ranges(value, expected):
    clause = _clause({"field": "age", "ranges": [1, 3, 9]})
    assert resolve_key(clause, value) == expected


def test_gaps_between_ranges_yield_no_group():
    clause = _clause({"field": "age", "ranges": [{"start": 0, "end": 5}, {"start": 10, "end": 20}]})
    assert resolve_key(clause, -1) is NO_GROUP
    assert resolve_key(clause, 4) == 0
    assert resolve_key(clause, 7) is NO_GROUP
    assert resolve_key(clause, 10) == 1
    assert resolve_key(clause, 20) is NO_GROUP


def test_random_boundaries_place_every_value_in_its_half_open_range():
    rng = random.Random(1234)
    for _ in range(50):
        boundaries = sorted(rng.sample(range(-1000, 1000), rng.randint(1, 8)))
        clause = _clause({"field": "x", "ranges": boundaries})
        for _ in range(40):
            value = rng.uniform(-1200, 1200)
            index = resolve_key(clause, value)
            rng_bound = clause.ranges[index]
            assert rng_bound.start is None or rng_bound.start <= value
            assert rng_bound.end is None or value < rng_bound.end


def test_temporal_ranges():
    clause = _clause({"field": "born", "ranges": ["2012-01-01", "2013-01-01"]})
    assert resolve_key(clause, "2011-12-31T23:59:59Z") == 0
    assert resolve_key(clause, date(2012, 6, 1)) == 1
    assert resolve_key(clause, datetime(2013, 1, 1, tzinfo=timezone.utc)) == 2


def test_numeric_ranges_reject_strings():
    clause = _clause({"field": "age", "ranges": [1, 3]})
    with pytest.raises(TypeMismatchError, match="expected a number") as exc_info:
        resolve_key(clause, "two", clause_index=2)
    assert exc_info.value.field == "age"
    assert exc_info.value.clause_index == 2


# ---------------------------------------------------------------------------
# Interval
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(("value", "expected"), [(0, 0), (9, 0), (10, 10), (-1, -10), (25, 20)])
def test_numeric_interval(value, expected):
    assert resolve_key(_clause({"field": "age", "interval": 10}), value) == expected


def test_numeric_interval_with_base():
    clause = _clause({"field": "age", "interval": 10, "base": 3})
    assert resolve_key(clause, 3) == 3
    assert resolve_key(clause, 2) == -7
    assert resolve_key(clause, 12.5) == 3


def test_float_interval_keys_contain_their_values():
    rng = random.Random(99)
    clause = _clause({"field": "x", "interval": 0.1, "base": 0.05})
    for _ in range(500):
        value = rng.uniform(-50, 50)
        key = resolve_key(clause, value)
        assert key <= value < key + 0.1


def test_integer_interval_keys_stay_integers():
    key = resolve_key(_clause({"field": "age", "interval": 5}), 12.0)
    assert key == 10
    assert isinstance(key, int)


def test_bool_is_not_a_number():
    with pytest.raises(TypeMismatchError):
        resolve_key(_clause({"field": "age", "interval": 5}), True)


def test_duration_interval_from_unix_epoch():
    clause = _clause({"field": "born", "interval": "P1D"})
    assert resolve_key(clause, "2012-01-01T13:00:00Z") == "2012-01-01T00:00:00Z"


def test_duration_interval_with_base():
    clause = _clause({"field": "born", "interval": "PT6H", "base": "2012-01-01T01:00:00Z"})
    assert resolve_key(clause, "2012-01-01T00:30:00Z") == "2011-12-31T19:00:00Z"
    assert resolve_key(clause, "2012-01-01T07:00:00Z") == "2012-01-01T07:00:00Z"


def test_duration_interval_keys_contain_their_values():
    rng = random.Random(7)
    clause = _clause({"field": "born", "interval": "PT90M", "base": "2000-01-01"})
    step = parse_duration("PT90M")
    origin = datetime(2000, 1, 1, tzinfo=timezone.utc)
    for _ in range(200):
        value = origin + timedelta(seconds=rng.randint(-10**8, 10**8))
        key = parse_timestamp(resolve_key(clause, value))
        assert key <= value < key + step


def test_duration_interval_rejects_numbers():
    with pytest.raises(TypeMismatchError, match="expected a date"):
        resolve_key(_clause({"field": "born", "interval": "P1D"}), 12)


# ---------------------------------------------------------------------------
# Time component
# ---------------------------------------------------------------------------


def test_time_component_day_pairs():
    clause = _clause({"field": "born", "timeComponent": "day", "timeComponentCount": 2})
    assert resolve_key(clause, "2012-01-01T10:00:00Z") == "2012-01-01T00:00:00Z"
    assert resolve_key(clause, "2012-01-02T23:00:00Z") == "2012-01-01T00:00:00Z"
    assert resolve_key(clause, "2012-01-03T00:00:00Z") == "2012-01-03T00:00:00Z"


def test_time_component_month():
    clause = _clause({"field": "born", "timeComponent": "month"})
    assert resolve_key(clause, date(2013, 2, 28)) == "2013-02-01T00:00:00Z"


def test_time_component_rejects_bad_strings():
    with pytest.raises(TypeMismatchError) as exc_info:
        resolve_key(_clause({"field": "born", "timeComponent": "year"}), "yesterday")
    assert exc_info.value.field == "born"
