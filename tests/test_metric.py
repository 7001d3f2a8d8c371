from datetime import timedelta

import pytest

from measurekit.measure import FieldType, Tag
from measurekit.otlp.metric import (
    Bucket,
    Metric,
    make_metric_buckets,
    update_buckets,
    value_of,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, 1.0),
        (False, 0.0),
        (42, 42.0),
        (2.5, 2.5),
        (timedelta(milliseconds=100), 0.1),
        (None, 0.0),
        ("text", 0.0),
    ],
)
def test_value_of(value, expected):
    assert value_of(value) == pytest.approx(expected)


def test_make_metric_buckets_starts_empty():
    buckets = make_metric_buckets([0, 10, 100, 1000])
    assert buckets == [Bucket(0.0), Bucket(10.0), Bucket(100.0), Bucket(1000.0)]


def test_update_buckets_counts_in_first_matching_bucket():
    buckets = make_metric_buckets([0, 10, 100, 1000])
    for value in (5, 10, 20):
        update_buckets(buckets, value)
    assert [b.count for b in buckets] == [0, 2, 1, 0]


def test_update_buckets_ignores_values_above_all_bounds():
    buckets = make_metric_buckets([0, 10])
    update_buckets(buckets, 11)
    assert [b.count for b in buckets] == [0, 0]


def _metric(name="foobar", field="count", tags=(), value=1):
    return Metric(name, field, FieldType.COUNTER, 0, value, tags=list(tags))


def test_tags_sorted_descending():
    m = _metric(tags=[Tag("a", "1"), Tag("c", "3"), Tag("b", "2")])
    assert [t.name for t in m.tags] == ["c", "b", "a"]


def test_signature_independent_of_tag_order():
    a = _metric(tags=[Tag("env", "dev"), Tag("region", "us")])
    b = _metric(tags=[Tag("region", "us"), Tag("env", "dev")])
    assert a.signature() == b.signature()


def test_signature_ignores_value():
    assert _metric(value=1).signature() == _metric(value=5).signature()


def test_signature_differs_on_identity():
    base = _metric(tags=[Tag("env", "dev")]).signature()
    assert _metric(name="other", tags=[Tag("env", "dev")]).signature() != base
    assert _metric(field="other", tags=[Tag("env", "dev")]).signature() != base
    assert _metric(tags=[Tag("env", "prod")]).signature() != base


def test_add_integers():
    assert _metric(value=1).add(1) == 2


def test_add_floats():
    assert _metric(value=1.5).add(2.0) == pytest.approx(3.5)


def test_add_non_number_returns_new_value():
    assert _metric(value=True).add(False) is False