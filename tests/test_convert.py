from datetime import datetime, timezone

from measurekit.measure import FieldType, Tag
from measurekit.otlp.convert import convert_metrics, tags_to_attributes
from measurekit.otlp.metric import Metric, make_metric_buckets, update_buckets
from measurekit.otlp.proto import (
    AGGREGATION_TEMPORALITY_CUMULATIVE,
    Gauge,
    Histogram,
    HistogramDataPoint,
    KeyValue,
    NumberDataPoint,
    OtlpMetric,
    Sum,
)

NOW = 1500780960123456789


def test_tags_to_attributes():
    assert tags_to_attributes(Tag("env", "dev"), Tag("region", "us-west-2")) == [
        KeyValue("env", "dev"),
        KeyValue("region", "us-west-2"),
    ]


def test_tags_to_attributes_empty():
    assert tags_to_attributes() == []


def test_convert_counter():
    metric = Metric("foobar", "count", FieldType.COUNTER, NOW, 2, tags=[Tag("env", "dev")])
    assert convert_metrics(metric) == [
        OtlpMetric(
            name="foobar.count",
            data=Sum(
                aggregation_temporality=AGGREGATION_TEMPORALITY_CUMULATIVE,
                data_points=[
                    NumberDataPoint(
                        time_unix_nano=NOW,
                        as_double=2.0,
                        attributes=[KeyValue("env", "dev")],
                    )
                ],
            ),
        )
    ]


def test_convert_gauge():
    metric = Metric("foobar", "gauge", FieldType.GAUGE, NOW, 42, tags=[Tag("env", "dev")])
    assert convert_metrics(metric) == [
        OtlpMetric(
            name="foobar.gauge",
            data=Gauge(
                data_points=[
                    NumberDataPoint(
                        time_unix_nano=NOW,
                        as_double=42.0,
                        attributes=[KeyValue("env", "dev")],
                    )
                ]
            ),
        )
    ]


def test_convert_histogram():
    buckets = make_metric_buckets([0, 10, 100, 1000])
    for value in (5, 10, 20):
        update_buckets(buckets, value)
    metric = Metric(
        "foobar",
        "hist",
        FieldType.HISTOGRAM,
        NOW,
        5,
        tags=[Tag("region", "us-west-2")],
        sum=35.0,
        count=3,
        buckets=buckets,
    )
    assert convert_metrics(metric) == [
        OtlpMetric(
            name="foobar.hist",
            data=Histogram(
                aggregation_temporality=AGGREGATION_TEMPORALITY_CUMULATIVE,
                data_points=[
                    HistogramDataPoint(
                        time_unix_nano=NOW,
                        count=3,
                        sum=35.0,
                        bucket_counts=[0, 2, 1, 0],
                        explicit_bounds=[0.0, 10.0, 100.0, 1000.0],
                    )
                ],
            ),
        )
    ]


def test_convert_datetime_time():
    when = datetime(2017, 7, 23, 3, 36, 0, 123456, tzinfo=timezone.utc)
    metric = Metric("foobar", "count", FieldType.COUNTER, when, 1)
    (converted,) = convert_metrics(metric)
    assert converted.data.data_points[0].time_unix_nano == 1500780960123456000


def test_convert_keeps_order():
    metrics = [
        Metric("a", "x", FieldType.COUNTER, NOW, 1),
        Metric("b", "y", FieldType.GAUGE, NOW, 1),
    ]
    assert [m.name for m in convert_metrics(*metrics)] == ["a.x", "b.y"]