"""Conversion of aggregated metrics to OpenTelemetry messages."""

from __future__ import annotations

from datetime import datetime, timezone

from measurekit.measure import FieldType, Tag
from measurekit.otlp.metric import Metric, value_of
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

__all__ = ["convert_metrics", "tags_to_attributes"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _unix_nanos(time: datetime | int) -> int:
    if isinstance(time, int):
        return time
    if time.tzinfo is None:
        time = time.astimezone()
    delta = time - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def tags_to_attributes(*tags: Tag) -> list[KeyValue]:
    """Turn tags into string attributes, keeping their order."""
    return [KeyValue(t.name, t.value) for t in tags]


def _convert(metric: Metric) -> OtlpMetric:
    result = OtlpMetric(name=f"{metric.measure_name}.{metric.field_name}")
    nanos = _unix_nanos(metric.time)

    if metric.field_type is FieldType.COUNTER:
        result.data = Sum(
            data_points=[
                NumberDataPoint(
                    time_unix_nano=nanos,
                    as_double=value_of(metric.value),
                    attributes=tags_to_attributes(*metric.tags),
                )
            ],
            aggregation_temporality=AGGREGATION_TEMPORALITY_CUMULATIVE,
        )
    elif metric.field_type is FieldType.GAUGE:
        result.data = Gauge(
            data_points=[
                NumberDataPoint(
                    time_unix_nano=nanos,
                    as_double=value_of(metric.value),
                    attributes=tags_to_attributes(*metric.tags),
                )
            ]
        )
    elif metric.field_type is FieldType.HISTOGRAM:
        result.data = Histogram(
            data_points=[
                HistogramDataPoint(
                    time_unix_nano=nanos,
                    count=metric.count,
                    sum=metric.sum,
                    bucket_counts=[b.count for b in metric.buckets],
                    explicit_bounds=[b.upper_bound for b in metric.buckets],
                )
            ],
            aggregation_temporality=AGGREGATION_TEMPORALITY_CUMULATIVE,
        )
    return result


def convert_metrics(*metrics: Metric) -> list[OtlpMetric]:
    """Convert each aggregated metric to one OpenTelemetry metric."""
    return [_convert(m) for m in metrics]