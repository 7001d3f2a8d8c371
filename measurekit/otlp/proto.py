"""OpenTelemetry metrics messages and their protobuf wire encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional, Union

__all__ = [
    "AGGREGATION_TEMPORALITY_UNSPECIFIED",
    "AGGREGATION_TEMPORALITY_DELTA",
    "AGGREGATION_TEMPORALITY_CUMULATIVE",
    "KeyValue",
    "NumberDataPoint",
    "HistogramDataPoint",
    "Sum",
    "Gauge",
    "Histogram",
    "OtlpMetric",
    "ExportMetricsServiceRequest",
]

AGGREGATION_TEMPORALITY_UNSPECIFIED = 0
AGGREGATION_TEMPORALITY_DELTA = 1
AGGREGATION_TEMPORALITY_CUMULATIVE = 2

_MASK64 = (1 << 64) - 1
_VARINT, _FIXED64, _LENGTH = 0, 1, 2


def _varint(value: int) -> bytes:
    value &= _MASK64
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(number: int, wire: int) -> bytes:
    return _varint(number << 3 | wire)


def _bytes_field(number: int, payload: bytes) -> bytes:
    return _key(number, _LENGTH) + _varint(len(payload)) + payload


def _string_field(number: int, text: str) -> bytes:
    return _bytes_field(number, text.encode()) if text else b""


def _varint_field(number: int, value: int) -> bytes:
    return _key(number, _VARINT) + _varint(value) if value else b""


def _fixed64_field(number: int, value: int) -> bytes:
    return _key(number, _FIXED64) + struct.pack("<Q", value & _MASK64) if value else b""


def _double_field(number: int, value: float) -> bytes:
    return _key(number, _FIXED64) + struct.pack("<d", value)


def _packed_fixed64(number: int, values: list[int]) -> bytes:
    if not values:
        return b""
    return _bytes_field(number, b"".join(struct.pack("<Q", v & _MASK64) for v in values))


def _packed_double(number: int, values: list[float]) -> bytes:
    if not values:
        return b""
    return _bytes_field(number, b"".join(struct.pack("<d", v) for v in values))


@dataclass
class KeyValue:
    """An attribute with a string value."""

    key: str
    value: str

    def _encode(self) -> bytes:
        any_value = _bytes_field(1, self.value.encode())
        return _string_field(1, self.key) + _bytes_field(2, any_value)


@dataclass
class NumberDataPoint:
    """A single value of a sum or a gauge."""

    time_unix_nano: int = 0
    as_double: float = 0.0
    attributes: list[KeyValue] = field(default_factory=list)

    def _encode(self) -> bytes:
        return (
            _fixed64_field(3, self.time_unix_nano)
            + _double_field(4, self.as_double)
            + b"".join(_bytes_field(7, a._encode()) for a in self.attributes)
        )


@dataclass
class HistogramDataPoint:
    """A histogram snapshot: count, sum and per-bucket counts."""

    time_unix_nano: int = 0
    count: int = 0
    sum: Optional[float] = None
    bucket_counts: list[int] = field(default_factory=list)
    explicit_bounds: list[float] = field(default_factory=list)
    attributes: list[KeyValue] = field(default_factory=list)

    def _encode(self) -> bytes:
        return (
            _fixed64_field(3, self.time_unix_nano)
            + _fixed64_field(4, self.count)
            + (_double_field(5, self.sum) if self.sum is not None else b"")
            + _packed_fixed64(6, self.bucket_counts)
            + _packed_double(7, self.explicit_bounds)
            + b"".join(_bytes_field(9, a._encode()) for a in self.attributes)
        )


@dataclass
class Sum:
    """Data of a sum metric."""

    data_points: list[NumberDataPoint] = field(default_factory=list)
    aggregation_temporality: int = AGGREGATION_TEMPORALITY_UNSPECIFIED
    is_monotonic: bool = False

    def _encode(self) -> bytes:
        return (
            b"".join(_bytes_field(1, p._encode()) for p in self.data_points)
            + _varint_field(2, self.aggregation_temporality)
            + _varint_field(3, int(self.is_monotonic))
        )


@dataclass
class Gauge:
    """Data of a gauge metric."""

    data_points: list[NumberDataPoint] = field(default_factory=list)

    def _encode(self) -> bytes:
        return b"".join(_bytes_field(1, p._encode()) for p in self.data_points)


@dataclass
class Histogram:
    """Data of a histogram metric."""

    data_points: list[HistogramDataPoint] = field(default_factory=list)
    aggregation_temporality: int = AGGREGATION_TEMPORALITY_UNSPECIFIED

    def _encode(self) -> bytes:
        return b"".join(
            _bytes_field(1, p._encode()) for p in self.data_points
        ) + _varint_field(2, self.aggregation_temporality)


_DATA_FIELDS = {Gauge: 5, Sum: 7, Histogram: 9}


@dataclass
class OtlpMetric:
    """A named metric carrying sum, gauge or histogram data."""

    name: str
    data: Union[Sum, Gauge, Histogram, None] = None

    def _encode(self) -> bytes:
        out = _string_field(1, self.name)
        if self.data is not None:
            out += _bytes_field(_DATA_FIELDS[type(self.data)], self.data._encode())
        return out


@dataclass
class ExportMetricsServiceRequest:
    """A request exporting metrics, all in one resource and one scope."""

    metrics: list[OtlpMetric] = field(default_factory=list)

    def encode(self) -> bytes:
        """Return the protobuf wire encoding of the request."""
        scope = b"".join(_bytes_field(2, m._encode()) for m in self.metrics)
        resource = _bytes_field(2, scope)
        return _bytes_field(1, resource)