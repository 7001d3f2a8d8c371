"""Aggregated metric state kept in memory by the OpenTelemetry handler."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable

from measurekit.measure import FieldType, Tag

__all__ = [
    "value_of",
    "Bucket",
    "make_metric_buckets",
    "update_buckets",
    "Metric",
]


def value_of(value: Any) -> float:
    """Convert a field value to a float; unsupported values become 0.0."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, timedelta):
        return value.total_seconds()
    return 0.0


@dataclass
class Bucket:
    """A histogram bucket: the values up to ``upper_bound`` that were counted."""

    upper_bound: float
    count: int = 0


def make_metric_buckets(bounds: Iterable[Any]) -> list[Bucket]:
    """Create empty buckets with the given upper bounds."""
    return [Bucket(upper_bound=value_of(bound)) for bound in bounds]


def update_buckets(buckets: list[Bucket], value: float) -> None:
    """Count ``value`` in the first bucket whose upper bound holds it."""
    for bucket in buckets:
        if value <= bucket.upper_bound:
            bucket.count += 1
            break


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Metric:
    """One field of a measure, aggregated across reports with the same signature.

    Tags are kept sorted by name in descending order.
    """

    measure_name: str
    field_name: str
    field_type: FieldType
    time: datetime | int
    value: Any
    tags: list[Tag] = field(default_factory=list)
    sum: float = 0.0
    count: int = 0
    buckets: list[Bucket] = field(default_factory=list)
    flushed: bool = False
    sign: int = 0

    def __post_init__(self) -> None:
        self.tags = sorted(self.tags, key=lambda t: t.name, reverse=True)

    def signature(self) -> int:
        """Return a 64-bit hash of the measure name, field name and tags."""
        digest = hashlib.blake2b(digest_size=8)
        digest.update(self.measure_name.encode())
        digest.update(b"\x00")
        digest.update(self.field_name.encode())
        for t in self.tags:
            digest.update(b"\x00")
            digest.update(str(t).encode())
        return int.from_bytes(digest.digest(), "big")

    def add(self, value: Any) -> Any:
        """Return the sum of the current value and ``value`` for numbers, else ``value``."""
        if _is_number(value) and _is_number(self.value):
            return self.value + value
        return value