"""A measure handler that aggregates metrics and exports them to OpenTelemetry."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from measurekit.measure import FieldType, Measure
from measurekit.otlp.client import Client, HTTPClient
from measurekit.otlp.convert import convert_metrics
from measurekit.otlp.metric import Metric, make_metric_buckets, update_buckets, value_of
from measurekit.otlp.proto import ExportMetricsServiceRequest

__all__ = [
    "DEFAULT_MAX_METRICS",
    "DEFAULT_FLUSH_INTERVAL",
    "Handler",
    "new_handler",
]

DEFAULT_MAX_METRICS = 5000
DEFAULT_FLUSH_INTERVAL = 10.0

logger = logging.getLogger(__name__)


class Handler:
    """Aggregates measures as cumulative metrics and exports them through a client.

    At most ``max_metrics`` metrics are kept; the least recently updated one is
    dropped when the limit is exceeded. If ``flush_interval`` is positive, a
    background thread flushes every ``flush_interval`` seconds once the first
    measures arrive. ``buckets`` maps ``(measure name, field name)`` to the
    upper bounds of histogram buckets.
    """

    def __init__(
        self,
        client: Client,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        max_metrics: int = DEFAULT_MAX_METRICS,
        buckets: Optional[Mapping[tuple[str, str], Sequence[Any]]] = None,
    ) -> None:
        self.client = client
        self.flush_interval = flush_interval
        self.max_metrics = max_metrics
        self.buckets = dict(buckets or {})
        self._lock = threading.RLock()
        self._metrics: OrderedDict[int, Metric] = OrderedDict()
        self._started = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "Handler":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def handle_measures(self, time: datetime | int, *measures: Measure) -> None:
        self._start_once()
        for measure in measures:
            for f in measure.fields:
                self._record(self._make_metric(time, measure, f))

    def flush(self) -> None:
        """Export every metric not yet exported; raises RuntimeError on failure."""
        with self._lock:
            pending = [m for m in reversed(self._metrics.values()) if not m.flushed]
            if not pending:
                return
            for m in pending:
                m.flushed = True
            request = ExportMetricsServiceRequest(convert_metrics(*pending))
            try:
                self.client.handle(request)
            except Exception as exc:
                raise RuntimeError(f"failed to flush measures: {exc}") from exc

    def close(self) -> None:
        """Stop the background flushing and flush what remains."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self.flush()

    def _make_metric(self, time: datetime | int, measure: Measure, f: Any) -> Metric:
        m = Metric(
            measure_name=measure.name,
            field_name=f.name,
            field_type=f.type,
            time=time,
            value=f.value,
            tags=list(measure.tags),
        )
        if f.type is FieldType.HISTOGRAM:
            value = value_of(f.value)
            m.sum = value
            m.buckets = make_metric_buckets(self.buckets.get((measure.name, f.name), ()))
            update_buckets(m.buckets, value)
            m.count += 1
        m.sign = m.signature()
        return m

    def _record(self, m: Metric) -> None:
        with self._lock:
            known = self._metrics.get(m.sign)
            if known is not None:
                self._metrics.move_to_end(m.sign)
                self._merge(known, m)
                return
            self._metrics[m.sign] = m
            if len(self._metrics) > self.max_metrics:
                self._metrics.popitem(last=False)

    @staticmethod
    def _merge(known: Metric, m: Metric) -> None:
        if known.field_type is FieldType.COUNTER:
            known.value = known.add(m.value)
        elif known.field_type is FieldType.HISTOGRAM:
            known.sum += value_of(m.value)
            known.count += 1
            for target, source in zip(known.buckets, m.buckets):
                target.count += source.count

    def _start_once(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
            if self.flush_interval <= 0:
                return
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.flush_interval):
            try:
                self.flush()
            except RuntimeError as exc:
                logger.warning("%s", exc)


def new_handler(endpoint: str) -> Handler:
    """Create a handler exporting over HTTP to ``endpoint`` with default limits."""
    return Handler(HTTPClient(endpoint))