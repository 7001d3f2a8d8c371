"""Application measures, measure handlers, I/O counters and InfluxDB and OpenTelemetry backends."""

__version__ = "0.1.0"
__all__ = ["measure", "handler", "iostats", "influxdb", "otlp"]