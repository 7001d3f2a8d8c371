"""Cumulative metric aggregation and export in the OpenTelemetry protocol."""

__all__ = ["metric", "proto", "convert", "client", "handler"]