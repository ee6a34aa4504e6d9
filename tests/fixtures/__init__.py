"""Shared test fixtures."""

from tests.fixtures.otel import get_histogram_count, get_metric_value

__all__ = [
    "get_metric_value",
    "get_histogram_count",
]
