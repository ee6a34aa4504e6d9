"""
Fixtures for OpenTelemetry observability unit tests.

Provides an in-memory metric reader bound to ProgramBuilderMetrics without
touching the global MeterProvider, which can only be set once per process.
"""

import pytest

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from backend.observability import config, metrics as metrics_module
from backend.observability.metrics import ProgramBuilderMetrics


@pytest.fixture
def metric_reader(monkeypatch) -> InMemoryMetricReader:
    """InMemoryMetricReader for verifying metric recording."""
    reader = InMemoryMetricReader()
    provider = MeterProvider(metric_readers=[reader])

    monkeypatch.setattr(metrics_module, "_get_meter", lambda: provider.get_meter("test"))
    ProgramBuilderMetrics.reset()

    yield reader

    ProgramBuilderMetrics.reset()
    provider.shutdown()


@pytest.fixture
def reset_otel_state():
    """Reset the module-level initialization flag around a test."""
    config._initialized = False
    yield
    config._initialized = False
