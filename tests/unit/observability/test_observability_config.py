"""
Unit tests for backend/observability/config.py

Tests OTel SDK configuration and initialization. Global providers and
auto-instrumentation are patched out so nothing leaks into other tests.
"""

import pytest
from unittest.mock import patch

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

from backend.observability import config
from backend.observability.config import configure_observability, shutdown_observability
from tests.fakes import build_settings


@pytest.fixture
def patched_providers():
    """Patch out global provider installation and auto-instrumentation."""
    with patch("opentelemetry.trace.set_tracer_provider") as set_tracer_provider, patch(
        "opentelemetry.metrics.set_meter_provider"
    ) as set_meter_provider, patch.object(config, "_configure_auto_instrumentation") as instrument, patch.object(
        config, "PeriodicExportingMetricReader"
    ):
        yield set_tracer_provider, set_meter_provider, instrument


class TestConfigureObservability:
    """Tests for configure_observability() function."""

    def test_disabled_via_settings(self, reset_otel_state):
        """OTel should not initialize when otel_enabled=False."""
        configure_observability(build_settings(otel_enabled=False))

        assert config._initialized is False

    def test_enabled_initializes(self, reset_otel_state, patched_providers):
        """OTel should initialize when otel_enabled=True."""
        set_tracer_provider, set_meter_provider, instrument = patched_providers
        settings = build_settings(otel_enabled=True, otel_service_name="test-service")

        configure_observability(settings)

        assert config._initialized is True
        set_tracer_provider.assert_called_once()
        set_meter_provider.assert_called_once()
        instrument.assert_called_once_with(settings.otel_log_correlation)

    def test_idempotent_initialization(self, reset_otel_state, patched_providers):
        """Calling configure_observability twice should be safe."""
        set_tracer_provider, _, _ = patched_providers
        settings = build_settings(otel_enabled=True)

        configure_observability(settings)
        configure_observability(settings)

        assert set_tracer_provider.call_count == 1

    def test_failure_does_not_raise(self, reset_otel_state):
        """Setup errors are logged, never raised into app startup."""
        settings = build_settings(otel_enabled=True)

        with patch("opentelemetry.trace.set_tracer_provider", side_effect=RuntimeError("boom")):
            configure_observability(settings)

        assert config._initialized is False


class TestExporters:
    def test_console_metrics_without_endpoint(self):
        """Generation metrics are still exported when no collector is configured."""
        settings = build_settings(otel_enabled=True, otel_exporter_otlp_endpoint=None)

        assert isinstance(config.metric_exporter(settings), ConsoleMetricExporter)
        assert isinstance(config.span_processor(settings), SimpleSpanProcessor)

    def test_otlp_http_with_endpoint(self):
        settings = build_settings(
            otel_enabled=True,
            otel_exporter_otlp_endpoint="http://collector:4318/",
            otel_exporter_otlp_protocol="http",
        )

        assert isinstance(config.metric_exporter(settings), OTLPMetricExporter)
        assert isinstance(config.span_processor(settings), BatchSpanProcessor)

    def test_otlp_url_per_signal(self):
        assert config._otlp_url("http://collector:4318/", "metrics") == "http://collector:4318/v1/metrics"
        assert config._otlp_url("http://collector:4318", "traces") == "http://collector:4318/v1/traces"


class TestResourceAndViews:
    def test_resource_attributes(self):
        settings = build_settings(otel_service_name="pb", render_git_commit="abc123")

        attributes = config.build_resource(settings).attributes

        assert attributes["service.name"] == "pb"
        assert attributes["deployment.environment"] == "test"
        assert attributes["program_builder.oracle_provider"] == "openai"
        assert attributes["service.instance.id"] == "abc123"

    def test_histogram_views(self):
        names = [view._instrument_name for view in config.metric_views()]
        assert names == ["generation_attempts_per_request", "oracle_call_seconds"]


class TestShutdownObservability:
    def test_noop_when_not_initialized(self, reset_otel_state):
        shutdown_observability()
        assert config._initialized is False

    def test_resets_flag(self, reset_otel_state):
        config._initialized = True

        with patch("opentelemetry.trace.get_tracer_provider") as tracer_provider, patch(
            "opentelemetry.metrics.get_meter_provider"
        ) as meter_provider:
            shutdown_observability()

        assert config._initialized is False
        tracer_provider.return_value.shutdown.assert_called_once()
        meter_provider.return_value.shutdown.assert_called_once()

    def test_shutdown_error_still_resets_flag(self, reset_otel_state):
        config._initialized = True

        with patch("opentelemetry.trace.get_tracer_provider") as tracer_provider, patch(
            "opentelemetry.metrics.get_meter_provider"
        ):
            tracer_provider.return_value.shutdown.side_effect = RuntimeError("flush failed")
            shutdown_observability()

        assert config._initialized is False
