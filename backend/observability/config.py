"""
OpenTelemetry setup for program-builder-api.

Spans and metrics go to an OTLP collector when OTEL_EXPORTER_OTLP_ENDPOINT is
set, and to stdout otherwise, so the repair-loop metrics are never dropped
just because no collector is configured. FastAPI requests, the HTTPX calls
under the OpenAI and Anthropic SDKs, and log records are auto-instrumented.
"""

import logging
from typing import TYPE_CHECKING, List

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.metrics.view import ExplicitBucketHistogramAggregation, View
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanProcessor,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

if TYPE_CHECKING:
    from backend.settings import Settings

logger = logging.getLogger(__name__)

SERVICE_VERSION_VALUE = "1.0.0"

# Attempt budget tops out at 5; oracle calls run from sub-second to the 60s timeout
ATTEMPT_BUCKETS = (1, 2, 3, 4, 5)
ORACLE_CALL_BUCKETS = (0.5, 1, 2.5, 5, 10, 20, 30, 45, 60)

_initialized = False


def build_resource(settings: "Settings") -> Resource:
    attributes = {
        SERVICE_NAME: settings.otel_service_name,
        SERVICE_VERSION: SERVICE_VERSION_VALUE,
        "deployment.environment": settings.environment,
        "program_builder.oracle_provider": settings.oracle_provider,
    }
    if settings.render_git_commit:
        attributes["service.instance.id"] = settings.render_git_commit
    return Resource.create(attributes)


def _otlp_url(endpoint: str, signal: str) -> str:
    """HTTP collectors take one path per signal; gRPC takes the bare endpoint."""
    return endpoint.rstrip("/") + f"/v1/{signal}"


def span_processor(settings: "Settings") -> SpanProcessor:
    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return SimpleSpanProcessor(ConsoleSpanExporter())

    if settings.otel_exporter_otlp_protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

    return BatchSpanProcessor(OTLPSpanExporter(endpoint=_otlp_url(endpoint, "traces")))


def metric_exporter(settings: "Settings") -> MetricExporter:
    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return ConsoleMetricExporter()

    if settings.otel_exporter_otlp_protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        return OTLPMetricExporter(endpoint=endpoint)

    from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter

    return OTLPMetricExporter(endpoint=_otlp_url(endpoint, "metrics"))


def metric_views() -> List[View]:
    """Histogram buckets sized for the repair loop instead of the SDK's latency defaults."""
    return [
        View(
            instrument_name="generation_attempts_per_request",
            aggregation=ExplicitBucketHistogramAggregation(boundaries=ATTEMPT_BUCKETS),
        ),
        View(
            instrument_name="oracle_call_seconds",
            aggregation=ExplicitBucketHistogramAggregation(boundaries=ORACLE_CALL_BUCKETS),
        ),
    ]


def _configure_tracing(settings: "Settings", resource: Resource) -> None:
    provider = TracerProvider(
        resource=resource,
        sampler=TraceIdRatioBased(settings.otel_traces_sample_rate),
    )
    provider.add_span_processor(span_processor(settings))
    trace.set_tracer_provider(provider)


def _configure_metrics(settings: "Settings", resource: Resource) -> None:
    reader = PeriodicExportingMetricReader(
        metric_exporter(settings),
        export_interval_millis=settings.otel_metrics_export_interval_ms,
    )
    metrics.set_meter_provider(
        MeterProvider(resource=resource, metric_readers=[reader], views=metric_views())
    )


def _configure_auto_instrumentation(log_correlation: bool) -> None:
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    FastAPIInstrumentor().instrument()
    HTTPXClientInstrumentor().instrument()
    if log_correlation:
        from opentelemetry.instrumentation.logging import LoggingInstrumentor

        LoggingInstrumentor().instrument(set_logging_format=True)


def configure_observability(settings: "Settings") -> None:
    """
    Install tracer and meter providers and auto-instrumentation.

    Runs once per process. Failures are logged and never stop the app from
    starting.
    """
    global _initialized

    if _initialized:
        logger.debug("OpenTelemetry already initialized, skipping")
        return

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled via settings")
        return

    try:
        resource = build_resource(settings)
        _configure_tracing(settings, resource)
        _configure_metrics(settings, resource)
        _configure_auto_instrumentation(settings.otel_log_correlation)
    except Exception as e:
        logger.error("Failed to initialize OpenTelemetry: %s", e)
        return

    _initialized = True
    logger.info(
        "OpenTelemetry initialized: service=%s sample_rate=%.2f exporter=%s",
        settings.otel_service_name,
        settings.otel_traces_sample_rate,
        settings.otel_exporter_otlp_endpoint or "console",
    )


def shutdown_observability() -> None:
    """Flush and shut down the providers installed by configure_observability."""
    global _initialized

    if not _initialized:
        return

    for provider in (trace.get_tracer_provider(), metrics.get_meter_provider()):
        shutdown = getattr(provider, "shutdown", None)
        if shutdown is None:
            continue
        try:
            shutdown()
        except Exception as e:
            logger.error("Error during OpenTelemetry shutdown: %s", e)

    _initialized = False
    logger.info("OpenTelemetry shutdown complete")
