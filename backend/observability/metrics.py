"""
Metrics definitions for program-builder-api.

Defines all metrics using OpenTelemetry Meter API. Without a configured
MeterProvider the instruments are no-ops, so callers never need to guard.
"""

import logging
from typing import Optional

from opentelemetry import metrics

logger = logging.getLogger(__name__)

# Meter name
_METER_NAME = "program-builder-api"


def _get_meter() -> metrics.Meter:
    """Get the metrics meter instance."""
    return metrics.get_meter(_METER_NAME)


class ProgramBuilderMetrics:
    """
    Centralized metrics for program-builder-api.

    All metrics are lazily initialized on first access.
    """

    _program_requests_total: Optional[metrics.Counter] = None
    _generation_attempts_total: Optional[metrics.Counter] = None
    _generation_attempts_per_request: Optional[metrics.Histogram] = None
    _oracle_call_seconds: Optional[metrics.Histogram] = None

    @classmethod
    def program_requests_total(cls) -> metrics.Counter:
        """Counter for program builder requests by final status."""
        if cls._program_requests_total is None:
            cls._program_requests_total = _get_meter().create_counter(
                name="program_requests_total",
                description="Total number of program builder requests",
                unit="1",
            )
        return cls._program_requests_total

    @classmethod
    def generation_attempts_total(cls) -> metrics.Counter:
        """Counter for oracle attempts by outcome (success, not_json, schema_mismatch, transport_error)."""
        if cls._generation_attempts_total is None:
            cls._generation_attempts_total = _get_meter().create_counter(
                name="generation_attempts_total",
                description="Total generation attempts by outcome",
                unit="1",
            )
        return cls._generation_attempts_total

    @classmethod
    def generation_attempts_per_request(cls) -> metrics.Histogram:
        """Histogram of attempts used per finished repair loop."""
        if cls._generation_attempts_per_request is None:
            cls._generation_attempts_per_request = _get_meter().create_histogram(
                name="generation_attempts_per_request",
                description="Oracle attempts used per program request",
                unit="1",
            )
        return cls._generation_attempts_per_request

    @classmethod
    def oracle_call_seconds(cls) -> metrics.Histogram:
        """Histogram for oracle call duration."""
        if cls._oracle_call_seconds is None:
            cls._oracle_call_seconds = _get_meter().create_histogram(
                name="oracle_call_seconds",
                description="Duration of generation oracle calls",
                unit="s",
            )
        return cls._oracle_call_seconds

    @classmethod
    def reset(cls) -> None:
        """Drop cached instruments so the next access binds to the current provider."""
        cls._program_requests_total = None
        cls._generation_attempts_total = None
        cls._generation_attempts_per_request = None
        cls._oracle_call_seconds = None
