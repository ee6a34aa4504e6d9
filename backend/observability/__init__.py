"""
OpenTelemetry observability package for program-builder-api.

Usage:
    from backend.observability import configure_observability, ProgramBuilderMetrics

    # Initialize in application startup
    configure_observability(settings)

    # Record metrics
    ProgramBuilderMetrics.generation_attempts_total().add(1, {"outcome": "success"})
"""

from backend.observability.config import configure_observability, shutdown_observability
from backend.observability.metrics import ProgramBuilderMetrics

__all__ = [
    "configure_observability",
    "shutdown_observability",
    "ProgramBuilderMetrics",
]
