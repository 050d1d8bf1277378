"""
rollwatch Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for rollout observability
- Stage spans and rollout metrics exported over OTLP
"""

from rollwatch.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
]
