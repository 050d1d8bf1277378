"""
OpenTelemetry Exporter for rollwatch

Architectural Intent:
- Turns rollout domain events into traces (one span per pipeline stage)
  and metrics (stage durations, failures, rollback items)
- Exports to any OTLP-compatible backend when an endpoint is configured
- Subscribes to the EventBus; the pipeline never calls it directly

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
import time
from datetime import datetime, UTC

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from rollwatch.domain.events.rollout_events import (
    RollbackCompletedEvent,
    RolloutFailedEvent,
    RolloutStageFailedEvent,
    RolloutStageStartedEvent,
    RolloutSucceededEvent,
)
from rollwatch.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "rollwatch"
    environment: str = "production"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    Rollout telemetry backed by the OpenTelemetry SDK.

    Metrics are always buffered locally so they can be inspected in tests
    and logs; they are forwarded to OTLP only once initialize() succeeded.
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._gauges: dict[str, Any] = {}
        self._tracer_provider: Optional[TracerProvider] = None
        self._meter_provider: Optional[MeterProvider] = None
        self._stage: Optional[str] = None
        self._stage_started = 0.0
        self._span: Any = None

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.debug("OTEL endpoint not configured, telemetry disabled")
            return

        resource = Resource(
            attributes={
                SERVICE_NAME: self.config.service_name,
                "environment": self.config.environment,
            }
        )
        try:
            if self.config.enable_traces:
                self._tracer_provider = TracerProvider(resource=resource)
                self._tracer_provider.add_span_processor(
                    BatchSpanProcessor(
                        OTLPSpanExporter(
                            endpoint=self.config.endpoint,
                            insecure=self.config.insecure,
                        )
                    )
                )
                trace.set_tracer_provider(self._tracer_provider)

            if self.config.enable_metrics:
                metric_reader = PeriodicExportingMetricReader(
                    OTLPMetricExporter(
                        endpoint=self.config.endpoint,
                        insecure=self.config.insecure,
                    )
                )
                self._meter_provider = MeterProvider(
                    resource=resource, metric_readers=[metric_reader]
                )
                metrics.set_meter_provider(self._meter_provider)
                self._meter = metrics.get_meter(__name__)
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            return

        self._initialized = True

    def subscribe(self, bus: EventBusPort) -> None:
        bus.subscribe(RolloutStageStartedEvent, self.on_stage_started)
        bus.subscribe(RolloutStageFailedEvent, self.on_stage_failed)
        bus.subscribe(RollbackCompletedEvent, self.on_rollback_completed)
        bus.subscribe(RolloutSucceededEvent, self.on_rollout_finished)
        bus.subscribe(RolloutFailedEvent, self.on_rollout_finished)

    def _get_gauge(self, name: str, unit: str = "") -> Any:
        """Get or create a gauge for a metric name."""
        if name not in self._gauges and self._meter:
            self._gauges[name] = self._meter.create_gauge(name, unit=unit)
        return self._gauges.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            gauge = self._get_gauge(name, unit)
            if gauge:
                gauge.set(value, attributes=attributes or {})

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """Start a tracing span."""
        if not self._initialized:
            return None
        tracer = trace.get_tracer(__name__)
        return tracer.start_span(name, attributes=attributes or {})

    def end_span(self, span: Any) -> None:
        """End a tracing span."""
        if span:
            span.end()

    def _close_stage(self) -> None:
        if self._stage is None:
            return
        duration_ms = (time.monotonic() - self._stage_started) * 1000
        self.record_metric(
            "rollwatch.stage.duration_ms",
            duration_ms,
            unit="ms",
            attributes={"stage": self._stage},
        )
        self.end_span(self._span)
        self._stage = None
        self._span = None

    async def on_stage_started(self, event: RolloutStageStartedEvent) -> None:
        self._close_stage()
        self._stage = event.stage
        self._stage_started = time.monotonic()
        self._span = self.start_span(
            f"rollwatch.stage.{event.stage}",
            attributes={"rollout_id": event.aggregate_id},
        )

    async def on_stage_failed(self, event: RolloutStageFailedEvent) -> None:
        self.record_metric(
            "rollwatch.stage.failures",
            float(len(event.names)),
            attributes={"stage": event.stage},
        )
        if self._span is not None:
            self._span.set_attribute("rollwatch.failed_names", ",".join(event.names))
            self._span.set_status(Status(StatusCode.ERROR, event.message))

    async def on_rollback_completed(self, event: RollbackCompletedEvent) -> None:
        self.record_metric(
            "rollwatch.rollback.items",
            float(len(event.targets)),
            attributes={"failed": str(len(event.failed))},
        )

    async def on_rollout_finished(self, event) -> None:
        self._close_stage()
        succeeded = isinstance(event, RolloutSucceededEvent)
        self.record_metric(
            "rollwatch.rollout.succeeded",
            1.0 if succeeded else 0.0,
            attributes={"rollout_id": event.aggregate_id},
        )

    async def shutdown(self) -> None:
        """Flush and stop the SDK providers."""
        self._close_stage()
        if not self._initialized:
            return
        if self._tracer_provider is not None:
            self._tracer_provider.shutdown()
        if self._meter_provider is not None:
            self._meter_provider.shutdown()
        logger.debug("Flushed %d buffered metrics", len(self._metrics_buffer))
        self._metrics_buffer.clear()

