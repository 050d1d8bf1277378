"""Tests for OTELExporter."""

import pytest
from unittest.mock import MagicMock
from rollwatch.domain.events.rollout_events import (
    RollbackCompletedEvent,
    RolloutFailedEvent,
    RolloutStageFailedEvent,
    RolloutStageStartedEvent,
    RolloutSucceededEvent,
)
from rollwatch.infrastructure.event_bus import EventBus
from rollwatch.infrastructure.telemetry import OTELConfig, OTELExporter


def _names(exporter):
    return [m["name"] for m in exporter._metrics_buffer]


class TestOTELConfig:
    def test_default_empty_endpoint(self):
        config = OTELConfig()
        assert config.endpoint == ""
        assert config.service_name == "rollwatch"

    def test_localhost_http_allowed(self):
        config = OTELConfig(endpoint="http://localhost:4317")
        assert config.endpoint == "http://localhost:4317"

    def test_remote_http_rejected(self):
        with pytest.raises(ValueError, match="insecure=True"):
            OTELConfig(endpoint="http://collector.example.com:4317")

    def test_remote_http_with_insecure(self):
        config = OTELConfig(endpoint="http://collector.example.com:4317", insecure=True)
        assert config.insecure is True


class TestOTELExporter:
    def test_record_metric_buffers(self):
        exporter = OTELExporter(OTELConfig())
        exporter.record_metric("rollwatch.test", 42.0, attributes={"stage": "apply"})
        assert exporter._metrics_buffer[0]["name"] == "rollwatch.test"
        assert exporter._metrics_buffer[0]["value"] == 42.0
        assert exporter._metrics_buffer[0]["attributes"] == {"stage": "apply"}

    @pytest.mark.asyncio
    async def test_initialize_without_endpoint(self):
        exporter = OTELExporter(OTELConfig())
        await exporter.initialize()
        assert exporter._initialized is False

    def test_start_span_not_initialized(self):
        exporter = OTELExporter(OTELConfig())
        assert exporter.start_span("rollwatch.stage.apply") is None


class TestRolloutEventHandling:
    @pytest.mark.asyncio
    async def test_stage_durations_recorded(self):
        bus = EventBus()
        exporter = OTELExporter(OTELConfig())
        exporter.subscribe(bus)

        await bus.publish([
            RolloutStageStartedEvent(aggregate_id="r1", stage="apply"),
            RolloutStageStartedEvent(aggregate_id="r1", stage="diff"),
            RolloutSucceededEvent(aggregate_id="r1"),
        ])

        durations = [
            m for m in exporter._metrics_buffer
            if m["name"] == "rollwatch.stage.duration_ms"
        ]
        assert [m["attributes"]["stage"] for m in durations] == ["apply", "diff"]
        assert _names(exporter)[-1] == "rollwatch.rollout.succeeded"
        assert exporter._metrics_buffer[-1]["value"] == 1.0

    @pytest.mark.asyncio
    async def test_failure_and_rollback_metrics(self):
        bus = EventBus()
        exporter = OTELExporter(OTELConfig())
        exporter.subscribe(bus)

        await bus.publish([
            RolloutStageStartedEvent(aggregate_id="r1", stage="replicas"),
            RolloutStageFailedEvent(
                aggregate_id="r1", stage="replicas", names=("a", "b"), message="x"
            ),
            RollbackCompletedEvent(aggregate_id="r1", targets=("a",), failed=()),
            RolloutFailedEvent(aggregate_id="r1", stage="replicas", message="x"),
        ])

        by_name = {m["name"]: m for m in exporter._metrics_buffer}
        assert by_name["rollwatch.stage.failures"]["value"] == 2.0
        assert by_name["rollwatch.rollback.items"]["value"] == 1.0
        assert by_name["rollwatch.rollout.succeeded"]["value"] == 0.0

    @pytest.mark.asyncio
    async def test_failed_stage_marks_span(self):
        exporter = OTELExporter(OTELConfig())
        span = MagicMock()
        exporter._span = span

        await exporter.on_stage_failed(
            RolloutStageFailedEvent(stage="services", names=("web",), message="boom")
        )

        span.set_attribute.assert_called_once_with("rollwatch.failed_names", "web")
        span.set_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_shutdown_closes_open_stage(self):
        exporter = OTELExporter(OTELConfig())
        await exporter.on_stage_started(RolloutStageStartedEvent(stage="apply"))

        await exporter.shutdown()

        assert _names(exporter) == ["rollwatch.stage.duration_ms"]
