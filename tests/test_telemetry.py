"""Tests for telemetry configuration and the span hook."""

import asyncio

from ctxwindow.context.controller import BudgetController, ReductionPath
from ctxwindow.metrics.hooks import RecordingHook, SpanHook
from ctxwindow.telemetry.otel import TelemetryConfig, TelemetryManager, get_tracer, init_telemetry


class TestTelemetryConfig:
    """Tests for TelemetryConfig."""

    def test_disabled_by_default(self, monkeypatch):
        """Test that telemetry is off unless OTEL_ENABLED=true."""
        monkeypatch.delenv("OTEL_ENABLED", raising=False)
        config = TelemetryConfig()

        assert config.enabled is False
        assert config.validate() is False

    def test_env(self, monkeypatch):
        """Test that endpoint and service name come from the environment."""
        monkeypatch.setenv("OTEL_ENABLED", "true")
        monkeypatch.setenv("OTEL_SERVICE_NAME", "agent-host")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")
        config = TelemetryConfig()

        assert config.validate() is True
        assert config.service_name == "agent-host"
        assert config.otlp_endpoint == "http://collector:4318"

    def test_headers(self, monkeypatch):
        """Test parsing of OTEL_EXPORTER_OTLP_HEADERS."""
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_HEADERS", "api-key=abc%3D, x-team = infra")

        assert TelemetryConfig().get_otlp_headers() == {"api-key": "abc=", "x-team": "infra"}


class TestTelemetryManager:
    """Tests for TelemetryManager."""

    def test_disabled_init(self):
        """Test that a disabled config installs nothing."""
        manager = TelemetryManager(TelemetryConfig(enabled=False))

        assert manager.init() is False
        manager.shutdown()

    def test_init_telemetry_returns_manager(self):
        """Test the convenience initializer."""
        manager = init_telemetry(TelemetryConfig(enabled=False))

        assert isinstance(manager, TelemetryManager)

    def test_tracer_available_without_sdk(self):
        """Test that spans can be opened with only the API installed."""
        with get_tracer().start_as_current_span("test"):
            pass


class TestSpanHook:
    """Tests for SpanHook."""

    def test_runs_alongside_other_hooks(self, make_conversation, mock_counter):
        """Test that span events do not disturb the reduction."""
        recording = RecordingHook()
        controller = BudgetController(mock_counter, hooks=[SpanHook(), recording])

        result = asyncio.run(controller.reduce(make_conversation(7), 5000, 1000))

        assert result.path == ReductionPath.TRUNCATED
        assert recording.results == [result]
