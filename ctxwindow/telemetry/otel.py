"""OpenTelemetry integration for ctxwindow.

The controller always opens a ``ctxwindow.reduce`` span through the
OpenTelemetry API; without a configured SDK that span is a no-op. This module
installs an SDK tracer provider with an OTLP/HTTP exporter when enabled.

Configuration (set OTEL_ENABLED=true to enable):
  - OTEL_EXPORTER_OTLP_ENDPOINT: collector base URL (default http://localhost:4318)
  - OTEL_EXPORTER_OTLP_HEADERS: "key1=value1,key2=value2"
  - OTEL_SERVICE_NAME: service name (default ctxwindow)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import unquote

from opentelemetry import trace

logger = logging.getLogger(__name__)

TRACER_NAME = "ctxwindow"

_initialized = False


@dataclass
class TelemetryConfig:
    """Configuration for OpenTelemetry export."""

    service_name: str = field(default_factory=lambda: os.getenv("OTEL_SERVICE_NAME", TRACER_NAME))
    service_version: str = "0.1.0"

    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318")
    )

    max_export_batch_size: int = 512

    enabled: bool = field(
        default_factory=lambda: os.getenv("OTEL_ENABLED", "false").lower() == "true"
    )

    def validate(self) -> bool:
        """Check if configuration is valid for telemetry."""
        return self.enabled and bool(self.otlp_endpoint)

    def get_otlp_headers(self) -> dict[str, str]:
        """Parse OTEL_EXPORTER_OTLP_HEADERS into a dict."""
        headers = {}
        raw = unquote(os.getenv("OTEL_EXPORTER_OTLP_HEADERS", ""))
        for pair in raw.split(","):
            if "=" in pair:
                key, value = pair.split("=", 1)
                headers[key.strip()] = value.strip()
        return headers


class TelemetryManager:
    """Manages OpenTelemetry initialization and lifecycle."""

    def __init__(self, config: Optional[TelemetryConfig] = None):
        self.config = config or TelemetryConfig()
        self._provider = None

    def init(self) -> bool:
        """Install the SDK tracer provider. Returns True when tracing is active."""
        global _initialized

        if _initialized:
            logger.debug("Telemetry already initialized")
            return True

        if not self.config.validate():
            logger.info("Telemetry disabled (set OTEL_ENABLED=true to enable)")
            return False

        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError as e:
            logger.error(f"OpenTelemetry SDK not installed: {e}")
            logger.error("Install with: pip install ctxwindow[otel]")
            return False

        resource = Resource.create(
            {
                SERVICE_NAME: self.config.service_name,
                SERVICE_VERSION: self.config.service_version,
            }
        )
        exporter = OTLPSpanExporter(
            endpoint=f"{self.config.otlp_endpoint.rstrip('/')}/v1/traces",
            headers=self.config.get_otlp_headers() or None,
        )
        self._provider = TracerProvider(resource=resource)
        self._provider.add_span_processor(
            BatchSpanProcessor(exporter, max_export_batch_size=self.config.max_export_batch_size)
        )
        trace.set_tracer_provider(self._provider)

        _initialized = True
        logger.info(f"Telemetry initialized: exporting to {self.config.otlp_endpoint}")
        return True

    def shutdown(self) -> None:
        """Flush and shut down the tracer provider."""
        global _initialized

        if self._provider:
            self._provider.shutdown()
            self._provider = None

        _initialized = False
        logger.info("Telemetry shutdown")

    def __enter__(self) -> "TelemetryManager":
        self.init()
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()


def init_telemetry(config: Optional[TelemetryConfig] = None) -> TelemetryManager:
    """Initialize telemetry with given config."""
    manager = TelemetryManager(config)
    manager.init()
    return manager


def get_tracer():
    """Get the ctxwindow tracer (no-op until a provider is installed)."""
    return trace.get_tracer(TRACER_NAME)
