"""Telemetry layer for ctxwindow.

Optional OpenTelemetry export of reduction spans.
"""

from ctxwindow.telemetry.otel import (
    TelemetryConfig,
    TelemetryManager,
    get_tracer,
    init_telemetry,
)

__all__ = [
    "TelemetryConfig",
    "TelemetryManager",
    "init_telemetry",
    "get_tracer",
]
