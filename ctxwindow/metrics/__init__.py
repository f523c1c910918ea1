"""Observability hooks for context reduction."""

from ctxwindow.metrics.hooks import (
    LoggingHook,
    RecordingHook,
    ReductionHook,
    SpanHook,
)

__all__ = [
    "ReductionHook",
    "LoggingHook",
    "RecordingHook",
    "SpanHook",
]
