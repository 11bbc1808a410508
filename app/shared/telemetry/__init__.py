"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers."""

from app.shared.telemetry.logging import RequestContextFilter, setup_logging
from app.shared.telemetry.telemetry import (
    TelemetryConfig,
    get_telemetry,
    set_telemetry,
)
from app.shared.telemetry.tracing import (
    add_span_attributes,
    add_span_event,
    traced,
)

__all__ = [
    "RequestContextFilter",
    "TelemetryConfig",
    "add_span_attributes",
    "add_span_event",
    "get_telemetry",
    "set_telemetry",
    "setup_logging",
    "traced",
]
