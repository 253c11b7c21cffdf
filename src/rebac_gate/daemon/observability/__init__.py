"""Observability helpers for tracing and health reporting."""

from .tracing import start_span, end_span
from .health import liveness_report, readiness_report

__all__ = [
    "start_span",
    "end_span",
    "liveness_report",
    "readiness_report",
]
