"""Timing spans for outbound calls, written to the structured log."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass
class Span:
    request_id: str
    span_name: str
    start: float
    attrs: dict[str, Any] = field(default_factory=dict)


def start_span(request_id: str, span_name: str, **attrs) -> Span:
    """Open a span; ``attrs`` are repeated on the closing log record."""
    return Span(request_id=request_id, span_name=span_name, start=perf_counter(), attrs=attrs)


def end_span(span: Span, **attrs) -> int:
    duration_ms = int((perf_counter() - span.start) * 1000)
    logger.info(
        "trace.span",
        request_id=span.request_id,
        span=span.span_name,
        duration_ms=duration_ms,
        **{**span.attrs, **attrs},
    )
    return duration_ms
