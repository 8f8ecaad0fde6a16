"""Observability helpers: structured logging, trace context and metrics."""

from docsense.observability.context import get_trace_context, new_request_context, set_trace_context, trace_context
from docsense.observability.logging import JsonFormatter, configure_logging
from docsense.observability.metrics import (
    INDEX_DOC_COUNT,
    INDEXED_FILES,
    REQUEST_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)


__all__ = [
    "INDEXED_FILES",
    "INDEX_DOC_COUNT",
    "REQUEST_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "init_metrics",
    "new_request_context",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
