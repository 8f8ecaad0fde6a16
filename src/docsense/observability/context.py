"""Trace ids shared by every log line of one request or indexing run.

The context lives in a ``ContextVar``. Starlette copies the context into the
worker thread that ranks a query, so lines logged there keep the request's
trace id.
"""

from __future__ import annotations

from contextvars import ContextVar
import secrets


trace_context: ContextVar[dict | None] = ContextVar("docsense_trace_context", default=None)


def _new_ids() -> dict[str, str]:
    return {"trace_id": secrets.token_hex(16), "span_id": secrets.token_hex(8)}


def get_trace_context() -> dict:
    """Return the active context, starting a fresh trace when there is none."""
    ctx = trace_context.get()
    if not ctx or not ctx.get("trace_id"):
        ctx = _new_ids()
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({**extra, "trace_id": trace_id, "span_id": span_id})


def new_request_context(**extra: object) -> dict:
    """Begin a new trace for an incoming request, tagged with ``extra`` (e.g. ``endpoint``)."""
    ctx = {**extra, **_new_ids()}
    trace_context.set(ctx)
    return ctx
