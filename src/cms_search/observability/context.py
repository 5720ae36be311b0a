"""Log correlation context: trace ids and the collection being searched.

Searches run on worker threads via `asyncio.to_thread`, which copies the
caller's context, so values bound here follow a search onto its thread.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING
from uuid import uuid4


if TYPE_CHECKING:
    from opentelemetry.trace import Span

trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def get_trace_context() -> dict:
    """Return the current context, generating ids when none are bound."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {**(ctx or {}), "trace_id": uuid4().hex, "span_id": uuid4().hex[:16]}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def bind_span(span: Span) -> None:
    """Adopt a recording span's ids so log lines join its trace.

    Other keys, such as the bound collection, are kept.
    """
    span_ctx = span.get_span_context()
    if not span_ctx.is_valid:
        return
    ctx = trace_context.get() or {}
    trace_context.set(
        {
            **ctx,
            "trace_id": format(span_ctx.trace_id, "032x"),
            "span_id": format(span_ctx.span_id, "016x"),
        }
    )


def bind_collection(collection: str | None) -> None:
    """Attach the collection being searched so log lines carry it."""
    ctx = get_trace_context()
    if collection:
        trace_context.set({**ctx, "collection": collection})
    else:
        trace_context.set({key: value for key, value in ctx.items() if key != "collection"})
