"""Unit tests for logging, tracing and metrics helpers."""

import json
import logging
import sys
from types import SimpleNamespace

from opentelemetry.sdk.metrics import MeterProvider
import pytest

from cms_search.observability import (
    INDEX_BUILDS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    JsonFormatter,
    bind_collection,
    configure_logging,
    create_span,
    get_metrics,
    get_metrics_content_type,
    get_trace_context,
    init_metrics,
    init_tracing,
    set_trace_context,
    track_latency,
)
from cms_search.observability import metrics as metrics_module, tracing as tracing_module
from cms_search.observability.context import bind_span


def _record(msg: str = "test message", level: int = logging.INFO, name: str = "cms_search.search.engine"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="engine.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        set_trace_context("ab" * 16, "cd" * 8)

        data = json.loads(JsonFormatter().format(_record()))

        assert data["message"] == "test message"
        assert data["level"] == "INFO"
        assert data["trace_id"] == "ab" * 16
        assert data["span_id"] == "cd" * 8
        assert data["component"] == "engine"
        assert "timestamp" in data

    def test_format_includes_bound_collection(self):
        set_trace_context("ab" * 16, "cd" * 8)
        bind_collection("blog")

        data = json.loads(JsonFormatter().format(_record()))

        assert data["collection"] == "blog"

    def test_unbinding_collection_drops_the_field(self):
        bind_collection("blog")
        bind_collection(None)

        data = json.loads(JsonFormatter().format(_record()))

        assert "collection" not in data

    def test_format_includes_extra_fields(self):
        record = _record(level=logging.ERROR)
        record.search = {"query": "python", "total_results": 2}

        data = json.loads(JsonFormatter().format(record))

        assert data["search"] == {"query": "python", "total_results": 2}

    def test_format_truncates_and_redacts(self):
        record = _record(msg="x" * 2500)
        record.api_key = "secret"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"].endswith("...")
        assert len(data["message"]) == 2003
        assert data["api_key"] == "[REDACTED]"

    def test_format_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in data["exception"]

    def test_json_default_handles_set_and_bytes(self):
        formatter = JsonFormatter()
        assert formatter._json_default({3, 1, 2}) == [1, 2, 3]
        assert formatter._json_default(b"ok") == "ok"

    def test_json_default_handles_unorderable_set(self):
        value = JsonFormatter()._json_default({1, "a"})
        assert isinstance(value, list)
        assert len(value) == 2


@pytest.mark.unit
class TestTraceContext:
    """Tests for trace context propagation."""

    def test_get_trace_context_generates_ids(self):
        set_trace_context("", "")

        ctx = get_trace_context()

        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16

    def test_bind_span_adopts_span_ids_and_keeps_collection(self):
        set_trace_context("aa" * 16, "bb" * 8, collection="docs")
        span_ctx = SimpleNamespace(trace_id=0x1234, span_id=0x5678, is_valid=True)

        bind_span(SimpleNamespace(get_span_context=lambda: span_ctx))

        ctx = get_trace_context()
        assert ctx["trace_id"] == f"{0x1234:032x}"
        assert ctx["span_id"] == f"{0x5678:016x}"
        assert ctx["collection"] == "docs"

    def test_bind_span_ignores_invalid_span(self):
        set_trace_context("aa" * 16, "bb" * 8)
        span_ctx = SimpleNamespace(trace_id=0, span_id=0, is_valid=False)

        bind_span(SimpleNamespace(get_span_context=lambda: span_ctx))

        assert get_trace_context()["span_id"] == "bb" * 8


@pytest.mark.unit
class TestTracing:
    """Tests for OpenTelemetry tracing."""

    def test_init_tracing_applies_resource_attributes(self):
        provider = init_tracing("test-service", resource_attributes={"service.version": "2.0.0"})

        assert provider.resource.attributes["service.name"] == "test-service"
        assert provider.resource.attributes["service.version"] == "2.0.0"

    def test_create_span_sets_attributes(self):
        init_tracing("test-service")

        with create_span("cms_search.test", attributes={"search.mode": "plain"}) as span:
            span.set_attribute("search.items", 3)

    def test_create_span_reraises_errors(self):
        with pytest.raises(RuntimeError, match="failed"), create_span("cms_search.failing"):
            raise RuntimeError("failed")

    def test_create_span_binds_log_context(self):
        init_tracing("test-service")
        bind_collection("blog")

        with create_span("cms_search.bound") as span:
            span_ctx = span.get_span_context()
            ctx = get_trace_context()

        assert ctx["trace_id"] == format(span_ctx.trace_id, "032x")
        assert ctx["span_id"] == format(span_ctx.span_id, "016x")
        assert ctx["collection"] == "blog"

    def test_get_tracer_initializes_when_missing(self):
        tracing_module._tracer_holder["tracer"] = None

        assert tracing_module.get_tracer() is not None


@pytest.mark.unit
class TestMetrics:
    """Tests for Prometheus metrics bridged to OpenTelemetry."""

    def test_init_metrics_returns_a_provider(self):
        assert isinstance(init_metrics("test-service"), MeterProvider)

    def test_get_meter_initializes_when_missing(self):
        metrics_module._meter_holder.update({"meter": None, "provider": None})

        assert metrics_module._get_meter() is not None

    def test_counters_show_up_in_exposition(self):
        INDEX_BUILDS.labels(engine="metrics-test").inc()
        SEARCH_REQUESTS.labels(engine="metrics-test", mode="plain", status="ok").inc()

        output = get_metrics()

        assert isinstance(output, bytes)
        assert b"cms_search_index_builds_total" in output
        assert b'engine="metrics-test"' in output

    def test_track_latency_records_histogram(self):
        with track_latency(SEARCH_LATENCY, engine="metrics-test", mode="plain"):
            pass

        assert b"cms_search_latency_seconds_bucket" in get_metrics()

    def test_gauge_bridge_tracks_deltas(self):
        gauge = metrics_module.INDEXED_ITEMS
        gauge.labels(engine="gauge-test").set(5)
        gauge.labels(engine="gauge-test").set(2)

        assert gauge._last_values[(("engine", "gauge-test"),)] == 2

    def test_metric_bridge_unknown_kind_raises(self):
        bad_metric = metrics_module.MetricBridge(
            metrics_module._INDEX_BUILDS_PROM,
            otel_name="bad_metric",
            otel_description="bad",
            otel_kind="unknown",
        )

        with pytest.raises(ValueError, match="Unknown metric kind"):
            bad_metric.inc({"engine": "bad"}, 1.0)

    def test_get_metrics_content_type(self):
        assert get_metrics_content_type() == metrics_module.CONTENT_TYPE_LATEST


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_logging_sets_level(self, restore_root_logger):
        configure_logging(level="DEBUG")

        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)

    def test_configure_logging_replaces_handlers(self, restore_root_logger):
        configure_logging(level="INFO")
        configure_logging(level="INFO")

        assert len(restore_root_logger.handlers) == 1

    def test_configure_logging_non_json_formatter(self, restore_root_logger):
        configure_logging(level="INFO", json_output=False)

        formatter = restore_root_logger.handlers[0].formatter
        assert not isinstance(formatter, JsonFormatter)
        assert "%(asctime)s" in formatter._style._fmt

    def test_configure_logging_logger_overrides(self, restore_root_logger):
        configure_logging(level="INFO", logger_levels={"cms_search.search": "ERROR"})

        assert logging.getLogger("cms_search.search").level == logging.ERROR
        logging.getLogger("cms_search.search").setLevel(logging.NOTSET)
