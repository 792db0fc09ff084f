"""OpenTelemetry + Prometheus fallback wiring for the completion daemon."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from skdaemon import config

logger = logging.getLogger("skdaemon.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_completion_counter: Any | None = None
_completion_latency_hist: Any | None = None
_cache_lookup_counter: Any | None = None
_refresh_counter: Any | None = None
_refresh_latency_hist: Any | None = None

_prom_enabled = False
_prom_completion_counter: Any | None = None
_prom_completion_latency_hist: Any | None = None
_prom_cache_lookup_counter: Any | None = None
_prom_refresh_counter: Any | None = None
_prom_refresh_latency_hist: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _completion_counter, _completion_latency_hist, _cache_lookup_counter
    global _refresh_counter, _refresh_latency_hist
    global _prom_enabled, _prom_completion_counter, _prom_completion_latency_hist
    global _prom_cache_lookup_counter, _prom_refresh_counter, _prom_refresh_latency_hist

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (SKDAEMON_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "skdaemon"

    resource = Resource.create({"service.name": service_name, "service.namespace": "skdaemon"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("skdaemon")

    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("skdaemon")

    _completion_counter = meter.create_counter(
        "skdaemon_completions_total",
        unit="1",
        description="Completion requests by outcome",
    )
    _completion_latency_hist = meter.create_histogram(
        "skdaemon_completion_latency_ms",
        unit="ms",
        description="End-to-end latency of /complete",
    )
    _cache_lookup_counter = meter.create_counter(
        "skdaemon_cache_lookups_total",
        unit="1",
        description="Completion cache lookups by result",
    )
    _refresh_counter = meter.create_counter(
        "skdaemon_project_refreshes_total",
        unit="1",
        description="Project state refreshes by outcome",
    )
    _refresh_latency_hist = meter.create_histogram(
        "skdaemon_project_refresh_latency_ms",
        unit="ms",
        description="Time spent re-deriving the project state",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_completion_counter = Counter(
                "skdaemon_completions_total",
                "Completion requests by outcome",
                ["result", "cache"],
            )
            _prom_completion_latency_hist = Histogram(
                "skdaemon_completion_latency_ms",
                "End-to-end latency of /complete",
                ["result"],
            )
            _prom_cache_lookup_counter = Counter(
                "skdaemon_cache_lookups_total",
                "Completion cache lookups by result",
                ["result"],
            )
            _prom_refresh_counter = Counter(
                "skdaemon_project_refreshes_total",
                "Project state refreshes by outcome",
                ["result"],
            )
            _prom_refresh_latency_hist = Histogram(
                "skdaemon_project_refresh_latency_ms",
                "Time spent re-deriving the project state",
                ["result"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        pass
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception:
        pass
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception:
        pass
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_completion(result: str, duration_ms: float, *, cache_hit: bool) -> None:
    cache = "hit" if cache_hit else "miss"
    labels = {"result": result or "unknown", "cache": cache}
    if _enabled and _completion_counter is not None:
        _completion_counter.add(1, labels)
    if _enabled and _completion_latency_hist is not None:
        _completion_latency_hist.record(max(0.0, float(duration_ms)), {"result": labels["result"]})
    if _prom_enabled and _prom_completion_counter is not None:
        _prom_completion_counter.labels(**labels).inc()
    if _prom_enabled and _prom_completion_latency_hist is not None:
        _prom_completion_latency_hist.labels(result=labels["result"]).observe(max(0.0, float(duration_ms)))


def record_cache_lookup(hit: bool) -> None:
    result = "hit" if hit else "miss"
    if _enabled and _cache_lookup_counter is not None:
        _cache_lookup_counter.add(1, {"result": result})
    if _prom_enabled and _prom_cache_lookup_counter is not None:
        _prom_cache_lookup_counter.labels(result=result).inc()


def record_project_refresh(result: str, duration_ms: float) -> None:
    label = result or "unknown"
    if _enabled and _refresh_counter is not None:
        _refresh_counter.add(1, {"result": label})
    if _enabled and _refresh_latency_hist is not None:
        _refresh_latency_hist.record(max(0.0, float(duration_ms)), {"result": label})
    if _prom_enabled and _prom_refresh_counter is not None:
        _prom_refresh_counter.labels(result=label).inc()
    if _prom_enabled and _prom_refresh_latency_hist is not None:
        _prom_refresh_latency_hist.labels(result=label).observe(max(0.0, float(duration_ms)))
