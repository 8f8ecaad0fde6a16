"""Process metrics for indexing runs and the query server.

Each metric exists twice: as a Prometheus collector scraped from ``/metrics``
and as an OpenTelemetry instrument on the process ``MeterProvider``.
``MetricBridge`` keeps the two in step so call sites update one object.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import threading
import time

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


_provider_lock = threading.Lock()
_provider: MeterProvider | None = None

LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)


def init_metrics(service_name: str = "docsense", resource_attributes: dict[str, str] | None = None) -> MeterProvider:
    """Install the OpenTelemetry meter provider; later calls return the first one."""
    global _provider
    with _provider_lock:
        if _provider is None:
            attributes = {"service.name": service_name, **(resource_attributes or {})}
            _provider = MeterProvider(resource=Resource.create(attributes))
            otel_metrics.set_meter_provider(_provider)
        return _provider


class BoundMetric:
    """A ``MetricBridge`` with its label values filled in."""

    __slots__ = ("_bridge", "_labels")

    def __init__(self, bridge: MetricBridge, labels: dict[str, str]) -> None:
        self._bridge = bridge
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._bridge.record(self._labels, amount)

    def observe(self, value: float) -> None:
        self._bridge.record(self._labels, value)

    def set(self, value: float) -> None:
        self._bridge.set(self._labels, value)


class MetricBridge:
    """One metric, recorded to Prometheus and OpenTelemetry alike.

    ``kind`` is ``counter``, ``histogram`` or ``gauge``. OpenTelemetry has no
    synchronous gauge in every SDK release, so gauges are mirrored as an
    up-down counter fed with the difference to the previous value.
    """

    _PROMETHEUS_TYPES = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}

    def __init__(self, kind: str, name: str, description: str, labels: Sequence[str], **prometheus_kwargs) -> None:
        if kind not in self._PROMETHEUS_TYPES:
            raise ValueError(f"Unknown metric kind: {kind}")
        self.kind = kind
        self.name = name
        self.description = description
        self._prometheus = self._PROMETHEUS_TYPES[kind](name, description, list(labels), **prometheus_kwargs)
        self._instrument = None
        self._gauge_values: dict[tuple[tuple[str, str], ...], float] = {}
        self._lock = threading.Lock()

    def labels(self, **labels: str) -> BoundMetric:
        return BoundMetric(self, labels)

    def _otel(self):
        if self._instrument is None:
            meter = otel_metrics.get_meter("docsense", meter_provider=init_metrics())
            if self.kind == "counter":
                self._instrument = meter.create_counter(self.name, description=self.description)
            elif self.kind == "histogram":
                self._instrument = meter.create_histogram(self.name, unit="s", description=self.description)
            else:
                self._instrument = meter.create_up_down_counter(self.name, description=self.description)
        return self._instrument

    def record(self, labels: dict[str, str], value: float) -> None:
        """Increment a counter or observe a histogram sample."""
        child = self._prometheus.labels(**labels)
        if self.kind == "counter":
            child.inc(value)
            self._otel().add(value, labels)
        elif self.kind == "histogram":
            child.observe(value)
            self._otel().record(value, labels)
        else:
            raise TypeError(f"{self.name} is a gauge; use set()")

    def set(self, labels: dict[str, str], value: float) -> None:
        if self.kind != "gauge":
            raise TypeError(f"{self.name} is a {self.kind}; set() needs a gauge")
        self._prometheus.labels(**labels).set(value)
        key = tuple(sorted(labels.items()))
        with self._lock:
            delta = value - self._gauge_values.get(key, 0.0)
            self._gauge_values[key] = value
        if delta:
            self._otel().add(delta, labels)


REQUEST_COUNT = MetricBridge("counter", "docsense_requests_total", "HTTP API requests", ["endpoint", "status"])
SEARCH_LATENCY = MetricBridge(
    "histogram",
    "docsense_search_latency_seconds",
    "Time spent tokenizing and ranking one query",
    ["method"],
    buckets=LATENCY_BUCKETS,
)
INDEX_DOC_COUNT = MetricBridge(
    "gauge", "docsense_index_document_count", "Documents in the built or served index", ["source"]
)
INDEXED_FILES = MetricBridge(
    "counter", "docsense_indexed_files_total", "Files processed by the indexer", ["format", "status"]
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Iterator[None]:
    """Observe the wall-clock duration of the ``with`` block."""
    started = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - started)


def get_metrics() -> bytes:
    """Prometheus text exposition of every registered collector."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
