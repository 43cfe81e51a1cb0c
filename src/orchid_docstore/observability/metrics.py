"""Prometheus metrics for client requests and the channel pool."""

from __future__ import annotations

import re
from typing import Any, Protocol

from orchid_docstore.errors import MissingDependencyError

_LABEL_NORMALIZER = re.compile(r"[^a-zA-Z0-9_]+")

_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _import_prometheus_client() -> Any:
    try:
        import prometheus_client
    except ImportError as exc:  # pragma: no cover - depends on optional extras
        raise MissingDependencyError(
            "Prometheus metrics require optional dependency 'prometheus-client'. "
            "Install with: pip install 'orchid-docstore[observability]'"
        ) from exc
    return prometheus_client


def _sanitize_label(value: str, *, default: str = "unknown") -> str:
    normalized = _LABEL_NORMALIZER.sub("_", value.strip().lower()).strip("_")
    return normalized or default


def _collector_or_create(registry: Any, name: str, factory: Any) -> Any:
    names_to_collectors = getattr(registry, "_names_to_collectors", None)
    if isinstance(names_to_collectors, dict):
        collector = names_to_collectors.get(name)
        if collector is not None:
            return collector
    return factory()


class MetricsRecorder(Protocol):
    """Observer contract for request and pool metrics."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        """Record operation latency and throughput."""
        ...

    def observe_error(
        self,
        *,
        resource: str,
        operation: str,
        error_type: str,
    ) -> None:
        """Record an operation failure by error kind."""
        ...

    def observe_pool(
        self,
        *,
        in_use: int,
        idle: int,
        max_size: int,
    ) -> None:
        """Record channel pool occupancy."""
        ...

    def observe_response(self, *, method: str, status_code: int) -> None:
        """Count a response received from the service."""
        ...


class NoopMetricsRecorder:
    """Recorder used when metrics are not configured."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        del resource, operation, duration_seconds, success

    def observe_error(
        self,
        *,
        resource: str,
        operation: str,
        error_type: str,
    ) -> None:
        del resource, operation, error_type

    def observe_pool(self, *, in_use: int, idle: int, max_size: int) -> None:
        del in_use, idle, max_size

    def observe_response(self, *, method: str, status_code: int) -> None:
        del method, status_code


class PrometheusMetricsRecorder:
    """Prometheus-backed recorder with ``docstore_*`` metric names."""

    def __init__(
        self,
        *,
        registry: Any | None = None,
        prefix: str = "docstore",
    ) -> None:
        prometheus_client = _import_prometheus_client()
        self._registry = prometheus_client.REGISTRY if registry is None else registry
        self._prefix = _sanitize_label(prefix, default="docstore")
        self._latency = _collector_or_create(
            self._registry,
            f"{self._prefix}_request_latency_seconds",
            lambda: prometheus_client.Histogram(
                f"{self._prefix}_request_latency_seconds",
                "Document store operation latency in seconds.",
                labelnames=("resource", "operation", "status"),
                registry=self._registry,
                buckets=_LATENCY_BUCKETS,
            ),
        )
        self._throughput = _collector_or_create(
            self._registry,
            f"{self._prefix}_requests_total",
            lambda: prometheus_client.Counter(
                f"{self._prefix}_requests",
                "Document store operation counter.",
                labelnames=("resource", "operation", "status"),
                registry=self._registry,
            ),
        )
        self._errors = _collector_or_create(
            self._registry,
            f"{self._prefix}_errors_total",
            lambda: prometheus_client.Counter(
                f"{self._prefix}_errors",
                "Document store operation errors by type.",
                labelnames=("resource", "operation", "error_type"),
                registry=self._registry,
            ),
        )
        self._pool = _collector_or_create(
            self._registry,
            f"{self._prefix}_pool_channels",
            lambda: prometheus_client.Gauge(
                f"{self._prefix}_pool_channels",
                "Channel pool occupancy.",
                labelnames=("state",),
                registry=self._registry,
            ),
        )
        self._responses = _collector_or_create(
            self._registry,
            f"{self._prefix}_responses_total",
            lambda: prometheus_client.Counter(
                f"{self._prefix}_responses",
                "Responses received from the document store by status class.",
                labelnames=("method", "status_class"),
                registry=self._registry,
            ),
        )

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        labels = {
            "resource": _sanitize_label(resource),
            "operation": _sanitize_label(operation),
            "status": "success" if success else "error",
        }
        self._latency.labels(**labels).observe(max(0.0, duration_seconds))
        self._throughput.labels(**labels).inc()

    def observe_error(
        self,
        *,
        resource: str,
        operation: str,
        error_type: str,
    ) -> None:
        self._errors.labels(
            resource=_sanitize_label(resource),
            operation=_sanitize_label(operation),
            error_type=_sanitize_label(error_type),
        ).inc()

    def observe_pool(self, *, in_use: int, idle: int, max_size: int) -> None:
        self._pool.labels(state="in_use").set(max(0, in_use))
        self._pool.labels(state="idle").set(max(0, idle))
        self._pool.labels(state="max").set(max(0, max_size))

    def observe_response(self, *, method: str, status_code: int) -> None:
        self._responses.labels(
            method=_sanitize_label(method),
            status_class=f"{status_code // 100}xx",
        ).inc()


_NOOP_RECORDER = NoopMetricsRecorder()
_DEFAULT_RECORDER: MetricsRecorder = _NOOP_RECORDER


def get_metrics_recorder() -> MetricsRecorder:
    """Return the process-level metrics recorder."""
    return _DEFAULT_RECORDER


def set_metrics_recorder(recorder: MetricsRecorder | None) -> MetricsRecorder:
    """Set process-level recorder. `None` switches back to no-op."""
    global _DEFAULT_RECORDER
    _DEFAULT_RECORDER = _NOOP_RECORDER if recorder is None else recorder
    return _DEFAULT_RECORDER


def reset_metrics_recorder() -> None:
    set_metrics_recorder(None)


def configure_prometheus_metrics(
    *,
    registry: Any | None = None,
    prefix: str = "docstore",
    set_default: bool = True,
) -> PrometheusMetricsRecorder:
    """Build a Prometheus recorder and optionally set it as default."""
    recorder = PrometheusMetricsRecorder(registry=registry, prefix=prefix)
    if set_default:
        set_metrics_recorder(recorder)
    return recorder


def render_prometheus_metrics(*, registry: Any | None = None) -> bytes:
    """Render current Prometheus metrics in exposition text format."""
    prometheus_client = _import_prometheus_client()
    resolved_registry = prometheus_client.REGISTRY if registry is None else registry
    return bytes(prometheus_client.generate_latest(resolved_registry))
