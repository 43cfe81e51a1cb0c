"""Logging, metrics and tracing helpers."""

from orchid_docstore.observability._observable import ObservableMixin
from orchid_docstore.observability.logging import (
    JsonFormatter,
    RequestContext,
    SamplingFilter,
    TextFormatter,
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    current_request,
    get_request_id,
    request_scope,
)
from orchid_docstore.observability.metrics import (
    MetricsRecorder,
    NoopMetricsRecorder,
    PrometheusMetricsRecorder,
    configure_prometheus_metrics,
    get_metrics_recorder,
    render_prometheus_metrics,
    reset_metrics_recorder,
    set_metrics_recorder,
)
from orchid_docstore.observability.otel import client_span, start_span

__all__ = [
    "JsonFormatter",
    "MetricsRecorder",
    "NoopMetricsRecorder",
    "ObservableMixin",
    "PrometheusMetricsRecorder",
    "RequestContext",
    "SamplingFilter",
    "TextFormatter",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "client_span",
    "configure_prometheus_metrics",
    "current_request",
    "get_metrics_recorder",
    "get_request_id",
    "render_prometheus_metrics",
    "request_scope",
    "reset_metrics_recorder",
    "set_metrics_recorder",
    "start_span",
]
