"""OpenTelemetry spans for outbound requests; no-op when the API is not installed."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeAlias

AttributeValue: TypeAlias = str | bool | int | float

_TRACER_NAME = "orchid_docstore"


@dataclass(slots=True)
class ClientSpan:
    """Handle yielded by ``client_span`` to report the response status."""

    span: Any | None
    status_code: int | None = None

    def set_status_code(self, status_code: int) -> None:
        self.status_code = status_code
        if self.span is not None:
            self.span.set_attribute("http.response.status_code", status_code)


def _import_otel_api_trace_module() -> Any | None:
    try:
        from opentelemetry import trace
    except ImportError:
        return None
    return trace


@contextmanager
def start_span(
    span_name: str,
    *,
    attributes: Mapping[str, AttributeValue | None] | None = None,
) -> Iterator[Any | None]:
    """Start a span when OpenTelemetry API is available; otherwise no-op."""
    trace_module = _import_otel_api_trace_module()
    if trace_module is None:
        yield None
        return

    tracer = trace_module.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(span_name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


@contextmanager
def client_span(
    *,
    method: str,
    path: str,
    request_id: str,
    host: str | None = None,
) -> Iterator[ClientSpan]:
    """Instrument one request/response exchange as a client span."""
    attributes: dict[str, AttributeValue | None] = {
        "http.request.method": method.upper(),
        "url.path": path,
        "server.address": host,
        "docstore.request_id": request_id,
    }
    with start_span(f"docstore {method.upper()}", attributes=attributes) as span:
        handle = ClientSpan(span=span)
        try:
            yield handle
        except Exception as exc:
            mark_span_error(span, exc)
            raise
        if handle.status_code is not None and handle.status_code >= 400:
            _set_span_status(span, success=False, description=f"status={handle.status_code}")


def current_trace_ids() -> tuple[str | None, str | None]:
    """Return (trace_id, span_id) of the active span as hex strings."""
    trace_module = _import_otel_api_trace_module()
    if trace_module is None:
        return None, None

    span = trace_module.get_current_span()
    if span is None:
        return None, None

    span_context = span.get_span_context()
    if span_context is None or not getattr(span_context, "is_valid", False):
        return None, None

    return f"{span_context.trace_id:032x}", f"{span_context.span_id:016x}"


def mark_span_error(span: Any | None, exc: BaseException) -> None:
    if span is None:
        return

    span.record_exception(exc)
    _set_span_status(span, success=False, description=str(exc))


def _set_span_status(span: Any | None, *, success: bool, description: str | None = None) -> None:
    trace_module = _import_otel_api_trace_module()
    if span is None or trace_module is None:
        return
    code = trace_module.StatusCode.OK if success else trace_module.StatusCode.ERROR
    span.set_status(trace_module.Status(code, description))
