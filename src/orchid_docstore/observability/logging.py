"""Structured logging bootstrap and per-request correlation."""

from __future__ import annotations

import contextvars
import json
import logging
import os
import random
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TextIO

from orchid_docstore.observability.otel import current_trace_ids

if TYPE_CHECKING:
    from orchid_docstore.config.models import AppSettings


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Request being dispatched while a log record is emitted."""

    request_id: str | None
    method: str | None = None
    path: str | None = None

    def fields(self) -> dict[str, str]:
        payload = {"request_id": self.request_id}
        if self.method is not None:
            payload["http_method"] = self.method
        if self.path is not None:
            payload["url_path"] = self.path
        return {key: value for key, value in payload.items() if value is not None}


_EMPTY_CONTEXT = RequestContext(request_id=None)

_REQUEST_CTX: contextvars.ContextVar[RequestContext] = contextvars.ContextVar(
    "docstore_request",
    default=_EMPTY_CONTEXT,
)

_STANDARD_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)
_RESERVED_PAYLOAD_KEYS = frozenset(
    {"service", "env", "trace_id", "span_id", "request_id", "http_method", "url_path"}
)


class SamplingFilter(logging.Filter):
    """Keep a fraction of DEBUG/INFO records; warnings and above always pass."""

    def __init__(self, sampling: float) -> None:
        super().__init__()
        self._sampling = sampling

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return random.random() < self._sampling


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with service and correlation fields."""

    def __init__(self, *, service: str, env: str) -> None:
        super().__init__()
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        trace_id, span_id = current_trace_ids()
        payload: dict[str, Any] = {
            "timestamp": _format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
            "env": self._env,
            "request_id": None,
            "trace_id": trace_id,
            "span_id": span_id,
        }
        payload.update(current_request().fields())
        payload.update(_extract_extra_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=True)


class TextFormatter(logging.Formatter):
    """Plain text variant carrying the same correlation fields."""

    def __init__(self, *, service: str, env: str) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        request = current_request()
        parts = [base, f"service={self._service}", f"env={self._env}"]
        parts.append(f"request_id={request.request_id or '-'}")
        if request.method is not None and request.path is not None:
            parts.append(f"request={request.method} {request.path}")
        parts.extend(f"{key}={value}" for key, value in _extract_extra_fields(record).items())
        return " ".join(parts)


def current_request() -> RequestContext:
    return _REQUEST_CTX.get()


def get_request_id() -> str | None:
    """Correlation id of the request currently being dispatched, if any."""
    return _REQUEST_CTX.get().request_id


@contextmanager
def request_scope(
    request_id: str | None,
    *,
    method: str | None = None,
    path: str | None = None,
) -> Iterator[RequestContext]:
    """Bind a request's id, method and path to log records emitted in this context."""
    context = RequestContext(request_id=request_id, method=method, path=path)
    token = _REQUEST_CTX.set(context)
    try:
        yield context
    finally:
        _REQUEST_CTX.reset(token)


def bootstrap_logging(
    *,
    service: str,
    env: str | None = None,
    level: str = "INFO",
    log_format: str = "json",
    sampling: float | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Configure a logger with structured formatting and correlation fields."""
    resolved_env = env if env is not None else os.getenv("DOCSTORE_ENV", "development")
    target_logger = logger or logging.getLogger()

    if force:
        for handler in list(target_logger.handlers):
            target_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    if log_format == "text":
        handler.setFormatter(TextFormatter(service=service, env=resolved_env))
    else:
        handler.setFormatter(JsonFormatter(service=service, env=resolved_env))

    if sampling is not None and sampling < 1.0:
        handler.addFilter(SamplingFilter(sampling))

    target_logger.addHandler(handler)
    target_logger.setLevel(level.upper())
    if target_logger is not logging.getLogger():
        target_logger.propagate = False
    return target_logger


def bootstrap_logging_from_app_settings(
    app_settings: AppSettings,
    *,
    env: str | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Bootstrap logging using values from typed appsettings."""
    return bootstrap_logging(
        service=app_settings.service.name,
        env=env,
        level=app_settings.logging.level,
        log_format=app_settings.logging.format,
        sampling=app_settings.logging.sampling,
        logger=logger,
        stream=stream,
        force=force,
    )


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
        and key not in _RESERVED_PAYLOAD_KEYS
        and not key.startswith("_")
    }


def _format_timestamp(created: float) -> str:
    timestamp = datetime.fromtimestamp(created, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
