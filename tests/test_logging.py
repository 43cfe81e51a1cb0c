"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from io import StringIO

from fakes import FakeChannelFactory, echo_responder

from orchid_docstore.config import AppSettings
from orchid_docstore.dispatcher import Dispatcher
from orchid_docstore.envelope import RequestEnvelope
from orchid_docstore.observability.logging import (
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    get_request_id,
    request_scope,
)

DispatcherFactory = Callable[..., tuple[Dispatcher, FakeChannelFactory]]


def test_json_logs_include_required_fields() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.required_fields")

    bootstrap_logging(
        service="inventory",
        env="production",
        level="INFO",
        log_format="json",
        logger=logger,
        stream=stream,
    )

    with request_scope("req-123", method="PUT", path="/v0/users/alice"):
        logger.info("hello", extra={"collection": "users"})

    payload = json.loads(stream.getvalue().strip())

    assert payload["service"] == "inventory"
    assert payload["env"] == "production"
    assert payload["request_id"] == "req-123"
    assert payload["http_method"] == "PUT"
    assert payload["url_path"] == "/v0/users/alice"
    assert payload["collection"] == "users"
    assert payload["message"] == "hello"
    assert payload["timestamp"].endswith("Z")


def test_request_scope_restores_previous_id() -> None:
    with request_scope("outer"):
        with request_scope("inner"):
            assert get_request_id() == "inner"
        assert get_request_id() == "outer"

    assert get_request_id() is None


def test_sampling_zero_drops_info_but_keeps_warning() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.sampling")

    bootstrap_logging(
        service="inventory",
        env="staging",
        level="INFO",
        log_format="json",
        sampling=0.0,
        logger=logger,
        stream=stream,
    )

    logger.info("sampled out")
    logger.warning("always keep warning")

    lines = [line for line in stream.getvalue().splitlines() if line.strip()]
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["level"] == "WARNING"
    assert payload["message"] == "always keep warning"


def test_exception_is_serialized() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.exception")
    bootstrap_logging(service="inventory", env="test", logger=logger, stream=stream)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")

    payload = json.loads(stream.getvalue().strip())
    assert payload["level"] == "ERROR"
    assert "RuntimeError: boom" in payload["exception"]


def test_bootstrap_from_app_settings_uses_logging_config() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.from_app_settings")
    app_settings = AppSettings.model_validate(
        {
            "service": {"name": "inventory", "version": "1.0.0"},
            "logging": {"level": "DEBUG", "format": "text", "sampling": 1.0},
            "docstore": {"api_key": "k", "endpoint": "https://docs.example.test"},
        }
    )

    bootstrap_logging_from_app_settings(
        app_settings,
        env="development",
        logger=logger,
        stream=stream,
    )
    logger.debug("client ready")

    output = stream.getvalue()
    assert "service=inventory" in output
    assert "env=development" in output
    assert "request_id=-" in output
    assert "client ready" in output


async def test_dispatcher_logs_carry_request_id(make_dispatcher: DispatcherFactory) -> None:
    stream = StringIO()
    logger = logging.getLogger("orchid_docstore.dispatcher")
    bootstrap_logging(
        service="inventory",
        env="test",
        level="DEBUG",
        logger=logger,
        stream=stream,
    )
    try:
        dispatcher, _ = make_dispatcher(echo_responder)
        echoed = await dispatcher.send(
            RequestEnvelope("GET", "/v0/users"), lambda response: response.json()
        )
    finally:
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    records = [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
    completed = [record for record in records if record["message"] == "Request completed"]
    assert completed[0]["request_id"] == echoed["request_id"]
    assert completed[0]["status_code"] == 200
    assert completed[0]["http_method"] == "GET"
    assert completed[0]["url_path"] == "/v0/users"


def test_text_format_includes_bound_request() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.text_request")
    bootstrap_logging(
        service="inventory", env="test", log_format="text", logger=logger, stream=stream
    )

    with request_scope("req-9", method="DELETE", path="/v0/users/bob"):
        logger.info("removing", extra={"purge": True})

    output = stream.getvalue()
    assert "request_id=req-9" in output
    assert "request=DELETE /v0/users/bob" in output
    assert "purge=True" in output
