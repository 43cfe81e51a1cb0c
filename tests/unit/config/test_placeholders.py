"""Unit tests for recursive placeholder resolution."""

from __future__ import annotations

import pytest

from orchid_docstore.config.errors import PlaceholderResolutionError
from orchid_docstore.config.placeholders import resolve_placeholders


def test_resolve_placeholders_recurses_through_nested_lists_and_dicts() -> None:
    resolved = resolve_placeholders(
        {
            "items": [{"v": "${X}"}, ["${X}", {"nested": "pre-${X}-post"}], "${X}"],
            "other": 42,
        },
        environ={"X": "ok"},
    )

    assert resolved == {
        "items": [{"v": "ok"}, ["ok", {"nested": "pre-ok-post"}], "ok"],
        "other": 42,
    }


def test_default_applies_when_variable_is_unset_or_empty() -> None:
    data = {"endpoint": "${HOST:-http://localhost:8080}"}

    assert resolve_placeholders(data, environ={}) == {"endpoint": "http://localhost:8080"}
    assert resolve_placeholders(data, environ={"HOST": ""}) == {
        "endpoint": "http://localhost:8080"
    }
    assert resolve_placeholders(data, environ={"HOST": "https://docs"}) == {
        "endpoint": "https://docs"
    }


def test_empty_variable_without_default_resolves_to_empty() -> None:
    assert resolve_placeholders({"v": "${EMPTY}"}, environ={"EMPTY": ""}) == {"v": ""}


def test_resolve_placeholders_reports_nested_path_in_lists() -> None:
    with pytest.raises(PlaceholderResolutionError) as exc_info:
        resolve_placeholders({"items": [{"deep": "${MISSING_ENV}"}]}, environ={})

    assert "items[0].deep" in str(exc_info.value)


def test_resolve_placeholders_keeps_unresolved_when_non_strict() -> None:
    resolved = resolve_placeholders(
        {"items": [{"deep": "${MISSING_ENV}"}, ["${MISSING_ENV}"]]},
        strict=False,
        environ={},
    )

    assert resolved == {"items": [{"deep": "${MISSING_ENV}"}, ["${MISSING_ENV}"]]}


def test_reads_process_environment_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCSTORE_PLACEHOLDER_CHECK", "from-env")

    assert resolve_placeholders({"v": "${DOCSTORE_PLACEHOLDER_CHECK}"}) == {"v": "from-env"}
