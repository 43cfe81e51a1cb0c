"""Configuration loader with hierarchical merge and validation."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from orchid_docstore.config.errors import ConfigFileNotFoundError, ConfigValidationError
from orchid_docstore.config.models import AppSettings
from orchid_docstore.config.placeholders import resolve_placeholders

DEFAULT_CONFIG_DIR = Path("config")
DEFAULT_BASE_FILE = "appsettings.json"
ENV_VAR_NAME = "DOCSTORE_ENV"
DEFAULT_ENV = "development"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` merged into ``base`` recursively."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigValidationError: If the file is not a JSON object.
    """
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    with path.open(encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigValidationError([{"loc": str(path), "msg": str(exc)}]) from exc

    if not isinstance(data, dict):
        raise ConfigValidationError([{"loc": str(path), "msg": "expected a JSON object"}])
    return data


def load_config(
    *,
    config_dir: Path | str | None = None,
    env: str | None = None,
    strict_placeholders: bool = True,
) -> AppSettings:
    """Load application configuration.

    Sources, later ones win:

    1. ``<config_dir>/appsettings.json``
    2. ``<config_dir>/appsettings.<env>.json`` when present
    3. ``${VAR}`` placeholders resolved from the environment

    Raises:
        ConfigFileNotFoundError: If the base file is missing.
        ConfigValidationError: If the merged configuration is invalid.
        PlaceholderResolutionError: If strict_placeholders=True and a variable is unset.
    """
    directory = DEFAULT_CONFIG_DIR if config_dir is None else Path(config_dir)
    environment = env if env is not None else os.environ.get(ENV_VAR_NAME, DEFAULT_ENV)

    config = load_json_file(directory / DEFAULT_BASE_FILE)

    env_path = directory / f"appsettings.{environment}.json"
    if env_path.exists():
        config = deep_merge(config, load_json_file(env_path))

    config = resolve_placeholders(config, strict=strict_placeholders)

    try:
        return AppSettings.model_validate(config)
    except ValidationError as exc:
        raise ConfigValidationError.from_validation_error(exc) from exc
