"""Environment variable placeholder resolution.

Supports ``${NAME}`` and ``${NAME:-fallback}``; the fallback applies when the
variable is unset or empty.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Any

from orchid_docstore.config.errors import PlaceholderResolutionError

PLACEHOLDER_PATTERN = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def resolve_placeholders(
    data: Mapping[str, Any],
    *,
    strict: bool = True,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with placeholders in string values resolved.

    Raises:
        PlaceholderResolutionError: If strict=True and a variable without
            fallback is not set.
    """
    env = os.environ if environ is None else environ
    return {key: _resolve(value, str(key), strict, env) for key, value in data.items()}


def _resolve(value: Any, path: str, strict: bool, env: Mapping[str, str]) -> Any:
    if isinstance(value, Mapping):
        return {key: _resolve(item, f"{path}.{key}", strict, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(item, f"{path}[{index}]", strict, env) for index, item in enumerate(value)]
    if not isinstance(value, str):
        return value

    def replace_match(match: re.Match[str]) -> str:
        name = match.group("name")
        resolved = env.get(name)
        if resolved:
            return resolved
        default = match.group("default")
        if default is not None:
            return default
        if resolved is not None:
            return resolved
        if strict:
            raise PlaceholderResolutionError(match.group(0), path)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace_match, value)
