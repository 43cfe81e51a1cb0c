"""Configuration-specific exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from orchid_docstore.errors import DocstoreError

if TYPE_CHECKING:
    from pydantic import ValidationError


class ConfigError(DocstoreError):
    """Base exception for configuration errors."""


class ConfigFileNotFoundError(ConfigError):
    """Raised when ``appsettings.json`` is missing from the config directory."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Configuration file not found: {path}")


class ConfigValidationError(ConfigError):
    """Raised when a settings file is malformed or fails model validation.

    ``errors`` holds one ``{"loc", "msg"}`` entry per problem, where ``loc`` is
    either a file path or a ``docstore -> pool -> max_size`` style field path.
    """

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        detail = "\n".join(
            f"  - {err.get('loc', 'unknown')}: {err.get('msg', 'validation error')}"
            for err in errors
        )
        super().__init__(f"Configuration validation failed:\n{detail}")

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> ConfigValidationError:
        return cls(
            [
                {"loc": " -> ".join(str(part) for part in err["loc"]), "msg": err["msg"]}
                for err in exc.errors()
            ]
        )

    @property
    def locations(self) -> list[str]:
        return [err.get("loc", "unknown") for err in self.errors]


class PlaceholderResolutionError(ConfigError):
    """Raised when a ``${NAME}`` placeholder has no value and no fallback."""

    def __init__(self, placeholder: str, key_path: str) -> None:
        self.placeholder = placeholder
        self.key_path = key_path
        super().__init__(
            f"Cannot resolve placeholder '{placeholder}' at '{key_path}': "
            f"environment variable not set"
        )
