"""Typed configuration models with Pydantic validation."""

from __future__ import annotations

import os
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

DEFAULT_ENV_PREFIX = "DOCSTORE_"


class ServiceSettings(BaseModel):
    """Identification of the application embedding the client."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Service name")
    version: str = Field(default="0.0.0", min_length=1, description="Service version")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log output format")
    sampling: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Optional sampling ratio for low-severity logs",
    )


class PoolSettings(BaseModel):
    """Channel pool bounds."""

    model_config = ConfigDict(frozen=True)

    min_size: int = Field(default=0, ge=0, description="Channels opened at startup and kept")
    max_size: int = Field(default=8, ge=1, description="Maximum concurrent channels")
    acquire_timeout_seconds: float | None = Field(
        default=10.0,
        gt=0.0,
        description="How long a request may wait for a free channel; None waits forever",
    )
    max_idle_seconds: float | None = Field(
        default=60.0,
        gt=0.0,
        description="Idle channels above min_size older than this are closed",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> PoolSettings:
        if self.min_size > self.max_size:
            raise ValueError("pool min_size must not exceed max_size")
        return self


class ClientSettings(BaseModel):
    """Connection and identity settings of the document store client."""

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr = Field(..., min_length=1, description="API key used for Basic auth")
    endpoint: str = Field(..., min_length=1, description="Service base URL")
    api_version: str = Field(default="v0", min_length=1, description="API path prefix")
    user_agent: str | None = Field(
        default=None,
        min_length=1,
        description="Optional product token appended to the client User-Agent",
    )
    request_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Total time allowed for one exchange"
    )
    connect_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Socket connect timeout in seconds"
    )
    request_id_header: str = Field(
        default="x-request-id",
        min_length=1,
        description="Response header carrying the service correlation id",
    )
    pool: PoolSettings = Field(default_factory=PoolSettings)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in {"http", "https"} or not parts.hostname:
            raise ValueError("endpoint must be an absolute http(s) URL")
        return value.rstrip("/")

    @property
    def host(self) -> str:
        """Host header value derived from the endpoint."""
        parts = urlsplit(self.endpoint)
        return parts.netloc.rsplit("@", 1)[-1]

    @property
    def use_ssl(self) -> bool:
        return urlsplit(self.endpoint).scheme == "https"

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_ENV_PREFIX) -> ClientSettings:
        """Build settings from ``<prefix>API_KEY``, ``<prefix>ENDPOINT`` and friends.

        Optional fields fall back to class defaults when the env var is absent.
        """

        def env(name: str) -> str | None:
            value = os.getenv(f"{prefix}{name}")
            if value is None or value.strip() == "":
                return None
            return value.strip()

        def env_number(name: str, parse: type[int] | type[float]) -> int | float | None:
            value = env(name)
            if value is None:
                return None
            try:
                return parse(value)
            except ValueError as exc:
                raise ValueError(
                    f"Invalid {prefix}{name}={value!r}: expected {parse.__name__}"
                ) from exc

        api_key = env("API_KEY")
        endpoint = env("ENDPOINT")
        if api_key is None or endpoint is None:
            raise ValueError(f"{prefix}API_KEY and {prefix}ENDPOINT must be set")

        client_values = {
            "api_version": env("API_VERSION"),
            "user_agent": env("USER_AGENT"),
            "request_timeout_seconds": env_number("REQUEST_TIMEOUT_SECONDS", float),
            "connect_timeout_seconds": env_number("CONNECT_TIMEOUT_SECONDS", float),
            "request_id_header": env("REQUEST_ID_HEADER"),
        }
        pool_values = {
            "min_size": env_number("POOL_MIN_SIZE", int),
            "max_size": env_number("POOL_MAX_SIZE", int),
            "acquire_timeout_seconds": env_number("POOL_ACQUIRE_TIMEOUT_SECONDS", float),
            "max_idle_seconds": env_number("POOL_MAX_IDLE_SECONDS", float),
        }
        return cls(
            api_key=SecretStr(api_key),
            endpoint=endpoint,
            pool=PoolSettings(**{k: v for k, v in pool_values.items() if v is not None}),
            **{k: v for k, v in client_values.items() if v is not None},
        )


class AppSettings(BaseModel):
    """Root of ``appsettings.json``."""

    model_config = ConfigDict(frozen=True)

    service: ServiceSettings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    docstore: ClientSettings
