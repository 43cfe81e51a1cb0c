"""Request and response value types exchanged with a channel."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from urllib.parse import quote, urlencode, urlsplit


def _freeze_headers(headers: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType({str(key): str(value) for key, value in (headers or {}).items()})


def join_path(prefix: str, *segments: str) -> str:
    """Join percent-encoded path segments under ``prefix`` (e.g. ``/v0``)."""
    base = "/" + prefix.strip("/") if prefix.strip("/") else ""
    encoded = "/".join(quote(segment, safe="") for segment in segments)
    return f"{base}/{encoded}" if encoded else base or "/"


def encode_query(params: Mapping[str, Any]) -> str:
    """Encode query parameters, skipping ``None``; booleans become ``true``/``false``."""
    pairs = [
        (key, str(value).lower() if isinstance(value, bool) else str(value))
        for key, value in params.items()
        if value is not None
    ]
    return urlencode(pairs, quote_via=quote)


def _lookup_header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass(frozen=True, slots=True)
class RequestEnvelope:
    """Immutable description of one outbound operation."""

    method: str
    path: str
    query: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query", self.query.lstrip("?&"))
        object.__setattr__(self, "headers", _freeze_headers(self.headers))

    @property
    def url_path(self) -> str:
        """Path plus query string, as written on the request line."""
        return f"{self.path}?{self.query}" if self.query else self.path

    def header(self, name: str) -> str | None:
        return _lookup_header(self.headers, name)

    def with_headers(self, overrides: Mapping[str, str]) -> RequestEnvelope:
        """Return a copy where ``overrides`` replace same-named headers."""
        replaced = {key.lower() for key in overrides}
        merged = {key: value for key, value in self.headers.items() if key.lower() not in replaced}
        merged.update(overrides)
        return RequestEnvelope(
            method=self.method,
            path=self.path,
            query=self.query,
            headers=merged,
            body=self.body,
        )

    @classmethod
    def from_link(cls, link: str) -> RequestEnvelope:
        """Build a GET for a continuation link; any scheme/host part is ignored."""
        parts = urlsplit(link)
        if not parts.path:
            raise ValueError(f"Continuation link has no path: {link!r}")
        return cls(method="GET", path=parts.path, query=parts.query)


@dataclass(frozen=True, slots=True)
class RawResponse:
    """A fully read response: status, headers and body bytes."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    request_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze_headers(self.headers))

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def header(self, name: str) -> str | None:
        return _lookup_header(self.headers, name)

    def json(self) -> Any:
        """Parse the body as JSON; an empty body parses as ``None``."""
        if not self.body.strip():
            return None
        return json.loads(self.body)
