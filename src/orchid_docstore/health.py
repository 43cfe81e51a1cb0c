"""Liveness result reported by ``DocstoreClient.health_check``."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from orchid_docstore.errors import ErrorKind

if TYPE_CHECKING:
    from orchid_docstore.channel import PoolStats


@dataclass(slots=True, frozen=True)
class HealthStatus:
    """Outcome of one round-trip to the service plus a pool snapshot."""

    healthy: bool
    latency_ms: float
    message: str
    error_kind: ErrorKind | None = None
    error_type: str | None = None
    pool: PoolStats | None = None

    @classmethod
    def ok(cls, *, latency_ms: float, pool: PoolStats | None = None) -> HealthStatus:
        return cls(healthy=True, latency_ms=latency_ms, message="ok", pool=pool)

    @classmethod
    def from_error(
        cls,
        exc: BaseException,
        *,
        latency_ms: float,
        pool: PoolStats | None = None,
    ) -> HealthStatus:
        kind = getattr(exc, "kind", None)
        return cls(
            healthy=False,
            latency_ms=latency_ms,
            message=str(exc) or type(exc).__name__,
            error_kind=kind if isinstance(kind, ErrorKind) else None,
            error_type=type(exc).__name__,
            pool=pool,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        payload: dict[str, Any] = {
            "healthy": self.healthy,
            "latency_ms": round(max(0.0, self.latency_ms), 3),
            "message": self.message,
        }
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind.value
        if self.error_type is not None:
            payload["error_type"] = self.error_type
        if self.pool is not None:
            payload["pool"] = asdict(self.pool)
        return payload
