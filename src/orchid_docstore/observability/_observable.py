"""Metrics hooks shared by the client, dispatcher and channel pool."""

from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from orchid_docstore.observability.metrics import MetricsRecorder


class ObservableMixin:
    """Mixin providing ``_observe_operation``, ``_observe_error`` and ``_metrics_recorder``.

    Subclasses set ``_resource_name`` (a ``ClassVar[str]`` on slotted
    dataclasses) and may provide ``_metrics`` to override the process-level
    recorder.
    """

    _resource_name: str
    _metrics: MetricsRecorder | None

    def _metrics_recorder(self) -> MetricsRecorder:
        from orchid_docstore.observability.metrics import get_metrics_recorder

        return get_metrics_recorder() if self._metrics is None else self._metrics

    def _observe_operation(self, operation: str, started: float, *, success: bool) -> None:
        self._metrics_recorder().observe_operation(
            resource=self._resource_name,
            operation=operation,
            duration_seconds=perf_counter() - started,
            success=success,
        )

    def _observe_error(self, operation: str, started: float, exc: BaseException) -> None:
        self._observe_operation(operation, started, success=False)
        kind = getattr(exc, "kind", None)
        self._metrics_recorder().observe_error(
            resource=self._resource_name,
            operation=operation,
            error_type=str(kind) if kind is not None else type(exc).__name__,
        )
