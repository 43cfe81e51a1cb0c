"""Request dispatch: one exchange per envelope, correlated to its outcome handle."""

from __future__ import annotations

import asyncio
import base64
import logging
import platform
import uuid
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from time import perf_counter
from typing import Any, ClassVar, TypeVar

from orchid_docstore.channel import Channel, ChannelPool
from orchid_docstore.classifier import DEFAULT_SUCCESS_STATUSES, settle_response
from orchid_docstore.config.models import ClientSettings
from orchid_docstore.envelope import RawResponse, RequestEnvelope
from orchid_docstore.errors import DocstoreError, ResponseDecodeError, TransportError
from orchid_docstore.observability._observable import ObservableMixin
from orchid_docstore.observability.logging import request_scope
from orchid_docstore.observability.metrics import MetricsRecorder
from orchid_docstore.observability.otel import client_span
from orchid_docstore.outcome import CompletionSlot, OutcomeHandle

T = TypeVar("T")

REQUEST_ID_HEADER = "x-request-id"

logger = logging.getLogger(__name__)


def _client_version() -> str:
    try:
        return version("orchid-docstore")
    except PackageNotFoundError:
        return "0.0.0"


def build_user_agent(suffix: str | None = None) -> str:
    """``OrchidDocstorePython/<version> (Python/<x.y.z>; <implementation>)``."""
    agent = (
        f"OrchidDocstorePython/{_client_version()} "
        f"(Python/{platform.python_version()}; {platform.python_implementation()})"
    )
    return f"{agent} {suffix}" if suffix else agent


def basic_authorization(api_key: str) -> str:
    token = base64.b64encode(f"{api_key}:".encode()).decode("ascii")
    return f"Basic {token}"


@dataclass(slots=True, frozen=True)
class ClientIdentity:
    """Standard headers attached to every request, computed once per client."""

    host: str
    user_agent: str
    authorization: str

    def __repr__(self) -> str:
        return f"ClientIdentity(host={self.host!r}, user_agent={self.user_agent!r})"

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> ClientIdentity:
        return cls(
            host=settings.host,
            user_agent=build_user_agent(settings.user_agent),
            authorization=basic_authorization(settings.api_key.get_secret_value()),
        )

    def standard_headers(self) -> dict[str, str]:
        return {
            "Host": self.host,
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip",
            "Authorization": self.authorization,
        }


@dataclass(slots=True)
class Dispatcher(ObservableMixin):
    """Sends envelopes over pooled channels and settles their outcome handles.

    Each ``send`` schedules exactly one exchange and returns immediately; the
    handle's slot is completed by that exchange alone, so responses can never be
    delivered to the wrong caller.
    """

    _resource_name: ClassVar[str] = "docstore"

    pool: ChannelPool
    identity: ClientIdentity
    _metrics: MetricsRecorder | None = None
    _tasks: set[asyncio.Task[None]] = field(default_factory=set)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def send(
        self,
        envelope: RequestEnvelope,
        decoder: Callable[[RawResponse], T],
        *,
        success_statuses: Collection[int] = DEFAULT_SUCCESS_STATUSES,
    ) -> OutcomeHandle[T]:
        """Dispatch ``envelope`` and return its handle without waiting.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        slot: CompletionSlot[T] = CompletionSlot(loop)
        handle = OutcomeHandle(
            slot,
            envelope=envelope,
            decoder=decoder,
            success_statuses=success_statuses,
            sender=self,
        )
        task = loop.create_task(self._run(envelope, decoder, frozenset(success_statuses), slot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    async def close(self) -> None:
        """Cancel outstanding exchanges; their handles fail."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(
        self,
        envelope: RequestEnvelope,
        decoder: Callable[[RawResponse], T],
        success_statuses: frozenset[int],
        slot: CompletionSlot[T],
    ) -> None:
        request_id = uuid.uuid4().hex
        operation = envelope.method.lower()
        started = perf_counter()

        try:
            channel = await self.pool.acquire()
        except asyncio.CancelledError:
            slot.fail(TransportError("Request cancelled before dispatch", request_id=request_id))
            raise
        except Exception as exc:
            self._observe_error(operation, started, exc)
            slot.fail(exc)
            return

        outbound = envelope.with_headers(
            {**self.identity.standard_headers(), REQUEST_ID_HEADER: request_id}
        )

        with request_scope(request_id, method=envelope.method, path=envelope.path):
            response = await self._exchange(channel, outbound, slot, request_id, operation, started)
            if response is None:
                return

            try:
                value = settle_response(
                    response, decoder, success_statuses, request_id=request_id
                )
            except DocstoreError as exc:
                self._observe_error(operation, started, exc)
                logger.debug(
                    "Request failed",
                    extra={"status_code": response.status, "error_kind": str(exc.kind)},
                )
                slot.fail(exc)
                return
            except Exception as exc:
                error = ResponseDecodeError(
                    response.status,
                    f"{type(exc).__name__}: {exc}",
                    request_id=response.request_id or request_id,
                )
                error.__cause__ = exc
                self._observe_error(operation, started, error)
                logger.exception(
                    "Response classification failed",
                    extra={"status_code": response.status},
                )
                slot.fail(error)
                return

            self._observe_operation(operation, started, success=True)
            logger.debug("Request completed", extra={"status_code": response.status})
            slot.resolve(value)

    async def _exchange(
        self,
        channel: Channel,
        envelope: RequestEnvelope,
        slot: CompletionSlot[Any],
        request_id: str,
        operation: str,
        started: float,
    ) -> RawResponse | None:
        logger.debug("Sending request")
        try:
            with client_span(
                method=envelope.method,
                path=envelope.path,
                request_id=request_id,
                host=self.identity.host,
            ) as span:
                response = await channel.exchange(envelope)
                span.set_status_code(response.status)
        except asyncio.CancelledError:
            slot.fail(TransportError("Request cancelled while in flight", request_id=request_id))
            await self.pool.release(channel, healthy=False)
            raise
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, TransportError)
                else TransportError(f"{type(exc).__name__}: {exc}", request_id=request_id)
            )
            if error is not exc:
                error.__cause__ = exc
            elif error.request_id is None:
                error.request_id = request_id
            logger.warning(
                "Channel fault during exchange",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            self._observe_error(operation, started, error)
            # slot is failed before the channel goes back to the pool
            slot.fail(error)
            await self.pool.release(channel, healthy=False)
            return None

        await self.pool.release(channel, healthy=True)
        self._metrics_recorder().observe_response(
            method=envelope.method, status_code=response.status
        )
        return response
