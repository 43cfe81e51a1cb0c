"""Completion slots and the caller-facing outcome handle."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Collection, Generator
from typing import Any, Generic, Protocol, TypeVar

from orchid_docstore.envelope import RawResponse, RequestEnvelope
from orchid_docstore.errors import RequestTimeoutError

T = TypeVar("T")


class Paginated(Protocol):
    """Results that may point at a continuation page."""

    @property
    def next_link(self) -> str | None: ...


class RequestSender(Protocol):
    def send(
        self,
        envelope: RequestEnvelope,
        decoder: Callable[[RawResponse], T],
        *,
        success_statuses: Collection[int] = ...,
    ) -> OutcomeHandle[T]: ...


class CompletionSlot(Generic[T]):
    """Single-assignment container for the outcome of one request.

    The first ``resolve``/``fail`` wins; later writes are ignored and report
    ``False``.
    """

    __slots__ = ("_future",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        resolved_loop = asyncio.get_running_loop() if loop is None else loop
        self._future: asyncio.Future[T] = resolved_loop.create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def future(self) -> asyncio.Future[T]:
        return self._future

    def resolve(self, value: T) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def fail(self, error: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True


class OutcomeHandle(Generic[T]):
    """Asynchronous result of one request.

    Await it directly, bound the wait with ``result(timeout=...)``, or register
    callbacks with ``on_complete``. A timed-out wait leaves the request running:
    the slot still resolves when the response arrives.
    """

    __slots__ = ("_slot", "_sender", "_envelope", "_decoder", "_success_statuses")

    def __init__(
        self,
        slot: CompletionSlot[T],
        *,
        envelope: RequestEnvelope,
        decoder: Callable[[RawResponse], T],
        success_statuses: Collection[int],
        sender: RequestSender | None = None,
    ) -> None:
        self._slot = slot
        self._sender = sender
        self._envelope = envelope
        self._decoder = decoder
        self._success_statuses = frozenset(success_statuses)

    def __repr__(self) -> str:
        state = "done" if self.done else "pending"
        return f"<OutcomeHandle {self._envelope.method} {self._envelope.url_path} {state}>"

    @property
    def envelope(self) -> RequestEnvelope:
        return self._envelope

    @property
    def done(self) -> bool:
        return self._slot.done

    async def result(self, timeout: float | None = None) -> T:
        """Wait for the outcome; raise its error or ``RequestTimeoutError``."""
        try:
            return await asyncio.wait_for(asyncio.shield(self._slot.future), timeout=timeout)
        except TimeoutError as exc:
            if self._slot.done:
                return self._slot.future.result()
            raise RequestTimeoutError(timeout) from exc

    def __await__(self) -> Generator[Any, None, T]:
        return self.result().__await__()

    def exception(self) -> BaseException | None:
        """Failure of a completed handle, ``None`` on success.

        Raises ``asyncio.InvalidStateError`` while still pending.
        """
        return self._slot.future.exception()

    def on_complete(
        self,
        on_success: Callable[[T], Any],
        on_failure: Callable[[BaseException], Any],
    ) -> None:
        """Invoke exactly one callback, once, from the event loop."""

        def dispatch(future: asyncio.Future[T]) -> None:
            if future.cancelled():
                on_failure(asyncio.CancelledError())
                return
            error = future.exception()
            if error is None:
                on_success(future.result())
            else:
                on_failure(error)

        self._slot.future.add_done_callback(dispatch)

    def next(self) -> OutcomeHandle[T] | None:
        """Dispatch the continuation request of a paginated result.

        Returns ``None`` when the result carries no ``next_link``. Raises the
        handle's error if it failed, and ``asyncio.InvalidStateError`` while it
        is still pending.
        """
        value = self._slot.future.result()
        link = getattr(value, "next_link", None)
        if link is None:
            return None
        if self._sender is None:
            raise RuntimeError("This outcome handle cannot dispatch follow-up requests")
        return self._sender.send(
            RequestEnvelope.from_link(link),
            self._decoder,
            success_statuses=self._success_statuses,
        )

    async def pages(self, timeout: float | None = None) -> AsyncIterator[T]:
        """Yield this result and every continuation page in order."""
        handle: OutcomeHandle[T] | None = self
        while handle is not None:
            yield await handle.result(timeout=timeout)
            handle = handle.next()
