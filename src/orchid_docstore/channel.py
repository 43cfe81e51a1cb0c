"""Connection channels and the bounded channel pool."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from time import monotonic, perf_counter
from typing import Any, ClassVar, Protocol, runtime_checkable

import aiohttp
from yarl import URL

from orchid_docstore.config.models import ClientSettings
from orchid_docstore.envelope import RawResponse, RequestEnvelope
from orchid_docstore.errors import (
    ChannelBusyError,
    ChannelUnavailableError,
    TransportError,
)
from orchid_docstore.observability._observable import ObservableMixin
from orchid_docstore.observability.metrics import MetricsRecorder

logger = logging.getLogger(__name__)


@runtime_checkable
class Channel(Protocol):
    """A single persistent connection carrying at most one request at a time."""

    @property
    def is_open(self) -> bool: ...

    @property
    def busy(self) -> bool: ...

    async def exchange(self, envelope: RequestEnvelope) -> RawResponse:
        """Write one request and read its complete response."""
        ...

    async def close(self) -> None: ...


ChannelFactory = Callable[[], Awaitable[Channel]]


class AiohttpChannel:
    """Channel backed by an aiohttp session restricted to one keep-alive connection."""

    __slots__ = ("_session", "_endpoint", "_request_id_header", "_busy", "_closed")

    def __init__(self, session: Any, *, endpoint: str, request_id_header: str) -> None:
        self._session = session
        self._endpoint = endpoint.rstrip("/")
        self._request_id_header = request_id_header
        self._busy = False
        self._closed = False

    @classmethod
    async def open(cls, settings: ClientSettings) -> AiohttpChannel:
        connector = aiohttp.TCPConnector(
            limit=1,
            limit_per_host=1,
            ssl=settings.use_ssl,
            enable_cleanup_closed=True,
        )
        session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(
                total=settings.request_timeout_seconds,
                connect=settings.connect_timeout_seconds,
            ),
            version=aiohttp.HttpVersion11,
            auto_decompress=True,
            skip_auto_headers=("User-Agent", "Accept-Encoding"),
        )
        return cls(
            session,
            endpoint=settings.endpoint,
            request_id_header=settings.request_id_header,
        )

    @property
    def is_open(self) -> bool:
        return not self._closed and not self._session.closed

    @property
    def busy(self) -> bool:
        return self._busy

    async def exchange(self, envelope: RequestEnvelope) -> RawResponse:
        if self._busy:
            raise ChannelBusyError("Channel already has a request in flight")
        if not self.is_open:
            raise TransportError("Channel is closed")

        url = URL(f"{self._endpoint}{envelope.url_path}", encoded=True)
        self._busy = True
        try:
            async with self._session.request(
                envelope.method,
                url,
                headers=dict(envelope.headers),
                data=envelope.body,
            ) as response:
                body = await response.read()
                headers = dict(response.headers)
                status = response.status
                server_request_id = response.headers.get(self._request_id_header)
        except (aiohttp.ClientError, TimeoutError) as exc:
            self._closed = True
            raise TransportError(
                f"{envelope.method} {envelope.path} failed: {type(exc).__name__}: {exc}"
            ) from exc
        finally:
            self._busy = False

        return RawResponse(
            status=status,
            headers=headers,
            body=body,
            request_id=server_request_id,
        )

    async def close(self) -> None:
        self._closed = True
        if not self._session.closed:
            await self._session.close()


def aiohttp_channel_factory(settings: ClientSettings) -> ChannelFactory:
    """Factory opening ``AiohttpChannel`` instances for a pool."""

    async def factory() -> Channel:
        return await AiohttpChannel.open(settings)

    return factory


@dataclass(slots=True, frozen=True)
class PoolStats:
    """Snapshot of channel pool occupancy."""

    in_use: int
    idle: int
    max_size: int


@dataclass(slots=True)
class _IdleChannel:
    channel: Channel
    since: float


@dataclass(slots=True)
class ChannelPool(ObservableMixin):
    """Bounded pool of channels; each checked-out channel serves one request.

    ``acquire`` reuses an idle channel, opens a new one while fewer than
    ``max_size`` exist, and otherwise waits up to ``acquire_timeout_seconds``.
    """

    _resource_name: ClassVar[str] = "channel_pool"

    factory: ChannelFactory
    min_size: int = 0
    max_size: int = 8
    acquire_timeout_seconds: float | None = 10.0
    max_idle_seconds: float | None = 60.0
    _metrics: MetricsRecorder | None = None
    _idle: deque[_IdleChannel] = field(default_factory=deque)
    _in_use: set[Channel] = field(default_factory=set)
    _waiters: deque[asyncio.Future[None]] = field(default_factory=deque)
    _opening: int = 0
    _closed: bool = False

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be >= 1")
        if not 0 <= self.min_size <= self.max_size:
            raise ValueError("min_size must be between 0 and max_size")

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        *,
        factory: ChannelFactory | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> ChannelPool:
        return cls(
            factory=aiohttp_channel_factory(settings) if factory is None else factory,
            min_size=settings.pool.min_size,
            max_size=settings.pool.max_size,
            acquire_timeout_seconds=settings.pool.acquire_timeout_seconds,
            max_idle_seconds=settings.pool.max_idle_seconds,
            _metrics=metrics,
        )

    @property
    def size(self) -> int:
        return len(self._idle) + len(self._in_use) + self._opening

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> PoolStats:
        return PoolStats(in_use=len(self._in_use), idle=len(self._idle), max_size=self.max_size)

    async def start(self) -> None:
        """Open ``min_size`` channels up front."""
        while self.size < self.min_size:
            self._opening += 1
            try:
                channel = await self.factory()
            finally:
                self._opening -= 1
            self._idle.append(_IdleChannel(channel, monotonic()))
        self._report_pool()

    async def acquire(self) -> Channel:
        """Check out a channel for exclusive use.

        Raises:
            ChannelUnavailableError: If the pool is closed or no channel frees
                up within ``acquire_timeout_seconds``.
        """
        started = perf_counter()
        try:
            channel = await asyncio.wait_for(self._checkout(), timeout=self.acquire_timeout_seconds)
        except TimeoutError as exc:
            error = ChannelUnavailableError(
                f"No channel available within {self.acquire_timeout_seconds}s "
                f"(max_size={self.max_size})"
            )
            self._observe_error("acquire", started, error)
            raise error from exc
        except ChannelUnavailableError as exc:
            self._observe_error("acquire", started, exc)
            raise

        self._observe_operation("acquire", started, success=True)
        self._report_pool()
        return channel

    async def release(self, channel: Channel, *, healthy: bool = True) -> None:
        """Return a checked-out channel; unhealthy or closed channels are discarded."""
        self._in_use.discard(channel)
        if healthy and channel.is_open and not self._closed:
            self._idle.append(_IdleChannel(channel, monotonic()))
        else:
            await self._close_quietly(channel)
        self._wake_one()
        self._report_pool()

    async def close(self) -> None:
        """Close idle channels and fail pending and future acquisitions."""
        self._closed = True
        idle = [entry.channel for entry in self._idle]
        self._idle.clear()
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
        for channel in idle:
            await self._close_quietly(channel)
        self._report_pool()

    async def _checkout(self) -> Channel:
        while True:
            if self._closed:
                raise ChannelUnavailableError("Channel pool is closed")

            await self._shrink_idle()
            while self._idle:
                entry = self._idle.pop()
                if entry.channel.is_open:
                    self._in_use.add(entry.channel)
                    return entry.channel
                await self._close_quietly(entry.channel)

            if self.size < self.max_size:
                return await self._open_channel()

            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    self._wake_one()
                raise

    async def _open_channel(self) -> Channel:
        self._opening += 1
        try:
            channel = await self.factory()
        except asyncio.CancelledError:
            self._opening -= 1
            self._wake_one()
            raise
        except Exception as exc:
            self._opening -= 1
            self._wake_one()
            raise ChannelUnavailableError(f"Could not open channel: {exc}") from exc

        self._opening -= 1
        if self._closed:
            await self._close_quietly(channel)
            raise ChannelUnavailableError("Channel pool is closed")
        self._in_use.add(channel)
        logger.debug("Opened channel", extra={"pool_size": self.size})
        return channel

    async def _shrink_idle(self) -> None:
        if self.max_idle_seconds is None:
            return
        deadline = monotonic() - self.max_idle_seconds
        # idle deque is ordered oldest first
        while self._idle and self.size > self.min_size and self._idle[0].since < deadline:
            entry = self._idle.popleft()
            await self._close_quietly(entry.channel)

    def _wake_one(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

    async def _close_quietly(self, channel: Channel) -> None:
        try:
            await channel.close()
        except Exception as exc:
            logger.warning(
                "Failed to close channel",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )

    def _report_pool(self) -> None:
        stats = self.stats()
        self._metrics_recorder().observe_pool(
            in_use=stats.in_use,
            idle=stats.idle,
            max_size=stats.max_size,
        )
