"""Document store client facade."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from time import perf_counter
from types import TracebackType
from typing import Any, TypeVar

from orchid_docstore.channel import ChannelFactory, ChannelPool
from orchid_docstore.classifier import DEFAULT_SUCCESS_STATUSES
from orchid_docstore.config.models import ClientSettings
from orchid_docstore.dispatcher import ClientIdentity, Dispatcher
from orchid_docstore.envelope import RawResponse, RequestEnvelope, encode_query, join_path
from orchid_docstore.health import HealthStatus
from orchid_docstore.kv import (
    DELETE_SUCCESS_STATUSES,
    JSON_CONTENT_TYPE,
    KvListResource,
    KvMetadata,
    KvResource,
    encode_value,
    parse_etag,
    parse_reftime,
)
from orchid_docstore.observability.metrics import MetricsRecorder
from orchid_docstore.outcome import OutcomeHandle

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _decode_nothing(response: RawResponse) -> None:
    del response


def _decode_created(collection: str) -> Callable[[RawResponse], KvMetadata]:
    def decode(response: RawResponse) -> KvMetadata:
        location = response.header("Location")
        if not location:
            raise ValueError("Create response is missing a Location header")
        metadata = KvMetadata.from_location(
            location, reftime=parse_reftime(response.header("Last-Modified"))
        )
        if metadata is None or metadata.collection != collection:
            raise ValueError(f"Unexpected Location header: {location!r}")
        ref = parse_etag(response.header("ETag"))
        if ref is None:
            return metadata
        return KvMetadata(
            collection=metadata.collection,
            key=metadata.key,
            ref=ref,
            reftime=metadata.reftime,
        )

    return decode


@dataclass(slots=True)
class DocstoreClient:
    """Asynchronous client for the document store HTTP API.

    Example::

        async with await DocstoreClient.create(ClientSettings.from_env()) as client:
            await client.kv("users", "alice").put({"name": "Alice"})
            async for page in client.list_collection("users").limit(50).get().pages():
                ...
    """

    settings: ClientSettings
    dispatcher: Dispatcher

    @classmethod
    async def create(
        cls,
        settings: ClientSettings,
        *,
        channel_factory: ChannelFactory | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> DocstoreClient:
        """Build the pool and dispatcher and pre-open ``pool.min_size`` channels."""
        pool = ChannelPool.from_settings(settings, factory=channel_factory, metrics=metrics)
        dispatcher = Dispatcher(
            pool=pool,
            identity=ClientIdentity.from_settings(settings),
            _metrics=metrics,
        )
        await pool.start()
        logger.info(
            "Document store client ready",
            extra={
                "endpoint": settings.endpoint,
                "pool_min_size": settings.pool.min_size,
                "pool_max_size": settings.pool.max_size,
            },
        )
        return cls(settings=settings, dispatcher=dispatcher)

    @property
    def prefix(self) -> str:
        return "/" + self.settings.api_version.strip("/")

    @property
    def pool(self) -> ChannelPool:
        return self.dispatcher.pool

    @property
    def is_closed(self) -> bool:
        return self.dispatcher.pool.closed

    def uri(self, *segments: str) -> str:
        """Versioned, percent-encoded request path for ``segments``."""
        return join_path(self.prefix, *segments)

    def send(
        self,
        envelope: RequestEnvelope,
        decoder: Callable[[RawResponse], T],
        *,
        success_statuses: Collection[int] = DEFAULT_SUCCESS_STATUSES,
    ) -> OutcomeHandle[T]:
        """Dispatch a raw envelope."""
        return self.dispatcher.send(envelope, decoder, success_statuses=success_statuses)

    def kv(self, collection: str, key: str) -> KvResource:
        return KvResource(self.dispatcher, self.prefix, collection, key)

    def list_collection(self, collection: str) -> KvListResource:
        if not collection:
            raise ValueError("collection must not be empty")
        return KvListResource(self.dispatcher, self.prefix, collection)

    def post_value(self, collection: str, value: Any) -> OutcomeHandle[KvMetadata]:
        """Store ``value`` under a service-generated key."""
        if not collection:
            raise ValueError("collection must not be empty")
        envelope = RequestEnvelope(
            method="POST",
            path=self.uri(collection),
            headers={"Content-Type": JSON_CONTENT_TYPE},
            body=encode_value(value),
        )
        return self.send(envelope, _decode_created(collection))

    def delete_collection(self, collection: str) -> OutcomeHandle[bool]:
        """Drop a collection and everything in it."""
        if not collection:
            raise ValueError("collection must not be empty")
        envelope = RequestEnvelope(
            method="DELETE",
            path=self.uri(collection),
            query=encode_query({"force": True}),
        )
        return self.send(
            envelope,
            lambda response: response.status == 204,
            success_statuses=DELETE_SUCCESS_STATUSES,
        )

    async def ping(self, collection: str | None = None, *, timeout: float | None = None) -> None:
        """Round-trip a HEAD request; raises the classified error on failure."""
        path = self.uri(collection) if collection else self.uri()
        await self.send(RequestEnvelope(method="HEAD", path=path), _decode_nothing).result(
            timeout=timeout
        )

    async def health_check(self, *, timeout: float | None = 5.0) -> HealthStatus:
        """Ping the service and report liveness without raising."""
        start = perf_counter()
        try:
            await self.ping(timeout=timeout)
        except Exception as exc:
            return HealthStatus.from_error(
                exc,
                latency_ms=(perf_counter() - start) * 1000,
                pool=self.pool.stats(),
            )
        return HealthStatus.ok(latency_ms=(perf_counter() - start) * 1000, pool=self.pool.stats())

    async def close(self) -> None:
        """Cancel in-flight requests and close every channel."""
        await self.dispatcher.close()
        await self.dispatcher.pool.close()

    async def __aenter__(self) -> DocstoreClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


async def create_docstore_client(
    settings: ClientSettings,
    *,
    channel_factory: ChannelFactory | None = None,
    metrics: MetricsRecorder | None = None,
) -> DocstoreClient:
    """Factory mirroring ``DocstoreClient.create``."""
    return await DocstoreClient.create(settings, channel_factory=channel_factory, metrics=metrics)
