"""In-memory channels and responders for exercising the request pipeline."""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from orchid_docstore.envelope import RawResponse, RequestEnvelope
from orchid_docstore.errors import ChannelBusyError

Responder = Callable[[RequestEnvelope], RawResponse | Awaitable[RawResponse]]


def json_response(
    status: int,
    body: Any = None,
    *,
    headers: Mapping[str, str] | None = None,
    request_id: str | None = None,
) -> RawResponse:
    payload = b"" if body is None else json.dumps(body).encode()
    return RawResponse(status=status, headers=headers or {}, body=payload, request_id=request_id)


class FakeChannel:
    """In-memory channel answering every exchange through ``responder``."""

    def __init__(self, responder: Responder, *, index: int = 0) -> None:
        self.responder = responder
        self.index = index
        self.requests: list[RequestEnvelope] = []
        self.closed = False
        self._busy = False

    @property
    def is_open(self) -> bool:
        return not self.closed

    @property
    def busy(self) -> bool:
        return self._busy

    async def exchange(self, envelope: RequestEnvelope) -> RawResponse:
        if self._busy:
            raise ChannelBusyError("Channel already has a request in flight")
        self._busy = True
        try:
            self.requests.append(envelope)
            result = self.responder(envelope)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self._busy = False

    async def close(self) -> None:
        self.closed = True


class FakeChannelFactory:
    """Channel factory recording every channel it opens."""

    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.channels: list[FakeChannel] = []

    async def __call__(self) -> FakeChannel:
        channel = FakeChannel(self.responder, index=len(self.channels))
        self.channels.append(channel)
        return channel

    @property
    def requests(self) -> list[RequestEnvelope]:
        return [request for channel in self.channels for request in channel.requests]


async def echo_responder(envelope: RequestEnvelope) -> RawResponse:
    """Answer after an optional ``delay`` query parameter, echoing the request."""
    params = dict(part.split("=", 1) for part in envelope.query.split("&") if "=" in part)
    delay = float(params.get("delay", "0"))
    if delay:
        await asyncio.sleep(delay)
    return json_response(
        200,
        {
            "path": envelope.path,
            "query": envelope.query,
            "request_id": envelope.header("x-request-id"),
        },
        headers={"x-request-id": f"srv-{envelope.header('x-request-id')}"},
        request_id=f"srv-{envelope.header('x-request-id')}",
    )


