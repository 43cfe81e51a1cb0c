"""Shared fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from fakes import FakeChannelFactory, Responder, echo_responder
from pydantic import SecretStr

from orchid_docstore.channel import ChannelPool
from orchid_docstore.config import ClientSettings
from orchid_docstore.dispatcher import ClientIdentity, Dispatcher
from orchid_docstore.observability.metrics import reset_metrics_recorder


@pytest.fixture(autouse=True)
def _reset_metrics() -> None:
    reset_metrics_recorder()


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(
        api_key=SecretStr("secret-key"),
        endpoint="https://docs.example.test",
    )


@pytest.fixture
def identity(client_settings: ClientSettings) -> ClientIdentity:
    return ClientIdentity.from_settings(client_settings)


@pytest.fixture
def make_dispatcher(
    identity: ClientIdentity,
) -> Callable[..., tuple[Dispatcher, FakeChannelFactory]]:
    def build(
        responder: Responder = echo_responder,
        *,
        max_size: int = 4,
        acquire_timeout_seconds: float | None = 1.0,
    ) -> tuple[Dispatcher, FakeChannelFactory]:
        factory = FakeChannelFactory(responder)
        pool = ChannelPool(
            factory=factory,
            max_size=max_size,
            acquire_timeout_seconds=acquire_timeout_seconds,
        )
        return Dispatcher(pool=pool, identity=identity), factory

    return build
