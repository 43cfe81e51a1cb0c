"""Asynchronous client for a JSON document store over pooled HTTP/1.1 channels."""

from importlib.metadata import PackageNotFoundError, version

from orchid_docstore.channel import AiohttpChannel, Channel, ChannelPool, PoolStats
from orchid_docstore.client import DocstoreClient, create_docstore_client
from orchid_docstore.config import AppSettings, ClientSettings, PoolSettings, load_config
from orchid_docstore.dispatcher import ClientIdentity, Dispatcher
from orchid_docstore.envelope import RawResponse, RequestEnvelope
from orchid_docstore.errors import (
    ChannelBusyError,
    ChannelUnavailableError,
    DocstoreError,
    ErrorKind,
    MissingDependencyError,
    PatchApplyError,
    PatchDecodeError,
    RequestError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
)
from orchid_docstore.health import HealthStatus
from orchid_docstore.jsonpatch import (
    ANY_VALUE,
    PatchBuilder,
    PatchDocument,
    PatchOp,
    PatchOpType,
    apply_patch,
)
from orchid_docstore.kv import KvList, KvListResource, KvMetadata, KvObject, KvResource
from orchid_docstore.observability import (
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    configure_prometheus_metrics,
    request_scope,
)
from orchid_docstore.outcome import CompletionSlot, OutcomeHandle

try:
    __version__ = version("orchid-docstore")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "ANY_VALUE",
    "AiohttpChannel",
    "AppSettings",
    "Channel",
    "ChannelBusyError",
    "ChannelPool",
    "ChannelUnavailableError",
    "ClientIdentity",
    "ClientSettings",
    "CompletionSlot",
    "Dispatcher",
    "DocstoreClient",
    "DocstoreError",
    "ErrorKind",
    "HealthStatus",
    "KvList",
    "KvListResource",
    "KvMetadata",
    "KvObject",
    "KvResource",
    "MissingDependencyError",
    "OutcomeHandle",
    "PatchApplyError",
    "PatchBuilder",
    "PatchDecodeError",
    "PatchDocument",
    "PatchOp",
    "PatchOpType",
    "PoolSettings",
    "PoolStats",
    "RawResponse",
    "RequestEnvelope",
    "RequestError",
    "RequestTimeoutError",
    "ResponseDecodeError",
    "TransportError",
    "apply_patch",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "configure_prometheus_metrics",
    "create_docstore_client",
    "load_config",
    "request_scope",
    "__version__",
]
