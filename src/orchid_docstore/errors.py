"""Error taxonomy for document store requests.

Every failure surfaced by this package derives from ``DocstoreError`` and carries
an ``ErrorKind``. Callers branch on the kind rather than on exception classes::

    try:
        await client.kv("users", "alice").if_match(ref).put(user)
    except DocstoreError as exc:
        match exc.kind:
            case ErrorKind.VERSION_MISMATCH:
                ...  # re-read and retry
            case ErrorKind.TEST_ASSERTION_FAILED:
                ...
            case _:
                raise
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from orchid_docstore.jsonpatch.ops import PatchOp


class ErrorKind(StrEnum):
    """Closed set of failure kinds."""

    VERSION_MISMATCH = "version_mismatch"
    ALREADY_PRESENT = "already_present"
    PATCH_CONFLICT = "patch_conflict"
    TEST_ASSERTION_FAILED = "test_assertion_failed"
    BAD_REQUEST = "bad_request"
    INVALID_CREDENTIAL = "invalid_credential"
    REQUEST_FAILED = "request_failed"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    TIMEOUT = "timeout"
    TRANSPORT_FAILED = "transport_failed"
    DECODE_FAILED = "decode_failed"

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request (after re-reading state) may succeed."""
        return self in _RETRYABLE_KINDS

    @property
    def server_reported(self) -> bool:
        """Whether the kind is derived from a response sent by the service."""
        return self not in _LOCAL_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.VERSION_MISMATCH,
        ErrorKind.TEST_ASSERTION_FAILED,
        ErrorKind.CHANNEL_UNAVAILABLE,
        ErrorKind.TIMEOUT,
        ErrorKind.TRANSPORT_FAILED,
    }
)

_LOCAL_KINDS = frozenset(
    {
        ErrorKind.CHANNEL_UNAVAILABLE,
        ErrorKind.TIMEOUT,
        ErrorKind.TRANSPORT_FAILED,
        ErrorKind.DECODE_FAILED,
    }
)


class DocstoreError(Exception):
    """Base exception for this package."""

    kind: ErrorKind = ErrorKind.REQUEST_FAILED


class MissingDependencyError(DocstoreError):
    """Raised when an optional dependency is required but not installed."""


class ChannelUnavailableError(DocstoreError):
    """Raised when no channel could be checked out of the pool in time."""

    kind = ErrorKind.CHANNEL_UNAVAILABLE


class ChannelBusyError(DocstoreError):
    """Raised when a second exchange is attempted on a channel with one in flight."""

    kind = ErrorKind.TRANSPORT_FAILED


class RequestTimeoutError(DocstoreError):
    """Raised when a caller's wait on an outcome elapses.

    The request itself keeps running; the server-side effect may still happen.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float | None) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timed out after {timeout_seconds}s waiting for response")


class TransportError(DocstoreError):
    """Raised when the channel faults while a request is in flight."""

    kind = ErrorKind.TRANSPORT_FAILED

    def __init__(self, message: str, *, request_id: str | None = None) -> None:
        self.request_id = request_id
        super().__init__(message)


class ResponseDecodeError(DocstoreError):
    """Raised when a success response could not be decoded into a result."""

    kind = ErrorKind.DECODE_FAILED

    def __init__(self, status_code: int, message: str, *, request_id: str | None = None) -> None:
        self.status_code = status_code
        self.request_id = request_id
        super().__init__(f"Failed to decode response (status {status_code}): {message}")


class PatchDecodeError(DocstoreError):
    """Raised when a serialized patch operation cannot be decoded."""

    kind = ErrorKind.DECODE_FAILED


class RequestError(DocstoreError):
    """A non-success response classified by the service error taxonomy."""

    def __init__(
        self,
        kind: ErrorKind,
        *,
        status_code: int,
        request_id: str,
        raw_body: str,
        message: str | None = None,
        details: Mapping[str, Any] | None = None,
        locator: str | None = None,
        op_index: int | None = None,
        op: PatchOp | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.request_id = request_id
        self.raw_body = raw_body
        self.message = raw_body if message is None else message
        self.details = None if details is None else dict(details)
        self.locator = locator
        self.op_index = op_index
        self.op = op
        super().__init__(f"[{kind.value}] status={status_code}: {self.message}")

    @property
    def info(self) -> str | None:
        """``details.info`` when the service supplied it."""
        if self.details is None:
            return None
        value = self.details.get("info")
        return value if isinstance(value, str) else None

    @property
    def expected(self) -> Any:
        """Value a failing ``test`` operation asserted, if known."""
        if self.details is not None and "expected" in self.details:
            return self.details["expected"]
        if self.op is None:
            return None
        return self.op.expected

    @property
    def actual(self) -> Any:
        """Value the service found at the tested path, if reported."""
        if self.details is None:
            return None
        return self.details.get("actual")


class PatchApplyError(DocstoreError):
    """Raised by the local patch evaluator when a document cannot be applied."""

    def __init__(self, kind: ErrorKind, *, op_index: int, op: PatchOp, message: str) -> None:
        self.kind = kind
        self.op_index = op_index
        self.op = op
        super().__init__(f"Patch op {op_index} ({op.op.value} {op.path!r}) failed: {message}")
