"""Tests for the error hierarchy and kind semantics."""

from __future__ import annotations

import pytest

from orchid_docstore.config import ConfigError, ConfigValidationError
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
from orchid_docstore.jsonpatch import PatchOp, PatchOpType


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (ChannelUnavailableError("none free"), ErrorKind.CHANNEL_UNAVAILABLE),
        (ChannelBusyError("busy"), ErrorKind.TRANSPORT_FAILED),
        (RequestTimeoutError(1.5), ErrorKind.TIMEOUT),
        (TransportError("reset"), ErrorKind.TRANSPORT_FAILED),
        (ResponseDecodeError(200, "bad json"), ErrorKind.DECODE_FAILED),
        (PatchDecodeError("unknown op"), ErrorKind.DECODE_FAILED),
    ],
)
def test_local_errors_carry_their_kind(error: DocstoreError, kind: ErrorKind) -> None:
    assert isinstance(error, DocstoreError)
    assert error.kind is kind
    assert not error.kind.server_reported


def test_all_errors_share_the_package_root() -> None:
    for error_type in (
        MissingDependencyError,
        ConfigError,
        ConfigValidationError,
        RequestError,
        PatchApplyError,
    ):
        assert issubclass(error_type, DocstoreError)


def test_request_error_formats_kind_and_status() -> None:
    error = RequestError(
        ErrorKind.ALREADY_PRESENT,
        status_code=412,
        request_id="req-1",
        raw_body='{"code":"item_already_present"}',
        message="exists",
    )

    assert str(error) == "[already_present] status=412: exists"
    assert error.kind.server_reported


def test_request_error_message_defaults_to_raw_body() -> None:
    error = RequestError(
        ErrorKind.REQUEST_FAILED,
        status_code=502,
        request_id="req-1",
        raw_body="bad gateway",
    )

    assert error.message == "bad gateway"
    assert error.info is None
    assert error.expected is None
    assert error.actual is None


def test_callers_can_match_on_kind() -> None:
    def recover(exc: DocstoreError) -> str:
        match exc.kind:
            case ErrorKind.VERSION_MISMATCH:
                return "reread"
            case ErrorKind.TEST_ASSERTION_FAILED | ErrorKind.PATCH_CONFLICT:
                return "inspect"
            case ErrorKind.TIMEOUT:
                return "check"
            case _:
                return "raise"

    mismatch = RequestError(
        ErrorKind.VERSION_MISMATCH, status_code=412, request_id="r", raw_body=""
    )

    assert recover(mismatch) == "reread"
    assert recover(RequestTimeoutError(2.0)) == "check"
    assert recover(TransportError("reset")) == "raise"


def test_retryable_kinds() -> None:
    assert ErrorKind.VERSION_MISMATCH.retryable
    assert ErrorKind.CHANNEL_UNAVAILABLE.retryable
    assert not ErrorKind.BAD_REQUEST.retryable
    assert not ErrorKind.INVALID_CREDENTIAL.retryable
    assert not ErrorKind.ALREADY_PRESENT.retryable


def test_patch_apply_error_describes_failing_op() -> None:
    op = PatchOp(PatchOpType.INC, "visits")

    error = PatchApplyError(ErrorKind.PATCH_CONFLICT, op_index=3, op=op, message="not a number")

    assert error.op_index == 3
    assert "inc 'visits'" in str(error)
