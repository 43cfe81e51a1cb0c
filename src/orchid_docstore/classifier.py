"""Response classification: success decoding and the ordered error taxonomy."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Collection, Mapping
from typing import Any, TypeVar

from orchid_docstore.errors import (
    DocstoreError,
    ErrorKind,
    PatchDecodeError,
    RequestError,
    ResponseDecodeError,
)
from orchid_docstore.envelope import RawResponse
from orchid_docstore.jsonpatch.codec import decode_op
from orchid_docstore.jsonpatch.ops import PatchOp

T = TypeVar("T")

Decoder = Callable[[RawResponse], T]

DEFAULT_SUCCESS_STATUSES: frozenset[int] = frozenset({200, 201, 204})
LOOKUP_SUCCESS_STATUSES: frozenset[int] = frozenset({200, 404})

_CODE_KINDS: Mapping[str, ErrorKind] = {
    "item_version_mismatch": ErrorKind.VERSION_MISMATCH,
    "item_already_present": ErrorKind.ALREADY_PRESENT,
    "api_bad_request": ErrorKind.BAD_REQUEST,
}

logger = logging.getLogger(__name__)


def settle_response(
    response: RawResponse,
    decoder: Decoder[T],
    success_statuses: Collection[int] = DEFAULT_SUCCESS_STATUSES,
    *,
    request_id: str | None = None,
) -> T:
    """Decode a success response or raise the single error it classifies as."""
    correlation_id = response.request_id or request_id or "<unknown>"
    if response.status not in success_statuses:
        raise classify_failure(response, request_id=correlation_id)

    try:
        return decoder(response)
    except DocstoreError:
        raise
    except Exception as exc:
        raise ResponseDecodeError(
            response.status,
            str(exc) or type(exc).__name__,
            request_id=correlation_id,
        ) from exc


def classify_failure(response: RawResponse, *, request_id: str | None = None) -> RequestError:
    """Select the error kind for a non-success response.

    Rules, first match wins:

    1. ``code == "item_version_mismatch"`` -> ``VERSION_MISMATCH``
    2. ``code == "item_already_present"`` -> ``ALREADY_PRESENT``
    3. ``code == "patch_conflict"`` -> ``TEST_ASSERTION_FAILED`` when
       ``details.op.op == "test"``, otherwise ``PATCH_CONFLICT``
    4. ``code == "api_bad_request"`` -> ``BAD_REQUEST``
    5. status 401 -> ``INVALID_CREDENTIAL`` (whether or not the body parsed)
    6. anything else -> ``REQUEST_FAILED``
    """
    raw_body = response.text
    correlation_id = response.request_id or request_id or "<unknown>"
    document = parse_error_document(raw_body)

    kind = _kind_from_document(document)
    if kind is None:
        kind = ErrorKind.INVALID_CREDENTIAL if response.status == 401 else ErrorKind.REQUEST_FAILED

    details = _mapping_or_none(document.get("details")) if document is not None else None
    locator = document.get("locator") if document is not None else None
    message = document.get("message") if document is not None else None

    op_index: int | None = None
    op: PatchOp | None = None
    if kind in (ErrorKind.PATCH_CONFLICT, ErrorKind.TEST_ASSERTION_FAILED) and details:
        op_index = _coerce_index(details.get("opIndex"))
        op = _decode_reported_op(details.get("op"), request_id=correlation_id)

    return RequestError(
        kind,
        status_code=response.status,
        request_id=correlation_id,
        raw_body=raw_body,
        message=message if isinstance(message, str) else None,
        details=details,
        locator=locator if isinstance(locator, str) else None,
        op_index=op_index,
        op=op,
    )


def parse_error_document(raw_body: str) -> dict[str, Any] | None:
    """Parse a structured error body; ``None`` when it is not a JSON object."""
    if not raw_body.strip():
        return None
    try:
        document = json.loads(raw_body)
    except ValueError:
        return None
    return document if isinstance(document, dict) else None


def _kind_from_document(document: Mapping[str, Any] | None) -> ErrorKind | None:
    if document is None or "code" not in document:
        return None

    code = document.get("code")
    if code == "patch_conflict":
        details = _mapping_or_none(document.get("details")) or {}
        reported = _mapping_or_none(details.get("op")) or {}
        if reported.get("op") == "test":
            return ErrorKind.TEST_ASSERTION_FAILED
        return ErrorKind.PATCH_CONFLICT
    if isinstance(code, str):
        return _CODE_KINDS.get(code)
    return None


def _mapping_or_none(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def _coerce_index(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _decode_reported_op(payload: Any, *, request_id: str) -> PatchOp | None:
    if payload is None:
        return None
    try:
        return decode_op(payload)
    except PatchDecodeError as exc:
        logger.warning(
            "Could not decode patch op reported by the service",
            extra={"docstore_request_id": request_id, "decode_error": str(exc)},
        )
        return None
