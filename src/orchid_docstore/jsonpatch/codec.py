"""Wire encoding of patch documents and decoding of reported operations."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from orchid_docstore.errors import PatchDecodeError
from orchid_docstore.jsonpatch.builder import PatchDocument
from orchid_docstore.jsonpatch.ops import (
    ANY_VALUE,
    SOURCE_OPS,
    VALUE_OPS,
    PatchOp,
    PatchOpType,
)

CONTENT_TYPE = "application/json-patch+json"


def encode_op(op: PatchOp) -> dict[str, Any]:
    """Encode one operation as a JSON-compatible mapping.

    Presence tests carry no ``value`` field, which keeps them distinct from a
    test against an explicit ``null``.
    """
    payload: dict[str, Any] = {"op": op.op.value, "path": op.path}

    if op.op in VALUE_OPS:
        if op.value is not ANY_VALUE:
            payload["value"] = op.value
    elif op.op is PatchOpType.INC:
        if op.value is not None:
            payload["value"] = op.value
    elif op.op is PatchOpType.PATCH:
        payload["value"] = encode_ops(op.nested)
        payload["conditional"] = op.conditional

    if op.op in SOURCE_OPS:
        payload["from"] = op.from_path
    if op.negate:
        payload["negate"] = True
    return payload


def encode_ops(ops: Iterable[PatchOp]) -> list[dict[str, Any]]:
    return [encode_op(op) for op in ops]


def encode_document(document: PatchDocument | Iterable[PatchOp]) -> bytes:
    """Serialize a patch document to a request body."""
    return json.dumps(encode_ops(document), separators=(",", ":")).encode("utf-8")


def decode_op(payload: Mapping[str, Any]) -> PatchOp:
    """Rebuild a ``PatchOp`` from its wire mapping."""
    if not isinstance(payload, Mapping):
        raise PatchDecodeError(f"patch op must be an object, got {type(payload).__name__}")

    raw_type = payload.get("op")
    try:
        op_type = PatchOpType(raw_type)
    except ValueError as exc:
        raise PatchDecodeError(f"unknown patch op {raw_type!r}") from exc

    path = payload.get("path")
    if not isinstance(path, str):
        raise PatchDecodeError(f"patch op {op_type.value!r} is missing a string 'path'")

    negate = bool(payload.get("negate", False))

    if op_type is PatchOpType.PATCH:
        nested = payload.get("value", payload.get("ops", []))
        if not isinstance(nested, list):
            raise PatchDecodeError("nested patch 'value' must be a list of ops")
        return PatchOp(
            op_type,
            path,
            tuple(decode_op(item) for item in nested),
            conditional=bool(payload.get("conditional", False)),
        )

    if op_type in SOURCE_OPS:
        from_path = payload.get("from")
        if not isinstance(from_path, str):
            raise PatchDecodeError(f"patch op {op_type.value!r} is missing a string 'from'")
        return PatchOp(op_type, path, from_path=from_path)

    if op_type is PatchOpType.TEST:
        value = payload["value"] if "value" in payload else ANY_VALUE
        return PatchOp(op_type, path, value, negate=negate)

    return PatchOp(op_type, path, payload.get("value"), negate=negate)


def decode_ops(payload: Iterable[Mapping[str, Any]]) -> tuple[PatchOp, ...]:
    return tuple(decode_op(item) for item in payload)


def decode_document(body: bytes | str) -> PatchDocument:
    """Parse a serialized patch document."""
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise PatchDecodeError(f"patch document is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise PatchDecodeError("patch document must be a JSON array")
    return PatchDocument(decode_ops(payload))
