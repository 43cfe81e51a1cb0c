"""Tests for the patch wire format."""

from __future__ import annotations

import json

import pytest

from orchid_docstore.errors import ErrorKind, PatchDecodeError
from orchid_docstore.jsonpatch import (
    ANY_VALUE,
    PatchBuilder,
    PatchOp,
    PatchOpType,
    decode_document,
    decode_op,
    encode_document,
    encode_op,
)


def test_encode_value_and_source_ops() -> None:
    patch = (
        PatchBuilder()
        .add("tags/-", "new")
        .replace("name", None)
        .move("a", "b")
        .copy("c", "d")
        .remove("e")
        .build()
    )

    assert patch.to_json() == [
        {"op": "add", "path": "tags/-", "value": "new"},
        {"op": "replace", "path": "name", "value": None},
        {"op": "move", "path": "b", "from": "a"},
        {"op": "copy", "path": "d", "from": "c"},
        {"op": "remove", "path": "e"},
    ]


def test_presence_test_omits_value_but_null_test_keeps_it() -> None:
    present = encode_op(PatchOp(PatchOpType.TEST, "email", ANY_VALUE))
    missing = encode_op(PatchOp(PatchOpType.TEST, "email", ANY_VALUE, negate=True))
    null = encode_op(PatchOp(PatchOpType.TEST, "email", None))

    assert present == {"op": "test", "path": "email"}
    assert missing == {"op": "test", "path": "email", "negate": True}
    assert null == {"op": "test", "path": "email", "value": None}


def test_inc_omits_absent_amount() -> None:
    patch = PatchBuilder().inc("a").inc("b", 5).build()

    assert patch.to_json() == [
        {"op": "inc", "path": "a"},
        {"op": "inc", "path": "b", "value": 5},
    ]


def test_nested_patch_encodes_ops_and_conditional_flag() -> None:
    patch = (
        PatchBuilder()
        .patch_if("/", PatchBuilder().test_field_missing("locked").add("locked", True))
        .build()
    )

    assert patch.to_json() == [
        {
            "op": "patch",
            "path": "/",
            "value": [
                {"op": "test", "path": "locked", "negate": True},
                {"op": "add", "path": "locked", "value": True},
            ],
            "conditional": True,
        }
    ]


def test_encode_document_is_compact_json_array() -> None:
    body = encode_document(PatchBuilder().add("a", 1).build())

    assert body == b'[{"op":"add","path":"a","value":1}]'


def test_decoded_ops_match_their_positions() -> None:
    patch = (
        PatchBuilder()
        .add("a", {"x": 1})
        .test("b", None)
        .test_field_missing("c")
        .inc("d")
        .move("e", "f")
        .patch("g", PatchBuilder().test_not("h", 2).init("i", []), conditional=True)
        .build()
    )

    decoded = decode_document(json.dumps(patch.to_json()))

    for index, op in enumerate(patch):
        assert decoded[index] == op
    assert decoded[2].value is ANY_VALUE
    assert decoded[1].value is None


def test_decode_unknown_op_raises() -> None:
    with pytest.raises(PatchDecodeError) as exc_info:
        decode_op({"op": "explode", "path": "a"})

    assert exc_info.value.kind is ErrorKind.DECODE_FAILED


@pytest.mark.parametrize(
    "payload",
    [
        {"op": "add"},
        {"op": "move", "path": "a"},
        {"op": "patch", "path": "a", "value": {"op": "add"}},
        "not-an-object",
    ],
)
def test_decode_malformed_op_raises(payload: object) -> None:
    with pytest.raises(PatchDecodeError):
        decode_op(payload)  # type: ignore[arg-type]


def test_decode_document_requires_array() -> None:
    with pytest.raises(PatchDecodeError):
        decode_document(b'{"op":"add"}')
    with pytest.raises(PatchDecodeError):
        decode_document(b"not json")
