"""Tests for fluent patch construction."""

from __future__ import annotations

import pytest

from orchid_docstore.jsonpatch import ANY_VALUE, PatchBuilder, PatchDocument, PatchOp, PatchOpType


def test_builder_preserves_call_order() -> None:
    patch = (
        PatchBuilder()
        .add("name", "Alice")
        .remove("legacy")
        .replace("plan", "pro")
        .move("old", "new")
        .copy("src", "dst")
        .inc("visits")
        .init("created", 1)
        .merge("profile", {"city": "Lyon"})
        .build()
    )

    assert [op.op for op in patch] == [
        PatchOpType.ADD,
        PatchOpType.REMOVE,
        PatchOpType.REPLACE,
        PatchOpType.MOVE,
        PatchOpType.COPY,
        PatchOpType.INC,
        PatchOpType.INIT,
        PatchOpType.MERGE,
    ]
    assert patch[3] == PatchOp(PatchOpType.MOVE, "new", from_path="old")
    assert patch[4].from_path == "src"
    assert patch[4].path == "dst"


def test_build_returns_immutable_snapshot() -> None:
    builder = PatchBuilder().add("a", 1)
    first = builder.build()
    builder.add("b", 2)

    assert isinstance(first, PatchDocument)
    assert len(first) == 1
    assert len(builder.build()) == 2
    with pytest.raises(AttributeError):
        first.ops = ()  # type: ignore[misc]


def test_presence_tests_use_any_value_marker() -> None:
    patch = PatchBuilder().test_field_present("email").test_field_missing("deleted").build()

    assert patch[0].value is ANY_VALUE
    assert patch[0].negate is False
    assert patch[0].is_presence_test
    assert patch[1].value is ANY_VALUE
    assert patch[1].negate is True


def test_null_test_is_not_a_presence_test() -> None:
    patch = PatchBuilder().test("nickname", None).test_not("nickname", None).build()

    assert patch[0].value is None
    assert not patch[0].is_presence_test
    assert patch[1].negate is True
    assert patch[1].expected is None


def test_inc_amount_defaults_to_none_and_rejects_bool() -> None:
    patch = PatchBuilder().inc("visits").inc("score", 2.5).build()

    assert patch[0].value is None
    assert patch[1].value == 2.5
    with pytest.raises(TypeError):
        PatchBuilder().inc("visits", True)


def test_nested_patch_accepts_builder_and_marks_conditional() -> None:
    inner = PatchBuilder().test("plan", "trial").replace("plan", "free")
    patch = PatchBuilder().patch("account", inner).patch_if("/", inner.build()).build()

    plain, conditional = patch
    assert plain.op is PatchOpType.PATCH
    assert plain.conditional is False
    assert conditional.conditional is True
    assert len(plain.nested) == 2
    assert plain.nested == conditional.nested


def test_op_appends_prebuilt_operation() -> None:
    custom = PatchOp(PatchOpType.TEST, "version", 3)

    patch = PatchBuilder().op(custom).build()

    assert patch[0] is custom
    assert patch[0].expected == 3
