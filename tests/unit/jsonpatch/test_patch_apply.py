"""Tests for the local patch evaluator."""

from __future__ import annotations

import pytest

from orchid_docstore.errors import ErrorKind, PatchApplyError
from orchid_docstore.jsonpatch import PatchBuilder, PatchOpType, apply_patch, split_path


def test_split_path_accepts_pointer_and_dotted_forms() -> None:
    assert split_path("/a/b") == ["a", "b"]
    assert split_path("a/b") == ["a", "b"]
    assert split_path("a.b") == ["a", "b"]
    assert split_path("/a~1b/c~0d") == ["a/b", "c~d"]
    assert split_path("/") == []


def test_operations_apply_in_order_without_mutating_input() -> None:
    document = {"name": "Alice", "visits": 1, "tags": ["a"]}
    patch = (
        PatchBuilder()
        .replace("name", "Bob")
        .inc("visits")
        .inc("visits", 10)
        .add("tags/-", "b")
        .add("tags/0", "first")
        .copy("name", "alias")
        .move("alias", "nickname")
        .remove("tags/1")
        .build()
    )

    result = apply_patch(document, patch)

    assert result == {"name": "Bob", "visits": 12, "tags": ["first", "b"], "nickname": "Bob"}
    assert document == {"name": "Alice", "visits": 1, "tags": ["a"]}


def test_init_only_sets_absent_paths() -> None:
    patch = PatchBuilder().init("count", 0).init("created", 5).build()

    result = apply_patch({"count": 3}, patch)

    assert result == {"count": 3, "created": 5}


def test_merge_follows_merge_patch_semantics() -> None:
    document = {"profile": {"city": "Lyon", "zip": "69000", "geo": {"lat": 1}}}
    patch = PatchBuilder().merge("profile", {"zip": None, "geo": {"lon": 2}, "country": "FR"})

    result = apply_patch(document, patch.build())

    assert result == {"profile": {"city": "Lyon", "geo": {"lat": 1, "lon": 2}, "country": "FR"}}


def test_failing_test_aborts_whole_document() -> None:
    patch = PatchBuilder().replace("plan", "pro").test("owner", "alice").add("x", 1).build()

    with pytest.raises(PatchApplyError) as exc_info:
        apply_patch({"plan": "free", "owner": "bob"}, patch)

    assert exc_info.value.kind is ErrorKind.TEST_ASSERTION_FAILED
    assert exc_info.value.op_index == 1
    assert exc_info.value.op == patch[1]


def test_null_test_differs_from_presence_test() -> None:
    assert apply_patch({"a": None}, PatchBuilder().test("a", None).build()) == {"a": None}
    assert apply_patch({"a": None}, PatchBuilder().test_field_present("a").build()) == {"a": None}

    with pytest.raises(PatchApplyError):
        apply_patch({}, PatchBuilder().test("a", None).build())
    with pytest.raises(PatchApplyError):
        apply_patch({"a": None}, PatchBuilder().test_field_missing("a").build())


def test_test_comparisons_are_type_aware() -> None:
    with pytest.raises(PatchApplyError):
        apply_patch({"flag": 1}, PatchBuilder().test("flag", True).build())

    assert apply_patch({"n": 2.0}, PatchBuilder().test("n", 2).build()) == {"n": 2.0}
    assert apply_patch({"a": [1]}, PatchBuilder().test_not("a", [2]).build()) == {"a": [1]}


@pytest.mark.parametrize(
    ("document", "patch"),
    [
        ({}, PatchBuilder().inc("missing").build()),
        ({"name": "x"}, PatchBuilder().inc("name").build()),
        ({}, PatchBuilder().replace("missing", 1).build()),
        ({}, PatchBuilder().remove("missing").build()),
        ({}, PatchBuilder().move("missing", "b").build()),
        ({}, PatchBuilder().add("a/b", 1).build()),
        ({"a": [1]}, PatchBuilder().add("a/5", 1).build()),
        ({"a": [1]}, PatchBuilder().remove("a/-").build()),
        ({"a": [1]}, PatchBuilder().remove("a/01").build()),
    ],
)
def test_structural_failures_are_conflicts(document: dict, patch: object) -> None:
    with pytest.raises(PatchApplyError) as exc_info:
        apply_patch(document, patch)  # type: ignore[arg-type]

    assert exc_info.value.kind is ErrorKind.PATCH_CONFLICT
    assert exc_info.value.op_index == 0


def test_conditional_nested_patch_skips_only_itself_on_failed_test() -> None:
    patch = (
        PatchBuilder()
        .inc("visits")
        .patch_if("/", PatchBuilder().replace("plan", "free").test("plan", "trial"))
        .add("seen", True)
        .build()
    )

    result = apply_patch({"visits": 0, "plan": "pro"}, patch)

    assert result == {"visits": 1, "plan": "pro", "seen": True}


def test_conditional_nested_patch_applies_when_tests_hold() -> None:
    patch = PatchBuilder().patch_if(
        "account", PatchBuilder().test("plan", "trial").replace("plan", "free")
    )

    result = apply_patch({"account": {"plan": "trial"}}, patch.build())

    assert result == {"account": {"plan": "free"}}


def test_unconditional_nested_failed_test_aborts_document() -> None:
    inner = PatchBuilder().test("plan", "trial")
    patch = PatchBuilder().add("x", 1).patch("account", inner).build()

    with pytest.raises(PatchApplyError) as exc_info:
        apply_patch({"account": {"plan": "pro"}}, patch)

    assert exc_info.value.kind is ErrorKind.TEST_ASSERTION_FAILED
    assert exc_info.value.op_index == 1
    assert exc_info.value.op.op is PatchOpType.TEST
    assert exc_info.value.op.path == "plan"


def test_conditional_nested_conflict_still_aborts() -> None:
    patch = PatchBuilder().patch_if("/", PatchBuilder().inc("missing")).build()

    with pytest.raises(PatchApplyError) as exc_info:
        apply_patch({}, patch)

    assert exc_info.value.kind is ErrorKind.PATCH_CONFLICT
    assert exc_info.value.op_index == 0


def test_nested_patch_on_missing_path_is_conflict() -> None:
    patch = PatchBuilder().patch("account", PatchBuilder().add("a", 1)).build()

    with pytest.raises(PatchApplyError) as exc_info:
        apply_patch({}, patch)

    assert exc_info.value.kind is ErrorKind.PATCH_CONFLICT


def test_deeper_conditional_nesting_scopes_to_innermost_document() -> None:
    innermost = PatchBuilder().test("x", 0).add("skipped", True)
    middle = PatchBuilder().add("middle", True).patch_if("/", innermost)
    patch = PatchBuilder().patch_if("/", middle).build()

    result = apply_patch({"x": 1}, patch)

    assert result == {"x": 1, "middle": True}
