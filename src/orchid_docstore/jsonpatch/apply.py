"""Local evaluator for patch documents.

Reproduces the service's apply policy so callers can preview a patch or test
their documents offline:

* operations apply strictly in order and the whole document is atomic;
* a failing ``test`` aborts the whole document, unless it sits inside a
  conditional nested ``patch``, in which case only that nested document is
  rolled back and skipped;
* any other failure (missing path, non-numeric ``inc`` ...) always aborts.

Nested documents deeper than one level follow the same rules recursively.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from typing import Any

from orchid_docstore.errors import ErrorKind, PatchApplyError
from orchid_docstore.jsonpatch.ops import ANY_VALUE, PatchOp, PatchOpType

_MISSING = object()
_ROOT = ""


class _OpFailure(Exception):
    def __init__(self, kind: ErrorKind, op: PatchOp, message: str) -> None:
        self.kind = kind
        self.op = op
        self.message = message
        super().__init__(message)


def apply_patch(document: Any, patch: Iterable[PatchOp]) -> Any:
    """Return a patched copy of ``document``; the input is never mutated.

    Raises:
        PatchApplyError: when an operation fails. ``op_index`` is the position of
            the failing top-level operation and ``op`` the operation that failed
            (an inner one when the failure happened inside a nested patch).
    """
    holder = {_ROOT: copy.deepcopy(document)}
    for index, op in enumerate(patch):
        try:
            _apply_op(holder, op, [_ROOT])
        except _OpFailure as failure:
            raise PatchApplyError(
                failure.kind,
                op_index=index,
                op=failure.op,
                message=failure.message,
            ) from None
    return holder[_ROOT]


def split_path(path: str) -> list[str]:
    """Split a JSON pointer (leading ``/`` optional) or a dotted path into tokens."""
    if path in ("", "/"):
        return []
    if path.startswith("/"):
        return [_unescape(token) for token in path[1:].split("/")]
    if "/" in path:
        return [_unescape(token) for token in path.split("/")]
    return path.split(".")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _apply_op(holder: dict[str, Any], op: PatchOp, base: Sequence[str]) -> None:
    target = [*base, *split_path(op.path)]

    match op.op:
        case PatchOpType.ADD:
            _add(holder, target, copy.deepcopy(op.value), op)
        case PatchOpType.REMOVE:
            _remove(holder, target, op)
        case PatchOpType.REPLACE:
            if _get(holder, target) is _MISSING:
                raise _conflict(op, "path does not exist")
            _set(holder, target, copy.deepcopy(op.value), op)
        case PatchOpType.MOVE | PatchOpType.COPY:
            source = [*base, *split_path(op.from_path or "")]
            value = _get(holder, source)
            if value is _MISSING:
                raise _conflict(op, f"from path {op.from_path!r} does not exist")
            if op.op is PatchOpType.MOVE:
                if target[: len(source)] == source and len(target) > len(source):
                    raise _conflict(op, "cannot move a value into one of its children")
                _remove(holder, source, op)
            else:
                value = copy.deepcopy(value)
            _add(holder, target, value, op)
        case PatchOpType.INC:
            current = _get(holder, target)
            if current is _MISSING:
                raise _conflict(op, "path does not exist")
            if not _is_number(current):
                raise _conflict(op, "value at path is not a number")
            amount = 1 if op.value is None else op.value
            if not _is_number(amount):
                raise _conflict(op, "increment amount is not a number")
            _set(holder, target, current + amount, op)
        case PatchOpType.INIT:
            if _get(holder, target) is _MISSING:
                _add(holder, target, copy.deepcopy(op.value), op)
        case PatchOpType.MERGE:
            current = _get(holder, target)
            merged = _merge_patch(None if current is _MISSING else current, op.value)
            if current is _MISSING:
                _add(holder, target, merged, op)
            else:
                _set(holder, target, merged, op)
        case PatchOpType.TEST:
            if not _test_holds(_get(holder, target), op):
                raise _OpFailure(ErrorKind.TEST_ASSERTION_FAILED, op, "test did not hold")
        case PatchOpType.PATCH:
            if _get(holder, target) is _MISSING:
                raise _conflict(op, "path does not exist")
            _apply_nested(holder, op, target)


def _apply_nested(holder: dict[str, Any], op: PatchOp, base: list[str]) -> None:
    if not op.conditional:
        for inner in op.nested:
            _apply_op(holder, inner, base)
        return

    trial = copy.deepcopy(holder)
    try:
        for inner in op.nested:
            _apply_op(trial, inner, base)
    except _OpFailure as failure:
        if failure.kind is ErrorKind.TEST_ASSERTION_FAILED:
            return
        raise
    holder.clear()
    holder.update(trial)


def _test_holds(current: Any, op: PatchOp) -> bool:
    if op.value is ANY_VALUE:
        holds = current is not _MISSING
    else:
        holds = current is not _MISSING and _json_equal(current, op.value)
    return not holds if op.negate else holds


def _conflict(op: PatchOp, message: str) -> _OpFailure:
    return _OpFailure(ErrorKind.PATCH_CONFLICT, op, message)


def _get(holder: dict[str, Any], tokens: Sequence[str]) -> Any:
    node: Any = holder
    for token in tokens:
        if isinstance(node, dict):
            if token not in node:
                return _MISSING
            node = node[token]
        elif isinstance(node, list):
            index = _list_index(token, len(node))
            if index is None or index >= len(node):
                return _MISSING
            node = node[index]
        else:
            return _MISSING
    return node


def _parent(holder: dict[str, Any], tokens: Sequence[str], op: PatchOp) -> Any:
    parent = _get(holder, tokens[:-1])
    if parent is _MISSING:
        raise _conflict(op, "parent path does not exist")
    if not isinstance(parent, dict | list):
        raise _conflict(op, "parent is not an object or array")
    return parent


def _add(holder: dict[str, Any], tokens: Sequence[str], value: Any, op: PatchOp) -> None:
    parent = _parent(holder, tokens, op)
    key = tokens[-1]
    if isinstance(parent, dict):
        parent[key] = value
        return
    if key == "-":
        parent.append(value)
        return
    index = _list_index(key, len(parent))
    if index is None or index > len(parent):
        raise _conflict(op, f"array index {key!r} out of range")
    parent.insert(index, value)


def _set(holder: dict[str, Any], tokens: Sequence[str], value: Any, op: PatchOp) -> None:
    parent = _parent(holder, tokens, op)
    key = tokens[-1]
    if isinstance(parent, dict):
        parent[key] = value
        return
    index = _list_index(key, len(parent))
    if index is None or index >= len(parent):
        raise _conflict(op, f"array index {key!r} out of range")
    parent[index] = value


def _remove(holder: dict[str, Any], tokens: Sequence[str], op: PatchOp) -> None:
    if len(tokens) <= 1:
        raise _conflict(op, "cannot remove the document root")
    if _get(holder, tokens) is _MISSING:
        raise _conflict(op, "path does not exist")
    parent = _parent(holder, tokens, op)
    key = tokens[-1]
    if isinstance(parent, dict):
        del parent[key]
    else:
        index = _list_index(key, len(parent))
        if index is None or index >= len(parent):
            raise _conflict(op, f"array index {key!r} out of range")
        del parent[index]


def _list_index(token: str, length: int) -> int | None:
    if token == "-":
        return length
    if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
        return None
    return int(token)


def _merge_patch(target: Any, patch: Any) -> Any:
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = _merge_patch(result.get(key), value)
    return result


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _json_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            _json_equal(value, right[key]) for key, value in left.items()
        )
    if isinstance(left, list | tuple) and isinstance(right, list | tuple):
        return len(left) == len(right) and all(
            _json_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    if isinstance(left, dict | list | tuple) or isinstance(right, dict | list | tuple):
        return False
    return bool(left == right)
