"""Patch operation value types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final


class PatchOpType(StrEnum):
    """Supported patch operations."""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    COPY = "copy"
    INC = "inc"
    INIT = "init"
    MERGE = "merge"
    TEST = "test"
    PATCH = "patch"


class _AnyValue:
    """Marker for presence/absence tests; never equal to ``None``."""

    __slots__ = ()
    _instance: _AnyValue | None = None

    def __new__(cls) -> _AnyValue:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANY_VALUE"

    def __reduce__(self) -> str:
        return "ANY_VALUE"


ANY_VALUE: Final = _AnyValue()

VALUE_OPS = frozenset(
    {
        PatchOpType.ADD,
        PatchOpType.REPLACE,
        PatchOpType.INIT,
        PatchOpType.MERGE,
        PatchOpType.TEST,
    }
)
SOURCE_OPS = frozenset({PatchOpType.MOVE, PatchOpType.COPY})


@dataclass(frozen=True, slots=True)
class PatchOp:
    """One patch operation.

    ``value`` holds the operand of value-carrying ops, the optional amount of
    ``inc``, or the nested operations (a tuple) of ``patch``. ``ANY_VALUE`` is
    only meaningful for ``test``: present when ``negate`` is false, absent when
    true.
    """

    op: PatchOpType
    path: str
    value: Any = None
    from_path: str | None = None
    negate: bool = False
    conditional: bool = False

    @property
    def is_presence_test(self) -> bool:
        return self.op is PatchOpType.TEST and self.value is ANY_VALUE

    @property
    def nested(self) -> tuple[PatchOp, ...]:
        """Operations embedded by a ``patch`` op (empty for other ops)."""
        if self.op is not PatchOpType.PATCH:
            return ()
        return tuple(self.value or ())

    @property
    def expected(self) -> Any:
        """Asserted value of a ``test`` op; ``None`` for presence tests."""
        if self.op is not PatchOpType.TEST or self.value is ANY_VALUE:
            return None
        return self.value
