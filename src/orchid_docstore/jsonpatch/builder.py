"""Fluent construction of patch documents."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, overload

from orchid_docstore.jsonpatch.ops import ANY_VALUE, PatchOp, PatchOpType


@dataclass(frozen=True, slots=True)
class PatchDocument(Sequence[PatchOp]):
    """Immutable, ordered list of patch operations.

    Indexes reported by the service (``opIndex``) refer to positions in this
    sequence.
    """

    ops: tuple[PatchOp, ...] = ()

    @overload
    def __getitem__(self, index: int) -> PatchOp: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[PatchOp, ...]: ...

    def __getitem__(self, index: int | slice) -> PatchOp | tuple[PatchOp, ...]:
        return self.ops[index]

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self) -> Iterator[PatchOp]:
        return iter(self.ops)

    def to_json(self) -> list[dict[str, Any]]:
        from orchid_docstore.jsonpatch.codec import encode_ops

        return encode_ops(self.ops)

    def encode(self) -> bytes:
        from orchid_docstore.jsonpatch.codec import encode_document

        return encode_document(self)


class PatchBuilder:
    """Accumulates operations in call order; ``build()`` freezes them.

    Example::

        patch = (
            PatchBuilder()
            .inc("visits")
            .test_field_missing("deleted_at")
            .patch_if("/", PatchBuilder().test("plan", "trial").replace("plan", "free"))
            .build()
        )
    """

    __slots__ = ("_ops",)

    def __init__(self) -> None:
        self._ops: list[PatchOp] = []

    def _append(self, op: PatchOp) -> PatchBuilder:
        self._ops.append(op)
        return self

    def add(self, path: str, value: Any) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.ADD, path, value))

    def remove(self, path: str) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.REMOVE, path))

    def replace(self, path: str, value: Any) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.REPLACE, path, value))

    def move(self, from_path: str, to_path: str) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.MOVE, to_path, from_path=from_path))

    def copy(self, from_path: str, to_path: str) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.COPY, to_path, from_path=from_path))

    def inc(self, path: str, amount: int | float | None = None) -> PatchBuilder:
        """Increment a number; the service defaults ``amount`` to 1."""
        if isinstance(amount, bool):
            raise TypeError("inc amount must be a number, not bool")
        return self._append(PatchOp(PatchOpType.INC, path, amount))

    def init(self, path: str, value: Any) -> PatchBuilder:
        """Set ``value`` only when ``path`` is absent."""
        return self._append(PatchOp(PatchOpType.INIT, path, value))

    def merge(self, path: str, value: Any) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.MERGE, path, value))

    def test(self, path: str, value: Any) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.TEST, path, value))

    def test_not(self, path: str, value: Any) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.TEST, path, value, negate=True))

    def test_field_present(self, path: str) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.TEST, path, ANY_VALUE))

    def test_field_missing(self, path: str) -> PatchBuilder:
        return self._append(PatchOp(PatchOpType.TEST, path, ANY_VALUE, negate=True))

    def patch(
        self,
        path: str,
        nested: PatchBuilder | PatchDocument | Sequence[PatchOp],
        *,
        conditional: bool = False,
    ) -> PatchBuilder:
        """Embed a nested document applied relative to ``path``."""
        if isinstance(nested, PatchBuilder):
            nested = nested.build()
        return self._append(
            PatchOp(PatchOpType.PATCH, path, tuple(nested), conditional=conditional)
        )

    def patch_if(
        self,
        path: str,
        nested: PatchBuilder | PatchDocument | Sequence[PatchOp],
    ) -> PatchBuilder:
        """Embed a nested document whose failed tests skip only that document."""
        return self.patch(path, nested, conditional=True)

    def op(self, op: PatchOp) -> PatchBuilder:
        return self._append(op)

    def build(self) -> PatchDocument:
        return PatchDocument(tuple(self._ops))
