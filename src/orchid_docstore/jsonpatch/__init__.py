"""Patch operation algebra: build, encode, decode and apply partial updates."""

from orchid_docstore.jsonpatch.apply import apply_patch, split_path
from orchid_docstore.jsonpatch.builder import PatchBuilder, PatchDocument
from orchid_docstore.jsonpatch.codec import (
    CONTENT_TYPE,
    decode_document,
    decode_op,
    decode_ops,
    encode_document,
    encode_op,
    encode_ops,
)
from orchid_docstore.jsonpatch.ops import ANY_VALUE, PatchOp, PatchOpType

__all__ = [
    "ANY_VALUE",
    "CONTENT_TYPE",
    "PatchBuilder",
    "PatchDocument",
    "PatchOp",
    "PatchOpType",
    "apply_patch",
    "decode_document",
    "decode_op",
    "decode_ops",
    "encode_document",
    "encode_op",
    "encode_ops",
    "split_path",
]
