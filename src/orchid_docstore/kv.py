"""Key/value resources: item reads, conditional writes, patches and listings."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import unquote, urlsplit

from orchid_docstore.classifier import DEFAULT_SUCCESS_STATUSES, LOOKUP_SUCCESS_STATUSES
from orchid_docstore.envelope import RawResponse, RequestEnvelope, encode_query, join_path
from orchid_docstore.jsonpatch.codec import CONTENT_TYPE as JSON_PATCH_CONTENT_TYPE
from orchid_docstore.jsonpatch.codec import encode_document
from orchid_docstore.jsonpatch.ops import PatchOp
from orchid_docstore.outcome import OutcomeHandle, RequestSender

JSON_CONTENT_TYPE = "application/json"
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"

DELETE_SUCCESS_STATUSES: frozenset[int] = frozenset({200, 204, 404})


def encode_value(value: Any) -> bytes:
    """Serialize a JSON value; ``str``/``bytes`` are taken as already-encoded JSON."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def parse_etag(value: str | None) -> str | None:
    """Strip quotes and the ``-gzip`` suffix some proxies append."""
    if not value:
        return None
    ref = value.strip()
    if ref.startswith("W/"):
        ref = ref[2:]
    ref = ref.replace('"', "")
    if ref.endswith("-gzip"):
        ref = ref[: -len("-gzip")]
    return ref or None


def parse_reftime(value: str | None) -> int | None:
    """``Last-Modified`` as epoch milliseconds."""
    if not value:
        return None
    try:
        moment: datetime = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return int(moment.timestamp() * 1000)


@dataclass(slots=True, frozen=True)
class KvMetadata:
    """Identity of a stored item version."""

    collection: str
    key: str
    ref: str
    reftime: int | None = None

    @classmethod
    def from_location(cls, location: str, *, reftime: int | None = None) -> KvMetadata | None:
        """Parse ``/<version>/<collection>/<key>/refs/<ref>``."""
        segments = [unquote(part) for part in urlsplit(location).path.split("/") if part]
        if len(segments) < 5 or segments[-2] != "refs":
            return None
        return cls(collection=segments[-4], key=segments[-3], ref=segments[-1], reftime=reftime)


@dataclass(slots=True, frozen=True)
class KvObject(KvMetadata):
    """An item version together with its JSON value."""

    value: Any = None
    raw_value: str | None = None


@dataclass(slots=True, frozen=True)
class KvList:
    """One page of a collection listing."""

    results: tuple[KvObject, ...]
    count: int
    next_link: str | None = None

    def __iter__(self) -> Iterator[KvObject]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


def _metadata_decoder(
    collection: str, key: str | None
) -> Callable[[RawResponse], KvMetadata | None]:
    def decode(response: RawResponse) -> KvMetadata | None:
        reftime = parse_reftime(response.header("Last-Modified"))
        location = response.header("Location") or response.header("Content-Location")
        from_location = KvMetadata.from_location(location, reftime=reftime) if location else None
        ref = parse_etag(response.header("ETag"))
        if from_location is not None:
            return from_location if ref is None else replace(from_location, ref=ref)
        if ref is None or key is None:
            return None
        return KvMetadata(collection=collection, key=key, ref=ref, reftime=reftime)

    return decode


def _object_decoder(collection: str, key: str) -> Callable[[RawResponse], KvObject | None]:
    def decode(response: RawResponse) -> KvObject | None:
        if response.status == 404:
            return None
        ref = parse_etag(response.header("ETag"))
        if ref is None:
            raise ValueError("Item response is missing an ETag header")
        raw_value = response.text
        return KvObject(
            collection=collection,
            key=key,
            ref=ref,
            reftime=parse_reftime(response.header("Last-Modified")),
            value=response.json(),
            raw_value=raw_value or None,
        )

    return decode


def _list_entry(entry: Mapping[str, Any]) -> KvObject:
    path = entry["path"]
    value = entry.get("value")
    return KvObject(
        collection=path["collection"],
        key=path["key"],
        ref=path["ref"],
        reftime=path.get("reftime"),
        value=value,
        raw_value=None if value is None else json.dumps(value, separators=(",", ":")),
    )


def decode_kv_list(response: RawResponse) -> KvList:
    body = response.json()
    if not isinstance(body, Mapping):
        raise ValueError("Listing response is not a JSON object")
    results = tuple(_list_entry(entry) for entry in body.get("results", ()))
    next_link = body.get("next")
    return KvList(
        results=results,
        count=int(body.get("count", len(results))),
        next_link=next_link if isinstance(next_link, str) and next_link else None,
    )


def _decode_deleted(response: RawResponse) -> bool:
    return response.status == 204


@dataclass(slots=True, frozen=True)
class KvResource:
    """Operations on one item; the modifiers return new resources.

    Example::

        meta = await client.kv("users", "alice").if_absent().put({"name": "Alice"})
        item = await client.kv("users", "alice").get()
        await client.kv("users", "alice").if_match(item.ref).patch(
            PatchBuilder().inc("logins").build()
        )
    """

    sender: RequestSender = field(repr=False)
    prefix: str
    collection: str
    key: str
    match_ref: str | None = None
    absent: bool = False
    upserting: bool = False
    fields: str | None = None
    excluded_fields: str | None = None

    def __post_init__(self) -> None:
        if not self.collection:
            raise ValueError("collection must not be empty")
        if not self.key:
            raise ValueError("key must not be empty")

    def if_match(self, ref: str) -> KvResource:
        if self.absent:
            raise ValueError("'if_match' and 'if_absent' cannot be used together")
        if not ref:
            raise ValueError("ref must not be empty")
        return replace(self, match_ref=ref)

    def if_absent(self, absent: bool = True) -> KvResource:
        if absent and self.match_ref is not None:
            raise ValueError("'if_match' and 'if_absent' cannot be used together")
        return replace(self, absent=absent)

    def upsert(self, upserting: bool = True) -> KvResource:
        return replace(self, upserting=upserting)

    def with_fields(self, fields: str | Iterable[str]) -> KvResource:
        return replace(self, fields=_field_list(fields))

    def without_fields(self, fields: str | Iterable[str]) -> KvResource:
        return replace(self, excluded_fields=_field_list(fields))

    @property
    def path(self) -> str:
        return join_path(self.prefix, self.collection, self.key)

    def get(self, ref: str | None = None) -> OutcomeHandle[KvObject | None]:
        """Fetch the latest value, or a specific ``ref``; a missing item yields ``None``."""
        path = self.path
        if ref is not None:
            path = join_path(self.prefix, self.collection, self.key, "refs", ref)
        envelope = RequestEnvelope(
            method="GET",
            path=path,
            query=encode_query(
                {"with_fields": self.fields, "without_fields": self.excluded_fields}
            ),
        )
        return self.sender.send(
            envelope,
            _object_decoder(self.collection, self.key),
            success_statuses=LOOKUP_SUCCESS_STATUSES,
        )

    def put(self, value: Any) -> OutcomeHandle[KvMetadata | None]:
        """Store ``value``, honouring ``if_match``/``if_absent``."""
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        headers.update(self._precondition_headers())
        envelope = RequestEnvelope(
            method="PUT", path=self.path, headers=headers, body=encode_value(value)
        )
        return self.sender.send(envelope, _metadata_decoder(self.collection, self.key))

    def patch(self, document: Iterable[PatchOp]) -> OutcomeHandle[KvMetadata | None]:
        """Apply a patch document atomically on the service."""
        return self._send_patch(JSON_PATCH_CONTENT_TYPE, encode_document(document))

    def merge(self, value: Any) -> OutcomeHandle[KvMetadata | None]:
        """Apply an RFC 7386 merge patch."""
        return self._send_patch(MERGE_PATCH_CONTENT_TYPE, encode_value(value))

    def delete(self, *, purge: bool = False) -> OutcomeHandle[bool]:
        """Delete the item; resolves ``True`` when the service removed something."""
        if self.absent:
            raise ValueError("'if_absent' cannot be used in a DELETE request")
        envelope = RequestEnvelope(
            method="DELETE",
            path=self.path,
            query=encode_query({"purge": True if purge else None}),
            headers=self._precondition_headers(),
        )
        return self.sender.send(envelope, _decode_deleted, success_statuses=DELETE_SUCCESS_STATUSES)

    def _send_patch(self, content_type: str, body: bytes) -> OutcomeHandle[KvMetadata | None]:
        if self.absent:
            raise ValueError("'if_absent' cannot be used in a PATCH request")
        headers = {"Content-Type": content_type}
        headers.update(self._precondition_headers())
        envelope = RequestEnvelope(
            method="PATCH",
            path=self.path,
            query=encode_query({"upsert": self.upserting}),
            headers=headers,
            body=body,
        )
        return self.sender.send(envelope, _metadata_decoder(self.collection, self.key))

    def _precondition_headers(self) -> dict[str, str]:
        if self.match_ref is not None:
            return {"If-Match": f'"{self.match_ref}"'}
        if self.absent:
            return {"If-None-Match": '"*"'}
        return {}


@dataclass(slots=True, frozen=True)
class KvListResource:
    """Paginated listing of a collection's items in key order."""

    sender: RequestSender = field(repr=False)
    prefix: str
    collection: str
    page_size: int = 10
    start: str | None = None
    start_inclusive: bool = False
    stop: str | None = None
    stop_inclusive: bool = False
    values: bool = True

    def limit(self, page_size: int) -> KvListResource:
        if page_size < 0:
            raise ValueError("limit must not be negative")
        return replace(self, page_size=page_size)

    def start_key(self, key: str, *, inclusive: bool = False) -> KvListResource:
        if not key:
            raise ValueError("start key must not be empty")
        return replace(self, start=key, start_inclusive=inclusive)

    def stop_key(self, key: str, *, inclusive: bool = False) -> KvListResource:
        if not key:
            raise ValueError("stop key must not be empty")
        return replace(self, stop=key, stop_inclusive=inclusive)

    def with_values(self, values: bool = True) -> KvListResource:
        return replace(self, values=values)

    def get(self) -> OutcomeHandle[KvList]:
        """Fetch the first page; follow ``next()`` on the handle for more."""
        params: dict[str, Any] = {"limit": self.page_size, "values": self.values}
        if self.start is not None:
            params["startKey" if self.start_inclusive else "afterKey"] = self.start
        if self.stop is not None:
            params["endKey" if self.stop_inclusive else "beforeKey"] = self.stop
        envelope = RequestEnvelope(
            method="GET",
            path=join_path(self.prefix, self.collection),
            query=encode_query(params),
        )
        return self.sender.send(envelope, decode_kv_list, success_statuses=DEFAULT_SUCCESS_STATUSES)


def _field_list(fields: str | Iterable[str]) -> str:
    joined = fields if isinstance(fields, str) else ",".join(fields)
    if not joined:
        raise ValueError("fields must not be empty")
    return joined
