"""Identifier normalization between the ORM (``id``) and MongoDB (``_id``)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, overload

from bson import ObjectId

ORM_ID = "id"
NATIVE_ID = "_id"


def to_object_id(value: Any) -> Any:
    """Coerce a 24-hex string to ``ObjectId``; anything else is returned unchanged."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def from_object_id(value: Any) -> Any:
    """Render an ``ObjectId`` as its hex string."""
    if isinstance(value, ObjectId):
        return str(value)
    return value


def rewrite_id(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``record`` with ``_id`` renamed to ``id``."""
    if NATIVE_ID not in record:
        return dict(record)
    rewritten = {ORM_ID: from_object_id(record[NATIVE_ID])}
    rewritten.update((key, value) for key, value in record.items() if key != NATIVE_ID)
    return rewritten


@overload
def rewrite_ids(records: Mapping[str, Any]) -> dict[str, Any]: ...


@overload
def rewrite_ids(records: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]: ...


def rewrite_ids(records):
    """Rewrite a single record or every record of a sequence."""
    if records is None:
        return []
    if isinstance(records, Mapping):
        return rewrite_id(records)
    return [rewrite_id(record) for record in records]


def normalize_removal(result: Any, removed_ids: Iterable[Any] = ()) -> list[dict[str, Any]]:
    """
    Turn whatever a removal reported into ``[{"id": ...}, ...]``.

    ``result`` may be a count (the first ``count`` of ``removed_ids`` are
    reported), a bare identifier, a record, or a list of either.
    """
    if result is None:
        return []

    if isinstance(result, int) and not isinstance(result, bool):
        return [{ORM_ID: from_object_id(_id)} for _id in list(removed_ids)[:result]]

    entries = result if isinstance(result, (list, tuple)) else [result]

    normalized = []
    for entry in entries:
        if isinstance(entry, Mapping):
            _id = entry.get(NATIVE_ID, entry.get(ORM_ID))
        else:
            _id = entry
        normalized.append({ORM_ID: from_object_id(_id)})
    return normalized


__all__ = [
    "ORM_ID",
    "NATIVE_ID",
    "to_object_id",
    "from_object_id",
    "rewrite_id",
    "rewrite_ids",
    "normalize_removal",
]
