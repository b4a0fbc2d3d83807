"""Index descriptors built from a collection schema."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mongoline.adapter.schema import Schema

ASCENDING = 1


@dataclass(frozen=True)
class IndexDescriptor:
    """
    One single-field index.

    The sort direction is irrelevant for single-key indexes and is always
    ascending.  Every index is sparse so documents lacking the field do not
    collide on a unique index.
    """

    field: str
    unique: bool = False
    direction: int = ASCENDING

    @property
    def index(self) -> dict[str, int]:
        return {self.field: self.direction}

    @property
    def options(self) -> dict[str, Any]:
        return {"sparse": True, "unique": self.unique}

    def keys(self) -> list[tuple[str, int]]:
        """Key list in the form ``create_index`` expects."""
        return [(self.field, self.direction)]

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "options": self.options}


def build_indexes(schema: Schema) -> tuple[IndexDescriptor, ...]:
    """One descriptor per field flagged ``unique`` or ``index``, in schema order."""
    indexes = []
    for name, spec in schema.items():
        if spec.unique:
            indexes.append(IndexDescriptor(field=name, unique=True))
        elif spec.index:
            indexes.append(IndexDescriptor(field=name))
    return tuple(indexes)


__all__ = [
    "IndexDescriptor",
    "build_indexes",
]
