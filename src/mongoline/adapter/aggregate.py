"""Aggregate criteria: ``$group`` construction and result flattening.

Criteria such as ``{"groupBy": "team", "sum": ["score"]}`` become a
``$group`` stage whose ``_id`` holds the grouped fields::

    {"_id": {"team": "$team"}, "score": {"$sum": "$score"}}

MongoDB answers with one document per group keyed by that synthetic
``_id``; :func:`flatten_groups` lifts its fields back to the top level so
callers get ``{"team": "red", "score": 12}``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mongoline.adapter.ids import NATIVE_ID
from mongoline.core.errors import QueryError

CALCULATIONS = {
    "sum": "$sum",
    "average": "$avg",
    "min": "$min",
    "max": "$max",
}

AGGREGATE_KEYS = ("groupBy", *CALCULATIONS)


def _field_list(criteria: Mapping[str, Any], key: str) -> list[str]:
    value = criteria.get(key)
    if value is None:
        return []
    fields = [value] if isinstance(value, str) else value
    if not isinstance(fields, (list, tuple)):
        raise QueryError(f"{key} must be a field name or a list of field names")
    for name in fields:
        if not isinstance(name, str) or not name or "." in name or name.startswith("$"):
            raise QueryError(f"Invalid field name in {key}: {name!r}")
    return list(fields)


def is_aggregate(criteria: Mapping[str, Any]) -> bool:
    return any(criteria.get(key) is not None for key in AGGREGATE_KEYS)


def build_group(criteria: Mapping[str, Any]) -> dict[str, Any]:
    """Build the ``$group`` stage for groupBy/sum/average/min/max criteria."""
    group_by = _field_list(criteria, "groupBy")
    calculations = {key: _field_list(criteria, key) for key in CALCULATIONS}

    if not any(calculations.values()):
        raise QueryError("Cannot groupBy without a calculation")

    group: dict[str, Any] = {
        NATIVE_ID: {name: f"${name}" for name in group_by} if group_by else None,
    }

    seen = set(group_by)
    for key, operator in CALCULATIONS.items():
        for name in calculations[key]:
            if name in seen:
                raise QueryError(f"Field {name!r} appears in more than one aggregate clause")
            seen.add(name)
            group[name] = {operator: f"${name}"}

    return group


def flatten_groups(results: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Lift grouped values out of ``_id`` and drop the synthetic identifier."""
    flattened = []
    for result in results:
        group_id = result.get(NATIVE_ID)
        record: dict[str, Any] = dict(group_id) if isinstance(group_id, Mapping) else {}
        record.update((key, value) for key, value in result.items() if key != NATIVE_ID)
        flattened.append(record)
    return flattened


__all__ = [
    "CALCULATIONS",
    "AGGREGATE_KEYS",
    "is_aggregate",
    "build_group",
    "flatten_groups",
]
