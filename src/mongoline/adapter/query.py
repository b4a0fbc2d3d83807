"""Criteria translation: ORM criteria objects to MongoDB filters and options.

A criteria object is a ``where`` clause plus modifiers::

    {
        "where": {"age": {">=": 18}, "name": {"startsWith": "a"}},
        "sort": "name ASC",
        "limit": 10,
    }

``Query`` validates it eagerly.  Malformed criteria raise ``QueryError`` from
the constructor so the façade can report them before opening a connection.

Where-clause translation:

==========================  ==================================
ORM                         MongoDB
==========================  ==================================
``{"id": "<hex>"}``         ``{"_id": ObjectId("<hex>")}``
``{"f": [1, 2]}``           ``{"f": {"$in": [1, 2]}}``
``{"or": [a, b]}``          ``{"$or": [a, b]}``
``lessThan`` / ``<``        ``$lt`` (likewise ``<=``, ``>``, ``>=``)
``not`` / ``!``             ``$ne`` (``$nin`` for a list)
``in`` / ``nin``            ``$in`` / ``$nin``
``like``                    anchored ``$regex``, ``%`` is a wildcard
``contains``                ``$regex``
``startsWith``/``endsWith`` ``$regex`` anchored at one end
``$...``                    passed through untouched
==========================  ==================================

Plain equality passes through unchanged, so a where clause without modifiers
is used as the filter verbatim.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from mongoline.adapter.aggregate import build_group, is_aggregate
from mongoline.adapter.ids import NATIVE_ID, ORM_ID, to_object_id
from mongoline.adapter.schema import FieldType, Schema
from mongoline.core.errors import QueryError

OPTION_KEYS = ("limit", "skip", "sort", "select")

# Inert when "aggregate" is falsy
AGGREGATE_FLAGS = ("aggregate", "aggregateGroup")

MODIFIERS = {
    "lessThan": "$lt",
    "<": "$lt",
    "lessThanOrEqual": "$lte",
    "<=": "$lte",
    "greaterThan": "$gt",
    ">": "$gt",
    "greaterThanOrEqual": "$gte",
    ">=": "$gte",
    "not": "$ne",
    "!": "$ne",
    "in": "$in",
    "nin": "$nin",
}

PATTERN_MODIFIERS = ("like", "contains", "startsWith", "endsWith")

SORT_DIRECTIONS = {1: 1, -1: -1, "asc": 1, "desc": -1}


def _identity(value: Any) -> Any:
    return value


def _is_modifier(key: Any) -> bool:
    return isinstance(key, str) and (
        key in MODIFIERS or key in PATTERN_MODIFIERS or key.startswith("$")
    )


def _pattern(modifier: str, value: str) -> str:
    if modifier == "like":
        return "^" + ".*".join(re.escape(part) for part in value.split("%")) + "$"
    if modifier == "startsWith":
        return "^" + re.escape(value)
    if modifier == "endsWith":
        return re.escape(value) + "$"
    return re.escape(value)


def _sort_field(name: str) -> str:
    return NATIVE_ID if name == ORM_ID else name


def _sort_direction(field: str, direction: Any) -> int:
    key = direction.lower() if isinstance(direction, str) else direction
    if isinstance(key, bool) or key not in SORT_DIRECTIONS:
        raise QueryError(f"Invalid sort direction for {field!r}: {direction!r}")
    return SORT_DIRECTIONS[key]


def parse_sort(sort: Any) -> list[tuple[str, int]]:
    """
    Normalize any accepted sort form into ``[(field, 1 | -1), ...]``.

    Accepts ``"name ASC, age desc"``, ``{"name": 1, "age": "desc"}`` or a
    list of either.
    """
    if isinstance(sort, str):
        parsed = []
        for clause in sort.split(","):
            parts = clause.split()
            if not parts or len(parts) > 2:
                raise QueryError(f"Invalid sort clause: {clause!r}")
            direction = parts[1] if len(parts) == 2 else "asc"
            parsed.append((_sort_field(parts[0]), _sort_direction(parts[0], direction)))
        return parsed

    if isinstance(sort, Mapping):
        return [
            (_sort_field(str(field)), _sort_direction(str(field), direction))
            for field, direction in sort.items()
        ]

    if isinstance(sort, (list, tuple)):
        parsed = []
        for item in sort:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                parsed.append((_sort_field(str(item[0])), _sort_direction(str(item[0]), item[1])))
            else:
                parsed.extend(parse_sort(item))
        return parsed

    raise QueryError(f"Invalid sort: {sort!r}")


class Query:
    """
    A validated, normalized criteria object.

    Attributes:
        criteria: Normalized criteria (``where`` and ``sort`` translated)
        aggregate: Whether the criteria asks for grouped results
        aggregate_group: The ``$group`` stage when ``aggregate`` is set
    """

    def __init__(self, criteria: Mapping[str, Any] | None, schema: Schema | None = None):
        if criteria is None:
            criteria = {}
        if not isinstance(criteria, Mapping):
            raise QueryError(f"Criteria must be a mapping, got {type(criteria).__name__}")

        self.schema = schema or {}
        self.aggregate = False
        self.aggregate_group: dict[str, Any] | None = None
        self.criteria = self.normalize_criteria(criteria)

    # ------------------------------------------------------------------
    # Public views
    # ------------------------------------------------------------------

    @property
    def where(self) -> dict[str, Any]:
        """The normalized filter; ``{}`` when the criteria had none."""
        return self.criteria.get("where") or {}

    @property
    def options(self) -> dict[str, Any]:
        """Every criteria key except ``where``."""
        return {key: value for key, value in self.criteria.items() if key != "where"}

    def driver_options(self) -> dict[str, Any]:
        """Keyword arguments for the driver's ``find``."""
        options = self.options
        kwargs: dict[str, Any] = {}
        if options.get("sort"):
            kwargs["sort"] = options["sort"]
        if options.get("limit") is not None:
            kwargs["limit"] = options["limit"]
        if options.get("skip") is not None:
            kwargs["skip"] = options["skip"]
        if options.get("select"):
            kwargs["projection"] = {_sort_field(name): 1 for name in options["select"]}
        return kwargs

    def pipeline(self) -> list[dict[str, Any]]:
        """The two-stage aggregation pipeline: ``$match`` then ``$group``."""
        if not self.aggregate:
            raise QueryError("Criteria does not describe an aggregation")
        return [
            {"$match": self.where},
            {"$group": self.aggregate_group},
        ]

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_criteria(self, criteria: Mapping[str, Any]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for key, value in criteria.items():
            if key == "where":
                normalized[key] = self.parse_where(value)
            elif key == "sort" and value is not None:
                normalized[key] = parse_sort(value)
            else:
                normalized[key] = value

        if criteria.get("aggregate"):
            group = criteria.get("aggregateGroup")
            if not isinstance(group, Mapping):
                raise QueryError("Aggregate criteria require an aggregateGroup mapping")
            self.aggregate = True
            self.aggregate_group = dict(group)
        elif is_aggregate(criteria):
            self.aggregate = True
            self.aggregate_group = build_group(criteria)
        else:
            self._validate_options(normalized)

        return normalized

    def _validate_options(self, criteria: Mapping[str, Any]) -> None:
        for key, value in criteria.items():
            if key == "where" or key in AGGREGATE_FLAGS or value is None:
                continue
            if key not in OPTION_KEYS:
                raise QueryError(f"Unsupported criteria option: {key!r}")
            if key in ("limit", "skip"):
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise QueryError(f"{key} must be a non-negative integer, got {value!r}")
            if key == "select":
                if not isinstance(value, (list, tuple)) or not all(
                    isinstance(name, str) for name in value
                ):
                    raise QueryError("select must be a list of field names")

    def parse_where(self, where: Any) -> dict[str, Any]:
        if where is None:
            return {}
        if not isinstance(where, Mapping):
            raise QueryError(f"where must be a mapping, got {type(where).__name__}")

        parsed: dict[str, Any] = {}
        for key, value in where.items():
            if key == "or":
                if not isinstance(value, (list, tuple)) or not value:
                    raise QueryError("or must be a non-empty list of clauses")
                for clause in value:
                    if not isinstance(clause, Mapping):
                        raise QueryError("Every or clause must be a mapping")
                parsed["$or"] = [self.parse_where(clause) for clause in value]
            elif isinstance(key, str) and key.startswith("$"):
                parsed[key] = value
            else:
                field = NATIVE_ID if key == ORM_ID else key
                parsed[field] = self.parse_value(key, value)
        return parsed

    def parse_value(self, key: str, value: Any) -> Any:
        coerce: Callable[[Any], Any] = _identity
        spec = self.schema.get(key)
        if key in (ORM_ID, NATIVE_ID) or (spec is not None and spec.type is FieldType.OBJECTID):
            coerce = to_object_id

        if isinstance(value, (list, tuple)):
            return {"$in": [coerce(item) for item in value]}
        if isinstance(value, Mapping):
            return self.parse_modifiers(key, value, coerce)
        return coerce(value)

    def parse_modifiers(
        self,
        key: str,
        modifiers: Mapping[str, Any],
        coerce: Callable[[Any], Any],
    ) -> dict[str, Any]:
        flags = [_is_modifier(name) for name in modifiers]
        if not any(flags):
            # An embedded document compared by equality
            return dict(modifiers)
        if not all(flags):
            unknown = [name for name in modifiers if not _is_modifier(name)]
            raise QueryError(f"Unknown modifier(s) for {key!r}: {unknown}")

        parsed: dict[str, Any] = {}
        for name, operand in modifiers.items():
            if name.startswith("$"):
                parsed[name] = operand
            elif name in PATTERN_MODIFIERS:
                if not isinstance(operand, str):
                    raise QueryError(f"{name} on {key!r} requires a string")
                if "$regex" in parsed:
                    raise QueryError(f"Only one pattern modifier allowed on {key!r}")
                parsed["$regex"] = _pattern(name, operand)
                parsed["$options"] = "i"
            else:
                operator = MODIFIERS[name]
                is_list = isinstance(operand, (list, tuple))
                if operator == "$ne" and is_list:
                    operator = "$nin"
                if operator in ("$in", "$nin"):
                    if not is_list:
                        raise QueryError(f"{name} on {key!r} requires a list")
                    parsed[operator] = [coerce(item) for item in operand]
                else:
                    parsed[operator] = coerce(operand)
        return parsed


__all__ = [
    "Query",
    "parse_sort",
    "OPTION_KEYS",
    "MODIFIERS",
    "PATTERN_MODIFIERS",
]
