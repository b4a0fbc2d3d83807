"""Inbound value shaping: ORM values to the document MongoDB will persist."""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from typing import Any

from bson import ObjectId

from mongoline.adapter.ids import NATIVE_ID, ORM_ID, to_object_id
from mongoline.adapter.schema import FieldSpec, FieldType, Schema
from mongoline.core.errors import SchemaError, ValidationError

# BSON int64 bounds
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError("expected a string")


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got a boolean")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str):
        number = int(value.strip())
    else:
        raise ValueError("expected an integer")
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError("integer out of 64-bit range")
    return number


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError("expected a number")


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
        return value.lower() in ("true", "1")
    raise ValueError("expected a boolean")


def _to_datetime(value: Any) -> datetime:
    # BSON has no date-only type
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise ValueError("expected a date or an ISO-8601 string")


def _to_array(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValueError("expected a list")


def _to_object_id(value: Any) -> ObjectId:
    coerced = to_object_id(value)
    if not isinstance(coerced, ObjectId):
        raise ValueError("expected an ObjectId or a 24-character hex string")
    return coerced


COERCERS: dict[FieldType, Callable[[Any], Any]] = {
    FieldType.STRING: _to_string,
    FieldType.TEXT: _to_string,
    FieldType.INTEGER: _to_integer,
    FieldType.FLOAT: _to_float,
    FieldType.BOOLEAN: _to_boolean,
    FieldType.DATE: _to_datetime,
    FieldType.DATETIME: _to_datetime,
    FieldType.JSON: lambda value: value,
    FieldType.ARRAY: _to_array,
    FieldType.OBJECTID: _to_object_id,
}


def coerce_value(name: str, spec: FieldSpec, value: Any) -> Any:
    """Coerce ``value`` to the declared type of ``name``. ``None`` is kept."""
    if value is None:
        return None
    try:
        return COERCERS[spec.type](value)
    except (TypeError, ValueError) as e:
        raise SchemaError(
            f"Invalid value for {name!r} ({spec.type.value}): {e}",
            field=name,
            value=value,
            cause=e,
        ) from e


class Document:
    """
    A value mapping shaped for storage.

    - ``id`` is renamed to ``_id`` (hex strings become ``ObjectId``)
    - with a non-empty schema, undeclared attributes are dropped
    - declared attributes are coerced to their type
    - unless ``partial``, missing ``required`` attributes are rejected

    The caller's mapping is never mutated.
    """

    def __init__(
        self,
        values: Mapping[str, Any] | None,
        schema: Schema | None = None,
        *,
        partial: bool = False,
    ):
        if values is None:
            values = {}
        if not isinstance(values, Mapping):
            raise ValidationError(
                f"Values must be a mapping, got {type(values).__name__}",
                value=values,
            )

        self.schema = schema or {}
        self.partial = partial
        self.values = self.parse_values(copy.deepcopy(dict(values)))

    def parse_values(self, values: dict[str, Any]) -> dict[str, Any]:
        values = self.parse_id(values)
        if not self.schema:
            return values

        values = {
            key: value
            for key, value in values.items()
            if key == NATIVE_ID or key in self.schema
        }
        for name, spec in self.schema.items():
            if name in values:
                values[name] = coerce_value(name, spec, values[name])

        if not self.partial:
            self.check_required(values)
        return values

    def parse_id(self, values: dict[str, Any]) -> dict[str, Any]:
        if ORM_ID in values:
            _id = values.pop(ORM_ID)
            if _id is not None:
                values[NATIVE_ID] = to_object_id(_id)
        elif NATIVE_ID in values:
            values[NATIVE_ID] = to_object_id(values[NATIVE_ID])
        return values

    def check_required(self, values: Mapping[str, Any]) -> None:
        missing = [
            name
            for name, spec in self.schema.items()
            if spec.required
            and not spec.primary_key
            and name != ORM_ID
            and values.get(name) is None
        ]
        if missing:
            raise ValidationError(
                f"Missing required attribute(s): {', '.join(missing)}",
                field=missing[0],
            )


__all__ = [
    "Document",
    "coerce_value",
]
