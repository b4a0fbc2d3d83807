"""Field specs: the declarative schema attached to a collection definition.

Each attribute of a model definition is validated against a fixed set of
keys at load time.  Unknown keys and unknown types are rejected with
``SchemaError`` instead of being silently ignored.

Tags:
    schema, pydantic, field-spec, mongoline
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from mongoline.core.errors import SchemaError
from mongoline.core.logging import get_logger

logger = get_logger(__name__)


class FieldType(str, Enum):
    """Supported attribute types."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    ARRAY = "array"
    OBJECTID = "objectid"


class FieldSpec(BaseModel):
    """
    A single attribute definition.

    Accepts the ORM's camelCase flags (``autoIncrement``, ``primaryKey``)
    as aliases.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    type: FieldType = FieldType.JSON
    unique: bool = False
    index: bool = False
    auto_increment: bool = Field(default=False, alias="autoIncrement")
    primary_key: bool = Field(default=False, alias="primaryKey")
    required: bool = False


Schema = dict[str, FieldSpec]


def parse_field(name: str, spec: Any) -> FieldSpec:
    """Validate one attribute. A bare string is shorthand for ``{"type": ...}``."""
    if isinstance(spec, FieldSpec):
        return spec
    if isinstance(spec, str):
        spec = {"type": spec}
    if not isinstance(spec, Mapping):
        raise SchemaError(
            f"Field spec for {name!r} must be a mapping or a type name",
            field=name,
            value=spec,
        )

    try:
        return FieldSpec.model_validate(dict(spec))
    except PydanticValidationError as e:
        raise SchemaError(
            f"Invalid field spec for {name!r}: {e.errors()[0]['msg']}",
            field=name,
            value=dict(spec),
            cause=e,
        ) from e


def parse_schema(definition: Mapping[str, Any] | None, *, identity: str = "") -> Schema:
    """
    Validate a whole attribute mapping.

    ``autoIncrement`` is stripped from every field: MongoDB would need a
    separate counter collection to support it.
    """
    schema: Schema = {}
    for name, spec in (definition or {}).items():
        field_spec = parse_field(name, spec)
        if field_spec.auto_increment:
            logger.warning("auto_increment_stripped", collection=identity, field=name)
            field_spec = field_spec.model_copy(update={"auto_increment": False})
        schema[name] = field_spec
    return schema


__all__ = [
    "FieldType",
    "FieldSpec",
    "Schema",
    "parse_field",
    "parse_schema",
]
