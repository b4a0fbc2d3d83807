"""Collection façade: the ORM's CRUD verbs over one MongoDB collection.

Every operation follows the same shape::

    translate criteria / shape values      (fails fast, no I/O)
        ↓
    open connection                         (connection_scope)
        ↓
    native driver call(s)
        ↓
    normalize result (_id → id)
        ↓
    close connection                        (always)
        ↓
    Ok(records) | Err(error)

Operations never raise: criteria, schema, connection and driver failures all
come back as ``Err``.

Examples:
    >>> users = Collection({
    ...     "identity": "User",
    ...     "config": "mongodb://localhost:27017/app",
    ...     "definition": {"name": {"type": "string", "unique": True}},
    ... })
    >>> result = await users.insert({"name": "a"})
    >>> result.unwrap()
    [{'id': '65f1...', 'name': 'a'}]
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from bson.errors import BSONError
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from mongoline.adapter.aggregate import flatten_groups
from mongoline.adapter.connection import (
    ClientFactory,
    connection_scope,
    translate_driver_error,
)
from mongoline.adapter.document import Document
from mongoline.adapter.ids import NATIVE_ID, ORM_ID, normalize_removal, rewrite_ids
from mongoline.adapter.indexes import IndexDescriptor, build_indexes
from mongoline.adapter.query import Query
from mongoline.adapter.schema import Schema, parse_schema
from mongoline.adapter.types import MongoConfig, parse_url
from mongoline.core.errors import (
    ConfigError,
    MongolineError,
    QueryError,
    RecordNotFoundError,
    ValidationError,
)
from mongoline.core.logging import LogContext, get_logger
from mongoline.core.result import Err, Ok, Result
from mongoline.core.settings import get_settings

logger = get_logger(__name__)

Records = list[dict[str, Any]]


class CollectionDefinition(BaseModel):
    """
    What the ORM hands over when it registers a model.

    ``config`` is a connection URL, a mapping of connection parameters or a
    :class:`MongoConfig`; ``None`` falls back to ``MONGOLINE_URL``.
    Unrelated ORM keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    identity: str = Field(min_length=1)
    config: str | dict[str, Any] | MongoConfig | None = None
    definition: dict[str, Any] = Field(default_factory=dict)


class Collection:
    """
    One ORM model mapped onto one MongoDB collection.

    Built once per model registration: the definition is parsed and the
    index descriptors computed here, then never change.  Each operation
    allocates its own connection, so concurrent calls share no state.
    """

    def __init__(
        self,
        definition: CollectionDefinition | Mapping[str, Any],
        *,
        client_factory: ClientFactory | None = None,
    ):
        self._client_factory = client_factory
        parsed = self.parse_definition(definition)

        self.identity: str = parsed.identity.lower()
        self.config: MongoConfig = (
            parse_url(parsed.config) if parsed.config is not None else get_settings().to_config()
        )
        self.config.require_database()
        self.schema: Schema = parse_schema(parsed.definition, identity=self.identity)
        self.indexes: tuple[IndexDescriptor, ...] = build_indexes(self.schema)

        logger.debug("indexes_built", collection=self.identity, count=len(self.indexes))

    @staticmethod
    def parse_definition(definition: CollectionDefinition | Mapping[str, Any]) -> CollectionDefinition:
        if isinstance(definition, CollectionDefinition):
            return definition
        try:
            return CollectionDefinition.model_validate(definition)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid collection definition: {e}", cause=e) from e

    def __repr__(self) -> str:
        return f"Collection({self.identity!r}, database={self.config.database!r})"

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def find(self, criteria: Mapping[str, Any] | None = None) -> Result[Records]:
        """Find records, or grouped summaries for aggregate criteria."""
        try:
            query = Query(criteria, self.schema)
        except QueryError as e:
            return self._fail("find", e)
        return await self._run("find", self._find, query)

    async def insert(self, values: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Result[Records]:
        """Insert one record or a batch. The result always has one entry per input."""
        batch = list(values) if isinstance(values, (list, tuple)) else [values]
        try:
            docs = [Document(value, self.schema).values for value in batch]
        except ValidationError as e:
            return self._fail("insert", e)
        if not docs:
            return Ok([])
        return await self._run("insert", self._insert, docs)

    async def update(
        self,
        criteria: Mapping[str, Any] | None,
        values: Mapping[str, Any],
    ) -> Result[Records]:
        """Set ``values`` on every matching record and return their new state."""
        try:
            query = Query(criteria, self.schema)
            if query.aggregate:
                raise QueryError("Aggregate criteria cannot select records to update")
            document = Document(values, self.schema, partial=True).values
        except MongolineError as e:
            return self._fail("update", e)

        # Identifiers are immutable in MongoDB
        document.pop(ORM_ID, None)
        document.pop(NATIVE_ID, None)
        if not document:
            return self._fail("update", ValidationError("No values to update"))

        return await self._run("update", self._update, query, document)

    async def destroy(self, criteria: Mapping[str, Any] | None = None) -> Result[Records]:
        """Remove matching records and return ``[{"id": ...}]`` for each one removed."""
        try:
            query = Query(criteria, self.schema)
            if query.aggregate:
                raise QueryError("Aggregate criteria cannot select records to destroy")
        except QueryError as e:
            return self._fail("destroy", e)
        return await self._run("destroy", self._destroy, query)

    async def ensure_indexes(self) -> Result[list[str]]:
        """Create every index built from the schema. Returns the index names."""
        return await self._run("ensure_indexes", self._ensure_indexes)

    # ------------------------------------------------------------------
    # Driver calls (run inside an open connection)
    # ------------------------------------------------------------------

    async def _find(self, collection: Any, query: Query) -> Records:
        if query.aggregate:
            cursor = await collection.aggregate(query.pipeline())
            return flatten_groups(await cursor.to_list())

        cursor = collection.find(query.where, **query.driver_options())
        return rewrite_ids(await cursor.to_list())

    async def _insert(self, collection: Any, docs: Records) -> Records:
        result = await collection.insert_many(docs)
        for doc, _id in zip(docs, result.inserted_ids):
            doc[NATIVE_ID] = _id
        return rewrite_ids(docs)

    async def _matching_ids(self, collection: Any, where: dict[str, Any]) -> list[Any]:
        matches = await collection.find(where, projection={NATIVE_ID: 1}).to_list()
        return [match[NATIVE_ID] for match in matches]

    async def _update(self, collection: Any, query: Query, values: dict[str, Any]) -> Records:
        # Capture identifiers first: the update reply carries no documents
        ids = await self._matching_ids(collection, query.where)
        if not ids:
            raise RecordNotFoundError("Could not find any records to update")

        await collection.update_many(query.where, {"$set": values})

        records = await collection.find({NATIVE_ID: {"$in": ids}}).to_list()
        return rewrite_ids(records)

    async def _destroy(self, collection: Any, query: Query) -> Records:
        ids = await self._matching_ids(collection, query.where)
        if not ids:
            return []

        result = await collection.delete_many({NATIVE_ID: {"$in": ids}})
        # A concurrent delete can shrink deleted_count; the ids reported are then
        # the first deleted_count captured, not necessarily the ones removed here
        return normalize_removal(result.deleted_count, ids)

    async def _ensure_indexes(self, collection: Any) -> list[str]:
        names = []
        for descriptor in self.indexes:
            names.append(await collection.create_index(descriptor.keys(), **descriptor.options))
        return names

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        handler: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Result[Any]:
        async with LogContext(collection=self.identity, operation=operation):
            logger.debug("operation_started")
            try:
                async with connection_scope(
                    self.config, client_factory=self._client_factory
                ) as connection:
                    records = await handler(connection.collection(self.identity), *args)
            except MongolineError as e:
                return self._fail(operation, e)
            except (BSONError, OverflowError) as e:
                return self._fail(
                    operation,
                    ValidationError(f"Cannot encode values for {self.identity}: {e}", cause=e),
                )
            except PyMongoError as e:
                return self._fail(
                    operation,
                    translate_driver_error(e, f"{operation} on {self.identity} failed"),
                )

            logger.debug("operation_completed", count=len(records))
            return Ok(records)

    def _fail(self, operation: str, error: MongolineError) -> Err[Any]:
        error.with_context(collection=self.identity, operation=operation)
        logger.warning("operation_failed", collection=self.identity, operation=operation, error=error.to_dict())
        return Err(error)


__all__ = [
    "Collection",
    "CollectionDefinition",
]
