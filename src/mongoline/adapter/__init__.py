"""MongoDB adapter -- ORM criteria, schemas and CRUD verbs over pymongo's asyncio API.

Manifesto:
    An ORM speaks in criteria objects (``where`` plus modifiers), generic
    ``id`` fields and declarative attribute flags.  MongoDB speaks in
    filters, ``_id`` and index specs.  This package is the translation
    between the two and nothing more: no query planning, no caching, no
    retry policy, no pooling beyond what the driver already does.

Architecture::

    Collection (collection.py)        find / insert / update / destroy
        |-- Query (query.py)          criteria -> filter + options | pipeline
        |     `-- aggregate.py        groupBy/sum/average/min/max -> $group
        |-- Document (document.py)    values -> stored document
        |-- ids.py                    _id <-> id normalization
        |-- indexes.py                schema flags -> index descriptors
        |-- schema.py                 FieldSpec validation
        `-- connection.py             connection_scope over AsyncMongoClient

    connectable.py                    create/destroy manager, get/release connection
    types.py                          MongoConfig + parse_url

Guardrails:
    ❌ ``await users.find(...)`` inside ``try/except``
    ✅ ``match await users.find(...)`` on ``Ok`` / ``Err``
    ❌ Passing ``_id`` in update values
    ✅ Select records through ``where``; identifiers are stripped from values

Tags:
    mongodb, pymongo, adapter, orm, criteria, normalization
"""

from .collection import Collection, CollectionDefinition
from .connectable import (
    Manager,
    create_manager,
    destroy_manager,
    get_connection,
    release_connection,
)
from .connection import Connection, connection_scope
from .document import Document
from .indexes import IndexDescriptor, build_indexes
from .query import Query
from .schema import FieldSpec, FieldType, parse_schema
from .types import MongoConfig, parse_url

__all__ = [
    # Façade
    "Collection",
    "CollectionDefinition",
    # Translation
    "Query",
    "Document",
    "FieldSpec",
    "FieldType",
    "parse_schema",
    "IndexDescriptor",
    "build_indexes",
    # Connections
    "MongoConfig",
    "parse_url",
    "Connection",
    "connection_scope",
    "Manager",
    "create_manager",
    "destroy_manager",
    "get_connection",
    "release_connection",
]
