"""
mongoline - ORM collection adapter for MongoDB.

Translates ORM criteria, schema flags and CRUD verbs onto pymongo's asyncio
driver and normalizes identifiers and results back to the ORM's shape.
"""

__version__ = "0.1.0"

from mongoline.adapter import Collection, CollectionDefinition  # noqa: E402
from mongoline.core.result import Err, Ok, Result  # noqa: E402

__all__ = [
    "Collection",
    "CollectionDefinition",
    "Result",
    "Ok",
    "Err",
    "__version__",
]
