"""Test support for mongoline: the in-memory driver used across the suite."""

from tests._support.fake_mongo import FakeMongoClient, FakeServer, matches

__all__ = [
    "FakeMongoClient",
    "FakeServer",
    "matches",
]
