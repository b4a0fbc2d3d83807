"""In-memory stand-in for the subset of ``AsyncMongoClient`` the adapter uses.

Every client built by :meth:`FakeServer.client_factory` shares the server's
storage, so data written through one per-operation connection is visible to
the next.  The server records every driver call and every client it hands
out, which lets tests assert which calls happened and that each client was
closed.

Failure injection:
    server.fail_ping = ServerSelectionTimeoutError("down")
    server.fail_on["insert_many"] = OperationFailure("boom")
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any

import bson
from bson import ObjectId


def _compare(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$in":
        return value in operand
    if operator == "$nin":
        return value not in operand
    if operator == "$ne":
        return value != operand
    if operator == "$regex":
        return isinstance(value, str) and re.search(operand, value) is not None
    if value is None:
        return False
    if operator == "$lt":
        return value < operand
    if operator == "$lte":
        return value <= operand
    if operator == "$gt":
        return value > operand
    if operator == "$gte":
        return value >= operand
    raise NotImplementedError(operator)


def matches(document: dict[str, Any], query: dict[str, Any] | None) -> bool:
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
            continue

        value = document.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            for operator, operand in condition.items():
                if operator == "$options":
                    continue
                if operator == "$regex":
                    operand = re.compile(operand, flags)
                if not _compare(value, operator, operand):
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]):
        self._documents = documents

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        if length is None:
            return list(self._documents)
        return list(self._documents[:length])


@dataclass
class InsertManyResult:
    inserted_ids: list[Any]


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int


@dataclass
class DeleteResult:
    deleted_count: int


class FakeCollection:
    def __init__(self, server: FakeServer, database: str, name: str):
        self._server = server
        self.database = database
        self.name = name

    @property
    def documents(self) -> list[dict[str, Any]]:
        return self._server.storage.setdefault((self.database, self.name), [])

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self._server.calls.append((method, args, kwargs))
        if method in self._server.fail_on:
            raise self._server.fail_on[method]

    @staticmethod
    def _encode(*documents: dict[str, Any] | None) -> None:
        # The driver encodes every command to BSON before sending it
        for doc in documents:
            bson.encode(doc or {})

    def find(
        self,
        filter: dict[str, Any] | None = None,
        projection: dict[str, int] | None = None,
        sort: list[tuple[str, int]] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> FakeCursor:
        self._record("find", filter, projection=projection, sort=sort, skip=skip, limit=limit)
        self._encode(filter, projection)

        found = [copy.deepcopy(doc) for doc in self.documents if matches(doc, filter)]
        for key, direction in reversed(sort or []):
            found.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        found = found[skip:]
        if limit:
            found = found[:limit]
        if projection:
            keep = {key for key, flag in projection.items() if flag} | {"_id"}
            found = [{k: v for k, v in doc.items() if k in keep} for doc in found]
        return FakeCursor(found)

    async def aggregate(self, pipeline: list[dict[str, Any]]) -> FakeCursor:
        self._record("aggregate", pipeline)
        self._encode({"pipeline": pipeline})

        rows = [copy.deepcopy(doc) for doc in self.documents]
        for stage in pipeline:
            if "$match" in stage:
                rows = [doc for doc in rows if matches(doc, stage["$match"])]
            elif "$group" in stage:
                rows = _group(rows, stage["$group"])
            else:
                raise NotImplementedError(stage)
        return FakeCursor(rows)

    async def insert_many(self, documents: list[dict[str, Any]]) -> InsertManyResult:
        self._record("insert_many", documents)
        self._encode(*documents)

        inserted_ids = []
        for doc in documents:
            stored = copy.deepcopy(doc)
            stored.setdefault("_id", ObjectId())
            self.documents.append(stored)
            inserted_ids.append(stored["_id"])
        return InsertManyResult(inserted_ids=inserted_ids)

    async def update_many(self, filter: dict[str, Any], update: dict[str, Any]) -> UpdateResult:
        self._record("update_many", filter, update)
        self._encode(filter, update)

        matched = [doc for doc in self.documents if matches(doc, filter)]
        for doc in matched:
            doc.update(copy.deepcopy(update.get("$set", {})))
        return UpdateResult(matched_count=len(matched), modified_count=len(matched))

    async def delete_many(self, filter: dict[str, Any]) -> DeleteResult:
        self._record("delete_many", filter)
        self._encode(filter)

        kept = [doc for doc in self.documents if not matches(doc, filter)]
        deleted = len(self.documents) - len(kept)
        self._server.storage[(self.database, self.name)] = kept
        return DeleteResult(deleted_count=deleted)

    async def create_index(self, keys: list[tuple[str, int]], **options: Any) -> str:
        self._record("create_index", keys, **options)
        return "_".join(f"{key}_{direction}" for key, direction in keys)


def _group(rows: list[dict[str, Any]], spec: dict[str, Any]) -> list[dict[str, Any]]:
    id_spec = spec["_id"]
    groups: dict[Any, list[dict[str, Any]]] = {}
    keys: dict[Any, Any] = {}
    for row in rows:
        if isinstance(id_spec, dict):
            group_id = {name: row.get(ref.lstrip("$")) for name, ref in id_spec.items()}
            hashable = tuple(sorted(group_id.items()))
        else:
            group_id, hashable = None, None
        keys[hashable] = group_id
        groups.setdefault(hashable, []).append(row)

    results = []
    for hashable, members in groups.items():
        result: dict[str, Any] = {"_id": keys[hashable]}
        for name, accumulator in spec.items():
            if name == "_id":
                continue
            (operator, ref), = accumulator.items()
            values = [m.get(ref.lstrip("$")) for m in members if m.get(ref.lstrip("$")) is not None]
            if operator == "$sum":
                result[name] = sum(values)
            elif operator == "$avg":
                result[name] = sum(values) / len(values) if values else None
            elif operator == "$min":
                result[name] = min(values) if values else None
            elif operator == "$max":
                result[name] = max(values) if values else None
        results.append(result)
    return results


class FakeAdmin:
    def __init__(self, server: FakeServer):
        self._server = server

    async def command(self, name: str) -> dict[str, Any]:
        self._server.calls.append(("command", (name,), {}))
        if self._server.fail_ping is not None:
            raise self._server.fail_ping
        return {"ok": 1.0}


class FakeDatabase:
    def __init__(self, server: FakeServer, name: str):
        self._server = server
        self.name = name

    def __getitem__(self, name: str) -> FakeCollection:
        return FakeCollection(self._server, self.name, name)


class FakeMongoClient:
    def __init__(self, server: FakeServer, uri: str, **options: Any):
        self._server = server
        self.uri = uri
        self.options = options
        self.closed = False
        self.admin = FakeAdmin(server)

    def __getitem__(self, name: str) -> FakeDatabase:
        return FakeDatabase(self._server, name)

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeServer:
    storage: dict[tuple[str, str], list[dict[str, Any]]] = field(default_factory=dict)
    calls: list[tuple[str, tuple, dict]] = field(default_factory=list)
    clients: list[FakeMongoClient] = field(default_factory=list)
    fail_ping: Exception | None = None
    fail_on: dict[str, Exception] = field(default_factory=dict)

    def client_factory(self, uri: str, **options: Any) -> FakeMongoClient:
        client = FakeMongoClient(self, uri, **options)
        self.clients.append(client)
        return client

    def collection(self, name: str, database: str = "testdb") -> FakeCollection:
        return FakeCollection(self, database, name)

    def call_names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def calls_named(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    @property
    def all_closed(self) -> bool:
        return all(client.closed for client in self.clients)
