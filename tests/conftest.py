"""In-memory stand-ins for the pymongo objects the services touch."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest
from pymongo.errors import BulkWriteError, PyMongoError


def _matches(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    for field, condition in query.items():
        value = document.get(field)
        if not isinstance(condition, dict):
            if value != condition:
                return False
            continue
        if value is None:
            return False
        if "$gte" in condition and not value >= condition["$gte"]:
            return False
        if "$lt" in condition and not value < condition["$lt"]:
            return False
    return True


@dataclass(frozen=True)
class RecordedUpsert:
    """Stands in for ``pymongo.UpdateOne`` with readable fields."""

    filter: Dict[str, Any]
    update: Dict[str, Any]
    upsert: bool = False


class FakeCursor:
    def __init__(self, documents: Iterable[Mapping[str, Any]]) -> None:
        self._documents = list(documents)
        self.closed = False

    def __iter__(self):
        return iter(self._documents)

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True


class FakeCollection:
    def __init__(
        self,
        documents: Optional[Iterable[Mapping[str, Any]]] = None,
        aggregate_result: Optional[Iterable[Mapping[str, Any]]] = None,
        error: Optional[PyMongoError] = None,
        rejected_ids: Iterable[Any] = (),
    ) -> None:
        self.documents: Dict[Any, Dict[str, Any]] = {
            doc["_id"]: copy.deepcopy(dict(doc)) for doc in documents or []
        }
        self.aggregate_result = list(aggregate_result or [])
        self.error = error
        self.rejected_ids = set(rejected_ids)
        self.calls: List[str] = []
        self.filters: List[Mapping[str, Any]] = []
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.bulk_requests: List[Any] = []
        self.bulk_ordered: List[bool] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def find(self, query: Optional[Mapping[str, Any]] = None) -> FakeCursor:
        self.calls.append("find")
        self.filters.append(query or {})
        self._maybe_fail()
        return FakeCursor(
            copy.deepcopy(doc) for doc in self.documents.values() if _matches(doc, query or {})
        )

    def insert_many(self, documents: List[Mapping[str, Any]]) -> SimpleNamespace:
        self.calls.append("insert_many")
        self._maybe_fail()
        inserted = []
        for index, document in enumerate(documents):
            if document["_id"] in self.documents:
                raise BulkWriteError(
                    {
                        "writeErrors": [
                            {"index": index, "code": 11000, "errmsg": "E11000 duplicate key error"}
                        ],
                        "nInserted": len(inserted),
                    }
                )
            self.documents[document["_id"]] = copy.deepcopy(dict(document))
            inserted.append(document["_id"])
        return SimpleNamespace(inserted_ids=inserted)

    def bulk_write(self, requests: List[Any], ordered: bool = True) -> SimpleNamespace:
        self.calls.append("bulk_write")
        self.bulk_requests.extend(requests)
        self.bulk_ordered.append(ordered)
        self._maybe_fail()
        upserted = matched = 0
        write_errors = []
        for index, request in enumerate(requests):
            key = request.filter["_id"]
            if key in self.rejected_ids:
                write_errors.append(
                    {"index": index, "code": 121, "errmsg": f"Document {key!r} failed validation"}
                )
                if ordered:
                    break
                continue
            changes = copy.deepcopy(request.update["$set"])
            if key in self.documents:
                self.documents[key].update(changes)
                matched += 1
            elif request.upsert:
                self.documents[key] = changes
                upserted += 1
        if write_errors:
            raise BulkWriteError(
                {"writeErrors": write_errors, "nUpserted": upserted, "nMatched": matched}
            )
        return SimpleNamespace(upserted_count=upserted, matched_count=matched)

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> FakeCursor:
        self.calls.append("aggregate")
        self.pipelines.append(pipeline)
        self._maybe_fail()
        return FakeCursor(copy.deepcopy(self.aggregate_result))


class FakeAdmin:
    def __init__(self, error: Optional[PyMongoError] = None) -> None:
        self.error = error
        self.commands: List[str] = []

    def command(self, name: str) -> Dict[str, Any]:
        self.commands.append(name)
        if self.error is not None:
            raise self.error
        return {"ok": 1.0}


class FakeMongoClient:
    def __init__(
        self,
        uri: str,
        collection: Optional[FakeCollection] = None,
        ping_error: Optional[PyMongoError] = None,
        **options: Any,
    ) -> None:
        self.uri = uri
        self.options = options
        self.admin = FakeAdmin(ping_error)
        self.collection = collection if collection is not None else FakeCollection()
        self.closed = False
        self.accessed: List[tuple[str, str]] = []

    def __getitem__(self, database: str) -> "_FakeDatabase":
        return _FakeDatabase(self, database)

    def close(self) -> None:
        self.closed = True


class _FakeDatabase:
    def __init__(self, client: FakeMongoClient, name: str) -> None:
        self._client = client
        self._name = name

    def __getitem__(self, collection: str) -> FakeCollection:
        self._client.accessed.append((self._name, collection))
        return self._client.collection


@pytest.fixture()
def fake_clients(monkeypatch) -> Dict[str, FakeMongoClient]:
    """Route ``MongoClient(uri)`` to pre-registered fakes keyed by URI."""

    registry: Dict[str, FakeMongoClient] = {}

    def factory(uri: str, **options: Any) -> FakeMongoClient:
        client = registry.setdefault(uri, FakeMongoClient(uri))
        client.options = options
        return client

    monkeypatch.setattr("datastore.mongo.MongoClient", factory)
    return registry


@pytest.fixture()
def recorded_upserts(monkeypatch) -> None:
    """Make the transfer service build ``RecordedUpsert`` requests."""

    monkeypatch.setattr("services.transfer.UpdateOne", RecordedUpsert)
