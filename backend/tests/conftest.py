"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import path for the backend package and an
    in-memory stand-in for the motor database (collections, cursors,
    sessions with rollback) used by service, worker and router tests.
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))


def _matches_condition(value, cond) -> bool:
    if isinstance(cond, dict) and cond and all(str(k).startswith("$") for k in cond):
        for op, expected in cond.items():
            if op == "$ne":
                if isinstance(value, list):
                    if expected in value:
                        return False
                elif value == expected:
                    return False
            elif op == "$in":
                if value not in expected:
                    return False
            elif op == "$gte":
                if value is None or value < expected:
                    return False
            elif op == "$gt":
                if value is None or value <= expected:
                    return False
            elif op == "$lte":
                if value is None or value > expected:
                    return False
            elif op == "$lt":
                if value is None or value >= expected:
                    return False
            elif op == "$exists":
                if (value is not None) is not bool(expected):
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list) and not isinstance(cond, list):
        return cond in value
    return value == cond


def matches(doc: dict, query: dict | None) -> bool:
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, clause) for clause in cond):
                return False
            continue
        if not _matches_condition(doc.get(key), cond):
            return False
    return True


def _apply_update(doc: dict, update: dict, inserting: bool = False) -> None:
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$setOnInsert":
            if inserting:
                doc.update(copy.deepcopy(fields))
        elif op == "$inc":
            for key, amount in fields.items():
                doc[key] = (doc.get(key) or 0) + amount
        elif op == "$addToSet":
            for key, item in fields.items():
                items = list(doc.get(key) or [])
                if item not in items:
                    items.append(item)
                doc[key] = items
        else:
            raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs
        self._sort: list[tuple[str, int]] = []
        self._limit: int | None = None

    def sort(self, key: str, direction: int = 1):
        self._sort.append((key, direction))
        return self

    def limit(self, value: int):
        self._limit = int(value)
        return self

    def _rows(self) -> list[dict]:
        rows = list(self._docs)
        for key, direction in reversed(self._sort):
            rows.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction < 0)
        if self._limit:
            rows = rows[: self._limit]
        return rows

    async def to_list(self, length: int | None = None):
        rows = self._rows()
        return rows if length is None else rows[:length]

    def __aiter__(self):
        self._iter = iter(self._rows())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name: str, unique_fields: tuple[str, ...] = ()):
        self.name = name
        self.docs: list[dict] = []
        self.unique_fields = unique_fields
        self.fail_update_ids: set = set()
        self.fail_inserts = False

    def _check_unique(self, doc: dict) -> None:
        for existing in self.docs:
            if existing["_id"] == doc["_id"]:
                raise DuplicateKeyError(f"duplicate _id in {self.name}")
            for field in self.unique_fields:
                if field in doc and existing.get(field) == doc[field]:
                    raise DuplicateKeyError(f"duplicate {field} in {self.name}")

    def find(self, query: dict | None = None, projection: dict | None = None, **_kwargs):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query)])

    async def find_one(self, query: dict | None = None, projection: dict | None = None, **_kwargs):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def count_documents(self, query: dict, **_kwargs) -> int:
        return sum(1 for d in self.docs if matches(d, query))

    async def insert_one(self, doc: dict, **_kwargs):
        if self.fail_inserts:
            raise PyMongoError(f"insert into {self.name} failed")
        doc.setdefault("_id", ObjectId())
        self._check_unique(doc)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def insert_many(self, docs: list[dict], **_kwargs):
        if self.fail_inserts:
            raise PyMongoError(f"insert into {self.name} failed")
        ids = []
        for doc in docs:
            result = await self.insert_one(doc)
            ids.append(result.inserted_id)
        return SimpleNamespace(inserted_ids=ids)

    def _upsert(self, query: dict, update: dict) -> dict:
        doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        doc.setdefault("_id", ObjectId())
        if any(existing["_id"] == doc["_id"] for existing in self.docs):
            raise DuplicateKeyError(f"duplicate _id in {self.name}")
        _apply_update(doc, update, inserting=True)
        self.docs.append(doc)
        return doc

    async def update_one(self, query: dict, update: dict, upsert: bool = False, **_kwargs):
        for doc in self.docs:
            if matches(doc, query):
                if doc["_id"] in self.fail_update_ids:
                    raise PyMongoError(f"update of {doc['_id']} failed")
                _apply_update(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = self._upsert(query, update)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def update_many(self, query: dict, update: dict, **_kwargs):
        hits = [doc for doc in self.docs if matches(doc, query)]
        for doc in hits:
            if doc["_id"] in self.fail_update_ids:
                raise PyMongoError(f"update of {doc['_id']} failed")
        for doc in hits:
            _apply_update(doc, update)
        return SimpleNamespace(matched_count=len(hits), modified_count=len(hits))

    async def find_one_and_update(
        self, query: dict, update: dict, upsert: bool = False,
        return_document: bool = False, **_kwargs,
    ):
        for doc in self.docs:
            if matches(doc, query):
                before = copy.deepcopy(doc)
                _apply_update(doc, update)
                return copy.deepcopy(doc) if return_document else before
        if upsert:
            doc = self._upsert(query, update)
            return copy.deepcopy(doc) if return_document else None
        return None


class FakeDB:
    """Attribute access creates collections on demand, like motor."""

    _UNIQUE = {"profiles": ("username",)}

    def __init__(self):
        self._collections: dict[str, FakeCollection] = {}

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._collections:
            self._collections[name] = FakeCollection(name, self._UNIQUE.get(name, ()))
        return self._collections[name]

    def snapshot(self) -> dict[str, list[dict]]:
        return {name: copy.deepcopy(c.docs) for name, c in self._collections.items()}

    def restore(self, snapshot: dict[str, list[dict]]) -> None:
        for name, coll in self._collections.items():
            coll.docs = copy.deepcopy(snapshot.get(name, []))


class _FakeTransaction:
    def __init__(self, db: FakeDB):
        self._db = db
        self._snapshot = None

    async def __aenter__(self):
        self._snapshot = self._db.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self._db.restore(self._snapshot)
        return False


class _FakeSession:
    def __init__(self, db: FakeDB):
        self._db = db

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc):
        return False

    def start_transaction(self):
        return _FakeTransaction(self._db)


class FakeClient:
    def __init__(self, db: FakeDB):
        self._db = db

    async def start_session(self):
        return _FakeSession(self._db)


@pytest.fixture
def fake_db(monkeypatch):
    import betadona.database as database

    db = FakeDB()
    monkeypatch.setattr(database, "db", db, raising=False)
    monkeypatch.setattr(database, "client", FakeClient(db), raising=False)
    return db
