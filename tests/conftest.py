"""
Shared fixtures for the document service tests.

The Mongo catalog is replaced by an in-memory async collection fake installed
on ``facility_docs.database.mongo.db``; the object store is replaced by a
recording fake injected through the ``get_object_store`` dependency.
"""

from __future__ import annotations

import asyncio
import copy
import os
import re
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

import facility_docs.database.mongo as mongo
from facility_docs.config import Env, settings
from facility_docs.core.cache import TTLCache
from facility_docs.core.errors import ConfigurationError
from facility_docs.storage import StoredObject, object_format, resource_type


# =============================================================================
# MONGO FAKE
# =============================================================================


def _matches_value(value: Any, cond: Any) -> bool:
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        values = value if isinstance(value, list) else [value]
        for op, arg in cond.items():
            if op == "$options":
                continue
            if op == "$regex":
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if not any(isinstance(v, str) and re.search(arg, v, flags) for v in values):
                    return False
            elif op == "$all":
                if not all(a in (value or []) for a in arg):
                    return False
            elif op == "$in":
                if not any(v in arg for v in values):
                    return False
            elif op == "$ne":
                if value == arg:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list) and not isinstance(cond, list):
        return cond in value
    return value == cond


def _matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
        elif not _matches_value(doc.get(key), cond):
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[dict]):
        self._docs = docs
        self._skip = 0
        self._limit: Optional[int] = None

    def sort(self, keys):
        for key, direction in reversed(list(keys)):
            self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction < 0)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def to_list(self, length: Optional[int] = None):
        docs = self._docs[self._skip:]
        caps = [x for x in (self._limit, length) if x]
        if caps:
            docs = docs[: min(caps)]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: List[dict] = []
        self.indexes: List[tuple] = []
        self.fail_inserts: Optional[Exception] = None

    async def insert_one(self, doc: dict):
        if self.fail_inserts is not None:
            raise self.fail_inserts
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, query: dict):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: dict):
        return FakeCursor([d for d in self.docs if _matches(d, query)])

    async def update_one(self, query: dict, update: dict):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def count_documents(self, query: dict) -> int:
        return sum(1 for d in self.docs if _matches(d, query))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((tuple(keys), kwargs))
        return "_".join(f"{k}_{d}" for k, d in keys)


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# =============================================================================
# OBJECT STORE FAKE
# =============================================================================


class FakeObjectStore:
    """Records every call; latency and failures are set per filename."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.put_calls: List[str] = []
        self.delete_calls: List[str] = []
        self.completion_order: List[str] = []
        self.latencies: Dict[str, float] = {}
        self.fail_on: Dict[str, Exception] = {}
        self.delete_error: Optional[Exception] = None
        self.reported_sizes: Dict[str, int] = {}
        self.configured = True

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError(error="Missing settings: AWS_S3_BUCKET_NAME")

    async def put(self, data: bytes, folder: str, filename: str, content_type: str) -> StoredObject:
        self.put_calls.append(filename)
        await asyncio.sleep(self.latencies.get(filename, 0))
        if filename in self.fail_on:
            raise self.fail_on[filename]
        key = f"{folder}/{uuid4().hex}{os.path.splitext(filename)[1].lower()}"
        self.objects[key] = data
        self.completion_order.append(filename)
        return StoredObject(
            public_id=key,
            url=f"https://test-bucket.s3.us-east-1.amazonaws.com/{key}",
            format=object_format(filename, content_type),
            bytes=self.reported_sizes.get(filename, len(data)),
            resource_type=resource_type(content_type),
        )

    async def delete(self, public_id: str) -> bool:
        self.delete_calls.append(public_id)
        if self.delete_error is not None:
            raise self.delete_error
        return self.objects.pop(public_id, None) is not None


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    monkeypatch.setattr(settings, "env", Env.TEST)
    monkeypatch.setattr(settings, "max_upload_size", 5 * 1024 * 1024)
    monkeypatch.setattr(settings, "max_batch_files", 10)


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(mongo, "db", db)
    return db


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def cache():
    return TTLCache()


@pytest_asyncio.fixture
async def client(fake_db, object_store, cache):
    from facility_docs.api.dependencies import get_object_store
    from facility_docs.main import app

    app.dependency_overrides[get_object_store] = lambda: object_store
    previous_cache = app.state.cache
    app.state.cache = cache
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.state.cache = previous_cache
    app.dependency_overrides.clear()


@pytest.fixture
def make_record():
    """Build the dict handed to ``document_crud.create_document``."""

    def _make(**overrides):
        storage_id = overrides.pop("storage_id", f"documents/{uuid4().hex}.pdf")
        record = {
            "storage_url": f"https://test-bucket.s3.us-east-1.amazonaws.com/{storage_id}",
            "storage_id": storage_id,
            "original_filename": "report.pdf",
            "content_type": "application/pdf",
            "size_bytes": 1024,
            "folder": "documents",
            "owner_id": None,
            "description": None,
            "tags": [],
        }
        record.update(overrides)
        return record

    return _make
