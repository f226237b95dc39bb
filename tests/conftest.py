"""
Shared test fixtures.

Provides an async facade over mongomock so repositories, services and routes
can run against an in-memory database through the pymongo async API.
"""

from types import SimpleNamespace

import mongomock
import pytest


class AsyncMockCursor:
    """Async iteration and to_list() over a mongomock cursor."""

    def __init__(self, cursor):
        self._cursor = cursor
        self._iter = None

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    def __aiter__(self):
        self._iter = iter(self._cursor)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncMockCollection:
    """The subset of AsyncCollection the repositories use, backed by mongomock."""

    def __init__(self, collection):
        self.sync = collection

    async def find_one(self, *args, **kwargs):
        return self.sync.find_one(*args, **kwargs)

    def find(self, *args, **kwargs):
        return AsyncMockCursor(self.sync.find(*args, **kwargs))

    async def insert_one(self, document):
        return self.sync.insert_one(document)

    async def insert_many(self, documents):
        return self.sync.insert_many(documents)

    async def update_one(self, *args, **kwargs):
        return self.sync.update_one(*args, **kwargs)

    async def delete_one(self, *args, **kwargs):
        return self.sync.delete_one(*args, **kwargs)

    async def bulk_write(self, requests, ordered=True):
        # Applies UpdateOne requests one by one; enough for the $push batches
        matched = modified = 0
        for op in requests:
            result = self.sync.update_one(op._filter, op._doc)
            matched += result.matched_count
            modified += result.modified_count
        return SimpleNamespace(matched_count=matched, modified_count=modified)

    async def create_index(self, *args, **kwargs):
        return self.sync.create_index(*args, **kwargs)

    async def aggregate(self, pipeline):
        return AsyncMockCursor(self.sync.aggregate(pipeline))


class AsyncMockDatabase:
    def __init__(self, db):
        self.sync = db
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = AsyncMockCollection(self.sync[name])
        return self._collections[name]


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient().db


@pytest.fixture
def async_db(mongo_db):
    db = AsyncMockDatabase(mongo_db)
    db["API"].sync.create_index("emailLower", unique=True)
    db["Users"].sync.create_index("email", unique=True)
    return db


@pytest.fixture
def credentials_col(async_db):
    return async_db["API"]


@pytest.fixture
def data_col(async_db):
    return async_db["Data"]


@pytest.fixture
def users_col(async_db):
    return async_db["Users"]
