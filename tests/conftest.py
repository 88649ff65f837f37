import asyncio

import pytest

from hellogt.config import settings
from hellogt.core.errors import StoreUnavailable
from hellogt.db.memory import InMemoryDocumentStore
from hellogt.db.redis import LocalStateService, MemoryKeyValue


class FlakyStore(InMemoryDocumentStore):
    """In-memory store that fails chosen operations, optionally per collection."""

    def __init__(self):
        super().__init__()
        self.failing = set()

    def fail(self, op: str, collection: str = "*") -> None:
        self.failing.add((op, collection))

    def recover(self) -> None:
        self.failing.clear()

    def _check(self, op: str, collection: str) -> None:
        if (op, "*") in self.failing or (op, collection) in self.failing:
            raise StoreUnavailable(f"{op} {collection}: backend offline")

    async def get(self, collection, document_id):
        self._check("get", collection)
        return await super().get(collection, document_id)

    async def upsert(self, collection, document_id, fields, merge=False):
        self._check("upsert", collection)
        return await super().upsert(collection, document_id, fields, merge)

    async def query(self, collection, filters=()):
        self._check("query", collection)
        return await super().query(collection, filters)

    def subscribe(self, collection, filters, on_change):
        self._check("subscribe", collection)
        return super().subscribe(collection, filters, on_change)


class SlowStore(FlakyStore):
    """Every read and write suspends, so concurrent callers interleave."""

    def __init__(self, delay: float = 0.01):
        super().__init__()
        self.delay = delay

    async def get(self, collection, document_id):
        await asyncio.sleep(self.delay)
        return await super().get(collection, document_id)

    async def upsert(self, collection, document_id, fields, merge=False):
        await asyncio.sleep(self.delay)
        return await super().upsert(collection, document_id, fields, merge)

    async def query(self, collection, filters=()):
        await asyncio.sleep(self.delay)
        return await super().query(collection, filters)


class BrokenKeyValue(MemoryKeyValue):
    def __init__(self, broken: bool = True):
        super().__init__()
        self.broken = broken

    def set(self, key, value):
        if self.broken:
            raise ConnectionError("redis down")
        return super().set(key, value)


async def settle(rounds: int = 20) -> None:
    """Let scheduled change pushes and the feed consumer run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def add_profile(store, user_id: str, name: str, username: str = "") -> None:
    await store.upsert(settings.USERS_COLLECTION, user_id, {"name": name, "username": username or name.lower()})


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def local_state():
    return LocalStateService(MemoryKeyValue())
