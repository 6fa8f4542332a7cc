"""Shared fixtures for store tests."""

from collections.abc import AsyncGenerator

import pytest

from chatstore.stores.postgres import PostgresStore
from chatstore.stores.redis import RedisStore

CHAT_DEFAULTS = {"Welcome": "on", "Flood": "off", "Rules": "maybe"}
USER_DEFAULTS = {"rules_on_join": "off", "reports": "on"}


class FakeRedis:
    """In-memory stand-in for the hash commands used by RedisStore.

    Mirrors a client created with decode_responses=True: values come back as str.
    """

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}

    async def hget(self, key: str, field: str) -> str | None:
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key: str, field: str, value: object) -> int:
        bucket = self.hashes.setdefault(key, {})
        created = field not in bucket
        bucket[field] = str(value)
        return int(created)

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_store(fake_redis: FakeRedis) -> RedisStore:
    return RedisStore(fake_redis, chat_defaults=CHAT_DEFAULTS, user_defaults=USER_DEFAULTS)


@pytest.fixture
async def pg_store() -> AsyncGenerator[PostgresStore, None]:
    """PostgresStore over an in-memory SQLite database with the user table."""
    store = await PostgresStore.connect("sqlite+aiosqlite://")
    await store.pg.create_tables()
    yield store
    await store.close()
