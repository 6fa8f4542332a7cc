"""Composite store: Postgres for identities, Redis for everything else.

Identity calls (cache_user, get_user_id) go to Postgres first and fall back
to Redis when Postgres is absent, raises, or returns nothing. Settings calls
are forwarded to Redis unchanged, and Redis errors propagate to the caller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import logging
from typing import Any, TypeVar

import redis.asyncio as redis

from chatstore.schemas.user import TelegramUser
from chatstore.settings import Settings
from chatstore.stores.base import SettingsStore
from chatstore.stores.postgres import PostgresStore
from chatstore.stores.redis import RedisStore

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


class CompositeStore(SettingsStore):
    """Prefers Postgres for identities and degrades to Redis."""

    def __init__(
        self,
        redis_storage: RedisStore,
        postgres_storage: PostgresStore | None = None,
    ) -> None:
        self.redis_storage = redis_storage
        self.postgres_storage = postgres_storage

    @classmethod
    async def create(cls, redis_client: redis.Redis, settings: Settings) -> CompositeStore:
        """Build the Redis store and try to attach a Postgres store.

        A missing or unreachable database leaves the composite in Redis-only mode.
        """
        redis_storage = RedisStore(
            redis_client,
            chat_defaults=settings.chat_settings,
            user_defaults=settings.private_settings,
        )
        postgres_storage: PostgresStore | None = None
        try:
            postgres_storage = await PostgresStore.connect(
                settings.async_database_url,
                echo=settings.debug,
                connect_args=settings.asyncpg_connect_args,
            )
            logger.info("Postgres connected")
        except Exception:
            logger.warning("Postgres unavailable, using Redis only", exc_info=True)
        return cls(redis_storage, postgres_storage)

    async def _try_postgres(
        self,
        operation: str,
        call: Callable[[PostgresStore], Awaitable[T]],
    ) -> T | None:
        """Run a Postgres call, mapping absence or any failure to None."""
        if self.postgres_storage is None:
            return None
        try:
            return await call(self.postgres_storage)
        except Exception:
            logger.warning(f"Postgres {operation} failed, falling back", exc_info=True)
            return None

    # ============================================================
    # Identity operations
    # ============================================================

    async def cache_user(self, user: TelegramUser) -> bool:
        # Only one backend is written: Redis is used solely as the fallback.
        stored = await self._try_postgres("cache_user", lambda pg: pg.cache_user(user))
        if not stored:
            return await self.redis_storage.cache_user(user)
        return True

    async def get_user_id(self, username: str) -> int | None:
        user_id = await self._try_postgres("get_user_id", lambda pg: pg.get_user_id(username))
        if user_id is None or user_id is False:
            return await self.redis_storage.get_user_id(username)
        return user_id

    async def set_keepalive(self) -> None:
        await self._try_postgres("set_keepalive", lambda pg: pg.set_keepalive())
        await self.redis_storage.set_keepalive()

    async def get_reused_times(self) -> str:
        redis_reused = await self.redis_storage.get_reused_times()
        postgres_reused = await self._try_postgres(
            "get_reused_times", lambda pg: pg.get_reused_times()
        )
        report = f"Redis: {redis_reused}"
        if postgres_reused:
            report += f"\nPostgres: {postgres_reused}"
        return report

    async def aclose(self) -> None:
        """Dispose of the Postgres engine. The Redis client belongs to the caller."""
        if self.postgres_storage is not None:
            await self.postgres_storage.close()
            self.postgres_storage = None

    # ============================================================
    # Settings operations (Redis)
    # ============================================================

    async def get_chat_setting(self, chat_id: int, setting: str) -> Any:
        return await self.redis_storage.get_chat_setting(chat_id, setting)

    async def set_chat_setting(self, chat_id: int, setting: str, value: str) -> None:
        await self.redis_storage.set_chat_setting(chat_id, setting, value)

    async def get_user_setting(self, user_id: int, setting: str) -> Any:
        return await self.redis_storage.get_user_setting(user_id, setting)

    async def set_user_setting(self, user_id: int, setting: str, value: str) -> None:
        await self.redis_storage.set_user_setting(user_id, setting, value)

    async def get_all_user_settings(self, user_id: int) -> dict[str, Any]:
        return await self.redis_storage.get_all_user_settings(user_id)

    async def toggle_user_setting(self, user_id: int, setting: str) -> None:
        await self.redis_storage.toggle_user_setting(user_id, setting)
