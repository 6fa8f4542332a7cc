"""Redis store for chat/user settings and the username index.

Handles:
- Per-chat settings hash (chat:<id>:settings)
- Per-user settings hash (user:<id>:settings)
- Username -> id reverse index (bot:usernames)

Values are stored raw ("on"/"off"/...) and coerced on read with `is_truthy`.
"""

import logging
from collections.abc import Mapping
from typing import Any

import redis.asyncio as redis

from chatstore.schemas.user import TelegramUser
from chatstore.settings import get_settings
from chatstore.stores.base import SettingsStore, is_truthy

# Key layout
KEY_CHAT_SETTINGS = "chat:{}:settings"
KEY_USER_SETTINGS = "user:{}:settings"
KEY_USERNAMES = "bot:usernames"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisStore(SettingsStore):
    """Settings and username index kept in Redis hashes."""

    def __init__(
        self,
        redis_client: redis.Redis,
        *,
        chat_defaults: Mapping[str, Any],
        user_defaults: Mapping[str, Any],
    ) -> None:
        self.redis = redis_client
        self.chat_defaults = dict(chat_defaults)
        self.user_defaults = dict(user_defaults)
        self._reused_times = 0

    async def _hget_default(self, key: str, field: str, default: Any) -> Any:
        value = await self.redis.hget(key, field)
        if value is None:
            return default
        return value

    # ============================================================
    # Chat settings
    # ============================================================

    async def get_chat_setting(self, chat_id: int, setting: str) -> Any:
        """Get a chat setting, falling back to the configured default.

        Args:
            chat_id: Chat identifier.
            setting: Setting name (not validated).

        Returns:
            True/False for recognized tokens, otherwise the raw value.
        """
        default = self.chat_defaults.get(setting)
        value = await self._hget_default(KEY_CHAT_SETTINGS.format(chat_id), setting, default)
        return is_truthy(value)

    async def set_chat_setting(self, chat_id: int, setting: str, value: str) -> None:
        await self.redis.hset(KEY_CHAT_SETTINGS.format(chat_id), setting, value)

    # ============================================================
    # User settings
    # ============================================================

    async def get_user_setting(self, user_id: int, setting: str) -> Any:
        """Get a user setting, falling back to the private-settings default."""
        default = self.user_defaults.get(setting)
        value = await self._hget_default(KEY_USER_SETTINGS.format(user_id), setting, default)
        return is_truthy(value)

    async def set_user_setting(self, user_id: int, setting: str, value: str) -> None:
        await self.redis.hset(KEY_USER_SETTINGS.format(user_id), setting, value)

    async def get_all_user_settings(self, user_id: int) -> dict[str, Any]:
        """Get every user setting.

        The result holds each default-table key plus any extra key stored in
        the hash. Every value is coerced.
        """
        stored = await self.redis.hgetall(KEY_USER_SETTINGS.format(user_id))
        settings = dict(stored)
        for setting, default in self.user_defaults.items():
            if settings.get(setting) is None:
                settings[setting] = default
        return {setting: is_truthy(value) for setting, value in settings.items()}

    async def toggle_user_setting(self, user_id: int, setting: str) -> None:
        """Flip a user setting: "off" when currently enabled, "on" otherwise."""
        current = await self.get_user_setting(user_id, setting)
        new_value = "on"
        if current is not None and current is not False:
            new_value = "off"
        await self.set_user_setting(user_id, setting, new_value)

    # ============================================================
    # Username index
    # ============================================================

    async def cache_user(self, user: TelegramUser) -> bool:
        """Record `@username` -> id. No-op for users without a username."""
        if user.username:
            await self.redis.hset(KEY_USERNAMES, f"@{user.username.lower()}", user.id)
        return True

    async def get_user_id(self, username: str) -> int | None:
        """Resolve a username key exactly as stored (e.g. "@alice").

        Returns:
            User id, or None if unknown or not numeric.
        """
        value = await self.redis.hget(KEY_USERNAMES, username)
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    # ============================================================
    # Connection lifecycle
    # ============================================================

    async def set_keepalive(self) -> None:
        """Mark the end of a request cycle; the pooled connection stays open."""
        # redis-py returns connections to its pool after every command.
        self._reused_times += 1

    async def get_reused_times(self) -> int:
        """Number of set_keepalive calls on this store.

        This is a per-store counter, not a connection-pool statistic: redis-py
        exposes no per-connection reuse count.
        """
        return self._reused_times
