"""Storage interfaces shared by the Redis, Postgres and composite stores."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from chatstore.schemas.user import TelegramUser

_FALSY = frozenset({"notok", "off", "no"})
_TRUTHY = frozenset({"ok", "on", "yes"})


def is_truthy(value: Any) -> Any:
    """Coerce a stored setting value.

    Recognized tokens become booleans; any other value (numbers, None,
    unknown strings) is returned unchanged.
    """
    if value is False or (isinstance(value, str) and value in _FALSY):
        return False
    if value is True or (isinstance(value, str) and value in _TRUTHY):
        return True
    return value


class IdentityStore(ABC):
    """User identity operations plus connection lifecycle."""

    @abstractmethod
    async def cache_user(self, user: TelegramUser) -> bool:
        ...

    @abstractmethod
    async def get_user_id(self, username: str) -> int | None | bool:
        ...

    @abstractmethod
    async def set_keepalive(self) -> None:
        ...

    @abstractmethod
    async def get_reused_times(self) -> int | str:
        ...


class SettingsStore(IdentityStore):
    """Full store interface: identity operations and chat/user settings."""

    @abstractmethod
    async def get_chat_setting(self, chat_id: int, setting: str) -> Any:
        ...

    @abstractmethod
    async def set_chat_setting(self, chat_id: int, setting: str, value: str) -> None:
        ...

    @abstractmethod
    async def get_user_setting(self, user_id: int, setting: str) -> Any:
        ...

    @abstractmethod
    async def set_user_setting(self, user_id: int, setting: str, value: str) -> None:
        ...

    @abstractmethod
    async def get_all_user_settings(self, user_id: int) -> Mapping[str, Any]:
        ...

    @abstractmethod
    async def toggle_user_setting(self, user_id: int, setting: str) -> None:
        ...
