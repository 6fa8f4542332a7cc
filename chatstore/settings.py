"""Application settings via Pydantic Settings."""

from functools import lru_cache
from urllib.parse import urlparse

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Defaults applied when a chat has never changed a setting.
DEFAULT_CHAT_SETTINGS: dict[str, str] = {
    "Welcome": "on",
    "Goodbye": "off",
    "Extra": "on",
    "Flood": "off",
    "Silent": "off",
    "Rules": "off",
    "Reports": "off",
    "Welbut": "off",
    "Weldelchain": "off",
    "Antibot": "off",
    "Clean_service_msg": "off",
}

# Defaults for per-user (private chat) settings.
DEFAULT_PRIVATE_SETTINGS: dict[str, str] = {
    "rules_on_join": "off",
    "reports": "off",
}


def _asyncpg_connect_args_from_url(database_url: str) -> dict[str, object]:
    """
    Compute asyncpg connect_args based on DATABASE_URL.

    Railway Postgres uses an internal hostname (e.g. postgres.railway.internal)
    that rejects SSL negotiation. In that case we must explicitly disable SSL.
    """
    host = urlparse(database_url).hostname or ""
    if host.endswith(".railway.internal"):
        return {"ssl": False, "timeout": 20}
    return {}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = "Chat Settings Store"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = Field(default=5.0, gt=0)

    # Database (PostgreSQL). Empty means the relational store is disabled.
    database_url: str = Field(
        default="",
        validation_alias=AliasChoices("DATABASE_URL", "POSTGRES_DSN"),
    )

    @property
    def async_database_url(self) -> str:
        """Get database URL with asyncpg driver.

        Railway provides postgresql:// but we need postgresql+asyncpg:// for async.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def asyncpg_connect_args(self) -> dict[str, object]:
        """Extra connect args for asyncpg (e.g. Railway SSL quirks)."""
        return _asyncpg_connect_args_from_url(self.async_database_url)

    # Setting defaults
    chat_settings: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CHAT_SETTINGS),
        description="Default values for per-chat settings",
    )
    private_settings: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_PRIVATE_SETTINGS),
        description="Default values for per-user settings",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
