"""Telegram user payload as seen by the storage layer."""

from pydantic import BaseModel, ConfigDict


class TelegramUser(BaseModel):
    """Subset of the Telegram `User` object persisted by the stores.

    Extra fields sent by Telegram (is_premium, added_to_attachment_menu, ...)
    are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    is_bot: bool = False
    first_name: str
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None
