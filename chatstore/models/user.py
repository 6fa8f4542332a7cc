"""User model.

Represents a Telegram user seen by the bot. Usernames are unique
case-insensitively; the store frees a username from its previous owner
before assigning it.
"""

from sqlalchemy import BigInteger, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from chatstore.stores.postgres import Base


class User(Base):
    """Telegram user identity."""

    __tablename__ = "user"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    is_bot: Mapped[bool] = mapped_column(default=False)
    first_name: Mapped[str] = mapped_column(Text)

    # Optional profile fields
    last_name: Mapped[str | None] = mapped_column(Text)
    username: Mapped[str | None] = mapped_column(Text)
    language_code: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<User {self.id} @{self.username}>"


# Case-insensitive uniqueness of usernames.
Index("uq_user_username_lower", func.lower(User.username), unique=True)
