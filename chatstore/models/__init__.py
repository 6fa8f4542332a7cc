"""SQLAlchemy ORM models.

Models represent database tables:
- user: Telegram user identities (id, names, username, language)
"""

from chatstore.models.user import User

__all__ = ["User"]
