"""Data stores for chat settings and user identities.

Stores handle:
- Redis: chat/user settings hashes, username reverse index
- PostgreSQL: authoritative user identities
- Composite: Postgres first for identities, Redis fallback

No bot/business logic in stores - that belongs to the bot handlers.
"""
