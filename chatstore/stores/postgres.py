"""PostgreSQL store with async SQLAlchemy.

Handles:
- Connection management (one pooled connection per operation)
- Query templating with pre-escaped literals
- User identity upserts with case-insensitive username ownership
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import logging
import re
from typing import Any

from sqlalchemy import String, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from chatstore.schemas.user import TelegramUser
from chatstore.stores.base import IdentityStore

logger = logging.getLogger("uvicorn.error")

# Optional user columns, in the order they are written.
OPTIONAL_USER_FIELDS = ("last_name", "username", "language_code")

_PLACEHOLDER = re.compile(r"\{([^{}]*)\}")

_RELEASE_USERNAME = (
    'UPDATE "user" SET username = NULL '
    "WHERE lower(username) = lower({username}) AND id != {id}"
)
_SELECT_USER_ID = 'SELECT id FROM "user" WHERE lower(username) = lower({username})'


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class _Null:
    """Explicit SQL NULL marker for query field maps."""

    def __repr__(self) -> str:
        return "NULL"


NULL = _Null()


class PostgresUnavailable(RuntimeError):
    pass


@dataclass(frozen=True)
class QueryResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Transaction:
    """Connection shared by the statements of one `transaction()` block."""

    conn: AsyncConnection
    failed: bool = False


def interpolate(template: str, fields: Mapping[str, Any]) -> str:
    """Substitute `{name}` placeholders with values from `fields`.

    Booleans render as `true`/`false`; missing keys, None and NULL render as
    `NULL`. Other values are inserted via str() with no escaping, so string
    values must already be escaped with `PostgresClient.escape_literal`.
    """

    def _render(match: re.Match[str]) -> str:
        value = fields.get(match.group(1))
        if value is False:
            return "false"
        if value is True:
            return "true"
        if value is None or value is NULL:
            return "NULL"
        return str(value)

    return _PLACEHOLDER.sub(_render, template)


class PostgresClient:
    """Thin query client over a pooled SQLAlchemy engine.

    Every query or transaction checks out its own connection, so one client
    can be shared by concurrent callers.
    """

    def __init__(
        self,
        database_url: str,
        *,
        echo: bool = False,
        connect_args: dict[str, object] | None = None,
    ) -> None:
        self.database_url = database_url
        self._echo = echo
        self._connect_args = connect_args or {}
        self._engine: AsyncEngine | None = None

    async def connect(self) -> None:
        """Create the engine and verify a connection can be checked out.

        Raises:
            PostgresUnavailable: URL missing or the server cannot be reached.
        """
        if not self.database_url or "://" not in self.database_url:
            raise PostgresUnavailable("DATABASE_URL is not configured")
        try:
            self._engine = create_async_engine(
                self.database_url,
                echo=self._echo,
                connect_args=self._connect_args,
                pool_pre_ping=True,
            )
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            await self.dispose()
            raise PostgresUnavailable(f"Postgres connection failed: {e}") from e

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise PostgresUnavailable("Postgres not connected. Call connect() first.")
        return self._engine

    def escape_literal(self, value: Any) -> str:
        """Quote a value as a SQL string literal for the connected dialect."""
        dialect = self._engine.dialect if self._engine is not None else postgresql.dialect()
        process = String().literal_processor(dialect=dialect)
        return process(str(value))

    @staticmethod
    async def _execute(conn: AsyncConnection, sql: str) -> QueryResult:
        try:
            # Colons inside literals must not be parsed as bind parameters.
            result = await conn.execute(text(sql.replace(":", "\\:")))
            rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        except SQLAlchemyError as e:
            return QueryResult(error=str(e))
        return QueryResult(rows=rows)

    async def query(self, sql: str, *, tx: Transaction | None = None) -> QueryResult:
        """Run a fully rendered statement.

        Without `tx` the statement runs on its own connection and is committed
        at once. Inside a transaction a failure marks it for rollback. Database
        errors are returned in the result rather than raised.
        """
        if tx is not None:
            result = await self._execute(tx.conn, sql)
            if not result.ok:
                tx.failed = True
            return result

        async with self._require_engine().connect() as conn:
            result = await self._execute(conn, sql)
            if result.ok:
                await conn.commit()
            else:
                await conn.rollback()
        return result

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Transaction, None]:
        """Group several `query()` calls into one commit.

        Any failed statement rolls the whole group back.

        Usage:
            async with client.transaction() as tx:
                await client.query(..., tx=tx)
                await client.query(..., tx=tx)
        """
        async with self._require_engine().connect() as conn:
            tx = Transaction(conn)
            try:
                yield tx
            except Exception:
                await conn.rollback()
                raise
            if tx.failed:
                await conn.rollback()
            else:
                await conn.commit()

    async def keepalive(self) -> None:
        """Nothing to release: connections return to the pool after each operation."""

    async def dispose(self) -> None:
        """Close the engine pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def create_tables(self) -> None:
        """Create all tables (for development/testing only)."""
        from chatstore import models  # noqa: F401

        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


class PostgresStore(IdentityStore):
    """Authoritative user identity storage in the `user` table."""

    def __init__(self, client: PostgresClient) -> None:
        self.pg = client

    @classmethod
    async def connect(
        cls,
        database_url: str,
        *,
        echo: bool = False,
        connect_args: dict[str, object] | None = None,
    ) -> PostgresStore:
        """Build a store with a verified connection; raises PostgresUnavailable."""
        client = PostgresClient(database_url, echo=echo, connect_args=connect_args)
        await client.connect()
        return cls(client)

    def _user_row(self, user: TelegramUser) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": user.id,
            "is_bot": user.is_bot,
            "first_name": self.pg.escape_literal(user.first_name),
        }
        for name in OPTIONAL_USER_FIELDS:
            value = getattr(user, name)
            if value is not None:
                row[name] = self.pg.escape_literal(value)
        return row

    @staticmethod
    def _upsert_template(row: Mapping[str, Any]) -> str:
        columns = ["id", "is_bot", "first_name"]
        updates = ["first_name = {first_name}"]
        for name in OPTIONAL_USER_FIELDS:
            if name in row:
                columns.append(name)
                updates.append(f"{name} = {{{name}}}")
        values = ", ".join(f"{{{name}}}" for name in columns)
        # is_bot is fixed at creation and never updated.
        return (
            f'INSERT INTO "user" ({", ".join(columns)}) VALUES ({values})'
            f' ON CONFLICT (id) DO UPDATE SET {", ".join(updates)}'
        )

    async def cache_user(self, user: TelegramUser) -> bool:
        """Upsert a user, taking the username away from any other row.

        The release and the upsert commit together; if either fails both are
        rolled back. Failures are logged, not raised; always returns True.
        """
        row = self._user_row(user)
        async with self.pg.transaction() as tx:
            if user.username and await self._find_user_id(user.username, tx=tx):
                release = interpolate(_RELEASE_USERNAME, row)
                released = await self.pg.query(release, tx=tx)
                if not released.ok:
                    logger.error(f"Query {release} failed: {released.error}")

            query = interpolate(self._upsert_template(row), row)
            result = await self.pg.query(query, tx=tx)
            if not result.ok:
                logger.error(f"Query {query} failed: {result.error}")
        return True

    async def _find_user_id(self, username: str, *, tx: Transaction | None = None) -> int | bool:
        if username.startswith("@"):
            username = username[1:]
        query = interpolate(_SELECT_USER_ID, {"username": self.pg.escape_literal(username)})
        result = await self.pg.query(query, tx=tx)
        if not result.ok or not result.rows or result.rows[0].get("id") is None:
            return False
        return int(result.rows[0]["id"])

    async def get_user_id(self, username: str) -> int | bool:
        """Case-insensitive lookup; a leading "@" is ignored.

        Returns:
            User id, or False if not found.
        """
        return await self._find_user_id(username)

    async def set_keepalive(self) -> None:
        await self.pg.keepalive()

    async def get_reused_times(self) -> str:
        # SQLAlchemy does not expose per-connection reuse counts.
        return "Unknown"

    async def close(self) -> None:
        await self.pg.dispose()
