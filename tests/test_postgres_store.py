import asyncio
import logging

import pytest

from chatstore.schemas import TelegramUser
from chatstore.stores.postgres import NULL, PostgresClient, PostgresStore, PostgresUnavailable, interpolate


def test_interpolate_booleans_and_null() -> None:
    assert interpolate("{a}, {b}", {"a": True, "b": None}) == "true, NULL"


def test_interpolate_missing_key_and_sentinel() -> None:
    assert interpolate("{x} {y} {z}", {"y": NULL, "z": False}) == "NULL NULL false"


def test_interpolate_inserts_values_without_escaping() -> None:
    assert interpolate("id = {id} AND name = {name}", {"id": 0, "name": "'it''s'"}) == (
        "id = 0 AND name = 'it''s'"
    )


def test_escape_literal_quotes_and_doubles_apostrophes() -> None:
    client = PostgresClient("")
    assert client.escape_literal("O'Brien") == "'O''Brien'"
    assert client.escape_literal(42) == "'42'"


@pytest.mark.asyncio
async def test_connect_without_url_raises() -> None:
    with pytest.raises(PostgresUnavailable):
        await PostgresStore.connect("")


@pytest.mark.asyncio
async def test_connect_unreachable_database_raises(tmp_path) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}"
    with pytest.raises(PostgresUnavailable):
        await PostgresStore.connect(url)


@pytest.mark.asyncio
async def test_cache_user_then_lookup(pg_store: PostgresStore) -> None:
    user = TelegramUser(id=5, first_name="Carol", username="Carol_X", language_code="en")
    assert await pg_store.cache_user(user) is True

    assert await pg_store.get_user_id("@carol_x") == 5
    assert await pg_store.get_user_id("CAROL_X") == 5
    assert await pg_store.get_user_id("@nobody") is False


@pytest.mark.asyncio
async def test_username_collision_moves_username_to_new_owner(pg_store: PostgresStore) -> None:
    await pg_store.cache_user(TelegramUser(id=1, first_name="Alice", username="Alice"))
    await pg_store.cache_user(TelegramUser(id=2, first_name="Alicia", username="alice"))

    assert await pg_store.get_user_id("@alice") == 2
    assert await pg_store.get_user_id("alice") == 2

    result = await pg_store.pg.query('SELECT id, username FROM "user" ORDER BY id')
    assert result.rows == [{"id": 1, "username": None}, {"id": 2, "username": "alice"}]


@pytest.mark.asyncio
async def test_upsert_updates_names_but_not_is_bot(pg_store: PostgresStore) -> None:
    await pg_store.cache_user(TelegramUser(id=1, is_bot=True, first_name="Helper", last_name="Bot"))
    await pg_store.cache_user(TelegramUser(id=1, is_bot=False, first_name="Renamed"))

    result = await pg_store.pg.query('SELECT is_bot, first_name, last_name FROM "user" WHERE id = 1')
    row = result.rows[0]
    assert row["is_bot"]
    assert row["first_name"] == "Renamed"
    # Absent optional fields are left untouched.
    assert row["last_name"] == "Bot"


@pytest.mark.asyncio
async def test_values_with_quotes_and_colons_are_stored_verbatim(pg_store: PostgresStore) -> None:
    name = "O'Neil: the \"1st\" 100%"
    await pg_store.cache_user(TelegramUser(id=3, first_name=name, username="oneil"))

    result = await pg_store.pg.query('SELECT first_name FROM "user" WHERE id = 3')
    assert result.rows == [{"first_name": name}]


@pytest.mark.asyncio
async def test_failed_upsert_is_logged_and_reported_as_success(
    pg_store: PostgresStore, caplog: pytest.LogCaptureFixture
) -> None:
    await pg_store.pg.query('DROP TABLE "user"')
    caplog.set_level(logging.ERROR, logger="uvicorn.error")

    assert await pg_store.cache_user(TelegramUser(id=9, first_name="Dan", username="dan")) is True
    assert any("failed" in record.getMessage() for record in caplog.records)
    assert await pg_store.get_user_id("dan") is False


@pytest.mark.asyncio
async def test_lookup_still_works_after_keepalive(pg_store: PostgresStore) -> None:
    await pg_store.cache_user(TelegramUser(id=4, first_name="Eve", username="eve"))
    await pg_store.set_keepalive()

    assert await pg_store.get_user_id("eve") == 4
    assert await pg_store.get_reused_times() == "Unknown"


@pytest.mark.asyncio
async def test_connect_disposes_engine_on_unexpected_error() -> None:
    client = PostgresClient("sqlite+aiosqlite://", connect_args={"no_such_option": 1})
    with pytest.raises(PostgresUnavailable):
        await client.connect()
    assert client._engine is None


@pytest.mark.asyncio
async def test_failed_upsert_rolls_back_username_release(pg_store: PostgresStore) -> None:
    await pg_store.cache_user(TelegramUser(id=1, first_name="Alice", username="alice"))
    created = await pg_store.pg.query(
        'CREATE TRIGGER reject_user_2 BEFORE INSERT ON "user" WHEN NEW.id = 2 '
        "BEGIN SELECT RAISE(ABORT, 'rejected'); END"
    )
    assert created.ok

    assert await pg_store.cache_user(TelegramUser(id=2, first_name="Alicia", username="ALICE")) is True

    result = await pg_store.pg.query('SELECT id, username FROM "user" ORDER BY id')
    assert result.rows == [{"id": 1, "username": "alice"}]


@pytest.mark.asyncio
async def test_keepalive_during_cache_user_does_not_break_it(pg_store: PostgresStore) -> None:
    results = await asyncio.gather(
        pg_store.cache_user(TelegramUser(id=6, first_name="Fay", username="fay")),
        pg_store.set_keepalive(),
        return_exceptions=True,
    )

    assert results == [True, None]
    assert await pg_store.get_user_id("@fay") == 6
