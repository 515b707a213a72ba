from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from waitlist_api.database import ConflictError, Database, StoreError, ValidationError


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "waitlist.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def test_find_or_create_user_creates_once(database: Database) -> None:
    first = database.find_or_create_user(
        "google-123", "ada@example.com", "Ada Lovelace", "https://example.com/ada.png"
    )
    second = database.find_or_create_user(
        "google-123", "changed@example.com", "Someone Else", None
    )

    assert first.id == second.id
    assert second.email == "ada@example.com"
    assert second.name == "Ada Lovelace"
    assert len(database.list_users()) == 1
    assert database.get_user(first.id) == first
    assert database.get_user_by_google_id("google-123") == first


def test_user_ids_are_opaque_and_distinct(database: Database) -> None:
    one = database.find_or_create_user("google-1", "one@example.com", "One", None)
    two = database.find_or_create_user("google-2", "two@example.com", "Two", None)

    assert one.id != two.id
    assert len(one.id) == 32
    assert not one.id.isdigit()


def test_concurrent_first_logins_converge_on_one_user(database: Database) -> None:
    def login(_: int):
        return database.find_or_create_user("google-race", "race@example.com", "Racer", None)

    with ThreadPoolExecutor(max_workers=8) as pool:
        users = list(pool.map(login, range(16)))

    assert {user.id for user in users} == {users[0].id}
    assert len(database.list_users()) == 1


def test_get_user_returns_none_for_unknown_id(database: Database) -> None:
    assert database.get_user("does-not-exist") is None


def test_waitlist_rejects_duplicate_email(database: Database) -> None:
    database.add_waitlist_entry("dup@example.com")

    with pytest.raises(ConflictError):
        database.add_waitlist_entry("dup@example.com")

    assert database.count_waitlist_entries("dup@example.com") == 1


@pytest.mark.parametrize("email", [None, "", "   "])
def test_waitlist_requires_email(database: Database, email) -> None:
    with pytest.raises(ValidationError):
        database.add_waitlist_entry(email)

    assert database.count_waitlist_entries() == 0


def test_waitlist_strips_surrounding_whitespace(database: Database) -> None:
    entry = database.add_waitlist_entry("  padded@example.com ")

    assert entry.email == "padded@example.com"
    with pytest.raises(ConflictError):
        database.add_waitlist_entry("padded@example.com")


def test_waitlist_lists_newest_first(database: Database) -> None:
    for email in ("a@example.com", "b@example.com", "c@example.com"):
        database.add_waitlist_entry(email)

    entries = database.list_waitlist_entries()

    assert [entry.email for entry in entries] == [
        "c@example.com",
        "b@example.com",
        "a@example.com",
    ]
    assert entries[0].created_at >= entries[-1].created_at


def test_empty_waitlist_lists_nothing(database: Database) -> None:
    assert database.list_waitlist_entries() == []


def test_unreachable_store_raises_store_error(tmp_path: Path) -> None:
    directory = tmp_path / "not-a-database"
    directory.mkdir()
    database = Database(directory)

    with pytest.raises(StoreError):
        database.initialize()

    with pytest.raises(StoreError):
        database.list_waitlist_entries()
