from __future__ import annotations

import datetime as dt

import pytest

from tracker.models import FlatTimeEntry, default_categories
from tracker.remote import RemoteClient, RemoteError
from tracker.stores import CategoryStore, EntryStore, entry_from_row

from conftest import USER_ID, FakeBackend


def test_entry_rows_are_mapped_and_normalized(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("time_tracker").extend(
        [
            {"id": 1, "date": "5/3/21", "name": "Workshop", "min": 90.4, "categories": 2, "user_id": USER_ID},
            {"id": "b", "date": 44197, "name": "Planning", "min": "30", "categories": None},
        ]
    )
    entries = EntryStore(remote_client).list()
    assert entries == [
        FlatTimeEntry(id="1", description="Workshop", duration_minutes=90, category_id="2", date="2021-03-05"),
        FlatTimeEntry(id="b", description="Planning", duration_minutes=30, category_id=None, date="2021-01-01"),
    ]


def test_entries_without_positive_duration_are_dropped(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("time_tracker").extend(
        [
            {"id": "a", "date": "2024-03-05", "name": "zero", "min": 0},
            {"id": "b", "date": "2024-03-05", "name": "negative", "min": -15},
            {"id": "c", "date": "2024-03-05", "name": "garbage", "min": "n/a"},
            {"id": "d", "date": "2024-03-05", "name": "rounds to zero", "min": 0.4},
            {"id": "e", "date": "2024-03-05", "name": "kept", "min": 0.5},
        ]
    )
    assert [entry.id for entry in EntryStore(remote_client).list()] == ["e"]


def test_legacy_columns_are_used_as_fallbacks() -> None:
    entry = entry_from_row(
        {"id": 7, "created_at": "2024-02-01T08:00:00+00:00", "description": "Old row", "minutes": 45, "category_id": 3}
    )
    assert entry == FlatTimeEntry(id="7", description="Old row", duration_minutes=45, category_id="3", date="2024-02-01")
    assert entry_from_row({"id": 8, "date": "2024-02-01", "min": 5}).description == "Imported"


def test_read_failure_degrades_to_empty_list(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("time_tracker").append({"id": "a", "date": "2024-03-05", "name": "x", "min": 10})
    backend.fail("GET", "rest/v1/time_tracker", 500, {"message": "boom"})
    store = EntryStore(remote_client)
    result = store.fetch()
    assert not result.ok
    assert isinstance(result.error, RemoteError)
    assert store.list() == []


def test_save_upserts_with_owner(backend: FakeBackend, remote_client: RemoteClient) -> None:
    store = EntryStore(remote_client)
    entry = FlatTimeEntry(id="100", description="Call", duration_minutes=45, category_id="1", date="2024-03-05")
    store.save(entry)
    assert backend.rows("time_tracker") == [
        {"id": "100", "date": "2024-03-05", "name": "Call", "min": 45, "categories": "1", "user_id": USER_ID}
    ]

    entry.description = "Call (follow-up)"
    store.save(entry)
    assert len(backend.rows("time_tracker")) == 1
    assert backend.rows("time_tracker")[0]["name"] == "Call (follow-up)"


def test_save_without_session_sends_null_owner(backend: FakeBackend) -> None:
    store = EntryStore(RemoteClient("https://project.supabase.test", "public-anon-key"))
    store.save(FlatTimeEntry(id="1", description="x", duration_minutes=5, date="2024-03-05"))
    assert backend.rows("time_tracker")[0]["user_id"] is None


def test_save_failure_raises_readable_error(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.fail(
        "POST",
        "rest/v1/time_tracker",
        403,
        {"message": "new row violates row-level security policy", "details": None, "hint": "Sign in first"},
    )
    with pytest.raises(RemoteError) as excinfo:
        EntryStore(remote_client).save(FlatTimeEntry(id="1", description="x", duration_minutes=5, date="2024-03-05"))
    assert str(excinfo.value) == "new row violates row-level security policy - Sign in first"


def test_delete_removes_by_id(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("time_tracker").extend(
        [
            {"id": "a", "date": "2024-03-05", "name": "x", "min": 10},
            {"id": "b", "date": "2024-03-05", "name": "y", "min": 10},
        ]
    )
    EntryStore(remote_client).delete("a")
    assert [row["id"] for row in backend.rows("time_tracker")] == ["b"]


def test_delete_failure_raises(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.fail("DELETE", "rest/v1/time_tracker", 500, {"details": "connection reset"})
    with pytest.raises(RemoteError, match="connection reset"):
        EntryStore(remote_client).delete("a")


def test_categories_are_seeded_once_when_empty(backend: FakeBackend, remote_client: RemoteClient) -> None:
    store = CategoryStore(remote_client)
    first = store.list()
    assert first == default_categories()
    assert [row["name"] for row in backend.rows("categories")] == ["Kundemøde", "Telefontid", "Onboarding"]

    second = store.list()
    assert second == default_categories()
    assert len(backend.rows("categories")) == 3


def test_category_read_failure_returns_defaults_without_seeding(
    backend: FakeBackend, remote_client: RemoteClient
) -> None:
    backend.fail("GET", "rest/v1/categories", 503)
    assert CategoryStore(remote_client).list() == default_categories()
    assert backend.rows("categories") == []


def test_category_seed_failure_still_returns_defaults(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.fail("POST", "rest/v1/categories", 403, {"message": "denied"})
    assert CategoryStore(remote_client).list() == default_categories()


def test_existing_categories_are_returned(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("categories").append({"id": 9, "name": "Support", "color": "#000000"})
    categories = CategoryStore(remote_client).list()
    assert [(c.id, c.name, c.color) for c in categories] == [("9", "Support", "#000000")]


def test_store_uses_configured_table(backend: FakeBackend, remote_client: RemoteClient) -> None:
    backend.rows("entries_v2").append({"id": "z", "date": dt.date(2024, 1, 2).isoformat(), "name": "x", "min": 5})
    assert [e.id for e in EntryStore(remote_client, "entries_v2").list()] == ["z"]
