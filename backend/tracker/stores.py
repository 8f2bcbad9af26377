from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .dates import normalize_date
from .models import Category, FlatTimeEntry, ReadResult, default_categories
from .remote import RemoteClient, RemoteError
from .utils import coerce_minutes

logger = logging.getLogger(__name__)

ENTRIES_TABLE = "time_tracker"
CATEGORIES_TABLE = "categories"


def _first_present(row: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def entry_from_row(row: Dict[str, Any]) -> FlatTimeEntry:
    raw_date = _first_present(row, "date", "created_at")
    description = _first_present(row, "name", "description")
    category = _first_present(row, "categories", "category_id", "categoryId")
    return FlatTimeEntry(
        id=str(row.get("id")),
        description=str(description) if description is not None else "Imported",
        duration_minutes=coerce_minutes(_first_present(row, "min", "minutes")),
        category_id=str(category) if category else None,
        date=normalize_date(raw_date),
    )


def entry_to_row(entry: FlatTimeEntry, user_id: Optional[str]) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "date": entry.date,
        "name": entry.description,
        "min": int(entry.duration_minutes),
        "categories": entry.category_id,
        "user_id": user_id,
    }


class EntryStore:
    """Reads and writes time entries in the remote entries table."""

    def __init__(self, client: RemoteClient, table: str = ENTRIES_TABLE) -> None:
        self.client = client
        self.table = table

    def fetch(self) -> ReadResult[FlatTimeEntry]:
        try:
            rows = self.client.select(self.table)
        except RemoteError as exc:
            logger.warning("Loading entries from %s failed: %s", self.table, exc)
            return ReadResult(error=exc)
        entries = [entry_from_row(row) for row in rows]
        return ReadResult(rows=[entry for entry in entries if entry.duration_minutes > 0])

    def list(self) -> List[FlatTimeEntry]:
        return self.fetch().or_empty()

    def save(self, entry: FlatTimeEntry) -> None:
        user_id = self.client.current_user_id()
        try:
            self.client.upsert(self.table, [entry_to_row(entry, user_id)])
        except RemoteError as exc:
            logger.error("Saving entry %s failed: %s", entry.id, exc)
            raise

    def delete(self, entry_id: str) -> None:
        try:
            self.client.delete(self.table, "id", entry_id)
        except RemoteError as exc:
            logger.error("Deleting entry %s failed: %s", entry_id, exc)
            raise


class CategoryStore:
    """Reads categories, seeding the remote table with defaults when it is empty."""

    def __init__(self, client: RemoteClient, table: str = CATEGORIES_TABLE) -> None:
        self.client = client
        self.table = table

    def fetch(self) -> ReadResult[Category]:
        try:
            rows = self.client.select(self.table)
        except RemoteError as exc:
            logger.warning("Loading categories from %s failed: %s", self.table, exc)
            return ReadResult(error=exc)
        return ReadResult(
            rows=[
                Category(id=str(row.get("id")), name=str(row.get("name")), color=str(row.get("color")))
                for row in rows
            ]
        )

    def list(self) -> List[Category]:
        result = self.fetch()
        if not result.ok:
            return default_categories()
        if result.rows:
            return result.rows
        # Not guarded against two first loads seeding at the same time.
        defaults = default_categories()
        try:
            self.client.insert(
                self.table,
                [{"id": c.id, "name": c.name, "color": c.color} for c in defaults],
            )
        except RemoteError as exc:
            logger.warning("Seeding default categories into %s failed: %s", self.table, exc)
        else:
            logger.info("Seeded %d default categories into %s", len(defaults), self.table)
        return defaults


__all__ = ["EntryStore", "CategoryStore", "entry_from_row", "entry_to_row"]
