"""Calendar view model: entry index, month grid and totals."""

from __future__ import annotations

import calendar
import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from .models import Category, FlatTimeEntry, SavePayload, TimeEntry
from .stores import CategoryStore, EntryStore
from .utils import format_hours

EntriesIndex = Dict[str, List[TimeEntry]]

FALLBACK_CATEGORY_COLOR = "#cbd5e1"
WEEKDAY_LABELS = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")


@dataclass(slots=True)
class DayCell:
    day: int
    date: str
    has_entries: bool


@dataclass(slots=True)
class MonthGrid:
    year: int
    month: int
    leading_blanks: int
    days: List[DayCell] = field(default_factory=list)


def build_index(entries: Iterable[FlatTimeEntry]) -> EntriesIndex:
    index: EntriesIndex = {}
    for entry in entries:
        index.setdefault(entry.date, []).append(entry)
    return index


def month_grid(year: int, month: int, index: EntriesIndex) -> MonthGrid:
    first_weekday, days_in_month = calendar.monthrange(year, month)
    grid = MonthGrid(year=year, month=month, leading_blanks=first_weekday)
    for day in range(1, days_in_month + 1):
        key = dt.date(year, month, day).isoformat()
        grid.days.append(DayCell(day=day, date=key, has_entries=bool(index.get(key))))
    return grid


def sum_minutes(entries: Iterable[TimeEntry]) -> int:
    return sum(entry.duration_minutes for entry in entries)


def day_total_minutes(index: EntriesIndex, day: dt.date) -> int:
    return sum_minutes(index.get(day.isoformat(), []))


def month_total_minutes(index: EntriesIndex, year: int, month: int) -> int:
    total = 0
    for key, entries in index.items():
        try:
            day = dt.date.fromisoformat(key)
        except ValueError:
            continue
        if day.year == year and day.month == month:
            total += sum_minutes(entries)
    return total


def shift_month(month_start: dt.date, months: int) -> dt.date:
    offset = month_start.year * 12 + (month_start.month - 1) + months
    return dt.date(offset // 12, offset % 12 + 1, 1)


def generate_entry_id() -> str:
    return str(int(time.time() * 1000))


class TrackerView:
    """Per-user calendar state over the last full snapshot of the entries table.

    The month cursor and the selected day move independently. The entry
    index is never patched: every write is followed by a full re-fetch.
    """

    def __init__(self, today: Optional[dt.date] = None,
                 id_factory: Callable[[], str] = generate_entry_id) -> None:
        today = today or dt.date.today()
        self.current_month = today.replace(day=1)
        self.selected_day = today
        self.categories: List[Category] = []
        self.index: EntriesIndex = {}
        self.loaded = False
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Cursors
    # ------------------------------------------------------------------
    def previous_month(self) -> None:
        self.current_month = shift_month(self.current_month, -1)

    def next_month(self) -> None:
        self.current_month = shift_month(self.current_month, 1)

    def go_to_today(self, today: Optional[dt.date] = None) -> None:
        self.current_month = (today or dt.date.today()).replace(day=1)

    def select_day(self, day: dt.date) -> None:
        self.selected_day = day

    # ------------------------------------------------------------------
    # Remote round trips
    # ------------------------------------------------------------------
    def load(self, category_store: CategoryStore, entry_store: EntryStore) -> None:
        self.categories = category_store.list()
        self.sync(entry_store)
        self.loaded = True

    def sync(self, entry_store: EntryStore) -> None:
        self.index = build_index(entry_store.list())

    def save(self, payload: SavePayload, entry_store: EntryStore) -> FlatTimeEntry:
        entry = FlatTimeEntry(
            id=payload.id or self._id_factory(),
            description=payload.description,
            duration_minutes=payload.duration_minutes,
            category_id=payload.category_id,
            date=payload.date or self.selected_key,
        )
        entry_store.save(entry)
        self.sync(entry_store)
        return entry

    def delete(self, entry_id: str, entry_store: EntryStore) -> None:
        entry_store.delete(entry_id)
        self.sync(entry_store)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def selected_key(self) -> str:
        return self.selected_day.isoformat()

    def day_entries(self) -> List[TimeEntry]:
        return list(self.index.get(self.selected_key, []))

    def day_total_minutes(self) -> int:
        return day_total_minutes(self.index, self.selected_day)

    def month_total_minutes(self) -> int:
        return month_total_minutes(self.index, self.current_month.year, self.current_month.month)

    def grid(self) -> MonthGrid:
        return month_grid(self.current_month.year, self.current_month.month, self.index)

    def find_entry(self, entry_id: str) -> Optional[TimeEntry]:
        for entries in self.index.values():
            for entry in entries:
                if entry.id == entry_id:
                    return entry
        return None

    def entry_day(self, entry_id: str) -> Optional[dt.date]:
        """Calendar day an indexed entry is stored under."""
        for key, entries in self.index.items():
            if any(entry.id == entry_id for entry in entries):
                try:
                    return dt.date.fromisoformat(key)
                except ValueError:
                    return None
        return None

    def category_color(self, category_id: Optional[str]) -> str:
        for category in self.categories:
            if category.id == category_id:
                return category.color
        return FALLBACK_CATEGORY_COLOR


__all__ = [
    "DayCell",
    "EntriesIndex",
    "MonthGrid",
    "TrackerView",
    "WEEKDAY_LABELS",
    "build_index",
    "day_total_minutes",
    "format_hours",
    "month_grid",
    "month_total_minutes",
    "shift_month",
]
