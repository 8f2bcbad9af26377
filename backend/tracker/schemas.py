from __future__ import annotations

import datetime as dt
from typing import List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, Field

from .aggregation import WEEKDAY_LABELS, TrackerView
from .editor import EntryEditor
from .models import Category, TimeEntry
from .utils import format_duration, format_hours


class CategoryResponse(BaseModel):
    id: str
    name: str
    color: str

    @classmethod
    def from_category(cls, category: Category) -> "CategoryResponse":
        return cls(id=category.id, name=category.name, color=category.color)


class EntryResponse(BaseModel):
    id: str
    description: str
    duration_minutes: int
    duration_label: str
    category_id: Optional[str]
    color: str


class DayCellResponse(BaseModel):
    day: int
    date: dt.date
    has_entries: bool
    is_selected: bool


class TrackerViewResponse(BaseModel):
    month: str
    month_label: str
    weekdays: List[str] = Field(default_factory=lambda: list(WEEKDAY_LABELS))
    leading_blanks: int
    days: List[DayCellResponse]
    selected_date: dt.date
    selected_label: str
    day_entries: List[EntryResponse]
    day_total_hours: str
    month_total_hours: str
    categories: List[CategoryResponse]


class SelectDayRequest(BaseModel):
    date: dt.date


class EditorOpenRequest(BaseModel):
    entry_id: Optional[str] = None


class EditorUpdateRequest(BaseModel):
    description: Optional[str] = None
    category_id: Optional[str] = None
    hours: Optional[int] = Field(default=None, ge=0)
    minutes: Optional[int] = Field(default=None, ge=0)


class EditorStateResponse(BaseModel):
    mode: Literal["create", "edit"]
    entry_id: Optional[str]
    date: dt.date
    description: str
    category_id: Optional[str]
    hours: int
    minutes: int
    timer_state: Literal["idle", "running", "stopped"]
    elapsed_seconds: int
    clock: str


def entry_response(view: TrackerView, entry: TimeEntry) -> EntryResponse:
    return EntryResponse(
        id=entry.id,
        description=entry.description,
        duration_minutes=entry.duration_minutes,
        duration_label=format_duration(entry.duration_minutes),
        category_id=entry.category_id,
        color=view.category_color(entry.category_id),
    )


def tracker_view_response(view: TrackerView) -> TrackerViewResponse:
    grid = view.grid()
    return TrackerViewResponse(
        month=view.current_month.strftime("%Y-%m"),
        month_label=view.current_month.strftime("%B %Y"),
        leading_blanks=grid.leading_blanks,
        days=[
            DayCellResponse(
                day=cell.day,
                date=dt.date.fromisoformat(cell.date),
                has_entries=cell.has_entries,
                is_selected=cell.date == view.selected_key,
            )
            for cell in grid.days
        ],
        selected_date=view.selected_day,
        selected_label=view.selected_day.strftime("%A %d %b"),
        day_entries=[entry_response(view, entry) for entry in view.day_entries()],
        day_total_hours=format_hours(view.day_total_minutes(), 1),
        month_total_hours=format_hours(view.month_total_minutes(), 1),
        categories=[CategoryResponse.from_category(category) for category in view.categories],
    )


def editor_state_response(editor: EntryEditor) -> EditorStateResponse:
    return EditorStateResponse(
        mode="edit" if editor.is_edit else "create",
        entry_id=editor.entry.id if editor.entry else None,
        date=editor.day,
        description=editor.description,
        category_id=editor.category_id,
        hours=editor.hours,
        minutes=editor.minutes,
        timer_state=editor.stopwatch.state,
        elapsed_seconds=editor.stopwatch.elapsed_seconds,
        clock=editor.clock_display(),
    )
