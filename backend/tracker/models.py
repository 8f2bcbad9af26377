"""Data models shared by the stores, the view and the editor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class TimeEntry:
    """A logged piece of work."""

    id: str
    description: str
    duration_minutes: int
    category_id: Optional[str] = None


@dataclass(slots=True)
class FlatTimeEntry(TimeEntry):
    """A time entry together with the calendar day it belongs to."""

    date: str = ""


@dataclass(slots=True)
class Category:
    id: str
    name: str
    color: str


@dataclass(slots=True)
class SavePayload:
    """What the entry editor hands over when the user saves."""

    description: str
    duration_minutes: int
    category_id: Optional[str] = None
    id: Optional[str] = None
    date: Optional[str] = None


@dataclass
class ReadResult(Generic[T]):
    """Outcome of a remote read.

    Read paths never raise; the error is kept here so callers can decide
    whether to look at it before collapsing the result with :meth:`or_empty`.
    """

    rows: List[T] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def or_empty(self) -> List[T]:
        return list(self.rows) if self.error is None else []


DEFAULT_CATEGORY_ROWS: Tuple[Tuple[str, str, str], ...] = (
    ("1", "Kundemøde", "#3b82f6"),
    ("2", "Telefontid", "#16a34a"),
    ("3", "Onboarding", "#f97316"),
)


def default_categories() -> List[Category]:
    return [Category(id=cid, name=name, color=color) for cid, name, color in DEFAULT_CATEGORY_ROWS]


__all__ = [
    "TimeEntry",
    "FlatTimeEntry",
    "Category",
    "SavePayload",
    "ReadResult",
    "DEFAULT_CATEGORY_ROWS",
    "default_categories",
]
