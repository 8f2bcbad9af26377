from __future__ import annotations

import datetime as dt
import io
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from openpyxl import Workbook

from .aggregation import EntriesIndex
from .models import Category
from .utils import format_hours

EXPORT_HEADER = ("Date", "Category", "Description", "Hours")
CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _category_names(categories: Iterable[Category]) -> Dict[str, str]:
    return {category.id: category.name for category in categories}


def _export_rows(index: EntriesIndex, categories: Iterable[Category]) -> Iterator[Tuple[str, str, str, int]]:
    names = _category_names(categories)
    for day, entries in index.items():
        for entry in entries:
            category = names.get(entry.category_id, "") if entry.category_id else ""
            yield day, category, entry.description, entry.duration_minutes


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def export_csv(index: EntriesIndex, categories: Iterable[Category]) -> str:
    lines: List[str] = [",".join(EXPORT_HEADER)]
    for day, category, description, minutes in _export_rows(index, categories):
        lines.append(",".join([day, category, _quote(description), format_hours(minutes, 2)]))
    return "\n".join(lines)


def export_xlsx(index: EntriesIndex, categories: Iterable[Category]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Entries"
    ws.append(list(EXPORT_HEADER))
    for day, category, description, minutes in _export_rows(index, categories):
        ws.append([day, category, description, round(minutes / 60, 2)])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_filename(today: Optional[dt.date] = None, suffix: str = "csv") -> str:
    return f"time-export-{(today or dt.date.today()).isoformat()}.{suffix}"


__all__ = ["EXPORT_HEADER", "export_csv", "export_filename", "export_xlsx"]
