"""Best-effort coercion of loosely formatted dates into ``YYYY-MM-DD``."""

from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any, Optional

from dateutil import parser as date_parser

SERIAL_DATE_MIN = 30000
SERIAL_DATE_MAX = 60000
# Spreadsheet serial day of 1970-01-01.
SERIAL_UNIX_OFFSET = 25569

UNIX_EPOCH = dt.date(1970, 1, 1)

EUROPEAN_DATE_RE = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{2}|\d{4})$")
ISO_LIKE_DATE_RE = re.compile(r"^(\d{4})[./-](\d{1,2})[./-](\d{1,2})$")


def _as_number(raw: Any) -> Optional[float]:
    if isinstance(raw, (int, float)):
        return float(raw)
    if not isinstance(raw, str):
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return None


def serial_to_date(serial: float) -> dt.date:
    return UNIX_EPOCH + dt.timedelta(days=math.floor(serial) - SERIAL_UNIX_OFFSET)


def _calendar_date(year: str, month: str, day: str) -> Optional[dt.date]:
    try:
        return dt.date(int(year), int(month), int(day))
    except ValueError:
        return None


def normalize_date(raw: Any, *, today: Optional[dt.date] = None) -> str:
    """Return ``raw`` as an ISO calendar date.

    Accepted inputs, tried in order:

    * absent or falsy values -> ``today``
    * numbers (or numeric strings) strictly between 30000 and 60000, read as
      spreadsheet serial dates
    * ``D/M/Y`` strings (``.``, ``/`` or ``-`` separated, 2 or 4 digit year;
      2 digit years are placed in the 2000s)
    * ``Y-M-D`` strings with a 4 digit year
    * anything :func:`dateutil.parser.parse` understands

    Whatever cannot be read becomes ``today``; this function never raises.
    """
    fallback = today or dt.date.today()
    if not raw:
        return fallback.isoformat()
    if isinstance(raw, dt.datetime):
        return raw.date().isoformat()
    if isinstance(raw, dt.date):
        return raw.isoformat()

    number = _as_number(raw)
    if number is not None and SERIAL_DATE_MIN < number < SERIAL_DATE_MAX:
        return serial_to_date(number).isoformat()

    text = str(raw).strip()

    match = EUROPEAN_DATE_RE.match(text)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = "20" + year
        parsed = _calendar_date(year, month, day)
        return (parsed or fallback).isoformat()

    match = ISO_LIKE_DATE_RE.match(text)
    if match:
        year, month, day = match.groups()
        parsed = _calendar_date(year, month, day)
        return (parsed or fallback).isoformat()

    try:
        return date_parser.parse(text).date().isoformat()
    except (ValueError, OverflowError):
        return fallback.isoformat()
