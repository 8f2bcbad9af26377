"""Entry editor: manual duration fields plus a stopwatch feeding the same fields."""

from __future__ import annotations

import datetime as dt
import threading
from typing import Callable, List, Optional, Protocol

from .models import Category, SavePayload, TimeEntry
from .utils import round_half_up

TICK_SECONDS = 1.0


class Ticker(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TickerFactory = Callable[[float, Callable[[], None]], Ticker]


class IntervalTimer(threading.Thread):
    """Call ``function`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        super().__init__(daemon=True)
        self.interval = interval
        self.function = function
        self._finished = threading.Event()

    def cancel(self) -> None:
        self._finished.set()

    def run(self) -> None:
        while not self._finished.wait(self.interval):
            self.function()


class Stopwatch:
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"

    def __init__(self, ticker_factory: TickerFactory = IntervalTimer) -> None:
        self.state = self.IDLE
        self.elapsed_seconds = 0
        self._ticker_factory = ticker_factory
        self._ticker: Optional[Ticker] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.state == self.RUNNING

    def start(self) -> None:
        if self.running:
            return
        self.state = self.RUNNING
        self._ticker = self._ticker_factory(TICK_SECONDS, self.tick)
        self._ticker.start()

    def tick(self) -> None:
        with self._lock:
            if self.running:
                self.elapsed_seconds += 1

    def stop(self) -> Optional[int]:
        """Stop counting and return the elapsed time in whole minutes.

        Returns ``None`` and changes nothing unless the stopwatch is running.
        """

        if not self.running:
            return None
        self.cancel()
        self.state = self.STOPPED
        return round_half_up(self.elapsed_seconds / 60)

    def cancel(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def display(self) -> str:
        hours, rest = divmod(self.elapsed_seconds, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class EntryEditor:
    """State of the "log time" / "edit entry" dialog.

    Hours and minutes can be typed at any time; stopping the stopwatch
    overwrites them. Whatever the fields hold when saving is submitted.
    """

    def __init__(self, categories: List[Category], entry: Optional[TimeEntry] = None,
                 ticker_factory: TickerFactory = IntervalTimer, day: Optional[dt.date] = None) -> None:
        self.entry = entry
        # Fixed when the dialog opens; selecting another day does not move the entry.
        self.day = day or dt.date.today()
        self.stopwatch = Stopwatch(ticker_factory)
        self.closed = False
        if entry is not None:
            self.description = entry.description
            self.hours, self.minutes = divmod(entry.duration_minutes, 60)
            self.category_id = entry.category_id or (categories[0].id if categories else None)
        else:
            self.description = ""
            self.hours = 0
            self.minutes = 0
            self.category_id = categories[0].id if categories else None

    @property
    def is_edit(self) -> bool:
        return self.entry is not None

    def update(self, *, description: Optional[str] = None, category_id: Optional[str] = None,
               hours: Optional[int] = None, minutes: Optional[int] = None) -> None:
        if description is not None:
            self.description = description
        if category_id is not None:
            self.category_id = category_id
        if hours is not None:
            self.hours = hours
        if minutes is not None:
            self.minutes = minutes

    def start_timer(self) -> None:
        self.stopwatch.start()

    def stop_timer(self) -> None:
        total = self.stopwatch.stop()
        if total is None:
            return
        self.hours, self.minutes = divmod(total, 60)

    def duration_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    def clock_display(self) -> str:
        return self.stopwatch.display()

    def payload(self) -> SavePayload:
        return SavePayload(
            id=self.entry.id if self.entry else None,
            description=self.description,
            duration_minutes=self.duration_minutes(),
            category_id=self.category_id,
            date=self.day.isoformat(),
        )

    def close(self) -> None:
        self.stopwatch.cancel()
        self.closed = True


__all__ = ["EntryEditor", "IntervalTimer", "Stopwatch", "Ticker"]
