from __future__ import annotations

from threading import RLock
from typing import Callable, Dict, Optional

from .aggregation import TrackerView
from .config import Settings
from .editor import EntryEditor, IntervalTimer, TickerFactory


class RuntimeState:
    """Per-user tracker views and open editors held in memory."""

    def __init__(self, base_settings: Settings,
                 view_factory: Callable[[], TrackerView] = TrackerView,
                 ticker_factory: TickerFactory = IntervalTimer) -> None:
        self._lock = RLock()
        self.settings = base_settings
        self.view_factory = view_factory
        self.ticker_factory = ticker_factory
        self._views: Dict[str, TrackerView] = {}
        self._editors: Dict[str, EntryEditor] = {}
        # Session token -> user id, so logout can clean up after the token expired.
        self._sessions: Dict[str, str] = {}

    def remember_session(self, token: str, user_id: str) -> None:
        with self._lock:
            self._sessions[token] = user_id

    def user_for_session(self, token: str) -> Optional[str]:
        with self._lock:
            return self._sessions.get(token)

    def view_for(self, user_id: str) -> TrackerView:
        with self._lock:
            view = self._views.get(user_id)
            if view is None:
                view = self.view_factory()
                self._views[user_id] = view
            return view

    def editor_for(self, user_id: str) -> Optional[EntryEditor]:
        with self._lock:
            return self._editors.get(user_id)

    def open_editor(self, user_id: str, editor: EntryEditor) -> EntryEditor:
        with self._lock:
            previous = self._editors.pop(user_id, None)
            if previous is not None:
                previous.close()
            self._editors[user_id] = editor
            return editor

    def close_editor(self, user_id: str) -> None:
        with self._lock:
            editor = self._editors.pop(user_id, None)
        if editor is not None:
            editor.close()

    def forget(self, user_id: str) -> None:
        self.close_editor(user_id)
        with self._lock:
            self._views.pop(user_id, None)
            for token in [t for t, uid in self._sessions.items() if uid == user_id]:
                del self._sessions[token]

    def reset(self) -> None:
        with self._lock:
            editors = list(self._editors.values())
            self._editors.clear()
            self._views.clear()
            self._sessions.clear()
        for editor in editors:
            editor.close()
