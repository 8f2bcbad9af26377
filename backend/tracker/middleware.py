from __future__ import annotations

from typing import Iterable

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

LOGIN_PATH = "/login"


class LoginRequiredMiddleware(BaseHTTPMiddleware):
    """Send requests without a session cookie to the login page."""

    def __init__(self, app, protected_prefixes: Iterable[str] = ("/tracker",)) -> None:
        super().__init__(app)
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if not self._is_protected(request.url.path):
            return await call_next(request)
        runtime_state = getattr(request.app.state, "runtime_state", None)
        cookie_name = runtime_state.settings.session_cookie_name if runtime_state else "tracker_session"
        if request.cookies.get(cookie_name):
            return await call_next(request)
        return RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)

    def _is_protected(self, path: str) -> bool:
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.protected_prefixes)
