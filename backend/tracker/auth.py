from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from .remote import RemoteClient, RemoteError, create_client
from .state import RuntimeState

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """The request has no usable session and must go through the login page."""


def runtime_state(request: Request) -> RuntimeState:
    return request.app.state.runtime_state


def session_token(request: Request) -> Optional[str]:
    state = runtime_state(request)
    return request.cookies.get(state.settings.session_cookie_name) or None


def get_client(request: Request) -> RemoteClient:
    state = runtime_state(request)
    return create_client(state.settings, access_token=session_token(request))


def current_user(request: Request, client: RemoteClient = Depends(get_client)) -> Dict[str, Any]:
    if not client.access_token:
        raise LoginRequired()
    try:
        user = client.get_user()
    except RemoteError as exc:
        logger.info("Session rejected by backend: %s", exc)
        raise LoginRequired() from exc
    if not user:
        raise LoginRequired()
    runtime_state(request).remember_session(client.access_token, str(user["id"]))
    return user
