"""HTTP client for the hosted backend (PostgREST tables and GoTrue auth)."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests

from .config import Settings

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Required connection settings are missing."""


class RemoteError(RuntimeError):
    """A request to the hosted backend failed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 payload: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def error_message(payload: Any, status_code: Optional[int] = None) -> str:
    """Build a readable message from the diagnostic fields of an error body."""

    if isinstance(payload, dict):
        parts = [
            str(payload[key]).strip()
            for key in ("message", "msg", "error_description", "details", "hint")
            if payload.get(key) not in (None, "")
        ]
        if parts:
            return " - ".join(parts)
        if payload:
            return json.dumps(payload, sort_keys=True)
    elif payload not in (None, ""):
        return str(payload)
    if status_code is not None:
        return f"Request failed with status {status_code}"
    return "Unknown error"


class RemoteClient:
    """Thin wrapper around the REST endpoints of the hosted backend."""

    def __init__(self, base_url: str, api_key: str, *, access_token: Optional[str] = None,
                 timeout: int = 15) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = urljoin(self.base_url, path.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)
        headers = kwargs.setdefault("headers", {})
        for key, value in self._headers().items():
            headers.setdefault(key, value)
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        payload = self._decode(response)
        if response.status_code >= 400:
            raise RemoteError(
                error_message(payload, response.status_code),
                status_code=response.status_code,
                payload=payload,
            )
        return payload

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return None
        if response.headers.get("Content-Type", "").startswith("application/json"):
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    def select(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        data = self._request("GET", f"rest/v1/{table}", params={"select": columns})
        return list(data or [])

    def insert(self, table: str, rows: Iterable[Dict[str, Any]]) -> None:
        self._request(
            "POST",
            f"rest/v1/{table}",
            json=list(rows),
            headers={"Prefer": "return=minimal"},
        )

    def upsert(self, table: str, rows: Iterable[Dict[str, Any]], on_conflict: str = "id") -> None:
        self._request(
            "POST",
            f"rest/v1/{table}",
            json=list(rows),
            params={"on_conflict": on_conflict},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def delete(self, table: str, column: str, value: str) -> None:
        self._request("DELETE", f"rest/v1/{table}", params={column: f"eq.{value}"})

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request(
            "POST",
            "auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise RemoteError("Sign-in response did not contain an access token", payload=data)
        return data

    def get_user(self) -> Optional[Dict[str, Any]]:
        if not self.access_token:
            return None
        data = self._request("GET", "auth/v1/user")
        return data if isinstance(data, dict) and data.get("id") else None

    def current_user_id(self) -> Optional[str]:
        """Return the signed-in user's id, or ``None`` when it cannot be resolved."""

        try:
            user = self.get_user()
        except RemoteError as exc:
            logger.debug("Could not resolve current user: %s", exc)
            return None
        return str(user["id"]) if user else None

    def sign_out(self) -> None:
        if self.access_token:
            self._request("POST", "auth/v1/logout")


def create_client(config: Settings, access_token: Optional[str] = None) -> RemoteClient:
    """Build a client for the configured backend.

    Raises :class:`ConfigurationError` when the backend URL or the public key
    is missing, instead of letting requests go out unauthenticated.
    """

    missing = [
        name
        for name, value in (
            ("TRACKER_SUPABASE_URL", config.supabase_url),
            ("TRACKER_SUPABASE_KEY", config.supabase_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"Missing backend settings: {', '.join(missing)}. "
            "Set them in the environment or in .env (project URL and public anon key)."
        )
    return RemoteClient(
        config.supabase_url,
        config.supabase_key,
        access_token=access_token,
        timeout=config.request_timeout,
    )


__all__ = ["ConfigurationError", "RemoteClient", "RemoteError", "create_client", "error_message"]
