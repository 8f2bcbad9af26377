from __future__ import annotations

import copy
import json
from typing import Any, Dict, Generator, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from tracker import remote
from tracker.config import settings
from tracker.main import app, runtime
from tracker.remote import RemoteClient

BASE_URL = "https://project.supabase.test"
PUBLIC_KEY = "public-anon-key"
USER_TOKEN = "token-1"
USER_ID = "user-1"


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None) -> None:
        self.status_code = status_code
        if payload is None:
            self.content = b""
            self.headers: Dict[str, str] = {}
        else:
            self.content = json.dumps(payload).encode()
            self.headers = {"Content-Type": "application/json; charset=utf-8"}
        self.text = self.content.decode()

    def json(self) -> Any:
        return json.loads(self.content)


class ManualTicker:
    """Stands in for the one-second timer thread; tests tick by hand."""

    instances: List["ManualTicker"] = []

    def __init__(self, interval: float, function) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        ManualTicker.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class FakeBackend:
    """In-memory stand-in for the hosted tables and the auth endpoints."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {"time_tracker": [], "categories": []}
        self.users: Dict[str, Dict[str, Any]] = {USER_TOKEN: {"id": USER_ID, "email": "ada@example.com"}}
        self.passwords: Dict[str, Tuple[str, str]] = {"ada@example.com": ("secret", USER_TOKEN)}
        self.failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.requests: List[Tuple[str, str, Dict[str, Any]]] = []

    def fail(self, method: str, path: str, status_code: int = 500, payload: Any = None) -> None:
        self.failures[(method, path)] = (status_code, payload)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def request(self, method: str, url: str, *, params: Optional[Dict[str, str]] = None,
                json: Any = None, headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> FakeResponse:
        params = params or {}
        headers = headers or {}
        path = urlsplit(url).path.lstrip("/")
        self.requests.append((method, path, {"params": params, "json": json, "headers": headers}))
        if (method, path) in self.failures:
            return FakeResponse(*self.failures[(method, path)])
        if path.startswith("rest/v1/"):
            return self._table(method, path[len("rest/v1/"):], params, json, headers)
        if path == "auth/v1/token":
            return self._sign_in(json or {})
        if path == "auth/v1/user":
            user = self.users.get(self._token(headers))
            if user is None:
                return FakeResponse(401, {"msg": "invalid JWT"})
            return FakeResponse(200, user)
        if path == "auth/v1/logout":
            return FakeResponse(204)
        return FakeResponse(404, {"message": f"No route for {path}"})

    @staticmethod
    def _token(headers: Dict[str, str]) -> str:
        return headers.get("Authorization", "").replace("Bearer ", "", 1)

    def _sign_in(self, body: Dict[str, Any]) -> FakeResponse:
        known = self.passwords.get(body.get("email"))
        if not known or known[0] != body.get("password"):
            return FakeResponse(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
        token = known[1]
        return FakeResponse(
            200,
            {"access_token": token, "token_type": "bearer", "expires_in": 3600, "user": self.users[token]},
        )

    def _table(self, method: str, table: str, params: Dict[str, str], body: Any,
               headers: Dict[str, str]) -> FakeResponse:
        rows = self.rows(table)
        if method == "GET":
            return FakeResponse(200, copy.deepcopy(rows))
        if method == "POST":
            merge = "merge-duplicates" in headers.get("Prefer", "")
            for row in body or []:
                existing = next((r for r in rows if merge and r.get("id") == row.get("id")), None)
                if existing is not None:
                    existing.update(copy.deepcopy(row))
                else:
                    rows.append(copy.deepcopy(row))
            return FakeResponse(201)
        if method == "DELETE":
            filters = {key: value[len("eq."):] for key, value in params.items() if value.startswith("eq.")}
            self.tables[table] = [
                row for row in rows if not all(str(row.get(k)) == v for k, v in filters.items())
            ]
            return FakeResponse(204)
        return FakeResponse(405, {"message": "Method not allowed"})


@pytest.fixture()
def backend(monkeypatch) -> FakeBackend:
    fake = FakeBackend()
    monkeypatch.setattr(remote.requests, "request", fake.request)
    return fake


@pytest.fixture()
def configured(monkeypatch) -> None:
    monkeypatch.setattr(settings, "supabase_url", BASE_URL)
    monkeypatch.setattr(settings, "supabase_key", PUBLIC_KEY)


@pytest.fixture()
def remote_client(backend: FakeBackend) -> RemoteClient:
    return RemoteClient(BASE_URL, PUBLIC_KEY, access_token=USER_TOKEN)


@pytest.fixture()
def anonymous_client(backend: FakeBackend, configured, monkeypatch) -> Generator[TestClient, None, None]:
    ManualTicker.instances.clear()
    monkeypatch.setattr(runtime, "ticker_factory", ManualTicker)
    runtime.reset()
    with TestClient(app) as c:
        yield c
    runtime.reset()


@pytest.fixture()
def client(anonymous_client: TestClient) -> TestClient:
    anonymous_client.cookies.set(settings.session_cookie_name, USER_TOKEN, domain="testserver.local")
    return anonymous_client
