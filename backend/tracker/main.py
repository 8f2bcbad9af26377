from __future__ import annotations

import datetime as dt
import html
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from .aggregation import TrackerView
from .auth import LoginRequired, current_user, get_client, runtime_state, session_token
from .config import settings
from .editor import EntryEditor
from .export import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, export_csv, export_filename, export_xlsx
from .middleware import LOGIN_PATH, LoginRequiredMiddleware
from .remote import ConfigurationError, RemoteClient, RemoteError, create_client
from .schemas import (
    EditorOpenRequest,
    EditorStateResponse,
    EditorUpdateRequest,
    SelectDayRequest,
    TrackerViewResponse,
    editor_state_response,
    tracker_view_response,
)
from .state import RuntimeState
from .stores import CategoryStore, EntryStore

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

LOGIN_FORM = """<!doctype html>
<html>
  <head><title>{title} - Sign in</title></head>
  <body>
    <h1>{title}</h1>
    {error}
    <form method="post" action="/login">
      <label>Email <input type="email" name="email" autocomplete="username" required></label>
      <label>Password <input type="password" name="password" autocomplete="current-password" required></label>
      <button type="submit">Sign in</button>
    </form>
  </body>
</html>
"""

runtime = RuntimeState(settings)

app = FastAPI(title=settings.app_name)
app.state.runtime_state = runtime
app.add_middleware(LoginRequiredMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(runtime_state(request).settings.session_cookie_name)
    return response


def _entry_store(state: RuntimeState, client: RemoteClient) -> EntryStore:
    return EntryStore(client, state.settings.entries_table)


def _category_store(state: RuntimeState, client: RemoteClient) -> CategoryStore:
    return CategoryStore(client, state.settings.categories_table)


def _mounted_view(state: RuntimeState, user_id: str, client: RemoteClient) -> TrackerView:
    view = state.view_for(user_id)
    if not view.loaded:
        view.load(_category_store(state, client), _entry_store(state, client))
    return view


def _write_failed(action: str, exc: RemoteError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {action}: {exc}")


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
def index() -> RedirectResponse:
    return RedirectResponse("/tracker", status_code=status.HTTP_303_SEE_OTHER)


# ----------------------------------------------------------------------
# Login
# ----------------------------------------------------------------------
@app.get(LOGIN_PATH, response_class=HTMLResponse)
def login_page(request: Request) -> HTMLResponse:
    title = runtime_state(request).settings.app_name
    return HTMLResponse(LOGIN_FORM.format(title=title, error=""))


@app.post(LOGIN_PATH)
def login(request: Request, email: str = Form(...), password: str = Form(...)) -> Response:
    state = runtime_state(request)
    client = create_client(state.settings)
    try:
        session = client.sign_in_with_password(email, password)
    except RemoteError as exc:
        logger.info("Sign-in failed for %s: %s", email, exc)
        error = f"<p role=\"alert\">Sign-in failed: {html.escape(str(exc))}</p>"
        return HTMLResponse(
            LOGIN_FORM.format(title=state.settings.app_name, error=error),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    logger.info("User %s signed in", email)
    response = RedirectResponse("/tracker", status_code=status.HTTP_303_SEE_OTHER)
    max_age: Optional[int] = session.get("expires_in")
    response.set_cookie(
        state.settings.session_cookie_name,
        session["access_token"],
        max_age=int(max_age) if max_age else None,
        httponly=True,
        samesite="lax",
        secure=state.settings.cookie_secure,
    )
    return response


@app.post("/logout")
def logout(request: Request) -> RedirectResponse:
    state = runtime_state(request)
    token = session_token(request)
    if token:
        client = create_client(state.settings, access_token=token)
        user_id = client.current_user_id() or state.user_for_session(token)
        try:
            client.sign_out()
        except RemoteError as exc:
            logger.warning("Sign-out request failed: %s", exc)
        if user_id:
            state.forget(user_id)
    response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(state.settings.session_cookie_name)
    return response


# ----------------------------------------------------------------------
# Tracker view
# ----------------------------------------------------------------------
@app.get("/tracker", response_model=TrackerViewResponse)
def tracker(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    view = _mounted_view(runtime_state(request), str(user["id"]), client)
    return tracker_view_response(view)


@app.post("/tracker/month/{direction}", response_model=TrackerViewResponse)
def tracker_month(
    direction: str,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    view = _mounted_view(runtime_state(request), str(user["id"]), client)
    if direction == "previous":
        view.previous_month()
    elif direction == "next":
        view.next_month()
    elif direction == "today":
        view.go_to_today()
    else:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown month direction")
    return tracker_view_response(view)


@app.post("/tracker/select", response_model=TrackerViewResponse)
def tracker_select(
    payload: SelectDayRequest,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    view = _mounted_view(runtime_state(request), str(user["id"]), client)
    view.select_day(payload.date)
    return tracker_view_response(view)


@app.post("/tracker/sync", response_model=TrackerViewResponse)
def tracker_sync(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    state = runtime_state(request)
    view = _mounted_view(state, str(user["id"]), client)
    view.sync(_entry_store(state, client))
    return tracker_view_response(view)


@app.delete("/tracker/entries/{entry_id}", response_model=TrackerViewResponse)
def tracker_delete_entry(
    entry_id: str,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    state = runtime_state(request)
    view = _mounted_view(state, str(user["id"]), client)
    try:
        view.delete(entry_id, _entry_store(state, client))
    except RemoteError as exc:
        raise _write_failed("delete entry", exc) from exc
    return tracker_view_response(view)


# ----------------------------------------------------------------------
# Entry editor
# ----------------------------------------------------------------------
def _open_editor(state: RuntimeState, user_id: str) -> EntryEditor:
    editor = state.editor_for(user_id)
    if editor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No entry editor is open")
    return editor


@app.get("/tracker/editor", response_model=EditorStateResponse)
def editor_state(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
) -> EditorStateResponse:
    state = runtime_state(request)
    return editor_state_response(_open_editor(state, str(user["id"])))


@app.post("/tracker/editor", response_model=EditorStateResponse, status_code=status.HTTP_201_CREATED)
def editor_open(
    payload: EditorOpenRequest,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> EditorStateResponse:
    state = runtime_state(request)
    user_id = str(user["id"])
    view = _mounted_view(state, user_id, client)
    entry = None
    day = view.selected_day
    if payload.entry_id:
        entry = view.find_entry(payload.entry_id)
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
        day = view.entry_day(entry.id) or day
    editor = state.open_editor(
        user_id, EntryEditor(view.categories, entry=entry, ticker_factory=state.ticker_factory, day=day)
    )
    return editor_state_response(editor)


@app.patch("/tracker/editor", response_model=EditorStateResponse)
def editor_update(
    payload: EditorUpdateRequest,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
) -> EditorStateResponse:
    state = runtime_state(request)
    editor = _open_editor(state, str(user["id"]))
    editor.update(**payload.model_dump(exclude_unset=True))
    return editor_state_response(editor)


@app.post("/tracker/editor/timer/{action}", response_model=EditorStateResponse)
def editor_timer(
    action: str,
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
) -> EditorStateResponse:
    state = runtime_state(request)
    editor = _open_editor(state, str(user["id"]))
    if action == "start":
        editor.start_timer()
    elif action == "stop":
        editor.stop_timer()
    else:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown timer action")
    return editor_state_response(editor)


@app.post("/tracker/editor/save", response_model=TrackerViewResponse)
def editor_save(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> TrackerViewResponse:
    state = runtime_state(request)
    user_id = str(user["id"])
    view = _mounted_view(state, user_id, client)
    editor = _open_editor(state, user_id)
    try:
        view.save(editor.payload(), _entry_store(state, client))
    except RemoteError as exc:
        raise _write_failed("save entry", exc) from exc
    state.close_editor(user_id)
    return tracker_view_response(view)


@app.delete("/tracker/editor", status_code=status.HTTP_204_NO_CONTENT)
def editor_close(request: Request, user: Dict[str, Any] = Depends(current_user)) -> Response:
    runtime_state(request).close_editor(str(user["id"]))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# Export
# ----------------------------------------------------------------------
@app.get("/tracker/export.csv")
def export_entries_csv(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> Response:
    view = _mounted_view(runtime_state(request), str(user["id"]), client)
    filename = export_filename(dt.date.today(), "csv")
    return Response(
        content=export_csv(view.index, view.categories),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/tracker/export.xlsx")
def export_entries_xlsx(
    request: Request,
    user: Dict[str, Any] = Depends(current_user),
    client: RemoteClient = Depends(get_client),
) -> Response:
    view = _mounted_view(runtime_state(request), str(user["id"]), client)
    filename = export_filename(dt.date.today(), "xlsx")
    return Response(
        content=export_xlsx(view.index, view.categories),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
