import csv
import io
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError

from . import storage
from .client import LocalBookmarkClient
from .errors import ApplicationError, DuplicateConflict, UnsupportedFileType
from .models import ImportMethod, ImportSession, LinkStatus, WireModel
from .pipeline import run_import
from .session import create_session, resolve_settings, retry_failed
from .storage import AppState, load_state, save_state

logger = logging.getLogger(__name__)

app = FastAPI(title="LinkPilot")

state: AppState = load_state()

# recent sessions, kept so failed links can be retried or a running import cancelled
MAX_SESSIONS = 20
sessions: "OrderedDict[str, ImportSession]" = OrderedDict()
running: Set[str] = set()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class BookmarkIn(WireModel):
    url: Optional[str] = None
    title: Optional[str] = None
    description: str = ""
    priority: str = "MEDIUM"
    privacy: str = "PRIVATE"
    category_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class ImportLogIn(WireModel):
    total_links: int
    success_count: int
    failed_count: int
    duplicate_count: int
    skipped_count: int
    settings: Dict[str, Any] = {}
    source: str = "bulk_uploader"
    import_method: Optional[str] = None
    links_data: List[Dict[str, Any]] = []


class ImportRequest(BaseModel):
    method: ImportMethod = "paste-text"
    text: str = ""
    url: str = ""
    filename: str = ""
    content: str = ""
    settings: Optional[Dict[str, Any]] = None


class RunRequest(BaseModel):
    ids: Optional[List[str]] = None


class ConfigUpdate(BaseModel):
    import_defaults: Optional[Dict[str, Any]] = None
    history_limit: Optional[int] = None


def _client() -> LocalBookmarkClient:
    return LocalBookmarkClient(state)


def _remember(session: ImportSession):
    sessions[session.id] = session
    sessions.move_to_end(session.id)
    while len(sessions) > MAX_SESSIONS:
        sessions.popitem(last=False)


def _get_session(session_id: str) -> ImportSession:
    session = sessions.get(session_id)
    if not session:
        raise HTTPException(404, "Import session not found")
    return session


async def _run(session: ImportSession, ids: Optional[List[str]] = None) -> Dict[str, Any]:
    running.add(session.id)
    try:
        result = await run_import(session, _client(), ids=ids)
    except Exception:
        logger.exception("Import session %s failed", session.id)
        raise HTTPException(500, "Import failed")
    finally:
        running.discard(session.id)
    return result.model_dump(mode="json", by_alias=True)


@app.post("/api/bookmarks")
def add_bookmark(body: BookmarkIn):
    payload = body.model_dump(by_alias=True)
    try:
        bookmark = storage.create_bookmark(state, payload)
    except DuplicateConflict as exc:
        raise HTTPException(409, {"error": "Duplicate bookmark", "message": str(exc), "duplicate": True})
    except ApplicationError as exc:
        raise HTTPException(exc.status_code or 400, str(exc))
    save_state(state)
    return bookmark.model_dump(mode="json", by_alias=True)


@app.get("/api/bookmarks")
def list_bookmarks(url: Optional[str] = None, limit: int = 100):
    res = storage.find_bookmarks(state, url)[:limit]
    return {
        "bookmarks": [b.model_dump(mode="json", by_alias=True) for b in res],
        "count": len(res),
    }


@app.get("/api/bookmarks/export/json")
def export_json():
    return [b.model_dump(mode="json", by_alias=True) for b in state.bookmarks]


@app.get("/api/bookmarks/export/csv")
def export_csv():
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Title", "URL", "Description", "Priority", "Created At", "Categories", "Tags"])
    for b in state.bookmarks:
        writer.writerow(
            [
                b.title,
                b.url,
                b.description,
                b.priority,
                b.created_at.isoformat(),
                "; ".join(b.category_ids),
                "; ".join(b.tags),
            ]
        )
    return Response(out.getvalue(), media_type="text/csv")


@app.post("/api/bulk-upload-log")
def add_import_log(body: ImportLogIn):
    log = storage.add_import_log(state, body.model_dump(by_alias=True))
    save_state(state)
    return {"success": True, "log": log.model_dump(mode="json", by_alias=True)}


@app.get("/api/bulk-upload-log")
def import_history(limit: Optional[int] = None, period: str = "all", q: str = ""):
    if period != "all" and period not in storage.HISTORY_PERIODS:
        raise HTTPException(400, "Unknown period")
    logs = storage.query_import_logs(
        state, limit=limit or state.config.history_limit, period=period, search=q
    )
    return {"logs": [l.model_dump(mode="json", by_alias=True) for l in logs]}


def _build_session(body: ImportRequest) -> ImportSession:
    try:
        settings = resolve_settings(state.config.import_defaults, body.settings)
    except ValidationError as exc:
        raise HTTPException(400, f"Invalid import settings: {exc.error_count()} error(s)")

    try:
        session = create_session(
            body.method,
            settings,
            text=body.text,
            url=body.url,
            filename=body.filename,
            content=body.content,
        )
    except UnsupportedFileType as exc:
        raise HTTPException(400, str(exc))

    if not session.records:
        raise HTTPException(400, "No valid URLs found")

    _remember(session)
    return session


@app.post("/api/import/parse")
def parse_import(body: ImportRequest):
    """Extract the links without importing them, so a selection can be run later."""
    session = _build_session(body)
    return session.model_dump(mode="json", by_alias=True)


@app.post("/api/import")
async def start_import(body: ImportRequest):
    session = _build_session(body)
    return await _run(session)


@app.get("/api/import/{session_id}")
def get_import(session_id: str):
    return _get_session(session_id).model_dump(mode="json", by_alias=True)


@app.get("/api/import/{session_id}/export/csv")
def export_import_results(session_id: str):
    session = _get_session(session_id)
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(["URL", "Title", "Status", "Error"])
    for r in session.records:
        writer.writerow([r.url, r.title, r.status.value, r.error or ""])
    filename = f"import-results-{session.created_at.date().isoformat()}.csv"
    return Response(
        out.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/import/{session_id}/run")
async def run_selected(session_id: str, body: Optional[RunRequest] = None):
    session = _get_session(session_id)
    ids = body.ids if body else None
    if session.id in running:
        raise HTTPException(409, "Import already running")
    queued = session.with_status(LinkStatus.QUEUED)
    if ids is not None:
        selected = set(ids)
        queued = [r for r in queued if r.id in selected]
    if not queued:
        raise HTTPException(400, "No links selected")
    session.resume()
    return await _run(session, ids)


@app.post("/api/import/{session_id}/retry")
async def retry_import(session_id: str, body: Optional[RunRequest] = None):
    session = _get_session(session_id)
    ids = body.ids if body else None
    if ids is not None and not ids:
        raise HTTPException(400, "No links selected")
    if session.id in running:
        raise HTTPException(409, "Import already running")
    # links left queued by a cancelled run are picked up too
    if not retry_failed(session, ids) and not session.with_status(LinkStatus.QUEUED):
        raise HTTPException(400, "No failed links to retry")
    return await _run(session, ids)


@app.post("/api/import/{session_id}/cancel")
def cancel_import(session_id: str):
    session = _get_session(session_id)
    session.cancel()
    return {"ok": True, "running": session.id in running}


@app.get("/api/config")
def get_config():
    return state.config.model_dump(mode="json", by_alias=True)


@app.post("/api/config")
def update_config(payload: ConfigUpdate):
    if payload.import_defaults:
        try:
            state.config.import_defaults = resolve_settings(
                state.config.import_defaults, payload.import_defaults
            )
        except ValidationError as exc:
            raise HTTPException(400, f"Invalid import settings: {exc.error_count()} error(s)")
    if payload.history_limit:
        state.config.history_limit = payload.history_limit
    save_state(state)
    return state.config.model_dump(mode="json", by_alias=True)
