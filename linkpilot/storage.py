import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field

from .errors import ApplicationError, DuplicateConflict
from .extractor import is_valid_url
from .models import ImportSettings, WireModel, utcnow

STATE_FILE = Path(os.environ.get("LINKPILOT_STATE_FILE", "linkpilot_state.json"))

HISTORY_PERIODS = {"today", "week", "month"}


class Bookmark(WireModel):
    id: int
    url: str
    title: str
    description: str = ""
    priority: str = "MEDIUM"
    privacy: str = "PRIVATE"
    category_ids: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class ImportLog(WireModel):
    id: int
    total_links: int
    success_count: int
    failed_count: int
    duplicate_count: int
    skipped_count: int
    settings: Dict[str, Any] = Field(default_factory=dict)
    source: str = "bulk_uploader"
    import_method: Optional[str] = None
    links_data: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class Config(WireModel):
    import_defaults: ImportSettings = Field(default_factory=ImportSettings)
    history_limit: int = 50


class AppState(WireModel):
    next_id: int = 1
    next_log_id: int = 1
    bookmarks: List[Bookmark] = Field(default_factory=list)
    import_logs: List[ImportLog] = Field(default_factory=list)
    config: Config = Field(default_factory=Config)


def load_state() -> AppState:
    if not STATE_FILE.exists():
        return AppState()
    with open(STATE_FILE, "r") as f:
        data = json.load(f)
    return AppState.model_validate(data)


def save_state(state: AppState):
    STATE_FILE.write_text(
        json.dumps(state.model_dump(mode="json", by_alias=True), indent=2)
    )


def find_bookmarks(state: AppState, url: Optional[str] = None) -> List[Bookmark]:
    if url is None:
        return list(state.bookmarks)
    return [b for b in state.bookmarks if b.url == url]


def create_bookmark(state: AppState, payload: Dict[str, Any]) -> Bookmark:
    title = (payload.get("title") or "").strip()
    url = (payload.get("url") or "").strip()
    if not title or not url:
        raise ApplicationError("Title and URL are required", 400)
    if not is_valid_url(url):
        raise ApplicationError("Invalid URL format", 400)

    existing = next((b for b in state.bookmarks if b.url == url), None)
    if existing:
        raise DuplicateConflict(
            f'This URL already exists in your bookmarks: "{existing.title}"'
        )

    bookmark = Bookmark(
        id=state.next_id,
        url=url,
        title=title,
        description=payload.get("description") or "",
        priority=payload.get("priority") or "MEDIUM",
        privacy=payload.get("privacy") or "PRIVATE",
        category_ids=payload.get("categoryIds") or [],
        tags=payload.get("tags") or [],
    )
    state.bookmarks.insert(0, bookmark)
    state.next_id += 1
    return bookmark


def add_import_log(state: AppState, entry: Dict[str, Any]) -> ImportLog:
    log = ImportLog.model_validate({**entry, "id": state.next_log_id})
    state.import_logs.insert(0, log)
    state.next_log_id += 1
    return log


def query_import_logs(
    state: AppState,
    limit: int = 50,
    period: str = "all",
    search: str = "",
    now: Optional[datetime] = None,
) -> List[ImportLog]:
    now = now or utcnow()
    query = search.lower()
    res = []
    for log in sorted(state.import_logs, key=lambda l: l.created_at, reverse=True):
        if query:
            urls = [str(item.get("url") or "").lower() for item in log.links_data]
            if query not in log.source.lower() and not any(query in u for u in urls):
                continue
        if period == "today" and log.created_at.date() != now.date():
            continue
        if period == "week" and log.created_at < now - timedelta(days=7):
            continue
        if period == "month" and log.created_at < now - timedelta(days=30):
            continue
        res.append(log)
    return res[:limit]
