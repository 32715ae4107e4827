import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from . import storage
from .errors import ApplicationError, DuplicateConflict, LogPersistenceError, TransportError
from .storage import AppState

logger = logging.getLogger(__name__)

BOOKMARKS_PATH = "/api/bookmarks"
IMPORT_LOG_PATH = "/api/bulk-upload-log"


class BookmarkClient(Protocol):
    """The collaborators an import session talks to."""

    async def create_bookmark(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def find_bookmarks(self, url: str) -> List[Dict[str, Any]]: ...

    async def save_import_log(self, entry: Dict[str, Any]) -> Dict[str, Any]: ...


def is_duplicate_message(message: Optional[str]) -> bool:
    text = (message or "").lower()
    return "already exists" in text or "duplicate" in text


class LocalBookmarkClient:
    """Runs against the in-process application state and persists after each write."""

    def __init__(self, state: AppState, persist: bool = True):
        self.state = state
        self.persist = persist

    def _save(self):
        if self.persist:
            storage.save_state(self.state)

    async def create_bookmark(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        bookmark = storage.create_bookmark(self.state, payload)
        self._save()
        return bookmark.model_dump(mode="json", by_alias=True)

    async def find_bookmarks(self, url: str) -> List[Dict[str, Any]]:
        return [
            b.model_dump(mode="json", by_alias=True)
            for b in storage.find_bookmarks(self.state, url)
        ]

    async def save_import_log(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        try:
            log = storage.add_import_log(self.state, entry)
            self._save()
        except (ValueError, OSError) as exc:
            raise LogPersistenceError(str(exc)) from exc
        return log.model_dump(mode="json", by_alias=True)


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        detail = data.get("detail")
        if isinstance(detail, dict):
            data = detail
        elif isinstance(detail, str):
            return detail
        message = data.get("message") or data.get("error")
        if message:
            return str(message)
    return f"HTTP {resp.status_code}"


class HttpBookmarkClient:
    """
    Talks to a remote LinkPilot instance.
    requests is blocking, so every call goes through the default executor.
    """

    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = self.http.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(str(exc) or "Network error") from exc

        if resp.status_code == 409:
            raise DuplicateConflict(_error_message(resp))
        if not resp.ok:
            raise ApplicationError(_error_message(resp), resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return {}

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.get_event_loop().run_in_executor(
            None, functools.partial(self._request, method, path, **kwargs)
        )

    async def create_bookmark(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("POST", BOOKMARKS_PATH, json=payload)

    async def find_bookmarks(self, url: str) -> List[Dict[str, Any]]:
        data = await self._call("GET", BOOKMARKS_PATH, params={"url": url})
        return data.get("bookmarks") or []

    async def save_import_log(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        try:
            data = await self._call("POST", IMPORT_LOG_PATH, json=entry)
        except (TransportError, ApplicationError) as exc:
            logger.debug("Import log rejected by %s: %s", self.base_url, exc)
            raise LogPersistenceError(str(exc)) from exc
        return data.get("log") or {}
