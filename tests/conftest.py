import asyncio
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Keep the module-level state load in linkpilot.main away from the working directory
os.environ.setdefault(
    "LINKPILOT_STATE_FILE", str(Path(tempfile.gettempdir()) / "linkpilot_test_state.json")
)

from linkpilot.errors import ApplicationError, DuplicateConflict, TransportError  # noqa: E402


class FakeBookmarkClient:
    """In-memory collaborator that records calls and tracks concurrency."""

    def __init__(self, existing=(), fail_urls=(), reject_urls=(), conflict_urls=(), delay=0.0):
        self.existing = set(existing)
        self.fail_urls = set(fail_urls)
        self.reject_urls = dict(reject_urls)
        self.conflict_urls = set(conflict_urls)
        self.delay = delay
        self.created = []
        self.lookups = []
        self.logs = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.lookup_error = None
        self.log_error = None

    async def create_bookmark(self, payload):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            url = payload["url"]
            if url in self.fail_urls:
                raise TransportError("Network error")
            if url in self.conflict_urls:
                raise DuplicateConflict("Duplicate bookmark")
            if url in self.reject_urls:
                raise ApplicationError(*self.reject_urls[url])
            self.created.append(payload)
            return {"id": len(self.created), **payload}
        finally:
            self.in_flight -= 1

    async def find_bookmarks(self, url):
        self.lookups.append(url)
        if self.lookup_error:
            raise self.lookup_error
        return [{"url": url}] if url in self.existing else []

    async def save_import_log(self, entry):
        if self.log_error:
            raise self.log_error
        self.logs.append(entry)
        return {"id": len(self.logs), **entry}


@pytest.fixture
def fake_client():
    return FakeBookmarkClient()


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    from linkpilot import storage

    path = tmp_path / "state.json"
    monkeypatch.setattr(storage, "STATE_FILE", path)
    return path
