import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .client import BookmarkClient, is_duplicate_message
from .errors import ApplicationError, DuplicateConflict
from .models import DUPLICATE_NOTE, SKIPPED_NOTE, ImportSession, ImportSettings, LinkRecord, LinkStatus
from .precheck import already_stored

logger = logging.getLogger(__name__)

RecordObserver = Callable[[LinkRecord], None]


def build_payload(record: LinkRecord, settings: ImportSettings) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "url": record.url,
        "title": record.title,
        "priority": settings.default_priority,
        "privacy": settings.default_privacy,
    }
    if settings.default_category:
        payload["categoryIds"] = [settings.default_category]
    tags = settings.tags()
    if tags:
        payload["tags"] = tags
    return payload


class BatchExecutor:
    """
    Drives every queued record of a session to a terminal state.

    Sequential mode handles one record at a time. Parallel mode dispatches
    fixed batches of ``concurrent_limit`` records and waits for the whole
    batch to settle before starting the next one, so no more than
    ``concurrent_limit`` creation calls are ever in flight.
    """

    def __init__(self, client: BookmarkClient, on_update: Optional[RecordObserver] = None):
        self.client = client
        self.on_update = on_update

    def _transition(self, record: LinkRecord, status: LinkStatus, error: Optional[str] = None):
        record.transition(status, error)
        if self.on_update:
            self.on_update(record)

    async def run(self, session: ImportSession, ids: Optional[Iterable[str]] = None) -> List[LinkRecord]:
        """
        Process the session's queued records and return the ones handled this run.
        When ``ids`` is given only the selected queued records are run, the rest stay queued.
        """
        queued = session.with_status(LinkStatus.QUEUED)
        if ids is not None:
            selected = set(ids)
            queued = [r for r in queued if r.id in selected]
        size = session.settings.batch_size
        handled: List[LinkRecord] = []

        for start in range(0, len(queued), size):
            if session.cancelled:
                logger.info(
                    "Session %s cancelled, %d links left queued",
                    session.id,
                    len(queued) - len(handled),
                )
                break
            batch = queued[start:start + size]
            await asyncio.gather(*(self._process(session.settings, r) for r in batch))
            handled.extend(batch)
            session.progress = round(len(handled) / len(queued) * 100)
            # let a cancel request in between batches
            await asyncio.sleep(0)

        return handled

    async def _process(self, settings: ImportSettings, record: LinkRecord):
        try:
            await self._attempt(settings, record)
        except Exception as exc:
            logger.exception("Unexpected error importing %s", record.url)
            if record.status == LinkStatus.QUEUED:
                record.transition(LinkStatus.PROCESSING)
            if record.status == LinkStatus.PROCESSING:
                record.transition(LinkStatus.FAILED, str(exc) or "Unexpected error")

    async def _attempt(self, settings: ImportSettings, record: LinkRecord):
        self._transition(record, LinkStatus.PROCESSING)

        if settings.precheck_enabled and await already_stored(self.client, record.url):
            self._transition(record, LinkStatus.SUCCESS, SKIPPED_NOTE)
            return

        try:
            created = await self.client.create_bookmark(build_payload(record, settings))
        except DuplicateConflict:
            self._transition(record, LinkStatus.SUCCESS, DUPLICATE_NOTE)
        except ApplicationError as exc:
            if exc.status_code == 409 or is_duplicate_message(str(exc)):
                self._transition(record, LinkStatus.SUCCESS, DUPLICATE_NOTE)
            else:
                logger.warning("Import of %s rejected: %s", record.url, exc)
                self._transition(record, LinkStatus.FAILED, str(exc) or "Unknown error")
        except Exception as exc:
            logger.warning("Import of %s failed: %s", record.url, exc)
            self._transition(record, LinkStatus.FAILED, str(exc) or "Network error")
        else:
            if isinstance(created, dict) and created.get("title"):
                record.title = created["title"]
            self._transition(record, LinkStatus.PERFECT)
