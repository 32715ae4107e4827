import logging
import math
from typing import Any, Dict, List, Optional

from .client import BookmarkClient
from .models import ImportReport, ImportSession, ImportStats, LinkRecord, LinkStatus

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def success_rate(perfect: int, attempted: int) -> int:
    """Share of links attempted this run that were created, rounded half up."""
    if attempted <= 0:
        return 0
    return math.floor(perfect / attempted * 100 + 0.5)


def compute_stats(records: List[LinkRecord], attempted: int) -> ImportStats:
    stats = ImportStats(total=len(records), attempted=attempted)
    for record in records:
        if record.status == LinkStatus.PERFECT:
            stats.perfect += 1
        elif record.status == LinkStatus.SUCCESS:
            stats.success += 1
            if record.is_skipped:
                stats.skipped += 1
            elif record.is_duplicate:
                stats.duplicate += 1
        elif record.status == LinkStatus.FAILED:
            stats.failed += 1
        elif record.status == LinkStatus.QUEUED:
            stats.queued += 1
        elif record.status == LinkStatus.PROCESSING:
            stats.processing += 1
    stats.success_rate = success_rate(stats.perfect, attempted)
    return stats


def summarize(stats: ImportStats) -> str:
    # zero counts are left out rather than printed as "0 failed"
    clauses = []
    if stats.perfect:
        clauses.append(f"imported {_plural(stats.perfect, 'bookmark')}")
    if stats.skipped:
        clauses.append(f"skipped {stats.skipped} existing")
    if stats.duplicate:
        clauses.append(_plural(stats.duplicate, "duplicate"))
    if stats.failed:
        clauses.append(f"{stats.failed} failed")
    if stats.queued:
        clauses.append(f"{stats.queued} not processed")
    if not clauses:
        return "No links were imported"
    message = ", ".join(clauses)
    return message[0].upper() + message[1:]


def build_log_entry(session: ImportSession, stats: ImportStats) -> Dict[str, Any]:
    return {
        "totalLinks": stats.total,
        "successCount": stats.perfect,
        "failedCount": stats.failed,
        "duplicateCount": stats.duplicate,
        "skippedCount": stats.skipped,
        "settings": session.settings.model_dump(mode="json", by_alias=True),
        "source": session.source,
        "importMethod": session.import_method,
        "linksData": [
            {"url": r.url, "title": r.title, "status": r.status.value, "error": r.error}
            for r in session.records
        ],
    }


async def report(session: ImportSession, client: BookmarkClient, attempted: int) -> ImportReport:
    stats = compute_stats(session.records, attempted)
    session.stats = stats

    saved: Optional[Dict[str, Any]] = None
    if session.settings.log_imports:
        try:
            saved = await client.save_import_log(build_log_entry(session, stats))
        except Exception:
            logger.exception("Failed to log import session %s", session.id)

    message = summarize(stats)
    if stats.failed:
        level = "error"
    elif stats.perfect or stats.success:
        level = "success"
    else:
        level = "info"
    logger.info("Import session %s finished: %s", session.id, message)

    return ImportReport(
        session_id=session.id,
        records=session.records,
        stats=stats,
        message=message,
        level=level,
        cancelled=session.cancelled,
        log_saved=saved is not None,
        log=saved,
    )
