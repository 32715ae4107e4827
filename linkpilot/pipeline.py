from typing import Iterable, Optional

from .client import BookmarkClient
from .executor import BatchExecutor, RecordObserver
from .models import ImportReport, ImportSession
from .reporter import report


async def run_import(
    session: ImportSession,
    client: BookmarkClient,
    on_update: Optional[RecordObserver] = None,
    ids: Optional[Iterable[str]] = None,
) -> ImportReport:
    handled = await BatchExecutor(client, on_update=on_update).run(session, ids=ids)
    return await report(session, client, attempted=len(handled))
