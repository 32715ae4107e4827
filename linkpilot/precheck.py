import logging

from .client import BookmarkClient

logger = logging.getLogger(__name__)


async def already_stored(client: BookmarkClient, url: str) -> bool:
    """
    Look the URL up in the bookmark store.
    A failed or unreadable lookup is inconclusive and reports False so the link still gets created.
    """
    try:
        existing = await client.find_bookmarks(url)
        return any(item.get("url") == url for item in existing or [])
    except (AttributeError, TypeError) as exc:
        logger.warning("Unreadable duplicate pre-check result for %s, creating anyway: %s", url, exc)
        return False
    except Exception as exc:
        logger.warning("Duplicate pre-check failed for %s, creating anyway: %s", url, exc)
        return False
