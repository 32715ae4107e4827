import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvalidUrl
from .extractor import (
    extract_domain,
    extract_from_file,
    extract_from_free_text,
    is_valid_url,
    normalize_url,
    validate_single_url,
)
from .models import DEFAULT_CATEGORY, ImportMethod, ImportSession, ImportSettings, LinkRecord, LinkStatus

logger = logging.getLogger(__name__)


def resolve_settings(defaults: ImportSettings, overrides: Optional[Dict[str, Any]] = None) -> ImportSettings:
    """Overlay request-level overrides (camelCase or snake_case) on the stored defaults."""
    if not overrides:
        return defaults
    merged = defaults.model_dump()
    for key, value in overrides.items():
        name = _field_name(key)
        if name is None:
            logger.debug("Ignoring unknown import setting %r", key)
            continue
        merged[name] = value
    return ImportSettings.model_validate(merged)


def _field_name(key: str) -> Optional[str]:
    for name, field in ImportSettings.model_fields.items():
        if key in (name, field.alias):
            return name
    return None


def make_record(url: str, settings: ImportSettings) -> LinkRecord:
    domain = extract_domain(url)
    return LinkRecord(
        url=url,
        domain=domain,
        title=domain.upper(),
        category=settings.default_category or DEFAULT_CATEGORY,
    )


def build_records(urls: List[str], settings: ImportSettings) -> List[LinkRecord]:
    if settings.validate_urls:
        urls = [u for u in urls if is_valid_url(u)]
    return [make_record(u, settings) for u in urls]


def _single_url_records(raw: str, settings: ImportSettings) -> List[LinkRecord]:
    if not raw.strip():
        return []
    try:
        url = validate_single_url(raw)
    except InvalidUrl as exc:
        # explicit entry gets explicit feedback: a failed record, no network call
        record = make_record(normalize_url(raw), settings)
        record.raw_input = raw.strip()
        record.transition(LinkStatus.PROCESSING)
        record.transition(LinkStatus.FAILED, str(exc))
        return [record]
    return [make_record(url, settings)]


def create_session(
    method: ImportMethod,
    settings: ImportSettings,
    text: str = "",
    url: str = "",
    filename: str = "",
    content: str = "",
) -> ImportSession:
    if method == "single-url":
        records = _single_url_records(url or text, settings)
    elif method == "file-upload":
        records = build_records(extract_from_file(filename, content), settings)
    else:
        records = build_records(extract_from_free_text(text), settings)

    session = ImportSession(settings=settings, import_method=method, records=records)
    logger.info("Created import session %s with %d links via %s", session.id, len(records), method)
    return session


def retry_failed(session: ImportSession, ids: Optional[Iterable[str]] = None) -> int:
    """
    Put failed records back in the queue; everything else is left alone.
    With ``ids`` only the selected failed records are requeued.
    """
    failed = session.with_status(LinkStatus.FAILED)
    if ids is not None:
        selected = set(ids)
        failed = [r for r in failed if r.id in selected]
    for record in failed:
        record.transition(LinkStatus.QUEUED)
    session.progress = 0
    session.resume()
    return len(failed)
