from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidTransition

DEFAULT_CATEGORY = "Uncategorized"
DUPLICATE_NOTE = "Duplicate"
SKIPPED_NOTE = "Skipped (exists)"

ImportMethod = Literal["paste-text", "single-url", "file-upload"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LinkStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"  # imported, or a benign skip/duplicate when error is set
    PERFECT = "perfect"
    FAILED = "failed"


TERMINAL_STATUSES = {LinkStatus.SUCCESS, LinkStatus.PERFECT, LinkStatus.FAILED}

ALLOWED_TRANSITIONS = {
    LinkStatus.QUEUED: {LinkStatus.PROCESSING},
    LinkStatus.PROCESSING: TERMINAL_STATUSES,
    LinkStatus.SUCCESS: set(),
    LinkStatus.PERFECT: set(),
    LinkStatus.FAILED: {LinkStatus.QUEUED},  # Retry Failed only
}


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportSettings(WireModel):
    model_config = ConfigDict(frozen=True)

    validate_urls: bool = True
    check_duplicates: bool = True
    skip_existing: bool = True
    processing_mode: Literal["sequential", "parallel"] = "parallel"
    concurrent_limit: Literal[3, 5, 10] = 5
    default_priority: Literal["LOW", "MEDIUM", "HIGH", "URGENT"] = "MEDIUM"
    default_privacy: Literal["PRIVATE", "PUBLIC"] = "PRIVATE"
    default_category: Optional[str] = None
    auto_apply_tags: str = ""
    log_imports: bool = True

    @field_validator("concurrent_limit", mode="before")
    @classmethod
    def _coerce_limit(cls, value: Any) -> Any:
        # the settings form submits the limit as a string
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value

    @field_validator("default_category", mode="before")
    @classmethod
    def _blank_category(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in {"", "none"}:
            return None
        return value

    @property
    def precheck_enabled(self) -> bool:
        return self.skip_existing and self.check_duplicates

    @property
    def batch_size(self) -> int:
        return self.concurrent_limit if self.processing_mode == "parallel" else 1

    def tags(self) -> List[str]:
        return [t.strip() for t in self.auto_apply_tags.split(",") if t.strip()]


class LinkRecord(WireModel):
    id: str = Field(default_factory=lambda: f"link-{uuid4().hex}")
    url: str
    domain: str
    title: str
    category: str = DEFAULT_CATEGORY
    status: LinkStatus = LinkStatus.QUEUED
    error: Optional[str] = None
    history: List[LinkStatus] = Field(default_factory=lambda: [LinkStatus.QUEUED])
    # what the user typed, kept when it could not be turned into a usable url
    raw_input: Optional[str] = None

    def transition(self, status: LinkStatus, error: Optional[str] = None) -> None:
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status.value, status.value)
        self.status = status
        self.error = error
        self.history.append(status)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_skipped(self) -> bool:
        return self.status == LinkStatus.SUCCESS and self.error == SKIPPED_NOTE

    @property
    def is_duplicate(self) -> bool:
        return self.status == LinkStatus.SUCCESS and self.error == DUPLICATE_NOTE


class ImportStats(WireModel):
    total: int = 0
    perfect: int = 0
    success: int = 0
    duplicate: int = 0
    skipped: int = 0
    failed: int = 0
    queued: int = 0
    processing: int = 0
    attempted: int = 0
    success_rate: int = 0


class ImportSession(WireModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    settings: ImportSettings
    import_method: ImportMethod
    source: str = "bulk_uploader"
    records: List[LinkRecord] = Field(default_factory=list)
    stats: ImportStats = Field(default_factory=ImportStats)
    progress: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    _cancelled: bool = PrivateAttr(default=False)

    def cancel(self) -> None:
        self._cancelled = True

    def resume(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def get(self, record_id: str) -> Optional[LinkRecord]:
        return next((r for r in self.records if r.id == record_id), None)

    def with_status(self, status: LinkStatus) -> List[LinkRecord]:
        return [r for r in self.records if r.status == status]


class ImportReport(WireModel):
    session_id: str
    records: List[LinkRecord]
    stats: ImportStats
    message: str
    level: Literal["success", "error", "info"]
    cancelled: bool = False
    log_saved: bool = False
    log: Optional[Dict[str, Any]] = None
