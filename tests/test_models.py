import pytest
from pydantic import ValidationError

from linkpilot.errors import InvalidTransition
from linkpilot.models import DUPLICATE_NOTE, SKIPPED_NOTE, ImportSettings, LinkRecord, LinkStatus


def _record():
    return LinkRecord(url="https://example.com", domain="example.com", title="EXAMPLE.COM")


def test_record_defaults():
    record = _record()
    assert record.status == LinkStatus.QUEUED
    assert record.category == "Uncategorized"
    assert record.error is None
    assert record.history == [LinkStatus.QUEUED]
    assert record.id.startswith("link-")
    assert record.id != _record().id


def test_happy_path_transitions():
    record = _record()
    record.transition(LinkStatus.PROCESSING)
    record.transition(LinkStatus.PERFECT)
    assert record.is_terminal
    assert record.history == [LinkStatus.QUEUED, LinkStatus.PROCESSING, LinkStatus.PERFECT]


@pytest.mark.parametrize("target", [LinkStatus.SUCCESS, LinkStatus.PERFECT, LinkStatus.FAILED])
def test_terminal_states_require_processing(target):
    record = _record()
    with pytest.raises(InvalidTransition):
        record.transition(target)
    assert record.status == LinkStatus.QUEUED


@pytest.mark.parametrize("terminal", [LinkStatus.SUCCESS, LinkStatus.PERFECT])
def test_successful_records_never_requeue(terminal):
    record = _record()
    record.transition(LinkStatus.PROCESSING)
    record.transition(terminal)
    with pytest.raises(InvalidTransition):
        record.transition(LinkStatus.QUEUED)


def test_failed_record_can_requeue_and_clears_error():
    record = _record()
    record.transition(LinkStatus.PROCESSING)
    record.transition(LinkStatus.FAILED, "boom")
    record.transition(LinkStatus.QUEUED)
    assert record.status == LinkStatus.QUEUED
    assert record.error is None


def test_success_annotations():
    skipped, duplicate = _record(), _record()
    for record, note in ((skipped, SKIPPED_NOTE), (duplicate, DUPLICATE_NOTE)):
        record.transition(LinkStatus.PROCESSING)
        record.transition(LinkStatus.SUCCESS, note)
    assert skipped.is_skipped and not skipped.is_duplicate
    assert duplicate.is_duplicate and not duplicate.is_skipped


def test_settings_accept_wire_format():
    settings = ImportSettings.model_validate(
        {
            "processingMode": "sequential",
            "concurrentLimit": "10",
            "autoApplyTags": " news, ,tech ",
            "defaultCategory": "none",
            "skipExisting": False,
        }
    )
    assert settings.processing_mode == "sequential"
    assert settings.concurrent_limit == 10
    assert settings.batch_size == 1
    assert settings.tags() == ["news", "tech"]
    assert settings.default_category is None
    assert not settings.precheck_enabled


def test_settings_reject_unknown_limit():
    with pytest.raises(ValidationError):
        ImportSettings(concurrent_limit=7)


def test_settings_are_frozen():
    settings = ImportSettings()
    with pytest.raises(ValidationError):
        settings.log_imports = False
