import pytest

from linkpilot.errors import UnsupportedFileType
from linkpilot.models import ImportSettings, LinkStatus
from linkpilot.session import create_session, resolve_settings, retry_failed


def test_paste_text_session():
    session = create_session("paste-text", ImportSettings(), text="google.com, https://github.com, google.com")
    assert [r.url for r in session.records] == ["https://google.com", "https://github.com"]
    assert [r.title for r in session.records] == ["GOOGLE.COM", "GITHUB.COM"]
    assert all(r.status == LinkStatus.QUEUED for r in session.records)
    assert len({r.id for r in session.records}) == 2


def test_default_category_applied():
    settings = ImportSettings(default_category="Research")
    session = create_session("paste-text", settings, text="www.example.com")
    assert session.records[0].category == "Research"
    assert session.records[0].domain == "example.com"


def test_single_invalid_url_becomes_failed_record():
    session = create_session("single-url", ImportSettings(), url="not a url")
    assert len(session.records) == 1
    record = session.records[0]
    assert record.status == LinkStatus.FAILED
    assert record.error == "Invalid URL format"
    assert record.url == "https://not a url"
    assert record.raw_input == "not a url"
    assert record.history == [LinkStatus.QUEUED, LinkStatus.PROCESSING, LinkStatus.FAILED]


def test_single_url_blank_input_yields_nothing():
    assert create_session("single-url", ImportSettings(), url="   ").records == []


def test_single_valid_url():
    session = create_session("single-url", ImportSettings(), url=" python.org/downloads ")
    assert session.records[0].url == "https://python.org/downloads"
    assert session.records[0].status == LinkStatus.QUEUED


def test_validate_urls_gate():
    text = "https://localhost:8000/app example.com"
    strict = create_session("paste-text", ImportSettings(), text=text)
    loose = create_session("paste-text", ImportSettings(validate_urls=False), text=text)
    assert [r.url for r in strict.records] == ["https://example.com"]
    assert [r.url for r in loose.records] == ["https://localhost:8000/app", "https://example.com"]


def test_file_upload_session():
    session = create_session(
        "file-upload", ImportSettings(), filename="export.csv", content="name,url\nPy,python.org\n"
    )
    assert [r.url for r in session.records] == ["https://python.org"]
    with pytest.raises(UnsupportedFileType):
        create_session("file-upload", ImportSettings(), filename="export.xlsx", content="")


def test_resolve_settings_overlays_defaults():
    defaults = ImportSettings(default_priority="HIGH")
    resolved = resolve_settings(defaults, {"processingMode": "sequential", "log_imports": False, "bogus": 1})
    assert resolved.default_priority == "HIGH"
    assert resolved.processing_mode == "sequential"
    assert resolved.log_imports is False
    assert resolve_settings(defaults, None) is defaults


def test_retry_failed_only_requeues_failures():
    session = create_session("paste-text", ImportSettings(), text="a.com b.com c.com d.com")
    a, b, c, d = session.records
    for record in session.records:
        record.transition(LinkStatus.PROCESSING)
    a.transition(LinkStatus.PERFECT)
    b.transition(LinkStatus.FAILED, "Network error")
    c.transition(LinkStatus.SUCCESS, "Duplicate")
    d.transition(LinkStatus.FAILED, "Server error")

    assert retry_failed(session) == 2
    assert len(session.with_status(LinkStatus.QUEUED)) == 2
    assert b.error is None and d.error is None
    assert a.status == LinkStatus.PERFECT
    assert c.status == LinkStatus.SUCCESS and c.error == "Duplicate"


def test_record_lookup_by_id():
    session = create_session("paste-text", ImportSettings(), text="a.com b.com")
    second = session.records[1]
    assert session.get(second.id) is second
    assert session.get("missing") is None


def test_retry_resumes_cancelled_session():
    session = create_session("paste-text", ImportSettings(), text="a.com")
    session.cancel()
    assert session.cancelled
    retry_failed(session)
    assert not session.cancelled


def test_retry_failed_selection():
    session = create_session("paste-text", ImportSettings(), text="a.com b.com")
    a, b = session.records
    for record in session.records:
        record.transition(LinkStatus.PROCESSING)
        record.transition(LinkStatus.FAILED, "Network error")

    assert retry_failed(session, ids=[b.id, "missing"]) == 1
    assert a.status == LinkStatus.FAILED
    assert b.status == LinkStatus.QUEUED
