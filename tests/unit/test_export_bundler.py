import asyncio
import io
import json
import zipfile

import pytest

from error_handling import BrowserApiError, SessionError
from export_bundler import ExportBundler, unique_names
from utils.event_logger import EventType


@pytest.fixture
def three_tabs(fake_browser):
    return [
        fake_browser.add_tab("https://a.test", "Report: Q1"),
        fake_browser.add_tab("https://b.test", "Report: Q1"),
        fake_browser.add_tab("https://c.test", ""),
    ]


def test_single_tab_export(fake_browser):
    tab = fake_browser.add_tab("https://a.test", "My Page / Notes")
    report = asyncio.run(ExportBundler(fake_browser).export_tabs([tab]))
    assert report.bundle.content == b"MHTML https://a.test"
    assert report.bundle.filename.startswith("my_page_notes_")
    assert report.bundle.filename.endswith(".mht")
    assert report.exported == [tab.id]


def test_single_tab_failure_names_the_tab(fake_browser):
    tab = fake_browser.add_tab("https://a.test", "Broken")
    fake_browser.fail_capture_ids.add(tab.id)
    with pytest.raises(BrowserApiError, match='Could not save "Broken"'):
        asyncio.run(ExportBundler(fake_browser).export_tabs([tab]))


def test_multi_tab_export_builds_archive(fake_browser, three_tabs):
    report = asyncio.run(ExportBundler(fake_browser).export_tabs(three_tabs))
    assert report.bundle.filename.startswith("tabs_") and report.bundle.filename.endswith(".zip")
    with zipfile.ZipFile(io.BytesIO(report.bundle.content)) as zf:
        assert zf.namelist() == ["report_q1.mht", "report_q1 (1).mht", "page.mht"]
        assert zf.read("page.mht") == b"MHTML https://c.test"
    captures = [call[1] for call in fake_browser.calls_named("capture_page")]
    assert captures == [tab.id for tab in three_tabs]


def test_multi_tab_export_is_fail_fast(fake_browser, three_tabs, event_logger):
    fake_browser.fail_capture_ids.add(three_tabs[1].id)
    with pytest.raises(BrowserApiError) as excinfo:
        asyncio.run(ExportBundler(fake_browser).export_tabs(three_tabs))
    assert excinfo.value.details["tab_id"] == three_tabs[1].id
    assert len(fake_browser.calls_named("capture_page")) == 2
    assert not event_logger.events_of(EventType.EXPORT_COMPLETE)


def test_partial_success_when_not_fail_fast(fake_browser, three_tabs):
    fake_browser.fail_capture_ids.add(three_tabs[0].id)
    report = asyncio.run(ExportBundler(fake_browser, fail_fast=False).export_tabs(three_tabs))
    assert report.partial
    assert report.exported == [three_tabs[1].id, three_tabs[2].id]
    assert [failure.tab_id for failure in report.failed] == [three_tabs[0].id]
    with zipfile.ZipFile(io.BytesIO(report.bundle.content)) as zf:
        assert zf.namelist() == ["report_q1.mht", "page.mht"]


def test_partial_success_with_nothing_captured(fake_browser, three_tabs):
    fake_browser.fail_capture_ids.update(tab.id for tab in three_tabs)
    with pytest.raises(BrowserApiError, match="Could not save any tabs"):
        asyncio.run(ExportBundler(fake_browser, fail_fast=False).export_tabs(three_tabs))


def test_empty_selection(fake_browser):
    with pytest.raises(SessionError):
        asyncio.run(ExportBundler(fake_browser).export_tabs([]))


def test_json_bundle(tmp_path):
    bundle = ExportBundler.json_bundle({"name": "Café"}, "tab-session-Café.json")
    assert json.loads(bundle.content.decode("utf-8")) == {"name": "Café"}
    assert bundle.media_type == "application/json"
    written = bundle.write_to(tmp_path)
    assert written.read_bytes() == bundle.content


def test_unique_names():
    assert unique_names(["a.mht", "a.mht", "b.mht", "a.mht"]) == ["a.mht", "a (1).mht", "b.mht", "a (2).mht"]
