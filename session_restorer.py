"""
Session Restorer - reopens a saved session as a new browser window.

Restorable URLs open in a new window; every URL after the first becomes an
inactive background tab that is discarded once loaded, one tab at a time.
URLs the browser cannot reopen are listed on a generated report page.
"""
from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

from browser_provider import BrowserApi
from error_handling import BrowserApiError, SessionError
from session_store import Session, SessionTab, is_restorable_url
from utils.event_logger import get_event_logger

MISSING_URL = "<No URL found>"


@dataclass
class RestoreReport:
    """
    Outcome of a restore.

    Attributes:
        opened_count: Tabs opened from restorable URLs
        skipped: URLs that could not be restored, in session order
        failed: Restorable URLs whose tab could not be created or discarded
        window_id: The window created for the session, if any
    """
    opened_count: int = 0
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    window_id: Optional[int] = None

    @property
    def has_skipped(self) -> bool:
        return bool(self.skipped)


def partition_urls(tabs: Sequence[SessionTab]) -> Tuple[List[str], List[str]]:
    """Split into (restorable, non-restorable) URLs, preserving order."""
    valid, invalid = [], []
    for tab in tabs:
        url = getattr(tab, "url", None) or ""
        if is_restorable_url(url):
            valid.append(url.strip())
        else:
            invalid.append(url or MISSING_URL)
    return valid, invalid


def build_report_page(urls: Sequence[str]) -> str:
    """HTML listing every unrestored URL, escaped."""
    items = "\n".join(f"<li><code>{html.escape(url)}</code></li>" for url in urls)
    return (
        "<!DOCTYPE html>\n"
        "<html><head><meta charset=\"utf-8\"><title>Unrestored Tabs</title>\n"
        "<style>body{font-family:sans-serif;margin:2em}code{word-break:break-all}</style>\n"
        "</head><body>\n"
        "<h1>Unrestored Tabs</h1>\n"
        "<p>The following URLs could not be restored:</p>\n"
        f"<ul>\n{items}\n</ul>\n"
        "</body></html>"
    )


def report_page_url(urls: Sequence[str]) -> str:
    return "data:text/html;charset=utf-8," + quote(build_report_page(urls))


class SessionRestorer:
    """
    Materializes a session into a new window.

    Args:
        browser: Browser capability surface
        load_timeout: Seconds to wait for each background tab to load
        discard_after_load: Unload background tabs once they have loaded
    """

    def __init__(self, browser: BrowserApi, load_timeout: float = 30.0,
                 discard_after_load: bool = True):
        self.browser = browser
        self.load_timeout = load_timeout
        self.discard_after_load = discard_after_load
        self.logger = get_event_logger()

    async def restore(self, session: Session) -> RestoreReport:
        if not session.tabs:
            raise SessionError("Session has no tabs to restore", details={"name": session.name})

        valid, invalid = partition_urls(session.tabs)
        if not valid and not invalid:
            raise SessionError("Nothing to restore", details={"name": session.name})

        self.logger.restore_start(session.name, len(valid), len(invalid))
        report = RestoreReport(skipped=list(invalid))

        pending = list(valid)
        while pending and report.window_id is None:
            url = pending.pop(0)
            try:
                report.window_id = await self.browser.create_window(url)
            except BrowserApiError as e:
                self.logger.restore_tab_failed(url, e, stage="window")
                report.failed.append(url)
            else:
                report.opened_count = 1

        for url in pending:
            if await self._open_background_tab(report.window_id, url):
                report.opened_count += 1
            else:
                report.failed.append(url)

        if report.window_id is None and not invalid:
            raise BrowserApiError("Could not open a window for the session",
                                  details={"name": session.name, "failed": report.failed})

        if invalid:
            await self._open_report(report.window_id, invalid)

        self.logger.restore_complete(session.name, report.opened_count, len(report.skipped))
        return report

    async def _open_background_tab(self, window_id: int, url: str) -> bool:
        """Create, wait, discard. Returns False when the tab could not be created."""
        try:
            tab_id = await self.browser.create_tab(window_id, url, active=False)
        except BrowserApiError as e:
            self.logger.restore_tab_failed(url, e)
            return False

        try:
            await self.browser.wait_for_load(tab_id, self.load_timeout)
            if self.discard_after_load:
                await self.browser.discard_tab(tab_id)
        except BrowserApiError as e:
            # The tab exists; it simply stays loaded
            self.logger.restore_tab_failed(url, e, stage="discard")
        return True

    async def _open_report(self, window_id: Optional[int], urls: List[str]) -> None:
        page_url = report_page_url(urls)
        try:
            if window_id is None:
                await self.browser.create_window(page_url)
            else:
                await self.browser.create_tab(window_id, page_url, active=False)
        except BrowserApiError as e:
            self.logger.system_error("Could not open unrestored tabs page", error=e)
