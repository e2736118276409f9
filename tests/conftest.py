"""
Shared pytest fixtures for all tests.
"""
import asyncio
import dataclasses
import itertools
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from browser_provider import BrowserApi
from engine_config import EngineConfig
from error_handling import BrowserApiError
from session_storage import MemoryStorage
from session_store import SessionStore
from tab_management.tab_info import TabInfo
from tab_management.tab_manager import TabManager
from utils.event_logger import EventLogger, set_event_logger

NOW = 1_700_000_000_000
MINUTE = 60_000
HOUR = 3_600_000
DAY = 86_400_000


class FakeBrowserApi(BrowserApi):
    """
    In-process browser. Records every call and lets tests script failures.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.tabs: Dict[int, TabInfo] = {}
        self.windows: List[int] = []
        self.current_window: Optional[int] = None
        self.calls: List[tuple] = []
        self.discarded: List[int] = []
        self.bookmarks: Dict[str, dict] = {}
        self.listeners: List[Callable[[], None]] = []
        self.query_gates: List[asyncio.Event] = []

        self.fail_query = False
        self.fail_create_urls: set = set()
        self.fail_load_urls: set = set()
        self.fail_discard_urls: set = set()
        self.fail_capture_ids: set = set()
        self.fail_bookmark_urls: set = set()
        self.fail_folder = False
        self.fail_remove = False

    # Test helpers
    def new_window(self) -> int:
        window_id = next(self._ids) + 1000
        self.windows.append(window_id)
        if self.current_window is None:
            self.current_window = window_id
        return window_id

    def add_tab(self, url: str, title: str = "", window_id: Optional[int] = None,
                last_accessed: int = NOW, pinned: bool = False) -> TabInfo:
        if window_id is None:
            window_id = self.current_window if self.current_window is not None else self.new_window()
        tab = TabInfo(id=next(self._ids), title=title, url=url, window_id=window_id,
                      last_accessed=last_accessed, pinned=pinned)
        self.tabs[tab.id] = tab
        return tab

    def notify(self) -> None:
        for listener in list(self.listeners):
            listener()

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    # BrowserApi
    async def query_tabs(self, current_window_only: bool = True) -> List[TabInfo]:
        self.calls.append(("query_tabs", current_window_only))
        if self.query_gates:
            gate = self.query_gates.pop(0)
            await gate.wait()
        if self.fail_query:
            raise BrowserApiError("Failed to query tabs")
        return [
            dataclasses.replace(tab) for tab in self.tabs.values()
            if not current_window_only or tab.window_id == self.current_window
        ]

    async def create_window(self, url: str) -> int:
        self.calls.append(("create_window", url))
        if url in self.fail_create_urls:
            raise BrowserApiError(f"Failed to create window for {url}")
        window_id = self.new_window()
        self.add_tab(url, title=url, window_id=window_id)
        return window_id

    async def create_tab(self, window_id: int, url: str, active: bool = False) -> int:
        self.calls.append(("create_tab", window_id, url, active))
        if url in self.fail_create_urls:
            raise BrowserApiError(f"Failed to create tab for {url}")
        return self.add_tab(url, title=url, window_id=window_id).id

    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        self.calls.append(("wait_for_load", tab_id))
        if self.tabs[tab_id].url in self.fail_load_urls:
            raise BrowserApiError("Timed out waiting for tab load")

    async def discard_tab(self, tab_id: int) -> None:
        self.calls.append(("discard_tab", tab_id))
        if self.tabs[tab_id].url in self.fail_discard_urls:
            raise BrowserApiError("Failed to discard tab")
        self.discarded.append(tab_id)

    async def remove_tabs(self, tab_ids: Sequence[int]) -> None:
        self.calls.append(("remove_tabs", list(tab_ids)))
        if self.fail_remove:
            raise BrowserApiError("Failed to close tabs")
        for tab_id in tab_ids:
            self.tabs.pop(tab_id, None)

    async def update_tab(self, tab_id: int, active: Optional[bool] = None,
                         pinned: Optional[bool] = None) -> TabInfo:
        self.calls.append(("update_tab", tab_id, active, pinned))
        if tab_id not in self.tabs:
            raise BrowserApiError(f"No tab with id {tab_id}")
        tab = self.tabs[tab_id]
        if pinned is not None:
            tab.pinned = pinned
        if active:
            tab.active = True
        return dataclasses.replace(tab)

    async def focus_window(self, window_id: int) -> None:
        self.calls.append(("focus_window", window_id))
        self.current_window = window_id

    async def create_bookmark_folder(self, title: str) -> str:
        self.calls.append(("create_bookmark_folder", title))
        if self.fail_folder:
            raise BrowserApiError("Bookmarks unavailable")
        folder_id = f"folder-{len(self.bookmarks) + 1}"
        self.bookmarks[folder_id] = {"title": title, "children": []}
        return folder_id

    async def create_bookmark(self, parent_id: str, title: str, url: str) -> str:
        self.calls.append(("create_bookmark", parent_id, url))
        if url in self.fail_bookmark_urls:
            raise BrowserApiError(f"Failed to bookmark {url}")
        self.bookmarks[parent_id]["children"].append({"title": title, "url": url})
        return f"{parent_id}-{len(self.bookmarks[parent_id]['children'])}"

    async def capture_page(self, tab_id: int) -> bytes:
        self.calls.append(("capture_page", tab_id))
        if tab_id in self.fail_capture_ids:
            raise BrowserApiError("Capture failed")
        return f"MHTML {self.tabs[tab_id].url}".encode("utf-8")

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)


@pytest.fixture(autouse=True)
def event_logger():
    """Fresh event logger per test so history assertions are isolated"""
    logger = EventLogger(debug_mode=False)
    set_event_logger(logger)
    return logger


@pytest.fixture
def fake_browser():
    return FakeBrowserApi()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def session_store(memory_storage):
    return SessionStore(memory_storage)


@pytest.fixture
def make_tab():
    """Factory for standalone TabInfo snapshots"""
    counter = itertools.count(1)

    def _create(url: str = "https://example.com", title: str = "", last_accessed: int = NOW, **kwargs):
        return TabInfo(id=kwargs.pop("id", next(counter)), title=title, url=url,
                       last_accessed=last_accessed, **kwargs)
    return _create


@pytest.fixture
def populated_browser(fake_browser):
    """Browser with five tabs across three domains in the current window"""
    fake_browser.add_tab("https://www.github.com/org/repo", "Repo", last_accessed=NOW - 2 * DAY)
    fake_browser.add_tab("https://docs.python.org/3/", "Python Docs", last_accessed=NOW - 5 * MINUTE)
    fake_browser.add_tab("https://github.com/issues", "Issues", last_accessed=NOW - 3 * HOUR)
    fake_browser.add_tab("chrome://settings", "Settings", last_accessed=NOW - 10 * DAY)
    fake_browser.add_tab("https://github.com/pulls", "Pull Requests", last_accessed=NOW - MINUTE)
    return fake_browser


@pytest.fixture
def make_manager(session_store):
    """Factory for TabManager instances with a fixed clock"""
    def _create(browser, config: Optional[EngineConfig] = None, store: Optional[SessionStore] = None):
        return TabManager(browser, store if store is not None else session_store, config=config or EngineConfig(), clock=lambda: NOW)
    return _create
