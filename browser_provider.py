"""
Browser capability surface consumed by the tab session engine.

The engine never talks to a browser directly. It depends on `BrowserApi`,
an async abstraction over tab/window queries and updates, bookmarks, page
capture and a change-notification channel. `PlaywrightBrowserApi` is the
concrete implementation; tests inject an in-process fake.

Example:
    >>> from browser_provider import PlaywrightBrowserApi, BrowserConfig
    >>> api = PlaywrightBrowserApi(BrowserConfig(headless=True))
    >>> await api.start()
    >>> tabs = await api.query_tabs(current_window_only=False)
"""
from __future__ import annotations

import asyncio
import itertools
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, Field

from error_handling import BrowserApiError
from session_storage import KeyValueStorage, MemoryStorage
from tab_management.tab_info import TabInfo
from text_utils import TextUtils
from utils.event_logger import get_event_logger

ChangeListener = Callable[[], None]

BOOKMARKS_KEY = "bookmarks"


class BrowserConfig(BaseModel):
    """Configuration for the browser collaborator."""

    provider_type: str = Field(
        default="local",
        description="Browser provider type: 'local' or 'remote'"
    )
    headless: bool = Field(
        default=False,
        description="Run browser in headless mode"
    )
    viewport_width: int = Field(
        default=1280,
        ge=100,
        description="Browser viewport width"
    )
    viewport_height: int = Field(
        default=800,
        ge=100,
        description="Browser viewport height"
    )
    channel: Optional[str] = Field(
        default=None,
        description="Browser channel: 'chrome', 'msedge', or None for bundled Chromium"
    )
    remote_cdp_url: Optional[str] = Field(
        default=None,
        description="CDP endpoint of an already running browser"
    )
    extra_args: List[str] = Field(
        default_factory=lambda: ["--disable-dev-shm-usage"],
        description="Additional browser launch arguments"
    )


class BrowserApi(ABC):
    """
    Async capability surface of the browser.

    Every method raises `BrowserApiError` when the underlying call fails.
    """

    @abstractmethod
    async def query_tabs(self, current_window_only: bool = True) -> List[TabInfo]:
        """Snapshot of open tabs, in window then tab order."""

    @abstractmethod
    async def create_window(self, url: str) -> int:
        """Open a new focused window on `url`. Returns the window id."""

    @abstractmethod
    async def create_tab(self, window_id: int, url: str, active: bool = False) -> int:
        """Open `url` as a new tab in `window_id`. Returns the tab id."""

    @abstractmethod
    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        """Wait until the tab reports load-complete or `timeout` seconds pass."""

    @abstractmethod
    async def discard_tab(self, tab_id: int) -> None:
        """Unload the tab's page state, keeping the tab itself."""

    @abstractmethod
    async def remove_tabs(self, tab_ids: Sequence[int]) -> None:
        """Close the given tabs."""

    @abstractmethod
    async def update_tab(self, tab_id: int, active: Optional[bool] = None,
                         pinned: Optional[bool] = None) -> TabInfo:
        """Activate and/or (un)pin a tab. Returns its new snapshot."""

    @abstractmethod
    async def focus_window(self, window_id: int) -> None:
        """Bring a window to the front."""

    @abstractmethod
    async def create_bookmark_folder(self, title: str) -> str:
        """Create a bookmark folder. Returns its id."""

    @abstractmethod
    async def create_bookmark(self, parent_id: str, title: str, url: str) -> str:
        """Create a bookmark under `parent_id`. Returns its id."""

    @abstractmethod
    async def capture_page(self, tab_id: int) -> bytes:
        """Page snapshot (MHTML) of a tab."""

    @abstractmethod
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a "something changed" listener for tab lifecycle events.

        Returns a function that removes the listener.
        """

    async def close(self) -> None:
        """Release browser resources."""


class PlaywrightBrowserApi(BrowserApi):
    """
    `BrowserApi` backed by Playwright's async API on Chromium.

    Each browser context is treated as a window and each page as a tab;
    integer ids are assigned on first sight. Discard and capture go through
    the Chrome DevTools Protocol. Pinned flags are tracked here and bookmarks
    are persisted to a key-value storage.
    """

    def __init__(self, config: Optional[BrowserConfig] = None,
                 bookmark_storage: Optional[KeyValueStorage] = None):
        self.config = config or BrowserConfig()
        self.bookmark_storage = bookmark_storage or MemoryStorage()
        self.logger = get_event_logger()

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._ids = itertools.count(1)
        self._windows: Dict[int, BrowserContext] = {}
        self._tabs: Dict[int, Page] = {}
        self._tab_windows: Dict[int, int] = {}
        self._last_accessed: Dict[int, int] = {}
        self._pinned: set = set()
        self._active: Dict[int, int] = {}
        self._current_window: Optional[int] = None
        self._listeners: List[ChangeListener] = []
        self._bookmark_lock = asyncio.Lock()

    @asynccontextmanager
    async def _browser_call(self, action: str):
        try:
            yield
        except PlaywrightError as e:
            raise BrowserApiError(f"Failed to {action}: {e}", details=str(e)) from e

    async def start(self) -> "PlaywrightBrowserApi":
        """Launch (or attach to) the browser and adopt any existing pages."""
        if self._browser is not None:
            return self
        remote = self.config.provider_type == "remote" or bool(self.config.remote_cdp_url)
        if remote and not self.config.remote_cdp_url:
            raise BrowserApiError("remote_cdp_url is required for a remote browser")

        async with self._browser_call("start browser"):
            self._playwright = await async_playwright().start()
        try:
            async with self._browser_call("start browser"):
                if remote:
                    self._browser = await self._playwright.chromium.connect_over_cdp(self.config.remote_cdp_url)
                else:
                    self._browser = await self._playwright.chromium.launch(
                        headless=self.config.headless,
                        channel=self.config.channel,
                        args=list(self.config.extra_args),
                    )
        except BrowserApiError:
            await self._playwright.stop()
            self._playwright = None
            raise

        for context in self._browser.contexts:
            window_id = self._register_window(context)
            for page in context.pages:
                self._register_tab(page, window_id)
        return self

    async def close(self) -> None:
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                self.logger.system_warning(f"Browser close failed: {e}")
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self._windows.clear()
        self._tabs.clear()
        self._tab_windows.clear()

    def _require_browser(self) -> Browser:
        if self._browser is None:
            raise BrowserApiError("Browser is not started")
        return self._browser

    def _notify(self, *_args) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                self.logger.system_error("Change listener failed", error=e)

    def _register_window(self, context: BrowserContext) -> int:
        for window_id, known in self._windows.items():
            if known is context:
                return window_id
        window_id = next(self._ids)
        self._windows[window_id] = context
        self._current_window = window_id
        context.on("page", lambda page: self._on_page(page, window_id))
        return window_id

    def _on_page(self, page: Page, window_id: int) -> None:
        self._register_tab(page, window_id)
        self._notify()

    def _register_tab(self, page: Page, window_id: int) -> int:
        for tab_id, known in self._tabs.items():
            if known is page:
                return tab_id
        tab_id = next(self._ids)
        self._tabs[tab_id] = page
        self._tab_windows[tab_id] = window_id
        self._last_accessed[tab_id] = TextUtils.now_ms()
        self._active.setdefault(window_id, tab_id)
        page.on("close", lambda _page: self._forget_tab(tab_id))
        page.on("load", self._notify)
        page.on("framenavigated", lambda frame: self._notify() if frame is page.main_frame else None)
        return tab_id

    def _forget_tab(self, tab_id: int) -> None:
        self._tabs.pop(tab_id, None)
        window_id = self._tab_windows.pop(tab_id, None)
        self._pinned.discard(tab_id)
        if window_id is not None and self._active.get(window_id) == tab_id:
            remaining = [t for t, w in self._tab_windows.items() if w == window_id]
            if remaining:
                self._active[window_id] = remaining[-1]
            else:
                self._active.pop(window_id, None)
        self._notify()

    def _page(self, tab_id: int) -> Page:
        page = self._tabs.get(tab_id)
        if page is None or page.is_closed():
            raise BrowserApiError(f"No tab with id {tab_id}", details={"tab_id": tab_id})
        return page

    async def _snapshot(self, tab_id: int) -> TabInfo:
        page = self._page(tab_id)
        window_id = self._tab_windows[tab_id]
        try:
            title = await page.title()
        except PlaywrightError:
            title = ""
        siblings = [t for t, w in self._tab_windows.items() if w == window_id]
        return TabInfo(
            id=tab_id,
            title=title or page.url,
            url=page.url,
            pinned=tab_id in self._pinned,
            window_id=window_id,
            active=self._active.get(window_id) == tab_id,
            last_accessed=self._last_accessed.get(tab_id, 0),
            index=siblings.index(tab_id),
        )

    async def query_tabs(self, current_window_only: bool = True) -> List[TabInfo]:
        self._require_browser()
        tab_ids = [t for t, page in self._tabs.items() if not page.is_closed()]
        if current_window_only and self._current_window is not None:
            tab_ids = [t for t in tab_ids if self._tab_windows[t] == self._current_window]
        tab_ids.sort(key=lambda t: (self._tab_windows[t], t))
        return [await self._snapshot(t) for t in tab_ids]

    async def _navigate(self, page: Page, url: str) -> None:
        """Navigation failures leave the tab open on the browser's error page."""
        try:
            await page.goto(url, wait_until="commit")
        except PlaywrightError as e:
            self.logger.system_warning(f"Navigation to {url} failed", error=str(e))

    async def create_window(self, url: str) -> int:
        browser = self._require_browser()
        async with self._browser_call("create window"):
            context = await browser.new_context(viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            })
            window_id = self._register_window(context)
            page = await context.new_page()
            tab_id = self._register_tab(page, window_id)
            self._active[window_id] = tab_id
        self._current_window = window_id
        await self._navigate(page, url)
        return window_id

    async def create_tab(self, window_id: int, url: str, active: bool = False) -> int:
        context = self._windows.get(window_id)
        if context is None:
            raise BrowserApiError(f"No window with id {window_id}", details={"window_id": window_id})
        async with self._browser_call("create tab"):
            page = await context.new_page()
            tab_id = self._register_tab(page, window_id)
        await self._navigate(page, url)
        async with self._browser_call("create tab"):
            if active:
                self._active[window_id] = tab_id
                await page.bring_to_front()
            else:
                # New pages come to the front in Playwright; restore the active one
                current = self._tabs.get(self._active.get(window_id))
                if current is not None and not current.is_closed():
                    await current.bring_to_front()
        return tab_id

    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        page = self._page(tab_id)
        async with self._browser_call("wait for tab load"):
            await page.wait_for_load_state("load", timeout=timeout * 1000)

    async def discard_tab(self, tab_id: int) -> None:
        page = self._page(tab_id)
        async with self._browser_call("discard tab"):
            cdp = await page.context.new_cdp_session(page)
            try:
                await cdp.send("Page.setWebLifecycleState", {"state": "frozen"})
            finally:
                await cdp.detach()

    async def remove_tabs(self, tab_ids: Sequence[int]) -> None:
        async with self._browser_call("close tabs"):
            for tab_id in tab_ids:
                page = self._tabs.get(tab_id)
                if page is not None and not page.is_closed():
                    await page.close()

    async def update_tab(self, tab_id: int, active: Optional[bool] = None,
                         pinned: Optional[bool] = None) -> TabInfo:
        page = self._page(tab_id)
        if pinned is not None:
            if pinned:
                self._pinned.add(tab_id)
            else:
                self._pinned.discard(tab_id)
        if active:
            async with self._browser_call("activate tab"):
                await page.bring_to_front()
            self._active[self._tab_windows[tab_id]] = tab_id
            self._last_accessed[tab_id] = TextUtils.now_ms()
        self._notify()
        return await self._snapshot(tab_id)

    async def focus_window(self, window_id: int) -> None:
        if window_id not in self._windows:
            raise BrowserApiError(f"No window with id {window_id}", details={"window_id": window_id})
        self._current_window = window_id
        tab_id = self._active.get(window_id)
        if tab_id is not None:
            async with self._browser_call("focus window"):
                await self._page(tab_id).bring_to_front()

    async def _bookmarks(self) -> List[dict]:
        return await self.bookmark_storage.get(BOOKMARKS_KEY) or []

    async def create_bookmark_folder(self, title: str) -> str:
        async with self._bookmark_lock:
            folders = await self._bookmarks()
            folder_id = f"folder-{len(folders) + 1}"
            folders.append({"id": folder_id, "title": title, "children": []})
            await self.bookmark_storage.set(BOOKMARKS_KEY, folders)
        return folder_id

    async def create_bookmark(self, parent_id: str, title: str, url: str) -> str:
        # Bookmarks are created concurrently; each read-modify-write holds the lock
        async with self._bookmark_lock:
            folders = await self._bookmarks()
            for folder in folders:
                if folder["id"] == parent_id:
                    bookmark_id = f"{parent_id}-{len(folder['children']) + 1}"
                    folder["children"].append({"id": bookmark_id, "title": title, "url": url})
                    await self.bookmark_storage.set(BOOKMARKS_KEY, folders)
                    return bookmark_id
        raise BrowserApiError(f"No bookmark folder with id {parent_id}")

    async def capture_page(self, tab_id: int) -> bytes:
        page = self._page(tab_id)
        async with self._browser_call("capture page"):
            cdp = await page.context.new_cdp_session(page)
            try:
                result = await cdp.send("Page.captureSnapshot", {"format": "mhtml"})
            finally:
                await cdp.detach()
        return result["data"].encode("utf-8")

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


def create_browser_api(config: BrowserConfig) -> BrowserApi:
    """Factory for the configured browser collaborator."""
    if config.provider_type in ("local", "remote"):
        return PlaywrightBrowserApi(config)
    raise ValueError(
        f"Unknown provider_type: {config.provider_type}. Must be one of: local, remote"
    )
