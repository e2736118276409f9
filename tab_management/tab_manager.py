"""
TabManager - Coordinates the live tab collection, the filtered view, the
selection and the saved sessions.

All mutable state lives in one `AppState` owned by the manager. User actions
arrive as `TabIntent` messages through `dispatch`, which is also the error
boundary: every failure becomes a failed `ActionResult` and the engine keeps
running.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from action_result import ActionResult
from browser_provider import BrowserApi
from engine_config import EngineConfig
from error_handling import (
    BrowserApiError,
    ErrorHandler,
    ExtensionError,
    RecoveryStrategy,
    ValidationError,
    describe_error,
)
from export_bundler import ExportBundler
from session_restorer import SessionRestorer
from session_store import (
    Session,
    SessionStats,
    SessionStore,
    export_filename,
    session_export_filename,
    session_stats,
    validate_url,
)
from text_utils import TextUtils
from utils.async_timers import ConfirmationGate, Debouncer
from utils.event_logger import get_event_logger

from .selection import CheckState, SelectionTracker
from .tab_actions import IntentKind, TabIntent
from .tab_filter import (
    FilterOptions,
    GroupedTabs,
    WindowScope,
    apply_filters,
    group_tabs,
    tabs_in_group,
)
from .tab_info import TabInfo

BOOKMARK_FOLDER_PREFIX = "Tab Sessions"


@dataclass
class AppState:
    """
    Everything the presentation layer renders.

    `all_tabs` is replaced wholesale on every applied refresh; `visible_tabs`
    is derived from it and `filters`.
    """
    all_tabs: List[TabInfo] = field(default_factory=list)
    visible_tabs: List[TabInfo] = field(default_factory=list)
    selection: SelectionTracker = field(default_factory=SelectionTracker)
    filters: FilterOptions = field(default_factory=FilterOptions)
    saved_sessions: List[Session] = field(default_factory=list)
    collapsed_groups: Set[str] = field(default_factory=set)
    applied_sequence: int = 0

    @property
    def grouped_tabs(self) -> GroupedTabs:
        return group_tabs(self.visible_tabs)

    @property
    def selected_tabs(self) -> List[TabInfo]:
        return self.selection.selected_tabs(self.all_tabs)

    def find_tab(self, tab_id: int) -> Optional[TabInfo]:
        for tab in self.all_tabs:
            if tab.id == tab_id:
                return tab
        return None


@dataclass
class BookmarkReport:
    folder_id: str
    folder_title: str
    created: int = 0
    failed: int = 0


class TabManager:
    """
    Coordinator of the tab session engine.

    Responsibilities:
    - Refresh the tab snapshot on browser change notifications, discarding
      results of superseded refreshes
    - Re-run the filter pipeline (search edits debounced, other controls immediate)
    - Keep the selection pruned against the live tabs
    - Route intents to tab actions and the session store, restorer and bundler
    """

    def __init__(
        self,
        browser: BrowserApi,
        store: SessionStore,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.browser = browser
        self.store = store
        self.config = config or EngineConfig()
        self.now = clock or TextUtils.now_ms
        self.logger = get_event_logger()
        self.error_handler = ErrorHandler()

        filters = self.config.filters
        self.state = AppState(filters=FilterOptions(
            sort_by=filters.default_sort_by,
            view_mode=filters.default_view_mode,
            window_scope=filters.default_window_scope,
        ))

        self.restorer = SessionRestorer(
            browser,
            load_timeout=self.config.restore.load_timeout,
            discard_after_load=self.config.restore.discard_after_load,
        )
        self.bundler = ExportBundler(browser, fail_fast=self.config.export.fail_fast)

        self._search_debouncer = Debouncer(filters.search_debounce_ms / 1000, self._apply_view)
        self._close_gate = ConfirmationGate(
            self.config.close.confirm_timeout,
            on_expire=lambda: self.logger.system_debug("Close confirmation expired"),
        )
        self._refresh_requested = 0
        self._background: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

        self._handlers: Dict[IntentKind, Callable[[TabIntent], Awaitable[ActionResult]]] = {
            IntentKind.SELECT_TAB: self._on_select_tab,
            IntentKind.SELECT_GROUP: self._on_select_group,
            IntentKind.SELECT_ALL: self._on_select_all,
            IntentKind.TOGGLE_SELECT_ALL: self._on_toggle_select_all,
            IntentKind.CLEAR_SELECTION: self._on_clear_selection,
            IntentKind.CLOSE_SELECTED: self._on_close_selected,
            IntentKind.BOOKMARK_SELECTED: self._on_bookmark_selected,
            IntentKind.EXPORT_SELECTED: self._on_export_selected,
            IntentKind.SAVE_SESSION: self._on_save_session,
            IntentKind.RESTORE_SESSION: self._on_restore_session,
            IntentKind.DELETE_SESSION: self._on_delete_session,
            IntentKind.RENAME_SESSION: self._on_rename_session,
            IntentKind.EXPORT_SESSION: self._on_export_session,
            IntentKind.EXPORT_ALL_SESSIONS: self._on_export_all_sessions,
            IntentKind.IMPORT_SESSIONS: self._on_import_sessions,
            IntentKind.PIN_TAB: self._on_pin_tab,
            IntentKind.GO_TO_TAB: self._on_go_to_tab,
            IntentKind.TOGGLE_GROUP_COLLAPSED: self._on_toggle_group_collapsed,
            IntentKind.SET_SEARCH: self._on_set_filter,
            IntentKind.SET_TIME_FILTER: self._on_set_filter,
            IntentKind.SET_SORT: self._on_set_filter,
            IntentKind.SET_VIEW_MODE: self._on_set_filter,
            IntentKind.SET_WINDOW_SCOPE: self._on_set_filter,
            IntentKind.REFRESH: self._on_refresh,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> AppState:
        """Load saved sessions, subscribe to browser changes and take the first snapshot."""
        await self.store.load()
        self._sync_sessions()
        self._unsubscribe = self.browser.subscribe(self._on_browser_change)
        await self.refresh()
        return self.state

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._search_debouncer.cancel()
        self._close_gate.reset()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def settle(self) -> None:
        """Wait for scheduled refreshes and a pending search to finish."""
        await self._search_debouncer.flush()
        await self._search_debouncer.wait()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _on_browser_change(self) -> None:
        task = asyncio.ensure_future(self.refresh())
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.error_handler.handle_error(error, {"action_type": "refresh"})
            self.logger.system_error("Background refresh failed", error=error)

    # ------------------------------------------------------------------
    # Tab snapshot and view
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """
        Replace the tab snapshot.

        Returns False when the result of a newer refresh was applied while
        this one was in flight; its result is then discarded. A result that
        arrives first is applied until the newer one replaces it.
        """
        self._refresh_requested += 1
        sequence = self._refresh_requested
        current_only = self.state.filters.window_scope == WindowScope.CURRENT
        tabs = await self.browser.query_tabs(current_window_only=current_only)

        if sequence < self.state.applied_sequence:
            self.logger.refresh_discarded(sequence, self.state.applied_sequence)
            return False

        self.state.all_tabs = list(tabs)
        self.state.applied_sequence = sequence
        dropped = self.state.selection.prune(self.state.all_tabs)
        if dropped:
            self.logger.selection_pruned(dropped)
        self._apply_view()
        self.logger.tabs_refreshed(len(self.state.all_tabs), sequence)
        return True

    def _apply_view(self) -> None:
        self._search_debouncer.cancel()
        self.state.visible_tabs = apply_filters(self.state.all_tabs, self.state.filters, now=self.now())
        self.logger.filters_applied(len(self.state.visible_tabs), len(self.state.all_tabs))

    def _update_filters(self, **changes: Any) -> FilterOptions:
        data = self.state.filters.model_dump()
        data.update(changes)
        try:
            self.state.filters = FilterOptions.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid filter value: {', '.join(sorted(changes))}",
                                  details=e.errors()) from e
        return self.state.filters

    def set_search_term(self, term: str) -> None:
        """Search edits are coalesced over the debounce window."""
        self._update_filters(search_term=term)
        if self._search_debouncer.delay > 0:
            self._search_debouncer.trigger()
        else:
            self._apply_view()

    def set_time_filter(self, time_filter: int) -> None:
        self._update_filters(time_filter=time_filter)
        self._apply_view()

    def set_sort(self, sort_by: str) -> None:
        self._update_filters(sort_by=sort_by)
        self._apply_view()

    def set_view_mode(self, view_mode: str) -> None:
        self._update_filters(view_mode=view_mode)

    async def set_window_scope(self, scope: str) -> None:
        self._update_filters(window_scope=scope)
        await self.refresh()

    def toggle_group_collapsed(self, domain: str) -> bool:
        """Returns True when the group is now collapsed."""
        if domain in self.state.collapsed_groups:
            self.state.collapsed_groups.discard(domain)
            return False
        self.state.collapsed_groups.add(domain)
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_tab(self, tab_id: int, selected: bool = True) -> None:
        self.state.selection.toggle(tab_id, selected)
        self.logger.selection_changed(len(self.state.selection))

    def select_group(self, domain: str, selected: bool = True) -> None:
        members = tabs_in_group(domain, self.state.visible_tabs)
        self.state.selection.toggle_group(domain, selected, members)
        self.logger.selection_changed(len(self.state.selection), domain=domain)

    def select_all(self, selected: bool = True) -> None:
        self.state.selection.toggle_all(selected, self.state.visible_tabs)
        self.logger.selection_changed(len(self.state.selection))

    def toggle_select_all(self) -> None:
        self.select_all(not self.select_all_state().checked)

    def clear_selection(self) -> None:
        self.state.selection.clear()
        self.logger.selection_changed(0)

    def select_all_state(self) -> CheckState:
        return self.state.selection.select_all_state(self.state.visible_tabs)

    def group_state(self, domain: str) -> CheckState:
        members = tabs_in_group(domain, self.state.visible_tabs)
        return self.state.selection.group_state(domain, members)

    def _require_selection(self, action: str) -> List[TabInfo]:
        tabs = self.state.selected_tabs
        if not tabs:
            raise ValidationError(f"Select tabs to {action}")
        return tabs

    # ------------------------------------------------------------------
    # Tab actions
    # ------------------------------------------------------------------

    async def close_selected(self) -> int:
        """
        Two-phase close. The first call arms the confirmation and returns 0;
        a second call within the timeout closes the selected tabs.
        """
        tab_ids = sorted(tab_id for tab_id in self.state.selection.selected if tab_id >= 0)
        if not tab_ids:
            raise ValidationError("Select tabs to close")
        if not self._close_gate.request():
            self.logger.close_armed(self._close_gate.timeout, count=len(tab_ids))
            return 0

        await self.browser.remove_tabs(tab_ids)
        self.state.selection.clear()
        self.logger.tabs_closed(len(tab_ids))
        await self.refresh()
        return len(tab_ids)

    @property
    def close_armed(self) -> bool:
        return self._close_gate.armed

    async def bookmark_selected(self) -> BookmarkReport:
        """
        Bookmark the selected tabs into a new dated folder.

        Individual bookmark failures are counted, not raised.
        """
        tabs = [tab for tab in self._require_selection("bookmark")
                if tab.title and validate_url(tab.url)]
        if not tabs:
            raise BrowserApiError("No valid tabs to bookmark")

        folder_title = f"{BOOKMARK_FOLDER_PREFIX} - {date.today().isoformat()}"
        try:
            folder_id = await self.browser.create_bookmark_folder(folder_title)
        except Exception as e:
            raise BrowserApiError(f"Failed to create bookmark folder: {describe_error(e)}") from e

        results = await asyncio.gather(
            *(self.browser.create_bookmark(folder_id, tab.title, tab.url) for tab in tabs),
            return_exceptions=True,
        )
        report = BookmarkReport(folder_id=folder_id, folder_title=folder_title)
        for tab, result in zip(tabs, results):
            if isinstance(result, Exception):
                report.failed += 1
                self.logger.system_warning(f"Could not bookmark {tab.url}", error=describe_error(result))
            else:
                report.created += 1
        self.logger.tabs_bookmarked(report.created, report.failed, folder=folder_title)
        return report

    async def pin_tab(self, tab_id: int, pinned: Optional[bool] = None) -> TabInfo:
        tab = self._require_tab(tab_id)
        target = (not tab.pinned) if pinned is None else pinned
        updated = await self.browser.update_tab(tab_id, pinned=target)
        self.logger.tab_pinned(tab_id, target)
        await self.refresh()
        return updated

    async def go_to_tab(self, tab_id: int) -> None:
        tab = self._require_tab(tab_id)
        await self.browser.update_tab(tab_id, active=True)
        await self.browser.focus_window(tab.window_id)
        self.logger.tab_focused(tab_id, tab.window_id)

    def _require_tab(self, tab_id: int) -> TabInfo:
        tab = self.state.find_tab(tab_id)
        if tab is None:
            raise BrowserApiError(f"No tab with id {tab_id}", details={"tab_id": tab_id})
        return tab

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _sync_sessions(self) -> None:
        self.state.saved_sessions = self.store.sessions

    async def save_session(self, name: Optional[str] = None) -> Session:
        """Save the selected tabs; an empty name defaults to the current timestamp."""
        tabs = self._require_selection("save")
        session_name = (name or "").strip() or TextUtils.timestamp()
        session = self.store.create(session_name, tabs, now=self.now())
        await self.store.add(session)
        self._sync_sessions()
        return session

    async def delete_session(self, index: int) -> Session:
        removed = await self.store.delete(index)
        self._sync_sessions()
        return removed

    async def rename_session(self, index: int, name: str) -> Session:
        renamed = await self.store.rename(index, name)
        self._sync_sessions()
        return renamed

    async def import_sessions(self, payload: Any):
        result = await self.store.import_sessions(payload)
        self._sync_sessions()
        return result

    def session_stats(self) -> SessionStats:
        return session_stats(self.store.sessions)

    # ------------------------------------------------------------------
    # Intent dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, intent: TabIntent) -> ActionResult:
        """
        Run one user intent. Never raises for action failures.
        """
        if intent.kind != IntentKind.CLOSE_SELECTED:
            self._close_gate.reset()

        handler = self._handlers[intent.kind]
        try:
            result = await handler(intent)
        except ExtensionError as e:
            result = await self._fail(intent, e)
        except Exception as e:
            wrapped = ExtensionError(f"Unexpected error: {describe_error(e)}", details=repr(e))
            self.logger.system_error(f"Unhandled error in {intent.kind.value}", error=e)
            result = await self._fail(intent, wrapped)
        else:
            if result.message:
                self.logger.notification(result.message)
        return result

    async def _fail(self, intent: TabIntent, error: ExtensionError) -> ActionResult:
        strategy = self.error_handler.handle_error(error, {
            "action_type": intent.kind.value,
            "action_data": intent.model_dump(exclude={"payload"}, exclude_none=True),
        })
        self.logger.notification(error.message, is_error=True, code=error.code)
        if strategy == RecoveryStrategy.REFRESH:
            try:
                await self.refresh()
            except ExtensionError as refresh_error:
                self.logger.system_warning(f"Refresh after failure also failed: {refresh_error.message}")
        return ActionResult.failed(error.message, error=error.code, recovery=strategy.value)

    async def _on_select_tab(self, intent: TabIntent) -> ActionResult:
        self.select_tab(intent.tab_id, intent.selected)
        return ActionResult.ok(selected=len(self.state.selection))

    async def _on_select_group(self, intent: TabIntent) -> ActionResult:
        self.select_group(intent.domain, intent.selected)
        return ActionResult.ok(selected=len(self.state.selection))

    async def _on_select_all(self, intent: TabIntent) -> ActionResult:
        self.select_all(intent.selected)
        return ActionResult.ok(selected=len(self.state.selection))

    async def _on_toggle_select_all(self, intent: TabIntent) -> ActionResult:
        self.toggle_select_all()
        return ActionResult.ok(selected=len(self.state.selection))

    async def _on_clear_selection(self, intent: TabIntent) -> ActionResult:
        self.clear_selection()
        return ActionResult.ok(selected=0)

    async def _on_close_selected(self, intent: TabIntent) -> ActionResult:
        closed = await self.close_selected()
        if not closed:
            return ActionResult.ok("Click close again to confirm", armed=True)
        return ActionResult.ok(f"Closed {closed} tab{'s' if closed != 1 else ''}", data=closed)

    async def _on_bookmark_selected(self, intent: TabIntent) -> ActionResult:
        report = await self.bookmark_selected()
        if report.failed:
            message = f"Bookmarked {report.created} of {report.created + report.failed} tabs"
        else:
            message = f"Bookmarked {report.created} tabs to \"{report.folder_title}\""
        return ActionResult.ok(message, data=report)

    async def _on_export_selected(self, intent: TabIntent) -> ActionResult:
        tabs = self._require_selection("export")
        report = await self.bundler.export_tabs(tabs)
        if len(tabs) == 1:
            message = "Saved tab as MHT"
        elif report.partial:
            message = f"Saved {len(report.exported)}/{len(tabs)} tabs as ZIP"
        else:
            message = "Saved tabs as ZIP"
        return ActionResult.ok(message, data=report)

    async def _on_save_session(self, intent: TabIntent) -> ActionResult:
        session = await self.save_session(intent.name)
        return ActionResult.ok(f'Saved session "{session.name}"', data=session)

    async def _on_restore_session(self, intent: TabIntent) -> ActionResult:
        session = self.store.get(intent.index)
        report = await self.restorer.restore(session)
        message = f'Restored {report.opened_count} tabs from "{session.name}"'
        if report.skipped:
            message += f", {len(report.skipped)} could not be restored"
        return ActionResult.ok(message, data=report)

    async def _on_delete_session(self, intent: TabIntent) -> ActionResult:
        removed = await self.delete_session(intent.index)
        return ActionResult.ok(f'Deleted session "{removed.name}"', data=removed)

    async def _on_rename_session(self, intent: TabIntent) -> ActionResult:
        renamed = await self.rename_session(intent.index, intent.name)
        return ActionResult.ok(f'Renamed session to "{renamed.name}"', data=renamed)

    async def _on_export_session(self, intent: TabIntent) -> ActionResult:
        session = self.store.get(intent.index)
        bundle = self.bundler.json_bundle(self.store.export(session), session_export_filename(session))
        return ActionResult.ok(f'Exported session "{session.name}"', data=bundle)

    async def _on_export_all_sessions(self, intent: TabIntent) -> ActionResult:
        bundle = self.bundler.json_bundle(self.store.export(), export_filename())
        return ActionResult.ok("Sessions exported", data=bundle)

    async def _on_import_sessions(self, intent: TabIntent) -> ActionResult:
        result = await self.import_sessions(intent.payload)
        if not result.added_count:
            return ActionResult.ok("No new sessions to import", data=result)
        return ActionResult.ok(f"Imported {result.added_count} sessions", data=result)

    async def _on_pin_tab(self, intent: TabIntent) -> ActionResult:
        updated = await self.pin_tab(intent.tab_id, intent.pinned)
        return ActionResult.ok("Tab pinned" if updated.pinned else "Tab unpinned", data=updated)

    async def _on_go_to_tab(self, intent: TabIntent) -> ActionResult:
        await self.go_to_tab(intent.tab_id)
        return ActionResult.ok(tab_id=intent.tab_id)

    async def _on_toggle_group_collapsed(self, intent: TabIntent) -> ActionResult:
        collapsed = self.toggle_group_collapsed(intent.domain)
        return ActionResult.ok(collapsed=collapsed)

    async def _on_set_filter(self, intent: TabIntent) -> ActionResult:
        kind = intent.kind
        if kind == IntentKind.SET_SEARCH:
            self.set_search_term(str(intent.value))
        elif kind == IntentKind.SET_TIME_FILTER:
            self.set_time_filter(intent.value)
        elif kind == IntentKind.SET_SORT:
            self.set_sort(intent.value)
        elif kind == IntentKind.SET_VIEW_MODE:
            self.set_view_mode(intent.value)
        else:
            await self.set_window_scope(intent.value)
        return ActionResult.ok(filters=self.state.filters.model_dump(mode="json"))

    async def _on_refresh(self, intent: TabIntent) -> ActionResult:
        applied = await self.refresh()
        return ActionResult.ok(applied=applied, tab_count=len(self.state.all_tabs))
