"""
User intents understood by the tab manager.

Every user action, whatever surface produced it, is expressed as one
`TabIntent` message and routed through `TabManager.dispatch`.
"""
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class IntentKind(str, Enum):
    """Actions a user can request"""
    # Selection
    SELECT_TAB = "select_tab"
    SELECT_GROUP = "select_group"
    SELECT_ALL = "select_all"
    TOGGLE_SELECT_ALL = "toggle_select_all"
    CLEAR_SELECTION = "clear_selection"

    # Bulk actions on the selection
    CLOSE_SELECTED = "close_selected"
    BOOKMARK_SELECTED = "bookmark_selected"
    EXPORT_SELECTED = "export_selected"
    SAVE_SESSION = "save_session"

    # Saved sessions
    RESTORE_SESSION = "restore_session"
    DELETE_SESSION = "delete_session"
    RENAME_SESSION = "rename_session"
    EXPORT_SESSION = "export_session"
    EXPORT_ALL_SESSIONS = "export_all_sessions"
    IMPORT_SESSIONS = "import_sessions"

    # Single tab
    PIN_TAB = "pin_tab"
    GO_TO_TAB = "go_to_tab"

    # View
    TOGGLE_GROUP_COLLAPSED = "toggle_group_collapsed"
    SET_SEARCH = "set_search"
    SET_TIME_FILTER = "set_time_filter"
    SET_SORT = "set_sort"
    SET_VIEW_MODE = "set_view_mode"
    SET_WINDOW_SCOPE = "set_window_scope"
    REFRESH = "refresh"


REQUIRED_FIELDS: Dict[IntentKind, Tuple[str, ...]] = {
    IntentKind.SELECT_TAB: ("tab_id",),
    IntentKind.SELECT_GROUP: ("domain",),
    IntentKind.RESTORE_SESSION: ("index",),
    IntentKind.DELETE_SESSION: ("index",),
    IntentKind.RENAME_SESSION: ("index", "name"),
    IntentKind.EXPORT_SESSION: ("index",),
    IntentKind.IMPORT_SESSIONS: ("payload",),
    IntentKind.PIN_TAB: ("tab_id",),
    IntentKind.GO_TO_TAB: ("tab_id",),
    IntentKind.TOGGLE_GROUP_COLLAPSED: ("domain",),
    IntentKind.SET_SEARCH: ("value",),
    IntentKind.SET_TIME_FILTER: ("value",),
    IntentKind.SET_SORT: ("value",),
    IntentKind.SET_VIEW_MODE: ("value",),
    IntentKind.SET_WINDOW_SCOPE: ("value",),
}


class TabIntent(BaseModel):
    """
    A single user request.
    """
    kind: IntentKind = Field(description="The action requested")
    tab_id: Optional[int] = Field(None, description="Target tab for tab-level intents")
    domain: Optional[str] = Field(None, description="Domain key for group-level intents")
    selected: bool = Field(True, description="Select (True) or deselect (False)")
    index: Optional[int] = Field(None, ge=0, description="Position of the target saved session")
    name: Optional[str] = Field(None, description="Session name for save and rename")
    pinned: Optional[bool] = Field(None, description="Pin state for PIN_TAB; None toggles")
    value: Optional[Any] = Field(None, description="New value for SET_* intents")
    payload: Optional[Any] = Field(None, description="Import file content (text or parsed JSON)")

    @model_validator(mode="after")
    def _check_required(self) -> "TabIntent":
        missing = [name for name in REQUIRED_FIELDS.get(self.kind, ()) if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{self.kind.value} requires: {', '.join(missing)}")
        return self
