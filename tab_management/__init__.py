"""
Tab Management - live tab snapshot, filter pipeline, selection and intents.

The coordinator lives in `tab_management.tab_manager`.
"""
from .tab_info import TabInfo
from .tab_filter import FilterOptions, SortBy, TimeFilter, ViewMode, WindowScope, apply_filters, group_tabs
from .selection import CheckState, SelectionTracker
from .tab_actions import IntentKind, TabIntent

__all__ = [
    "TabInfo",
    "FilterOptions",
    "SortBy",
    "TimeFilter",
    "ViewMode",
    "WindowScope",
    "apply_filters",
    "group_tabs",
    "CheckState",
    "SelectionTracker",
    "IntentKind",
    "TabIntent",
]
