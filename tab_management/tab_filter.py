"""
Filter-sort pipeline: (tabs, filter options) -> ordered visible tabs.

Everything here is pure. The current time is injectable so results are
deterministic under test.
"""
from __future__ import annotations

import locale
import time
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from .domain_classifier import get_domain
from .tab_info import TabInfo


class ViewMode(str, Enum):
    LIST = "list"
    GROUPED = "grouped"


class SortBy(str, Enum):
    LAST_ACCESSED = "lastAccessed"
    TITLE = "title"
    URL = "url"


class WindowScope(str, Enum):
    CURRENT = "current"
    ALL = "all"


class TimeFilter(IntEnum):
    """Inactivity thresholds in milliseconds."""
    NONE = 0
    ONE_HOUR = 3_600_000
    ONE_DAY = 86_400_000
    ONE_WEEK = 604_800_000
    ONE_MONTH = 2_592_000_000


TIME_FILTER_LABELS = {
    TimeFilter.NONE: "All time",
    TimeFilter.ONE_HOUR: "1 hour ago",
    TimeFilter.ONE_DAY: "1 day ago",
    TimeFilter.ONE_WEEK: "1 week ago",
    TimeFilter.ONE_MONTH: "1 month ago",
}


class FilterOptions(BaseModel):
    """Transient view state; never persisted."""

    time_filter: int = Field(
        default=0,
        ge=0,
        description="Only show tabs inactive for at least this many ms (0 = no filter)"
    )
    search_term: str = Field(
        default="",
        description="Case-insensitive substring matched against title and URL"
    )
    sort_by: SortBy = Field(default=SortBy.LAST_ACCESSED)
    view_mode: ViewMode = Field(default=ViewMode.LIST)
    window_scope: WindowScope = Field(default=WindowScope.CURRENT)

    @property
    def normalized_term(self) -> str:
        return self.search_term.strip().upper()


GroupedTabs = Dict[str, List[TabInfo]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def locale_key(text: str) -> Tuple[str, str]:
    """Locale-aware sort key; ties broken on the raw text so ordering is total."""
    text = text or ""
    try:
        primary = locale.strxfrm(text.casefold())
    except (ValueError, OSError):
        primary = text.casefold()
    return primary, text


def matches_time_filter(tab: TabInfo, time_filter: int, now: int) -> bool:
    if time_filter <= 0:
        return True
    return now - tab.last_accessed >= time_filter


def matches_search(tab: TabInfo, term: str) -> bool:
    """`term` must already be upper-cased."""
    if not term:
        return True
    return term in (tab.title or "").upper() or term in (tab.url or "").upper()


def sort_tabs(tabs: Iterable[TabInfo], sort_by: SortBy) -> List[TabInfo]:
    """Stable sort; ties keep their prior relative order."""
    if sort_by == SortBy.TITLE:
        return sorted(tabs, key=lambda t: locale_key(t.title or t.url))
    if sort_by == SortBy.URL:
        return sorted(tabs, key=lambda t: locale_key(t.url))
    return sorted(tabs, key=lambda t: t.last_accessed, reverse=True)


def apply_filters(
    tabs: Iterable[TabInfo],
    options: FilterOptions,
    now: Optional[int] = None
) -> List[TabInfo]:
    """
    Filter then sort.

    A tab is excluded when a time filter is set and it was used more recently
    than the threshold, or when a search term is set and neither its title nor
    its URL contains it.
    """
    now = _now_ms() if now is None else now
    term = options.normalized_term
    visible = [
        tab for tab in tabs
        if matches_time_filter(tab, options.time_filter, now) and matches_search(tab, term)
    ]
    return sort_tabs(visible, options.sort_by)


def group_tabs(tabs: Iterable[TabInfo]) -> GroupedTabs:
    """
    Group an already-sorted sequence by domain key.

    Groups are ordered by descending size; equal sizes keep the order in which
    their key was first seen. Members keep the input order.
    """
    groups: GroupedTabs = {}
    for tab in tabs:
        groups.setdefault(get_domain(tab.url), []).append(tab)
    ordered = sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)
    return dict(ordered)


def tabs_in_group(domain: str, tabs: Iterable[TabInfo]) -> List[TabInfo]:
    return [tab for tab in tabs if get_domain(tab.url) == domain]
