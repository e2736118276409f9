"""
SelectionTracker - The set of selected tab ids and its tri-state summaries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Set

from .tab_info import TabInfo


@dataclass(frozen=True)
class CheckState:
    """Tri-state checkbox summary."""
    checked: bool = False
    indeterminate: bool = False

    @classmethod
    def of(cls, selected_count: int, total: int) -> "CheckState":
        if total == 0:
            return cls()
        return cls(
            checked=selected_count == total,
            indeterminate=0 < selected_count < total,
        )


@dataclass
class SelectionTracker:
    """
    Selected tab ids.

    The selection may hold ids hidden by the current filter; it is pruned
    against the live tab collection after every refresh.
    """
    selected: Set[int] = field(default_factory=set)

    def __contains__(self, tab_id: int) -> bool:
        return tab_id in self.selected

    def __len__(self) -> int:
        return len(self.selected)

    def toggle(self, tab_id: int, selected: bool) -> None:
        if selected:
            self.selected.add(tab_id)
        else:
            self.selected.discard(tab_id)

    def toggle_group(self, domain: str, selected: bool, tabs_in_group: Iterable[TabInfo]) -> None:
        """`domain` is informational; membership comes from `tabs_in_group`."""
        for tab in tabs_in_group:
            self.toggle(tab.id, selected)

    def toggle_all(self, selected: bool, visible_tabs: Iterable[TabInfo]) -> None:
        """Only visible tabs are affected, never the whole live collection."""
        for tab in visible_tabs:
            self.toggle(tab.id, selected)

    def clear(self) -> None:
        self.selected.clear()

    def _state(self, tabs: Iterable[TabInfo]) -> CheckState:
        tabs = list(tabs)
        count = sum(1 for tab in tabs if tab.id in self.selected)
        return CheckState.of(count, len(tabs))

    def select_all_state(self, visible_tabs: Iterable[TabInfo]) -> CheckState:
        return self._state(visible_tabs)

    def group_state(self, domain: str, tabs_in_group: Iterable[TabInfo]) -> CheckState:
        return self._state(tabs_in_group)

    def prune(self, live_tabs: Iterable[TabInfo]) -> int:
        """Drop ids of tabs that no longer exist. Returns how many were dropped."""
        live_ids = {tab.id for tab in live_tabs}
        stale = self.selected - live_ids
        self.selected -= stale
        return len(stale)

    def selected_tabs(self, all_tabs: Iterable[TabInfo]) -> List[TabInfo]:
        """Selected tabs in live-collection order."""
        return [tab for tab in all_tabs if tab.id in self.selected]
