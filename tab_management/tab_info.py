"""
TabInfo - Snapshot of a browser tab.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from session_store import SessionTab


@dataclass
class TabInfo:
    """
    Snapshot of a browser tab, owned by the browser.

    Attributes:
        id: Browser-assigned identifier, unique among live tabs
        title: Current title of the tab
        url: Current URL of the tab
        favicon: Optional favicon URL
        pinned: Whether the tab is pinned
        window_id: Identifier of the window holding the tab
        active: Whether the tab is the active one in its window
        last_accessed: Milliseconds since the epoch of the last activation (0 if unknown)
        index: Position of the tab inside its window, when known
    """
    id: int
    title: str = ""
    url: str = ""
    favicon: Optional[str] = None
    pinned: bool = False
    window_id: int = -1
    active: bool = False
    last_accessed: int = 0
    index: Optional[int] = None

    def to_session_tab(self) -> "SessionTab":
        """Durable projection used when saving a session."""
        from session_store import SessionTab
        return SessionTab(url=self.url, title=self.title or self.url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "favicon": self.favicon,
            "pinned": self.pinned,
            "window_id": self.window_id,
            "active": self.active,
            "last_accessed": self.last_accessed,
            "index": self.index,
        }

    @classmethod
    def from_browser(cls, raw: Dict[str, Any]) -> "TabInfo":
        """Build a snapshot from a browser tab record, filling missing fields."""
        return cls(
            id=raw.get("id") if raw.get("id") is not None else -1,
            title=raw.get("title") or "Untitled",
            url=raw.get("url") or "",
            favicon=raw.get("favIconUrl", raw.get("favicon")),
            pinned=bool(raw.get("pinned", False)),
            window_id=raw.get("windowId", raw.get("window_id", -1)),
            active=bool(raw.get("active", False)),
            last_accessed=int(raw.get("lastAccessed", raw.get("last_accessed")) or 0),
            index=raw.get("index"),
        )
