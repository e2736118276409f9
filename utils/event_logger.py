"""
Simple, robust event-driven logging for the tab session engine.

Design principles:
- Non-blocking: logging errors never break the engine
- Simple: minimal API surface
- Flexible: easy to customize output via callbacks
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime
import time


class EventType(str, Enum):
    """All event types that can be logged"""
    # Tab collection events
    TABS_REFRESHED = "tabs_refreshed"
    REFRESH_DISCARDED = "refresh_discarded"
    FILTERS_APPLIED = "filters_applied"

    # Selection events
    SELECTION_CHANGED = "selection_changed"
    SELECTION_PRUNED = "selection_pruned"

    # Tab action events
    CLOSE_ARMED = "close_armed"
    TABS_CLOSED = "tabs_closed"
    TABS_BOOKMARKED = "tabs_bookmarked"
    TAB_PINNED = "tab_pinned"
    TAB_FOCUSED = "tab_focused"

    # Session events
    SESSION_SAVED = "session_saved"
    SESSION_RENAMED = "session_renamed"
    SESSION_DELETED = "session_deleted"
    SESSIONS_IMPORTED = "sessions_imported"
    SESSIONS_EXPORTED = "sessions_exported"
    SESSIONS_DROPPED = "sessions_dropped"

    # Restore events
    RESTORE_START = "restore_start"
    RESTORE_TAB_FAILED = "restore_tab_failed"
    RESTORE_COMPLETE = "restore_complete"

    # Export events
    EXPORT_CAPTURE_FAILED = "export_capture_failed"
    EXPORT_COMPLETE = "export_complete"

    # User-facing notifications
    NOTIFICATION = "notification"

    # System events
    SYSTEM_INFO = "system_info"
    SYSTEM_WARNING = "system_warning"
    SYSTEM_ERROR = "system_error"
    SYSTEM_DEBUG = "system_debug"


@dataclass
class EngineEvent:
    """Structured event data"""
    event_type: EventType
    message: str
    timestamp: float = field(default_factory=time.time)
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, SUCCESS
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "event_type": self.event_type.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "timestamp_iso": datetime.fromtimestamp(self.timestamp).isoformat(),
            "level": self.level,
            "details": self.details
        }


class EventLogger:
    """
    Simple, robust event logger.

    In debug mode: prints directly to console
    In normal mode: only calls callbacks (no prints)
    """

    def __init__(self, debug_mode: bool = False, max_history: int = 1000):
        self.debug_mode = debug_mode
        self._callbacks: List[Callable[[EngineEvent], None]] = []
        self._event_history: List[EngineEvent] = []
        self._max_history = max_history

    def register_callback(self, callback: Callable[[EngineEvent], None]) -> None:
        """Register a callback for all events"""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[EngineEvent], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    @property
    def history(self) -> List[EngineEvent]:
        return list(self._event_history)

    def events_of(self, event_type: EventType) -> List[EngineEvent]:
        return [e for e in self._event_history if e.event_type == event_type]

    def _safe_emit(self, event: EngineEvent) -> None:
        """Safely emit an event - never raises exceptions"""
        try:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history.pop(0)
        except Exception:
            pass  # Ignore history errors

        if self.debug_mode:
            try:
                self._print_event(event)
            except Exception:
                pass  # Ignore print errors

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                pass  # Ignore callback errors

    def _print_event(self, event: EngineEvent) -> None:
        """Print event in debug mode"""
        level_emoji = {
            "DEBUG": "🔍",
            "INFO": "ℹ️",
            "WARNING": "⚠️",
            "ERROR": "❌",
            "SUCCESS": "✅"
        }
        emoji = level_emoji.get(event.level, "•")
        print(f"{emoji} {event.message}")

        if event.details:
            for key, value in event.details.items():
                if value is not None and isinstance(value, (str, int, float, bool)):
                    print(f"   {key}: {value}")

    def emit(self, event_type: EventType, message: str, level: str = "INFO", **details) -> None:
        """Emit an event - safe wrapper that never raises"""
        try:
            event = EngineEvent(
                event_type=event_type,
                message=message,
                level=level,
                details=details
            )
            self._safe_emit(event)
        except Exception:
            if self.debug_mode:
                try:
                    print(f"⚠️ Event logger error: {message}")
                except Exception:
                    pass

    # Convenience methods
    def tabs_refreshed(self, tab_count: int, sequence: int, **details):
        self.emit(EventType.TABS_REFRESHED, f"Loaded {tab_count} tab(s) (refresh #{sequence})", "DEBUG",
                  tab_count=tab_count, sequence=sequence, **details)

    def refresh_discarded(self, sequence: int, latest: int, **details):
        self.emit(EventType.REFRESH_DISCARDED, f"Discarded stale refresh #{sequence} (latest #{latest})", "DEBUG",
                  sequence=sequence, latest=latest, **details)

    def filters_applied(self, visible: int, total: int, **details):
        self.emit(EventType.FILTERS_APPLIED, f"Showing {visible} of {total} tab(s)", "DEBUG",
                  visible=visible, total=total, **details)

    def selection_changed(self, selected: int, **details):
        self.emit(EventType.SELECTION_CHANGED, f"{selected} tab(s) selected", "DEBUG", selected=selected, **details)

    def selection_pruned(self, dropped: int, **details):
        self.emit(EventType.SELECTION_PRUNED, f"Dropped {dropped} closed tab(s) from selection", "DEBUG",
                  dropped=dropped, **details)

    def close_armed(self, timeout: float, **details):
        self.emit(EventType.CLOSE_ARMED, f"Close armed, confirm within {timeout:.1f}s", "INFO",
                  timeout=timeout, **details)

    def tabs_closed(self, count: int, **details):
        self.emit(EventType.TABS_CLOSED, f"Closed {count} tab(s)", "SUCCESS", count=count, **details)

    def tab_pinned(self, tab_id: int, pinned: bool, **details):
        self.emit(EventType.TAB_PINNED, f"Tab {tab_id} {'pinned' if pinned else 'unpinned'}", "DEBUG",
                  tab_id=tab_id, pinned=pinned, **details)

    def tab_focused(self, tab_id: int, window_id: int, **details):
        self.emit(EventType.TAB_FOCUSED, f"Focused tab {tab_id} in window {window_id}", "DEBUG",
                  tab_id=tab_id, window_id=window_id, **details)

    def tabs_bookmarked(self, created: int, failed: int, folder: str = None, **details):
        msg = f"Bookmarked {created} tab(s)"
        if folder:
            msg += f" in '{folder}'"
        if failed:
            msg += f", {failed} failed"
        level = "WARNING" if failed else "SUCCESS"
        self.emit(EventType.TABS_BOOKMARKED, msg, level, created=created, failed=failed, folder=folder, **details)

    def session_saved(self, name: str, tab_count: int, **details):
        self.emit(EventType.SESSION_SAVED, f"Saved session '{name}' ({tab_count} tab(s))", "SUCCESS",
                  name=name, tab_count=tab_count, **details)

    def session_renamed(self, old_name: str, new_name: str, **details):
        self.emit(EventType.SESSION_RENAMED, f"Renamed session '{old_name}' to '{new_name}'", "INFO",
                  old_name=old_name, new_name=new_name, **details)

    def session_deleted(self, name: str, **details):
        self.emit(EventType.SESSION_DELETED, f"Deleted session '{name}'", "INFO", name=name, **details)

    def sessions_imported(self, added: int, skipped: int, **details):
        self.emit(EventType.SESSIONS_IMPORTED, f"Imported {added} session(s), skipped {skipped} duplicate(s)", "INFO",
                  added=added, skipped=skipped, **details)

    def sessions_exported(self, count: int, **details):
        self.emit(EventType.SESSIONS_EXPORTED, f"Exported {count} session(s)", "INFO", count=count, **details)

    def sessions_dropped(self, count: int, **details):
        self.emit(EventType.SESSIONS_DROPPED, f"Ignored {count} malformed stored session(s)", "WARNING",
                  count=count, **details)

    def restore_start(self, name: str, valid: int, invalid: int, **details):
        self.emit(EventType.RESTORE_START, f"Restoring '{name}': {valid} restorable, {invalid} skipped", "INFO",
                  name=name, valid=valid, invalid=invalid, **details)

    def restore_tab_failed(self, url: str, error: Exception = None, **details):
        msg = f"Failed to restore tab: {url}"
        if error:
            msg += f" - {error}"
        self.emit(EventType.RESTORE_TAB_FAILED, msg, "WARNING", url=url,
                  error=str(error) if error else None, **details)

    def restore_complete(self, name: str, opened: int, skipped: int, **details):
        self.emit(EventType.RESTORE_COMPLETE, f"Restored '{name}': {opened} opened, {skipped} skipped", "SUCCESS",
                  name=name, opened=opened, skipped=skipped, **details)

    def export_capture_failed(self, tab_id: int, title: str = None, error: Exception = None, **details):
        msg = f"Snapshot capture failed for tab {tab_id}"
        if title:
            msg += f" ('{title}')"
        if error:
            msg += f" - {error}"
        self.emit(EventType.EXPORT_CAPTURE_FAILED, msg, "ERROR", tab_id=tab_id, title=title,
                  error=str(error) if error else None, **details)

    def export_complete(self, filename: str, count: int, **details):
        self.emit(EventType.EXPORT_COMPLETE, f"Exported {count} tab(s) to {filename}", "SUCCESS",
                  filename=filename, count=count, **details)

    def notification(self, message: str, is_error: bool = False, **details):
        self.emit(EventType.NOTIFICATION, message, "ERROR" if is_error else "INFO", is_error=is_error, **details)

    def system_info(self, message: str, **details):
        self.emit(EventType.SYSTEM_INFO, message, "INFO", **details)

    def system_warning(self, message: str, **details):
        self.emit(EventType.SYSTEM_WARNING, message, "WARNING", **details)

    def system_error(self, message: str, error: Exception = None, **details):
        msg = message
        if error:
            msg += f" - {str(error)}"
        self.emit(EventType.SYSTEM_ERROR, msg, "ERROR", error=str(error) if error else None, **details)

    def system_debug(self, message: str, **details):
        self.emit(EventType.SYSTEM_DEBUG, message, "DEBUG", **details)


# Global instance
_global_event_logger: Optional[EventLogger] = None

def get_event_logger() -> EventLogger:
    """Get the global event logger instance"""
    global _global_event_logger
    if _global_event_logger is None:
        _global_event_logger = EventLogger(debug_mode=False)
    return _global_event_logger

def set_event_logger(logger: EventLogger) -> None:
    """Set the global event logger instance"""
    global _global_event_logger
    _global_event_logger = logger
