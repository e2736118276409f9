"""
Utility modules for the tab session engine.
"""
from .event_logger import EventLogger, EventType, get_event_logger, set_event_logger
from .async_timers import Debouncer, ConfirmationGate

__all__ = ["EventLogger", "EventType", "get_event_logger", "set_event_logger", "Debouncer", "ConfirmationGate"]
