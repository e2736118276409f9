"""
ActionResult - Structured return type for dispatched user intents.

Every intent handled by the coordinator produces one, whether it succeeded
or failed, so the presentation layer can always show a notification.
"""
from dataclasses import dataclass, field
from typing import Any, Optional, Dict


@dataclass
class ActionResult:
    """
    Outcome of one user action.

    Attributes:
        success: Whether the action succeeded
        message: Human-readable notification text
        data: Action payload (created session, restore report, export bundle, ...)
        metadata: Additional metadata about the operation
        error: Error code if the action failed (None if successful)

    Example:
        >>> result = await manager.dispatch(TabIntent(kind=IntentKind.SAVE_SESSION, name="Work"))
        >>> if not result:
        ...     show_toast(result.message, is_error=True)
    """
    success: bool
    message: str = ""
    data: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def is_error(self) -> bool:
        return not self.success

    @classmethod
    def ok(cls, message: str = "", data: Any = None, **metadata) -> "ActionResult":
        return cls(success=True, message=message, data=data, metadata=metadata)

    @classmethod
    def failed(cls, message: str, error: Optional[str] = None, **metadata) -> "ActionResult":
        return cls(success=False, message=message, error=error, metadata=metadata)

    def __repr__(self) -> str:
        status = "✅" if self.success else "❌"
        data_info = f", data={type(self.data).__name__}" if self.data is not None else ""
        return f"ActionResult({status}, message='{self.message}'{data_info})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "metadata": self.metadata,
            "error": self.error,
        }
