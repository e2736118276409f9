"""
Text processing utilities for filenames, timestamps, and display strings.
"""

import re
import time
from datetime import datetime
from typing import Optional

UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class TextUtils:
    """Utility class for text processing operations."""

    _INTERVALS = (
        ("Y", 31536000),
        ("M", 2592000),
        ("D", 86400),
        ("H", 3600),
        ("MIN", 60),
    )

    @staticmethod
    def timestamp(moment: Optional[datetime] = None) -> str:
        """Timestamp for file naming (YYYY-MM-DD_HH-MM-SS)."""
        return (moment or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")

    @staticmethod
    def now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def safe_filename(filename: str) -> str:
        """Create a download-safe filename by replacing unsafe characters."""
        if not filename or not isinstance(filename, str):
            return "untitled"
        name = UNSAFE_FILENAME_CHARS.sub("_", filename)
        name = re.sub(r"\s+", "_", name)
        name = re.sub(r"_{2,}", "_", name)
        name = name.strip("_").lower()[:200]
        return name or "untitled"

    @staticmethod
    def replace_unsafe(text: str) -> str:
        """Replace filesystem-hostile characters only, keeping case and spaces."""
        return UNSAFE_FILENAME_CHARS.sub("_", text or "")

    @staticmethod
    def truncate(text: str, max_length: int) -> str:
        """Truncate text to max_length with an ellipsis."""
        if not text or not isinstance(text, str) or max_length <= 0:
            return ""
        if len(text) <= max_length:
            return text
        return f"{text[:max(0, max_length - 3)]}..."

    @classmethod
    def time_ago(cls, last_accessed_ms: float, now_ms: Optional[float] = None) -> str:
        """Human readable "time ago" for a millisecond timestamp."""
        if not last_accessed_ms or last_accessed_ms <= 0:
            return "UNKNOWN"
        now = now_ms if now_ms is not None else time.time() * 1000
        seconds = int((now - last_accessed_ms) // 1000)
        if seconds < 0:
            return "FUTURE"
        if seconds < 60:
            return "NOW"
        for label, size in cls._INTERVALS:
            count = seconds // size
            if count >= 1:
                return f"{count}{label} AGO"
        return "NOW"
