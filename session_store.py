"""
Session Store - persisted, named groups of tabs.

Sessions live in one ordered list, most recent first, stored as a single
document under one storage key. Every mutation is a read-modify-write of the
whole document and is serialized through one lock.

Example:
    >>> store = SessionStore(MemoryStorage())
    >>> await store.load()
    >>> session = store.create("Trip Planning", selected_tabs)
    >>> await store.add(session)
"""
from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from error_handling import SessionError, ValidationError, describe_error
from session_storage import KeyValueStorage
from tab_management.tab_info import TabInfo
from text_utils import TextUtils
from utils.event_logger import get_event_logger

SESSIONS_KEY = "sessions"
EXPORT_VERSION = "1.0"
DEFAULT_EXPORTED_BY = "Tab Session Manager"
MAX_NAME_LENGTH = 100
INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_SCHEME = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):(.+)$", re.DOTALL)
_HOST_REQUIRED_SCHEMES = {"http", "https", "ftp", "ws", "wss"}
RESTORABLE_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.is_valid


def validate_session_name(name: Any) -> ValidationResult:
    if not name or not isinstance(name, str):
        return ValidationResult(False, "Session name is required")
    trimmed = name.strip()
    if not trimmed:
        return ValidationResult(False, "Session name cannot be empty")
    if len(trimmed) > MAX_NAME_LENGTH:
        return ValidationResult(False, f"Session name too long (max {MAX_NAME_LENGTH} characters)")
    if INVALID_NAME_CHARS.search(trimmed):
        return ValidationResult(False, "Session name contains invalid characters")
    return ValidationResult(True)


def require_session_name(name: Any) -> str:
    """Validated, stripped name. Raises ValidationError."""
    result = validate_session_name(name)
    if not result:
        raise ValidationError(result.error, details={"name": name})
    return name.strip()


def validate_url(url: Any) -> ValidationResult:
    """Syntactic URL check: a scheme, a non-empty remainder, no whitespace."""
    if not url or not isinstance(url, str):
        return ValidationResult(False, "URL is required")
    candidate = url.strip()
    if not candidate:
        return ValidationResult(False, "URL cannot be empty")
    match = _SCHEME.match(candidate)
    if not match or any(ch.isspace() for ch in candidate):
        return ValidationResult(False, "Invalid URL format")
    scheme, rest = match.group(1).lower(), match.group(2)
    if scheme in _HOST_REQUIRED_SCHEMES:
        authority = rest[2:].split("/", 1)[0].split("?", 1)[0].split("#", 1)[0]
        host = authority.rsplit("@", 1)[-1]
        if not rest.startswith("//") or not host or host.startswith(":"):
            return ValidationResult(False, "Invalid URL format")
    return ValidationResult(True)


def is_restorable_url(url: Any) -> bool:
    """Valid and http(s); anything else cannot be reopened by a browser tab."""
    if not validate_url(url):
        return False
    return url.strip().split(":", 1)[0].lower() in RESTORABLE_SCHEMES


class SessionTab(BaseModel):
    """Durable, browser-independent projection of a tab."""
    url: StrictStr
    title: StrictStr


class Session(BaseModel):
    """A named, persisted snapshot of tabs."""
    name: StrictStr
    tabs: List[SessionTab]
    date: StrictInt = Field(default_factory=TextUtils.now_ms)

    def to_dict(self) -> dict:
        return self.model_dump()


SessionLike = Union[Session, dict]
TabLike = Union[TabInfo, SessionTab, dict]


def _as_session_tab(tab: TabLike) -> SessionTab:
    if isinstance(tab, SessionTab):
        return tab
    if isinstance(tab, TabInfo):
        return tab.to_session_tab()
    return SessionTab.model_validate(tab)


def session_violations(session: Session, position: int) -> List[str]:
    """Every rule a session breaks, prefixed with its 1-based position."""
    label = f"Session {position}"
    problems = []
    name_check = validate_session_name(session.name)
    if not name_check:
        problems.append(f"{label}: {name_check.error}")
    if not session.tabs:
        problems.append(f"{label}: Must have at least one tab")
    for tab_index, tab in enumerate(session.tabs, start=1):
        url_check = validate_url(tab.url)
        if not url_check:
            problems.append(f"{label}, Tab {tab_index}: {url_check.error}")
    return problems


def parse_stored_sessions(raw: Any) -> Tuple[List[Session], int]:
    """
    Read the stored document, which is `{sessions: [...]}` or a bare list.

    Entries failing the shape check, or breaking any rule a write enforces
    (name, at least one tab, tab URLs), are dropped. Returns the surviving
    sessions and the number dropped.
    """
    if raw is None:
        return [], 0
    if isinstance(raw, dict):
        raw = raw.get(SESSIONS_KEY, [])
    if not isinstance(raw, list):
        return [], 1

    sessions: List[Session] = []
    dropped = 0
    for position, item in enumerate(raw, start=1):
        try:
            session = Session.model_validate(item)
        except PydanticValidationError:
            dropped += 1
            continue
        if session_violations(session, position):
            dropped += 1
        else:
            sessions.append(session)
    return sessions, dropped


@dataclass
class MergeResult:
    merged: List[Session]
    added_count: int
    skipped: List[str] = field(default_factory=list)


def import_merge(existing: Sequence[Session], incoming: Sequence[Session]) -> MergeResult:
    """
    Purely additive merge: incoming sessions whose name exactly matches an
    existing one are skipped; the rest are prepended in their given order.
    """
    existing_names = {session.name for session in existing}
    added = [s for s in incoming if s.name not in existing_names]
    skipped = [s.name for s in incoming if s.name in existing_names]
    return MergeResult(merged=added + list(existing), added_count=len(added), skipped=skipped)


def parse_import_document(payload: Union[str, bytes, dict, list]) -> List[Session]:
    """
    Sessions from an import file: a bare list, `{sessions: [...]}`, or a
    single-session export. Raises SessionError on anything else.
    """
    data = payload
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SessionError("Invalid JSON format", details=str(e)) from e

    if isinstance(data, list):
        items = data
    elif isinstance(data, dict) and isinstance(data.get(SESSIONS_KEY), list):
        items = data[SESSIONS_KEY]
    elif isinstance(data, dict) and "name" in data and "tabs" in data:
        items = [data]
    else:
        raise SessionError("No valid sessions found in file")

    if any(not isinstance(item, dict) or not item.get("name") or not item.get("tabs") for item in items):
        raise SessionError("Invalid session format")

    sessions = []
    for position, item in enumerate(items, start=1):
        try:
            sessions.append(Session.model_validate(item))
        except PydanticValidationError as e:
            raise SessionError(f"Invalid session format (session {position})", details=e.errors()) from e
    return sessions


def export_document(sessions: Sequence[Session], exported_by: str = DEFAULT_EXPORTED_BY,
                    now: Optional[int] = None) -> dict:
    return {
        "sessions": [session.to_dict() for session in sessions],
        "exportedAt": TextUtils.now_ms() if now is None else now,
        "version": EXPORT_VERSION,
        "exportedBy": exported_by,
    }


def export_session_document(session: Session, now: Optional[int] = None) -> dict:
    doc = session.to_dict()
    doc["exportedAt"] = TextUtils.now_ms() if now is None else now
    doc["version"] = EXPORT_VERSION
    return doc


def export_filename() -> str:
    return f"tab-sessions_{TextUtils.timestamp()}.json"


def session_export_filename(session: Session) -> str:
    return f"tab-session-{TextUtils.replace_unsafe(session.name)}.json"


@dataclass
class SessionStats:
    count: int
    total_tabs: int
    average_tabs: int
    oldest: Optional[int] = None
    newest: Optional[int] = None


def session_stats(sessions: Sequence[Session]) -> SessionStats:
    if not sessions:
        return SessionStats(count=0, total_tabs=0, average_tabs=0)
    total = sum(len(s.tabs) for s in sessions)
    dates = sorted(s.date for s in sessions)
    return SessionStats(
        count=len(sessions),
        total_tabs=total,
        average_tabs=round(total / len(sessions)),
        oldest=dates[0],
        newest=dates[-1],
    )


class SessionStore:
    """
    CRUD over the persisted session list.

    The in-memory list only changes after the storage write succeeded, so a
    failed write leaves both in their previous state.
    """

    def __init__(self, storage: KeyValueStorage, key: str = SESSIONS_KEY,
                 exported_by: str = DEFAULT_EXPORTED_BY):
        self.storage = storage
        self.key = key
        self.exported_by = exported_by
        self._sessions: List[Session] = []
        self._lock = asyncio.Lock()
        self.logger = get_event_logger()

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, index: int) -> Session:
        if not 0 <= index < len(self._sessions):
            raise SessionError(f"No session at index {index}", details={"index": index})
        return self._sessions[index]

    async def load(self) -> List[Session]:
        """Read sessions from storage, silently dropping malformed entries."""
        try:
            raw = await self.storage.get(self.key)
        except Exception as e:
            raise SessionError(f"Failed to retrieve sessions: {describe_error(e)}") from e
        sessions, dropped = parse_stored_sessions(raw)
        if dropped:
            self.logger.sessions_dropped(dropped)
        self._sessions = sessions
        return self.sessions

    @staticmethod
    def create(name: str, tabs: Iterable[TabLike], now: Optional[int] = None) -> Session:
        """Build a validated session. Does not persist it."""
        clean_name = require_session_name(name)
        session_tabs = [_as_session_tab(tab) for tab in tabs]
        if not session_tabs:
            raise ValidationError("Session must contain at least one tab", details={"name": clean_name})
        return Session(name=clean_name, tabs=session_tabs,
                       date=TextUtils.now_ms() if now is None else now)

    async def save(self, sessions: Sequence[SessionLike]) -> None:
        """Validate every session and persist all of them, or none."""
        async with self._lock:
            await self._write(sessions)

    async def _write(self, sessions: Sequence[SessionLike]) -> None:
        if not isinstance(sessions, (list, tuple)):
            raise SessionError("Sessions must be a list")

        models: List[Session] = []
        problems: List[str] = []
        for position, item in enumerate(sessions, start=1):
            try:
                session = item if isinstance(item, Session) else Session.model_validate(item)
            except PydanticValidationError:
                problems.append(f"Session {position}: Invalid session format")
                continue
            problems.extend(session_violations(session, position))
            models.append(session)

        if problems:
            raise SessionError(f"Validation failed: {', '.join(problems)}", details=problems)

        document = {SESSIONS_KEY: [session.to_dict() for session in models]}
        try:
            await self.storage.set(self.key, document)
        except Exception as e:
            raise SessionError(f"Failed to save sessions: {describe_error(e)}") from e
        self._sessions = models

    async def add(self, session: Session) -> Session:
        """Prepend a new session and persist."""
        async with self._lock:
            await self._write([session] + self._sessions)
        self.logger.session_saved(session.name, len(session.tabs))
        return session

    async def rename(self, index: int, new_name: str) -> Session:
        name = require_session_name(new_name)
        async with self._lock:
            old = self.get(index)
            renamed = old.model_copy(update={"name": name})
            updated = list(self._sessions)
            updated[index] = renamed
            await self._write(updated)
        self.logger.session_renamed(old.name, name)
        return renamed

    async def delete(self, index: int) -> Session:
        async with self._lock:
            removed = self.get(index)
            remaining = self._sessions[:index] + self._sessions[index + 1:]
            await self._write(remaining)
        self.logger.session_deleted(removed.name)
        return removed

    async def import_sessions(self, payload: Union[str, bytes, dict, list]) -> MergeResult:
        """Parse an import file and merge it; nothing is written when nothing is new."""
        incoming = parse_import_document(payload)
        async with self._lock:
            result = import_merge(self._sessions, incoming)
            if result.added_count:
                await self._write(result.merged)
        self.logger.sessions_imported(result.added_count, len(result.skipped))
        return result

    def export(self, session: Optional[Session] = None) -> dict:
        """Export document for every session, or for one when given."""
        if session is not None:
            return export_session_document(session)
        if not self._sessions:
            raise SessionError("No sessions to export")
        self.logger.sessions_exported(len(self._sessions))
        return export_document(self._sessions, exported_by=self.exported_by)
