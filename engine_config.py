"""
Configuration models for the tab session engine.

Settings are grouped into small pydantic models so each component only
receives the part it needs.

Example:
    >>> from engine_config import EngineConfig, CloseConfig
    >>> config = EngineConfig(close=CloseConfig(confirm_timeout=5.0))
    >>> manager = TabManager(browser, store, config=config)
"""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from browser_provider import BrowserConfig
from session_store import DEFAULT_EXPORTED_BY, SESSIONS_KEY
from tab_management.tab_filter import SortBy, ViewMode, WindowScope


class FilterConfig(BaseModel):
    """Filter, sort and view defaults."""

    search_debounce_ms: int = Field(
        default=150,
        ge=0,
        description="Quiet period before a search edit re-runs the pipeline"
    )
    default_sort_by: SortBy = Field(
        default=SortBy.LAST_ACCESSED,
        description="Sort order on startup"
    )
    default_view_mode: ViewMode = Field(
        default=ViewMode.LIST,
        description="View mode on startup"
    )
    default_window_scope: WindowScope = Field(
        default=WindowScope.CURRENT,
        description="Window scope on startup"
    )


class CloseConfig(BaseModel):
    """Two-phase close confirmation."""

    confirm_timeout: float = Field(
        default=3.0,
        gt=0.0,
        description="Seconds an armed close waits for confirmation"
    )


class RestoreConfig(BaseModel):
    """Session restore behavior."""

    load_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds to wait for each restored tab to finish loading"
    )
    discard_after_load: bool = Field(
        default=True,
        description="Unload background tabs after they have loaded"
    )


class ExportConfig(BaseModel):
    """Export behavior."""

    fail_fast: bool = Field(
        default=True,
        description="Abort a multi-tab export on the first failed capture"
    )
    exported_by: str = Field(
        default=DEFAULT_EXPORTED_BY,
        description="Label written into session export documents"
    )


class StorageConfig(BaseModel):
    """Where sessions are persisted."""

    sessions_path: Path = Field(
        default_factory=lambda: Path.home() / ".tab_sessions" / "storage.json",
        description="JSON file used by the file storage backend"
    )
    sessions_key: str = Field(
        default=SESSIONS_KEY,
        min_length=1,
        description="Storage key holding the session document"
    )


class DebugConfig(BaseModel):
    """Debugging and logging configuration."""

    debug_mode: bool = Field(
        default=False,
        description="Print every engine event to the console"
    )


class EngineConfig(BaseModel):
    """
    Main configuration object for the tab session engine.

    Example:
        >>> config = EngineConfig(
        ...     filters=FilterConfig(search_debounce_ms=200),
        ...     export=ExportConfig(fail_fast=False)
        ... )
    """

    filters: FilterConfig = Field(
        default_factory=FilterConfig,
        description="Filter and view defaults"
    )
    close: CloseConfig = Field(
        default_factory=CloseConfig,
        description="Close confirmation"
    )
    restore: RestoreConfig = Field(
        default_factory=RestoreConfig,
        description="Session restore behavior"
    )
    export: ExportConfig = Field(
        default_factory=ExportConfig,
        description="Export behavior"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Session persistence"
    )
    logging: DebugConfig = Field(
        default_factory=DebugConfig,
        description="Debug and logging configuration"
    )
    browser: BrowserConfig = Field(
        default_factory=BrowserConfig,
        description="Browser collaborator configuration"
    )

    @classmethod
    def fast(cls) -> EngineConfig:
        """
        Create a configuration without debounce or discard.

        Returns:
            EngineConfig that reacts immediately and keeps restored tabs loaded
        """
        return cls(
            filters=FilterConfig(search_debounce_ms=0),
            restore=RestoreConfig(discard_after_load=False),
            logging=DebugConfig(debug_mode=False)
        )

    @classmethod
    def debug(cls) -> EngineConfig:
        """
        Create a configuration optimized for debugging.

        Returns:
            EngineConfig with debug mode enabled and a visible browser
        """
        return cls(
            logging=DebugConfig(debug_mode=True),
            browser=BrowserConfig(headless=False)
        )

    @classmethod
    def minimal(cls) -> EngineConfig:
        """
        Create a minimal configuration with defaults.

        Returns:
            EngineConfig with all default settings
        """
        return cls()
