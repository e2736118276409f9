"""
Domain classification: maps any URL to the key its tab is grouped under.
"""
from __future__ import annotations

from urllib.parse import urlsplit

BROWSER_INTERNAL = "Browser Internal"
LOCAL_FILES = "Local Files"
BROWSER_PAGES = "Browser Pages"
OTHER = "Other"
UNKNOWN = "Unknown"

INTERNAL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "chrome-search://",
    "edge://",
    "brave://",
    "opera://",
    "vivaldi://",
    "moz-extension://",
)
LOCAL_PREFIXES = ("file://",)
BROWSER_PAGE_PREFIXES = ("about:", "view-source:")


def _strip_www(hostname: str) -> str:
    return hostname[4:] if hostname.startswith("www.") else hostname


def get_domain(url: str) -> str:
    """
    Grouping key for a URL. Never raises.

    Internal browser schemes, local files and browser pages map to fixed
    sentinels; web URLs map to their hostname without a leading ``www.``;
    anything that does not parse to a hostname maps to ``Other``.
    """
    if not url or not isinstance(url, str):
        return UNKNOWN

    lowered = url.strip().lower()
    if lowered.startswith(INTERNAL_PREFIXES):
        return BROWSER_INTERNAL
    if lowered.startswith(LOCAL_PREFIXES):
        return LOCAL_FILES
    if lowered.startswith(BROWSER_PAGE_PREFIXES):
        return BROWSER_PAGES

    try:
        hostname = urlsplit(url.strip()).hostname
    except ValueError:
        return OTHER
    if not hostname:
        return OTHER
    return _strip_www(hostname)


def format_url(url: str) -> str:
    """Display form of a URL: hostname without ``www.`` plus the path."""
    if not url:
        return ""
    if url.startswith(("chrome://", "file://")):
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.hostname:
        return url
    path = "" if parts.path == "/" else parts.path
    return _strip_www(parts.hostname) + path
