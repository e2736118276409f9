"""
Export Bundler - turns selected tabs and session documents into files.

One selected tab becomes a single page snapshot; several become one ZIP
archive of snapshots. Session documents become pretty-printed JSON files.
"""
from __future__ import annotations

import io
import json
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from browser_provider import BrowserApi
from error_handling import BrowserApiError, SessionError, describe_error
from tab_management.tab_info import TabInfo
from text_utils import TextUtils
from utils.event_logger import get_event_logger


@dataclass
class ExportBundle:
    """A downloadable file held in memory."""
    filename: str
    content: bytes
    media_type: str = "application/octet-stream"

    def write_to(self, directory: os.PathLike) -> Path:
        target = Path(directory) / self.filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.content)
        return target


@dataclass
class CaptureFailure:
    tab_id: int
    title: str
    error: str


@dataclass
class ExportReport:
    bundle: ExportBundle
    exported: List[int] = field(default_factory=list)
    failed: List[CaptureFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed)


def unique_names(names: Sequence[str]) -> List[str]:
    """Disambiguate repeated names as `name (1).ext`, `name (2).ext`, ..."""
    used: set = set()
    result = []
    for base_name in names:
        name, ext = os.path.splitext(base_name)
        final_name = base_name
        counter = 1
        while final_name in used:
            final_name = f"{name} ({counter}){ext}"
            counter += 1
        used.add(final_name)
        result.append(final_name)
    return result


class ExportBundler:
    """
    Builds export bundles.

    Args:
        browser: Browser capability surface used for page capture
        fail_fast: Abort a multi-tab export on the first failed capture;
            when False, failed tabs are skipped and reported
    """

    def __init__(self, browser: BrowserApi, fail_fast: bool = True):
        self.browser = browser
        self.fail_fast = fail_fast
        self.logger = get_event_logger()

    async def export_tabs(self, tabs: Sequence[TabInfo]) -> ExportReport:
        if not tabs:
            raise SessionError("No tabs selected for export")
        if len(tabs) == 1:
            return await self._export_single(tabs[0])
        return await self._export_many(tabs)

    async def _capture(self, tab: TabInfo) -> bytes:
        try:
            return await self.browser.capture_page(tab.id)
        except BrowserApiError as e:
            self.logger.export_capture_failed(tab.id, tab.title, e)
            raise BrowserApiError(
                f'Could not save "{tab.title}": {describe_error(e)}',
                details={"tab_id": tab.id, "title": tab.title},
            ) from e

    async def _export_single(self, tab: TabInfo) -> ExportReport:
        content = await self._capture(tab)
        filename = TextUtils.safe_filename(f"{tab.title or 'page'}_{TextUtils.timestamp()}.mht")
        bundle = ExportBundle(filename=filename, content=content, media_type="multipart/related")
        self.logger.export_complete(filename, 1)
        return ExportReport(bundle=bundle, exported=[tab.id])

    async def _export_many(self, tabs: Sequence[TabInfo]) -> ExportReport:
        captured: List[tuple] = []
        failed: List[CaptureFailure] = []

        # Sequential: one capture in flight at a time
        for tab in tabs:
            try:
                content = await self._capture(tab)
            except BrowserApiError as e:
                if self.fail_fast:
                    raise
                failed.append(CaptureFailure(tab.id, tab.title, describe_error(e)))
                continue
            captured.append((tab, content))

        if not captured:
            raise BrowserApiError("Could not save any tabs", details=[f.__dict__ for f in failed])

        names = unique_names([TextUtils.safe_filename(f"{tab.title or 'page'}.mht") for tab, _ in captured])
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for arcname, (_tab, content) in zip(names, captured):
                zf.writestr(arcname, content)

        filename = f"tabs_{TextUtils.timestamp()}.zip"
        bundle = ExportBundle(filename=filename, content=buffer.getvalue(), media_type="application/zip")
        self.logger.export_complete(filename, len(captured), failed=len(failed))
        return ExportReport(
            bundle=bundle,
            exported=[tab.id for tab, _ in captured],
            failed=failed,
        )

    @staticmethod
    def json_bundle(document: Dict[str, Any], filename: str,
                    indent: Optional[int] = 2) -> ExportBundle:
        """A session export document as a JSON file."""
        content = json.dumps(document, indent=indent, ensure_ascii=False).encode("utf-8")
        return ExportBundle(filename=filename, content=content, media_type="application/json")
