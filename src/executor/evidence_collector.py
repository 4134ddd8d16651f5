"""Evidence collector — fulfils screenshot capture requests."""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from playwright.async_api import Page

from src.models.config import ScreenshotConfig

logger = logging.getLogger(__name__)

SCREENSHOT_TIMEOUT_MS = 5000


def safe_name(name: str, max_length: int = 50) -> str:
    """Filesystem-safe stem for a test or step name."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name or "unknown-test")[:max_length]


class EvidenceCollector:
    """Captures screenshots into the success, failure and dialog directories."""

    def __init__(self, config: ScreenshotConfig):
        self.config = config
        self.success_dir = Path(config.success_path)
        self.failure_dir = Path(config.failure_path)
        self.dialog_dir = Path(config.dialog_path)

    def prepare_directories(self) -> None:
        """Create output directories, emptying them first if configured."""
        for directory in (self.success_dir, self.failure_dir, self.dialog_dir):
            if self.config.cleanup_before_run and directory.exists():
                logger.debug("Cleaning screenshot directory %s", directory)
                shutil.rmtree(directory)
            directory.mkdir(parents=True, exist_ok=True)

    async def capture(
        self, page: Page, test_name: str, stage: str, is_failure: bool = False,
    ) -> str:
        """Capture a screenshot and return the file path ("" when skipped or failed)."""
        directory = self.failure_dir if is_failure else self.success_dir
        return await self._take(page, directory, test_name, stage)

    async def capture_dialog(self, page: Page, test_name: str, stage: str) -> str:
        if not self.config.capture_dialogs:
            return ""
        return await self._take(page, self.dialog_dir, test_name, stage)

    async def _take(self, page: Page, directory: Path, test_name: str, stage: str) -> str:
        if not self.config.enabled:
            return ""
        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = directory / f"{safe_name(test_name)}_{safe_name(stage)}_{timestamp}.png"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            await page.screenshot(
                path=str(path), full_page=self.config.full_page,
                timeout=SCREENSHOT_TIMEOUT_MS,
            )
            logger.debug("Screenshot saved: %s", path)
            return str(path)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            return ""
