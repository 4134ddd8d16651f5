"""Tests for the evidence collector module."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.executor.evidence_collector import EvidenceCollector, safe_name


class TestSafeName:

    def test_replaces_unsafe_characters(self):
        assert safe_name("Login / Logout: happy path") == "Login___Logout__happy_path"

    def test_truncates(self):
        assert len(safe_name("x" * 80)) == 50

    def test_empty_name(self):
        assert safe_name("") == "unknown-test"


class TestPrepareDirectories:

    def test_creates_directories(self, screenshot_config):
        collector = EvidenceCollector(screenshot_config)
        collector.prepare_directories()

        assert collector.success_dir.is_dir()
        assert collector.failure_dir.is_dir()
        assert collector.dialog_dir.is_dir()

    def test_cleanup_before_run(self, screenshot_config):
        screenshot_config.cleanup_before_run = True
        stale = Path(screenshot_config.success_path) / "old.png"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")

        EvidenceCollector(screenshot_config).prepare_directories()

        assert not stale.exists()
        assert stale.parent.is_dir()

    def test_keeps_files_by_default(self, screenshot_config):
        stale = Path(screenshot_config.failure_path) / "old.png"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")

        EvidenceCollector(screenshot_config).prepare_directories()

        assert stale.exists()


@pytest.mark.asyncio
class TestCapture:

    async def test_success_capture(self, fake_page, screenshot_config):
        collector = EvidenceCollector(screenshot_config)

        path = await collector.capture(fake_page, "Login Form", "before-submit")

        assert Path(path).parent == Path(screenshot_config.success_path)
        assert Path(path).name.startswith("Login_Form_before-submit_")
        assert path.endswith(".png")
        assert Path(path).exists()

    async def test_failure_capture(self, fake_page, screenshot_config):
        collector = EvidenceCollector(screenshot_config)

        path = await collector.capture(fake_page, "Login", "failure", is_failure=True)

        assert Path(path).parent == Path(screenshot_config.failure_path)

    async def test_dialog_capture(self, fake_page, screenshot_config):
        collector = EvidenceCollector(screenshot_config)

        path = await collector.capture_dialog(fake_page, "Delete", "dialog-confirm")

        assert Path(path).parent == Path(screenshot_config.dialog_path)

    async def test_dialog_capture_disabled(self, fake_page, screenshot_config):
        screenshot_config.capture_dialogs = False
        collector = EvidenceCollector(screenshot_config)

        assert await collector.capture_dialog(fake_page, "Delete", "dialog-confirm") == ""
        assert fake_page.screenshots == []

    async def test_disabled(self, fake_page, screenshot_config):
        screenshot_config.enabled = False
        collector = EvidenceCollector(screenshot_config)

        assert await collector.capture(fake_page, "Login", "after-submit") == ""
        assert fake_page.screenshots == []

    async def test_screenshot_error_never_raises(self, mock_page, screenshot_config):
        mock_page.screenshot = AsyncMock(side_effect=Exception("Target closed"))
        collector = EvidenceCollector(screenshot_config)

        assert await collector.capture(mock_page, "Login", "failure", is_failure=True) == ""
