"""Pytest configuration and shared fixtures."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Browser, BrowserContext, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.models.config import (
    BrowserConfig,
    EngineConfig,
    ExecutionConfig,
    ScreenshotConfig,
)
from src.models.test_plan import (
    Assertion,
    ClickStep,
    InputStep,
    Selector,
    Submit,
    TestCase,
)
from src.models.test_result import (
    AssertionResult,
    RunResult,
    StepResult,
    TestResult,
)


# ============================================================================
# Fake Playwright objects
# ============================================================================


class FakeDialog:
    """Native dialog double. ``handled`` is set once accepted or dismissed."""

    def __init__(self, type: str, message: str = "", page: Optional["FakePage"] = None):
        self.page = page
        self.type = type
        self.message = message
        self.accepted: Optional[bool] = None
        self.prompt_text: Optional[str] = None
        self.handled = asyncio.Event()

    async def accept(self, prompt_text: Optional[str] = None) -> None:
        self.accepted = True
        self.prompt_text = prompt_text
        if self.page is not None:
            self.page.events.append("accept")
        self.handled.set()

    async def dismiss(self) -> None:
        self.accepted = False
        if self.page is not None:
            self.page.events.append("dismiss")
        self.handled.set()


class FakeLocator:
    """Element double keyed by its Playwright selector string."""

    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector
        self.checked = False
        self.value = ""
        self.text = ""
        self.attributes: dict[str, str] = {}
        self.styles: dict[str, str] = {}
        self.options: list[tuple[str, str]] = []  # (value, label)
        self.visible = True
        self.enabled = True
        self.on_click: Optional[Callable[[], Awaitable[Any]]] = None

    @property
    def first(self) -> "FakeLocator":
        return self

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        if self.selector in self.page.missing:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    async def click(self, timeout: Optional[float] = None) -> None:
        self.page.actions.append(("click", self.selector))
        self.page.events.append("click")
        if self.on_click is not None:
            await self.on_click()
        self.page.actions.append(("click-done", self.selector))

    async def fill(self, value: str, timeout: Optional[float] = None) -> None:
        self.page.actions.append(("fill", self.selector))
        self.value = value

    async def check(self, timeout: Optional[float] = None) -> None:
        self.page.actions.append(("check", self.selector))
        self.checked = True

    async def uncheck(self, timeout: Optional[float] = None) -> None:
        self.page.actions.append(("uncheck", self.selector))
        self.checked = False

    async def is_checked(self) -> bool:
        return self.checked

    async def input_value(self, timeout: Optional[float] = None) -> str:
        return self.value

    async def select_option(self, value=None, label=None, index=None, timeout=None) -> list[str]:
        for i, (option_value, option_label) in enumerate(self.options):
            if value == option_value or label == option_label or index == i:
                self.value = option_value
                return [option_value]
        raise PlaywrightTimeoutError("did not find some options")

    async def text_content(self) -> str:
        return self.text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    async def is_visible(self) -> bool:
        return self.visible

    async def is_enabled(self) -> bool:
        return self.enabled

    async def evaluate(self, expression: str, arg: Any = None) -> str:
        return self.styles.get(arg, "")


class FakePage:
    """Page double that emulates dialog event ordering.

    ``open_dialog`` behaves like a browser dialog: every ``dialog`` listener
    is notified and the caller stays blocked until the dialog is handled.
    With no listener attached the dialog is dismissed automatically.
    """

    def __init__(self):
        self.listeners: dict[str, list] = {}
        self.elements: dict[str, FakeLocator] = {}
        self.missing: set[str] = set()
        self.actions: list[tuple[str, str]] = []
        self.goto_calls: list[str] = []
        self.waits: list[int] = []
        self.screenshots: list[str] = []
        self.navigations = 0
        self.events: list[str] = []  # e.g. "armed", "click", "awaited"
        self.dialogs: list[FakeDialog] = []
        self.default_timeout: Optional[float] = None
        self.default_navigation_timeout: Optional[float] = None

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    def set_default_navigation_timeout(self, timeout: float) -> None:
        self.default_navigation_timeout = timeout

    def element(self, selector: str) -> FakeLocator:
        if selector not in self.elements:
            self.elements[selector] = FakeLocator(self, selector)
        return self.elements[selector]

    def locator(self, selector: str) -> FakeLocator:
        return self.element(selector)

    def on(self, event: str, handler) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler) -> None:
        self.listeners[event].remove(handler)

    def listener_count(self, event: str = "dialog") -> int:
        return len(self.listeners.get(event, []))

    def emit_dialog(self, type: str, message: str = "") -> FakeDialog:
        dialog = FakeDialog(type, message, page=self)
        self.dialogs.append(dialog)
        handlers = list(self.listeners.get("dialog", []))
        if not handlers:
            dialog.accepted = False
            dialog.handled.set()
        for handler in handlers:
            handler(dialog)
        return dialog

    async def open_dialog(self, type: str, message: str = "") -> FakeDialog:
        dialog = self.emit_dialog(type, message)
        await dialog.handled.wait()
        return dialog

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self.goto_calls.append(url)

    async def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)

    async def screenshot(self, path: Optional[str] = None, full_page: bool = False,
                         timeout: Optional[float] = None) -> bytes:
        self.screenshots.append(path)
        if path:
            Path(path).write_bytes(b"\x89PNG fake")
        return b""

    @asynccontextmanager
    async def expect_navigation(self, wait_until: Optional[str] = None,
                                timeout: Optional[float] = None):
        self.navigations += 1
        self.events.append("armed")
        yield
        self.events.append("awaited")


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def execution_config() -> ExecutionConfig:
    """Execution settings with no artificial delays."""
    return ExecutionConfig(
        action_timeout=300,
        navigation_timeout=300,
        page_load_wait=0,
        child_test_delay=0,
        step_delay=0,
    )


@pytest.fixture
def screenshot_config(tmp_path: Path) -> ScreenshotConfig:
    return ScreenshotConfig(
        success_path=str(tmp_path / "successes"),
        failure_path=str(tmp_path / "failures"),
        dialog_path=str(tmp_path / "dialogs"),
    )


@pytest.fixture
def engine_config(execution_config: ExecutionConfig, screenshot_config: ScreenshotConfig) -> EngineConfig:
    """Create a test engine configuration."""
    return EngineConfig(
        browser=BrowserConfig(base_url="https://example.com"),
        execution=execution_config,
        screenshots=screenshot_config,
    )


@pytest.fixture
def temp_config_file(engine_config: EngineConfig, tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "webtest-config.json"
    engine_config.save(config_file)
    return config_file


# ============================================================================
# Scenario Fixtures
# ============================================================================


@pytest.fixture
def login_case() -> TestCase:
    """A minimal login scenario."""
    return TestCase(
        name="Login",
        url="https://example.com/login",
        steps=[
            InputStep(selector=Selector(strategy="id", value="username"), value="alice"),
            InputStep(selector=Selector(strategy="id", value="password"), value="secret"),
        ],
        submit=Submit(step=ClickStep(selector=Selector(strategy="id", value="login"))),
        assertions=[
            Assertion(
                assertion_type="text",
                selector=Selector(strategy="id", value="message"),
                expected_value="Welcome",
            ),
        ],
    )


# ============================================================================
# Result Fixtures
# ============================================================================


@pytest.fixture
def step_result() -> StepResult:
    return StepResult(step=1, step_type="input", selector='id="username"')


@pytest.fixture
def assertion_result() -> AssertionResult:
    return AssertionResult(
        assertion_type="text",
        selector='id="message"',
        expected_value="Welcome",
        actual_value="Welcome",
        passed=True,
        message="Text matches",
    )


@pytest.fixture
def test_result(step_result: StepResult, assertion_result: AssertionResult) -> TestResult:
    return TestResult(
        name="Login",
        status="passed",
        steps=[step_result],
        assertion_results=[assertion_result],
        duration_seconds=1.5,
    )


@pytest.fixture
def run_result(test_result: TestResult) -> RunResult:
    failed = TestResult(
        name="Checkout",
        status="failed",
        error='Step 1 (click id="buy"): Element not found',
        error_kind="ElementNotFound",
        hierarchy_level=1,
        skipped_navigation=True,
    )
    return RunResult(
        run_id="run_abc12345",
        started_at="2024-01-01T00:00:00Z",
        completed_at="2024-01-01T00:01:00Z",
        base_url="https://example.com",
        total_tests=2,
        passed=1,
        failed=1,
        duration_seconds=60.0,
        test_results=[test_result, failed],
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.screenshot = AsyncMock()
    page.goto = AsyncMock()
    page.locator.return_value = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    return page


@pytest.fixture
def mock_context() -> AsyncMock:
    """Create a mock browser context."""
    context = AsyncMock(spec=BrowserContext)
    context.new_page = AsyncMock()
    return context


@pytest.fixture
def mock_browser() -> AsyncMock:
    """Create a mock browser."""
    browser = AsyncMock(spec=Browser)
    browser.new_context = AsyncMock()
    return browser
