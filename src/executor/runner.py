"""Test case runner — executes one scenario's full lifecycle on a shared page."""

from __future__ import annotations

import logging
import time
from enum import Enum

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.models.config import EngineConfig
from src.models.test_plan import (
    ClickStep,
    DialogStep,
    InputStep,
    Step,
    SubmitStep,
    TestCase,
)
from src.models.test_result import AssertionResult as AssertionResultModel
from src.models.test_result import StepResult, TestResult

from .action_runner import execute_step
from .assertion_checker import check_assertion
from .dialog_coordinator import CaptureFn, DialogCoordinator, UnexpectedDialogGuard
from .errors import AssertionFailed, NavigationTimeout, RunAborted, UnknownStepKind, error_kind
from .evidence_collector import EvidenceCollector, safe_name
from .selector_resolver import resolve_selector

logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    NOT_STARTED = "not_started"
    NAVIGATING = "navigating"
    CONTINUING = "continuing"
    RUNNING_STEPS = "running_steps"
    PRE_SUBMIT_CAPTURE = "pre_submit_capture"
    SUBMITTING = "submitting"
    POST_SUBMIT_CAPTURE = "post_submit_capture"
    ASSERTING = "asserting"
    PASSED = "passed"
    FAILED = "failed"
    FAILURE_CAPTURE = "failure_capture"


def _describe(step: Step | SubmitStep) -> str:
    selector = getattr(step, "selector", None)
    kind = getattr(step, "type", None) or getattr(step, "action", "?")
    return f"{kind} {selector.describe()}" if selector else kind


class TestCaseRunner:
    """Runs a single TestCase and produces its TestResult.

    Failures inside navigation, steps, submit or assertions end the test
    immediately; the error is recorded on the result and, when
    ``execution.stop_on_failure`` is set, re-raised as RunAborted.
    """

    __test__ = False

    def __init__(
        self,
        page: Page,
        config: EngineConfig,
        collector: EvidenceCollector | None = None,
    ):
        self.page = page
        self.config = config
        self.collector = collector
        self.state = RunnerState.NOT_STARTED
        self.history: list[RunnerState] = []
        self.current_result: TestResult | None = None
        self._context = ""

    def _enter(self, state: RunnerState) -> None:
        self.state = state
        self.history.append(state)

    async def run(
        self,
        test_case: TestCase,
        hierarchy_level: int = 0,
        skip_navigation: bool = False,
    ) -> TestResult:
        indent = "  " * hierarchy_level
        start = time.time()
        self.current_result = None
        self.history = []
        self._context = ""
        self._enter(RunnerState.NOT_STARTED)

        result = TestResult(
            name=test_case.name,
            hierarchy_level=hierarchy_level,
            skipped_navigation=skip_navigation,
        )
        self.current_result = result
        logger.info("%sExecuting test: %s", indent, test_case.name)

        coordinator = DialogCoordinator(
            self.page, self.config.execution, capture=self._dialog_capture(test_case.name),
        )
        try:
            with UnexpectedDialogGuard(self.page, coordinator) as guard:
                if skip_navigation:
                    self._enter(RunnerState.CONTINUING)
                    await self._continue_on_page(indent)
                else:
                    self._enter(RunnerState.NAVIGATING)
                    await self._navigate(test_case, indent)

                self._enter(RunnerState.RUNNING_STEPS)
                await self._run_steps(test_case.steps, result, coordinator, guard, indent)

                self._enter(RunnerState.PRE_SUBMIT_CAPTURE)
                if self.config.screenshots.capture_before_submit:
                    await self._capture(result, "before-submit")

                self._enter(RunnerState.SUBMITTING)
                await self._submit(test_case, result, coordinator, guard, indent)

                self._enter(RunnerState.POST_SUBMIT_CAPTURE)
                if self.config.screenshots.capture_after_submit:
                    await self._capture(result, "after-submit")

                self._enter(RunnerState.ASSERTING)
                await self._assert(test_case, result, indent)
                guard.raise_if_triggered()

            result.status = "passed"
            self._enter(RunnerState.PASSED)
            logger.info('%sTest "%s" PASSED', indent, test_case.name)
        except Exception as e:
            result.status = "failed"
            result.error = f"{self._context}: {e}" if self._context else str(e)
            result.error_kind = error_kind(e)
            self._enter(RunnerState.FAILED)
            logger.error('%sTest "%s" FAILED: %s', indent, test_case.name, result.error)

            self._enter(RunnerState.FAILURE_CAPTURE)
            if self.config.screenshots.capture_on_failure:
                await self._capture(result, "failure", is_failure=True)

            result.duration_seconds = round(time.time() - start, 2)
            if self.config.execution.stop_on_failure:
                raise RunAborted(result) from e
            return result

        result.duration_seconds = round(time.time() - start, 2)
        return result

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _navigate(self, test_case: TestCase, indent: str) -> None:
        url = test_case.url or self.config.browser.base_url
        if not url:
            logger.warning("%sNo URL for test and no browser.base_url configured; "
                           "staying on current page", indent)
            return
        self._context = f"Navigation to {url}"
        logger.info("%sNavigating to: %s", indent, url)
        timeout = self.config.execution.navigation_timeout
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Page did not load within {timeout}ms") from e
        logger.debug("%s  -> Page loaded", indent)
        await self._wait(self.config.execution.page_load_wait)
        self._context = ""

    async def _continue_on_page(self, indent: str) -> None:
        # Child tests keep the parent's page, cookies and form state.
        logger.info("%sContinuing on current page (child test - no navigation)", indent)
        delay = self.config.execution.child_test_delay
        if delay:
            logger.debug("%s  -> Waiting %dms before child test...", indent, delay)
        await self._wait(delay)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _run_steps(
        self,
        steps: list[Step],
        result: TestResult,
        coordinator: DialogCoordinator,
        guard: UnexpectedDialogGuard,
        indent: str,
    ) -> None:
        total = len(steps)
        i = 0
        while i < total:
            step = steps[i]
            dialogs = _following_dialogs(steps, i) if step.type == "click" else []
            consumed = 1 + len(dialogs)
            self._context = f"Step {i + 1} ({_describe(step)})"
            logger.info("%sStep %d/%d: %s%s", indent, i + 1, total, _describe(step),
                        " (will trigger dialog)" if dialogs else "")
            try:
                if dialogs:
                    await self._click_with_dialogs(step, dialogs, result, coordinator)
                elif step.type == "dialog":
                    result.screenshots.extend(
                        await coordinator.handle_dialog(step, context=self._context))
                else:
                    await execute_step(self.page, step, self.config.execution)
                guard.raise_if_triggered()
            except Exception as e:
                result.steps.append(StepResult(
                    step=i + 1, step_type=step.type, selector=_selector_text(step),
                    status="failed", error_message=str(e),
                ))
                raise

            for offset in range(consumed):
                done = steps[i + offset]
                result.steps.append(StepResult(
                    step=i + offset + 1, step_type=done.type, selector=_selector_text(done),
                ))
            i += consumed
            await self._wait(self.config.execution.step_delay)
        self._context = ""

    async def _click_with_dialogs(
        self,
        click: ClickStep | SubmitStep,
        dialogs: list[DialogStep],
        result: TestResult,
        coordinator: DialogCoordinator,
    ) -> None:
        if click.selector is None:
            raise ValueError("click step requires a selector")
        timeout = self.config.execution.action_timeout
        element = await resolve_selector(self.page, click.selector, timeout_ms=timeout)

        async def _trigger() -> None:
            await element.click(timeout=timeout)
            logger.debug("Clicked (dialog trigger)")

        result.screenshots.extend(
            await coordinator.run_with_dialogs(_trigger, dialogs, context=self._context))

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def _submit(
        self,
        test_case: TestCase,
        result: TestResult,
        coordinator: DialogCoordinator,
        guard: UnexpectedDialogGuard,
        indent: str,
    ) -> None:
        sub_steps = test_case.submit.sub_steps()
        logger.info("%sExecuting submit (%d step(s))...", indent, len(sub_steps))
        i = 0
        while i < len(sub_steps):
            sub = sub_steps[i]
            name = sub.name or f"Submit Step {i + 1}"
            self._context = f"Submit step {i + 1} ({name})"
            logger.info("%s  %d/%d: %s", indent, i + 1, len(sub_steps), name)

            consumed = 1
            match sub.action:
                case "click":
                    dialogs = _following_submit_dialogs(sub_steps, i)
                    if dialogs:
                        await self._click_with_dialogs(sub, dialogs, result, coordinator)
                        consumed += len(dialogs)
                    else:
                        await execute_step(self.page, _as_step(sub), self.config.execution)
                case "input":
                    await execute_step(self.page, _as_step(sub), self.config.execution)
                case "checkbox" | "radio" | "select" if sub.step is not None:
                    await execute_step(self.page, sub.step, self.config.execution)
                case "dialog":
                    result.screenshots.extend(await coordinator.handle_dialog(
                        sub.dialog or DialogStep(), context=self._context))
                case _:
                    raise UnknownStepKind(f"Unknown submit step action: {sub.action}")
            guard.raise_if_triggered()

            for offset in range(consumed):
                done = sub_steps[i + offset]
                done_name = done.name or f"Submit Step {i + offset + 1}"
                if done.capture:
                    await self._capture(
                        result, f"submit-step-{i + offset + 1}-{safe_name(done_name)}")
                await self._wait(done.wait_after)
            i += consumed

        self._context = ""
        post_wait = test_case.submit.post_submit_wait
        if post_wait:
            logger.info("%sWaiting %dms after submit...", indent, post_wait)
        await self._wait(post_wait)

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------

    async def _assert(self, test_case: TestCase, result: TestResult, indent: str) -> None:
        if not test_case.assertions:
            logger.warning("%sNo assertions defined for this test", indent)
            return

        logger.info("%sExecuting %d assertion(s)...", indent, len(test_case.assertions))
        timeout = self.config.execution.action_timeout
        for index, assertion in enumerate(test_case.assertions, 1):
            self._context = (f"Assertion {index} ({assertion.assertion_type} "
                             f"{assertion.selector.describe()})")
            outcome = await check_assertion(self.page, assertion, timeout_ms=timeout)
            result.assertion_results.append(AssertionResultModel(
                assertion_type=assertion.assertion_type,
                selector=assertion.selector.describe(),
                expected_value=assertion.expected_value,
                actual_value=outcome.actual,
                passed=outcome.passed,
                message=outcome.message,
            ))
            if not outcome.passed:
                raise AssertionFailed(f"Assertion failed for {outcome.message}")
            logger.info("%s  ✓ %s", indent, outcome.message)
        self._context = ""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _wait(self, ms: int | None) -> None:
        if ms:
            await self.page.wait_for_timeout(ms)

    async def _capture(self, result: TestResult, stage: str, is_failure: bool = False) -> None:
        """Request a screenshot; capture problems never affect the outcome."""
        if self.collector is None:
            return
        try:
            path = await self.collector.capture(self.page, result.name, stage, is_failure)
        except Exception as e:
            logger.warning("Failed to capture %s screenshot: %s", stage, e)
            return
        if path:
            result.screenshots.append(path)

    def _dialog_capture(self, test_name: str) -> CaptureFn | None:
        if self.collector is None or not self.config.screenshots.capture_dialogs:
            return None
        collector = self.collector

        async def _capture(stage: str) -> str:
            try:
                return await collector.capture_dialog(self.page, test_name, stage)
            except Exception as e:
                logger.warning("Failed to capture dialog screenshot: %s", e)
                return ""

        return _capture


def _following_dialogs(steps: list[Step], index: int) -> list[DialogStep]:
    """Dialog steps immediately after ``steps[index]``."""
    dialogs: list[DialogStep] = []
    for step in steps[index + 1:]:
        if step.type != "dialog":
            break
        dialogs.append(step)
    return dialogs


def _following_submit_dialogs(sub_steps: list[SubmitStep], index: int) -> list[DialogStep]:
    dialogs: list[DialogStep] = []
    for sub in sub_steps[index + 1:]:
        if sub.action != "dialog":
            break
        dialogs.append(sub.dialog or DialogStep())
    return dialogs


def _as_step(sub: SubmitStep) -> Step:
    if sub.selector is None:
        raise ValueError(f"{sub.action} submit step requires a selector")
    if sub.action == "input":
        return InputStep(
            selector=sub.selector,
            value=sub.value or "",
            wait_for_navigation=sub.wait_for_navigation,
            post_navigation_wait=sub.post_navigation_wait,
        )
    return ClickStep(
        selector=sub.selector,
        wait_for_navigation=sub.wait_for_navigation,
        post_navigation_wait=sub.post_navigation_wait,
    )


def _selector_text(step: Step) -> str | None:
    selector = getattr(step, "selector", None)
    return selector.describe() if selector else None
