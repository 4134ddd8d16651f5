"""Action runner — applies typed steps to resolved page elements."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.models.config import ExecutionConfig
from src.models.test_plan import (
    CheckboxStep,
    ClickStep,
    InputStep,
    RadioStep,
    SelectStep,
    Step,
)

from .errors import NavigationTimeout, UnknownStepKind, ValueMismatch
from .selector_resolver import resolve_selector

logger = logging.getLogger(__name__)


async def perform_with_navigation(
    page: Page,
    action: Callable[[], Awaitable[None]],
    wait_for_navigation: bool,
    post_navigation_wait: int | None,
    config: ExecutionConfig,
) -> None:
    """Run ``action``, optionally coupled with a navigation wait.

    The navigation waiter is armed before the action is issued: pages that
    start navigating during the click's own event dispatch would otherwise
    be missed.
    """
    if not wait_for_navigation:
        await action()
        return

    acted = False
    try:
        async with page.expect_navigation(
            wait_until="domcontentloaded", timeout=config.navigation_timeout,
        ):
            await action()
            acted = True
    except PlaywrightTimeoutError as e:
        if not acted:
            raise
        raise NavigationTimeout(
            f"Navigation did not reach 'domcontentloaded' within "
            f"{config.navigation_timeout}ms"
        ) from e
    logger.debug("Navigation completed")

    if post_navigation_wait:
        logger.debug("Waiting %dms after navigation...", post_navigation_wait)
        await page.wait_for_timeout(post_navigation_wait)


async def execute_step(page: Page, step: Step, config: ExecutionConfig) -> None:
    """Resolve the step's element and apply the step to it."""
    if step.type == "dialog":
        raise UnknownStepKind("dialog steps are handled by the dialog coordinator")
    element = await resolve_selector(page, step.selector, timeout_ms=config.action_timeout)
    await run_step(page, element, step, config)


async def run_step(page: Page, element: Locator, step: Step, config: ExecutionConfig) -> None:
    """Apply a single step to an already resolved element."""
    logger.debug("Running step: %s | selector=%s", step.type,
                 step.selector.describe() if getattr(step, "selector", None) else "-")

    match step.type:
        case "input":
            await _fill(page, element, step, config)
        case "click":
            await _click(page, element, step, config)
        case "checkbox":
            await _set_checkbox(page, element, step, config)
        case "radio":
            await _select_radio(page, element, step, config)
        case "select":
            await _select_option(page, element, step, config)
        case _:
            raise UnknownStepKind(f"Unknown step kind: {step.type}")


async def _fill(page: Page, element: Locator, step: InputStep, config: ExecutionConfig) -> None:
    async def _do() -> None:
        # fill() replaces the current value, it never appends
        await element.fill(step.value, timeout=config.action_timeout)

    await perform_with_navigation(
        page, _do, step.wait_for_navigation, step.post_navigation_wait, config)
    logger.debug("Entered '%s'",
                 "***" if "password" in step.selector.value.lower() else step.value)


async def _click(page: Page, element: Locator, step: ClickStep, config: ExecutionConfig) -> None:
    async def _do() -> None:
        await element.click(timeout=config.action_timeout)

    await perform_with_navigation(
        page, _do, step.wait_for_navigation, step.post_navigation_wait, config)
    logger.debug("Clicked%s", " (with navigation)" if step.wait_for_navigation else "")


async def _set_checkbox(
    page: Page, element: Locator, step: CheckboxStep, config: ExecutionConfig,
) -> None:
    current = await element.is_checked()
    if current == step.checked:
        logger.debug("Checkbox already %s", "checked" if current else "unchecked")
        return

    async def _do() -> None:
        if step.checked:
            await element.check(timeout=config.action_timeout)
        else:
            await element.uncheck(timeout=config.action_timeout)

    await perform_with_navigation(
        page, _do, step.wait_for_navigation, step.post_navigation_wait, config)
    logger.debug("Checkbox %s", "checked" if step.checked else "unchecked")


async def _select_radio(
    page: Page, element: Locator, step: RadioStep, config: ExecutionConfig,
) -> None:
    if await element.is_checked():
        logger.debug("Radio already selected")
    else:
        async def _do() -> None:
            await element.check(timeout=config.action_timeout)

        await perform_with_navigation(
            page, _do, step.wait_for_navigation, step.post_navigation_wait, config)
        logger.debug("Radio selected")

    if step.verify_after_set and step.value is not None:
        actual = await element.input_value()
        if actual != step.value:
            raise ValueMismatch(
                f'Radio value mismatch: expected "{step.value}" but got "{actual}"'
            )


async def _select_option(
    page: Page, element: Locator, step: SelectStep, config: ExecutionConfig,
) -> None:
    selected: list[str] = []

    async def _do() -> None:
        timeout = config.action_timeout
        match step.select_by:
            case "value":
                result = await element.select_option(value=step.value, timeout=timeout)
            case "label":
                result = await element.select_option(label=step.value, timeout=timeout)
            case "index":
                result = await element.select_option(index=int(step.value), timeout=timeout)
            case _:
                raise UnknownStepKind(f"Unknown select_by mode: {step.select_by}")
        selected.extend(result or [])

    await perform_with_navigation(
        page, _do, step.wait_for_navigation, step.post_navigation_wait, config)
    logger.debug("Selected '%s' (by %s)", step.value, step.select_by)

    if step.verify_after_set:
        # Label and index modes verify against the option value the browser picked.
        expected = step.value if step.select_by == "value" else (selected[0] if selected else None)
        actual = await element.input_value()
        if actual != expected:
            raise ValueMismatch(
                f'Select value mismatch: expected "{expected}" but got "{actual}"'
            )
