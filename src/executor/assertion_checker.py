"""Assertion checker — evaluates test assertions against page state."""

from __future__ import annotations

import logging

from playwright.async_api import Locator, Page

from src.models.test_plan import Assertion

from .errors import ElementNotFound
from .selector_resolver import resolve_selector

logger = logging.getLogger(__name__)

# Upper bound when waiting for an element that is expected to be hidden/absent
HIDDEN_WAIT_MS = 5000

_COLOR_NAMES = {
    "red": "rgb(255, 0, 0)",
    "green": "rgb(0, 128, 0)",
    "blue": "rgb(0, 0, 255)",
    "white": "rgb(255, 255, 255)",
    "black": "rgb(0, 0, 0)",
    "gray": "rgb(128, 128, 128)",
    "yellow": "rgb(255, 255, 0)",
}

_COMPUTED_STYLE_JS = "(el, prop) => window.getComputedStyle(el).getPropertyValue(prop)"


class AssertionResult:
    def __init__(self, passed: bool, message: str = "", actual: str | None = None):
        self.passed = passed
        self.message = message
        self.actual = actual


def normalize_style_value(prop: str, value: str) -> str:
    """Map common color names to the rgb() form browsers report."""
    if prop in ("color", "background-color"):
        return _COLOR_NAMES.get(value.strip().lower(), value)
    return value


async def check_assertion(page: Page, assertion: Assertion, timeout_ms: int = 30000) -> AssertionResult:
    """Evaluate a single assertion and return the result.

    Element lookup failures propagate as ElementNotFound, except for a
    visibility assertion that expects the element to be hidden.
    """
    logger.debug("Checking assertion: %s on %s",
                 assertion.assertion_type, assertion.selector.describe())

    if assertion.assertion_type == "visible":
        return await _check_visible(page, assertion, timeout_ms)

    element = await resolve_selector(page, assertion.selector, timeout_ms=timeout_ms, state="attached")
    match assertion.assertion_type:
        case "text":
            return await _check_text(element, assertion)
        case "input" | "value":
            return await _check_input_value(element, assertion)
        case "style":
            return await _check_style(element, assertion)
        case "attribute":
            return await _check_attribute(element, assertion)
        case "class":
            return await _check_class(element, assertion)
        case "enabled":
            return await _check_enabled(element, assertion)
        case _:
            return AssertionResult(False, f"Unknown assertion type: {assertion.assertion_type}")


async def _check_text(element: Locator, assertion: Assertion) -> AssertionResult:
    actual = (await element.text_content() or "").strip()
    expected = (assertion.expected_value or "").strip()
    if actual == expected:
        return AssertionResult(True, "Text matches", actual)
    return AssertionResult(False, f'text content: expected "{expected}", got "{actual}"', actual)


async def _check_input_value(element: Locator, assertion: Assertion) -> AssertionResult:
    actual = await element.input_value()
    expected = assertion.expected_value or ""
    if actual == expected:
        return AssertionResult(True, "Input value matches", actual)
    return AssertionResult(False, f'input value: expected "{expected}", got "{actual}"', actual)


async def _check_style(element: Locator, assertion: Assertion) -> AssertionResult:
    if not assertion.style_property:
        return AssertionResult(False, "No style_property for style assertion")
    prop = assertion.style_property
    actual = str(await element.evaluate(_COMPUTED_STYLE_JS, prop)).strip()
    expected = normalize_style_value(prop, assertion.expected_value or "").strip()
    if actual == expected:
        return AssertionResult(True, f"{prop} matches", actual)
    return AssertionResult(False, f'style {prop}: expected "{expected}", got "{actual}"', actual)


async def _check_attribute(element: Locator, assertion: Assertion) -> AssertionResult:
    if not assertion.attribute_name:
        return AssertionResult(False, "No attribute_name for attribute assertion")
    name = assertion.attribute_name
    actual = await element.get_attribute(name)
    if assertion.expected_value is None:
        if actual is not None:
            return AssertionResult(True, f"Attribute '{name}' present", actual)
        return AssertionResult(False, f"attribute {name}: not present")
    if actual == assertion.expected_value:
        return AssertionResult(True, f"Attribute '{name}' matches", actual)
    return AssertionResult(
        False, f'attribute {name}: expected "{assertion.expected_value}", got "{actual}"', actual,
    )


async def _check_class(element: Locator, assertion: Assertion) -> AssertionResult:
    expected = assertion.class_name or assertion.expected_value
    if not expected:
        return AssertionResult(False, "No class_name for class assertion")
    class_attr = await element.get_attribute("class") or ""
    if expected in class_attr.split():
        return AssertionResult(True, f"Has class '{expected}'", class_attr)
    return AssertionResult(False, f'class: "{expected}" not in "{class_attr}"', class_attr)


async def _check_visible(page: Page, assertion: Assertion, timeout_ms: int) -> AssertionResult:
    expected = assertion.expected_bool
    wait_ms = timeout_ms if expected else min(timeout_ms, HIDDEN_WAIT_MS)
    try:
        element = await resolve_selector(page, assertion.selector, timeout_ms=wait_ms, state="attached")
    except ElementNotFound:
        if not expected:
            return AssertionResult(True, "Element not in DOM", "false")
        raise
    actual = await element.is_visible()
    if actual == expected:
        return AssertionResult(True, f"Element visibility: {actual}", str(actual).lower())
    return AssertionResult(
        False, f"visibility: expected {expected} but got {actual}", str(actual).lower(),
    )


async def _check_enabled(element: Locator, assertion: Assertion) -> AssertionResult:
    actual = await element.is_enabled()
    if actual == assertion.expected_bool:
        return AssertionResult(True, f"Element enabled: {actual}", str(actual).lower())
    return AssertionResult(
        False, f"enabled state: expected {assertion.expected_bool} but got {actual}",
        str(actual).lower(),
    )
