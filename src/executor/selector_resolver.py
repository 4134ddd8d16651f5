"""Selector resolution — maps selector descriptors to live page locators."""

from __future__ import annotations

import logging

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.models.test_plan import Selector

from .errors import ElementNotFound, UnknownSelectorStrategy

logger = logging.getLogger(__name__)

# strategy -> Playwright selector string
_STRATEGIES = {
    "id": lambda value: f"#{value}",
    "name": lambda value: f'[name="{value}"]',
    "css": lambda value: value,
    "xpath": lambda value: f"xpath={value}",
}

SUPPORTED_STRATEGIES = frozenset(_STRATEGIES)


def to_playwright_selector(selector: Selector) -> str:
    """Translate a selector descriptor to a Playwright selector string.

    Raises UnknownSelectorStrategy for anything outside id/name/css/xpath.
    """
    build = _STRATEGIES.get(selector.strategy)
    if build is None:
        raise UnknownSelectorStrategy(
            f"Unknown selector strategy '{selector.strategy}' "
            f"(expected one of: {', '.join(sorted(SUPPORTED_STRATEGIES))})"
        )
    return build(selector.value)


async def resolve_selector(
    page: Page,
    selector: Selector,
    timeout_ms: int = 30000,
    state: str = "visible",
) -> Locator:
    """Wait for the element described by ``selector`` and return its locator.

    The strategy is checked before any wait begins, so an unknown strategy
    never costs a timeout. When nothing matching reaches ``state`` within
    ``timeout_ms`` an ElementNotFound is raised rather than returning None.
    """
    pw_selector = to_playwright_selector(selector)
    locator = page.locator(pw_selector).first
    logger.debug("Resolving %s -> '%s' (state=%s, timeout=%dms)",
                 selector.describe(), pw_selector, state, timeout_ms)
    try:
        await locator.wait_for(state=state, timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise ElementNotFound(
            f"Element not found: {selector.describe()} "
            f"(not {state} within {timeout_ms}ms)"
        ) from e
    return locator
