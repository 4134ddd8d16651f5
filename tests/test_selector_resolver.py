"""Tests for selector resolution."""

import pytest
from unittest.mock import AsyncMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.executor.errors import ElementNotFound, UnknownSelectorStrategy
from src.executor.selector_resolver import (
    SUPPORTED_STRATEGIES,
    resolve_selector,
    to_playwright_selector,
)
from src.models.test_plan import Selector


class TestToPlaywrightSelector:

    def test_id(self):
        assert to_playwright_selector(Selector(strategy="id", value="username")) == "#username"

    def test_name(self):
        assert to_playwright_selector(Selector(strategy="name", value="email")) == '[name="email"]'

    def test_css_passthrough(self):
        assert to_playwright_selector(Selector(strategy="css", value="form > button.primary")) \
            == "form > button.primary"

    def test_xpath(self):
        assert to_playwright_selector(Selector(strategy="xpath", value="//button[1]")) \
            == "xpath=//button[1]"

    def test_default_strategy_is_css(self):
        assert to_playwright_selector(Selector(value=".btn")) == ".btn"

    def test_unknown_strategy(self):
        with pytest.raises(UnknownSelectorStrategy, match="text"):
            to_playwright_selector(Selector(strategy="text", value="Submit"))

    def test_supported_strategies(self):
        assert SUPPORTED_STRATEGIES == {"id", "name", "css", "xpath"}


@pytest.mark.asyncio
class TestResolveSelector:

    async def test_returns_first_match(self, mock_page):
        locator = mock_page.locator.return_value

        element = await resolve_selector(mock_page, Selector(strategy="id", value="save"))

        mock_page.locator.assert_called_once_with("#save")
        assert element is locator.first
        locator.first.wait_for.assert_awaited_once_with(state="visible", timeout=30000)

    async def test_custom_state_and_timeout(self, mock_page):
        locator = mock_page.locator.return_value

        await resolve_selector(mock_page, Selector(value=".row"), timeout_ms=500, state="attached")

        locator.first.wait_for.assert_awaited_once_with(state="attached", timeout=500)

    async def test_timeout_becomes_element_not_found(self, mock_page):
        locator = mock_page.locator.return_value
        locator.first.wait_for = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 500ms"))

        with pytest.raises(ElementNotFound, match='id="missing"'):
            await resolve_selector(mock_page, Selector(strategy="id", value="missing"), timeout_ms=500)

    async def test_unknown_strategy_fails_before_lookup(self, mock_page):
        with pytest.raises(UnknownSelectorStrategy):
            await resolve_selector(mock_page, Selector(strategy="label", value="Name"))
        mock_page.locator.assert_not_called()
