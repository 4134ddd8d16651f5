"""Tests for the hierarchy walker."""

from unittest.mock import AsyncMock, Mock

import pytest

from src.executor.errors import RunAborted
from src.executor.evidence_collector import EvidenceCollector
from src.executor.runner import TestCaseRunner
from src.executor.walker import HierarchyWalker
from src.models.test_plan import ClickStep, Selector, Submit, TestCase, TestNode
from src.models.test_result import TestResult


def node(name: str, children=(), button: str = "go", url: str | None = None) -> TestNode:
    case = TestCase(
        name=name,
        url=url or f"https://example.com/{name.lower()}",
        steps=[ClickStep(selector=Selector(strategy="id", value=button))],
        submit=Submit(step=ClickStep(selector=Selector(strategy="id", value="submit"))),
    )
    return TestNode(name=name, scenario=case, children=list(children))


@pytest.fixture
def walker(fake_page, engine_config):
    runner = TestCaseRunner(fake_page, engine_config)
    return HierarchyWalker(runner, engine_config.execution)


@pytest.mark.asyncio
class TestHierarchyWalker:

    async def test_children_run_on_parent_page(self, fake_page, walker):
        tree = node("Login", [node("Profile"), node("Settings")])

        passed = await walker.walk(tree)

        assert passed is True
        assert [r.name for r in walker.results] == ["Login", "Profile", "Settings"]
        assert [r.hierarchy_level for r in walker.results] == [0, 1, 1]
        assert [r.skipped_navigation for r in walker.results] == [False, True, True]
        assert fake_page.goto_calls == ["https://example.com/login"]

    async def test_failed_parent_skips_children(self, fake_page, walker):
        fake_page.missing.add("#broken")
        tree = node("Login", [node("Profile")], button="broken")

        passed = await walker.walk(tree)

        assert passed is False
        assert [r.name for r in walker.results] == ["Login"]
        assert walker.results[0].status == "failed"

    async def test_failed_child_does_not_stop_siblings_by_default(self, fake_page, walker):
        fake_page.missing.add("#broken")
        tree = node("Login", [node("Profile", button="broken"), node("Settings")])

        passed = await walker.walk(tree)

        assert passed is True
        assert [(r.name, r.status) for r in walker.results] == [
            ("Login", "passed"), ("Profile", "failed"), ("Settings", "passed"),
        ]

    async def test_stop_on_child_failure(self, fake_page, engine_config):
        engine_config.execution.stop_on_child_failure = True
        walker = HierarchyWalker(TestCaseRunner(fake_page, engine_config), engine_config.execution)
        fake_page.missing.add("#broken")
        tree = node("Login", [node("Profile", button="broken"), node("Settings")])

        await walker.walk(tree)

        assert [r.name for r in walker.results] == ["Login", "Profile"]

    async def test_grandchildren_depth_first(self, walker):
        tree = node("A", [node("B", [node("C")]), node("D")])

        await walker.walk(tree)

        assert [(r.name, r.hierarchy_level) for r in walker.results] == [
            ("A", 0), ("B", 1), ("C", 2), ("D", 1),
        ]

    async def test_walk_all_roots_navigate(self, fake_page, walker):
        results = await walker.walk_all([node("One"), node("Two")])

        assert len(results) == 2
        assert fake_page.goto_calls == ["https://example.com/one", "https://example.com/two"]

    async def test_run_aborted_propagates_with_result(self, fake_page, engine_config):
        engine_config.execution.stop_on_failure = True
        walker = HierarchyWalker(TestCaseRunner(fake_page, engine_config), engine_config.execution)
        fake_page.missing.add("#broken")

        with pytest.raises(RunAborted):
            await walker.walk_all([node("First", button="broken"), node("Second")])

        assert [r.name for r in walker.results] == ["First"]

    async def test_crash_recorded_as_failure(self, fake_page, screenshot_config, execution_config):
        runner = Mock()
        runner.page = fake_page
        runner.current_result = None
        runner.run = AsyncMock(side_effect=RuntimeError("browser crashed"))
        walker = HierarchyWalker(runner, execution_config, EvidenceCollector(screenshot_config))

        passed = await walker.walk(node("Login", [node("Profile")]), level=0)

        assert passed is False
        assert len(walker.results) == 1
        result = walker.results[0]
        assert result.status == "failed"
        assert result.error == "browser crashed"
        assert result.error_kind == "RuntimeError"
        assert len(result.screenshots) == 1

    async def test_crash_reuses_partial_result(self, fake_page, execution_config):
        partial = TestResult(name="Login", steps=[], status="pending")
        runner = Mock()
        runner.page = fake_page
        runner.current_result = partial
        runner.run = AsyncMock(side_effect=RuntimeError("boom"))
        walker = HierarchyWalker(runner, execution_config)

        await walker.walk(node("Login"))

        assert walker.results == [partial]
        assert partial.status == "failed"
