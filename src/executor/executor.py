"""Test executor — runs test trees in one Playwright browser session."""

from __future__ import annotations

import logging
import time
import uuid

from playwright.async_api import Page, async_playwright

from src.models.config import EngineConfig
from src.models.test_plan import TestCase, TestNode
from src.models.test_result import RunResult, TestResult

from .errors import RunAborted
from .evidence_collector import EvidenceCollector
from .runner import TestCaseRunner
from .walker import HierarchyWalker

logger = logging.getLogger(__name__)


class Executor:
    """Executes test trees against a live site using Playwright.

    All tests of a run share a single browser context and page so that
    child tests inherit their parent's session and form state.
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        self.run_id = f"run_{uuid.uuid4().hex[:8]}"

    async def execute(self, nodes: list[TestNode]) -> RunResult:
        """Launch the browser, walk every root node and return the run result."""
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        start_time = time.time()
        logger.info("Starting run %s (%d root test(s))", self.run_id, len(nodes))

        collector = EvidenceCollector(self.config.screenshots)
        collector.prepare_directories()

        browser_config = self.config.browser
        async with async_playwright() as p:
            logger.debug("Launching Chromium (headless=%s)...", browser_config.headless)
            browser = await p.chromium.launch(
                headless=browser_config.headless, args=browser_config.args,
            )
            try:
                context = await browser.new_context(viewport={
                    "width": browser_config.viewport.width,
                    "height": browser_config.viewport.height,
                })
                page = await context.new_page()
                page.set_default_timeout(self.config.execution.action_timeout)
                page.set_default_navigation_timeout(self.config.execution.navigation_timeout)
                test_results, aborted = await self.run_nodes(page, nodes, collector)
            finally:
                await browser.close()

        return self._build_run_result(started_at, start_time, test_results, aborted)

    async def execute_test_cases(self, test_cases: list[TestCase]) -> RunResult:
        """Run a flat list of root test cases (no hierarchy)."""
        nodes = [TestNode(name=tc.name, scenario=tc) for tc in test_cases]
        return await self.execute(nodes)

    async def run_nodes(
        self,
        page: Page,
        nodes: list[TestNode],
        collector: EvidenceCollector | None = None,
    ) -> tuple[list[TestResult], bool]:
        """Walk ``nodes`` on an already prepared page.

        Returns the accumulated results and whether the run was aborted by
        the stop-on-failure policy.
        """
        runner = TestCaseRunner(page, self.config, collector)
        walker = HierarchyWalker(runner, self.config.execution, collector)
        try:
            await walker.walk_all(nodes)
        except RunAborted as e:
            logger.error("%s", e)
            return walker.results, True
        return walker.results, False

    def _build_run_result(
        self,
        started_at: str,
        start_time: float,
        test_results: list[TestResult],
        aborted: bool,
    ) -> RunResult:
        duration = time.time() - start_time
        run_result = RunResult(
            run_id=self.run_id,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            base_url=self.config.browser.base_url,
            total_tests=len(test_results),
            passed=sum(1 for r in test_results if r.passed),
            failed=sum(1 for r in test_results if not r.passed),
            aborted=aborted,
            duration_seconds=round(duration, 2),
            test_results=test_results,
        )
        logger.info(
            "Execution complete: %d passed, %d failed%s (%.1fs)",
            run_result.passed, run_result.failed,
            ", aborted" if aborted else "", duration,
        )
        return run_result
