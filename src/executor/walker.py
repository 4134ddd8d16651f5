"""Hierarchy walker — runs a test tree depth-first, gating children on parents."""

from __future__ import annotations

import logging

from src.models.config import ExecutionConfig
from src.models.test_plan import TestNode
from src.models.test_result import TestResult

from .errors import RunAborted, error_kind
from .evidence_collector import EvidenceCollector
from .runner import TestCaseRunner

logger = logging.getLogger(__name__)


class HierarchyWalker:
    """Depth-first traversal of TestNodes sharing one runner and one page.

    Results are appended in execution order. A child only runs when its
    parent passed, and always continues on the parent's page.
    """

    def __init__(
        self,
        runner: TestCaseRunner,
        config: ExecutionConfig,
        collector: EvidenceCollector | None = None,
    ):
        self.runner = runner
        self.config = config
        self.collector = collector
        self.results: list[TestResult] = []

    async def walk_all(self, nodes: list[TestNode]) -> list[TestResult]:
        for node in nodes:
            await self.walk(node)
        return self.results

    async def walk(self, node: TestNode, level: int = 0, skip_navigation: bool = False) -> bool:
        """Run ``node`` and, if it passed, its children. Returns the node's own outcome."""
        indent = "  " * level
        prefix = "└─ " if level > 0 else ""
        logger.info("%s%sExecuting: %s", indent, prefix, node.name)

        try:
            result = await self.runner.run(node.scenario, level, skip_navigation)
        except RunAborted as aborted:
            self.results.append(aborted.result)
            raise
        except Exception as e:
            logger.error("%sTest %s crashed: %s", indent, node.name, e)
            await self._record_crash(node, level, skip_navigation, e)
            return False

        self.results.append(result)
        if not result.passed:
            if node.children:
                logger.info("%s✗ Failed - skipping %d child test(s)", indent, len(node.children))
            return False

        logger.info("%s✓ Passed", indent)
        if node.children:
            logger.info("%sExecuting %d child test(s)...", indent, len(node.children))
            for child in node.children:
                child_passed = await self.walk(child, level + 1, skip_navigation=True)
                if not child_passed and self.config.stop_on_child_failure:
                    logger.info("%sStopping remaining child tests after failure of %s",
                                indent, child.name)
                    break
        return True

    async def _record_crash(
        self, node: TestNode, level: int, skip_navigation: bool, error: Exception,
    ) -> None:
        """Record a failed result for a test whose runner raised."""
        result = self.runner.current_result
        already_recorded = any(r is result for r in self.results)
        if result is None or result.name != node.scenario.name or already_recorded:
            result = TestResult(
                name=node.scenario.name,
                hierarchy_level=level,
                skipped_navigation=skip_navigation,
            )
        result.status = "failed"
        result.error = str(error)
        result.error_kind = error_kind(error)

        if self.collector is not None and self.collector.config.capture_on_failure:
            try:
                path = await self.collector.capture(
                    self.runner.page, result.name, "error", is_failure=True)
            except Exception as e:
                logger.warning("Failed to capture error screenshot: %s", e)
                path = ""
            if path:
                result.screenshots.append(path)

        self.results.append(result)
