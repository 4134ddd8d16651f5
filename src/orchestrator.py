"""Pipeline orchestrator — coordinates load, validate, execute, and report stages."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from src.executor.executor import Executor
from src.models.config import EngineConfig
from src.models.test_plan import TestNode
from src.models.test_result import RunResult
from src.planner.scenario_loader import ScenarioLoadError, load_tests
from src.planner.schema_validator import has_blocking_errors, validate_nodes
from src.reporter.reporter import Reporter

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates a full test run for one scenario or test list file."""

    def __init__(self, config: EngineConfig):
        self.config = config

    def load(self, scenario_path: str | Path) -> list[TestNode]:
        return load_tests(scenario_path, self.config.paths.test_config_root)

    def validate(self, nodes: list[TestNode]) -> list[str]:
        problems = validate_nodes(nodes)
        for problem in problems:
            if problem.startswith("warning:"):
                logger.warning("%s", problem[len("warning:"):].strip())
            else:
                logger.error("%s", problem)
        return problems

    def run(self, scenario_path: str | Path) -> dict:
        """Execute the complete load → validate → execute → report pipeline."""
        return asyncio.run(self._run_pipeline(Path(scenario_path)))

    async def _run_pipeline(self, scenario_path: Path) -> dict:
        start = time.time()
        logger.info("=== Starting test run for %s ===", scenario_path)

        # Stage 1: Load
        logger.info("--- Stage 1: Load ---")
        nodes = self.load(scenario_path)
        logger.info("--- Stage 1 complete: %d root test(s) loaded ---", len(nodes))

        # Stage 2: Validate
        logger.info("--- Stage 2: Validate ---")
        problems = self.validate(nodes)
        if has_blocking_errors(problems):
            blocking = [p for p in problems if not p.startswith("warning:")]
            raise ScenarioLoadError(
                f"Scenario validation failed with {len(blocking)} error(s): {blocking[0]}"
            )
        logger.info("--- Stage 2 complete: %d warning(s) ---", len(problems))

        # Stage 3: Execute
        logger.info("--- Stage 3: Execute ---")
        stage_start = time.time()
        run_result = await self._execute(nodes)
        logger.info("--- Stage 3 complete: %d passed, %d failed in %.1fs ---",
                    run_result.passed, run_result.failed, time.time() - stage_start)

        # Stage 4: Report
        logger.info("--- Stage 4: Report ---")
        reports = self._report(run_result)
        logger.info("--- Stage 4 complete: %d report(s) generated ---", len(reports))

        duration = time.time() - start
        logger.info("=== Run complete in %.1fs ===", duration)

        return {
            "run_id": run_result.run_id,
            "duration": round(duration, 2),
            "results": {
                "total": run_result.total_tests,
                "passed": run_result.passed,
                "failed": run_result.failed,
                "aborted": run_result.aborted,
            },
            "tests": [
                {
                    "name": r.name,
                    "level": r.hierarchy_level,
                    "status": r.status,
                    "error": r.error,
                    "duration": r.duration_seconds,
                }
                for r in run_result.test_results
            ],
            "reports": reports,
        }

    async def _execute(self, nodes: list[TestNode]) -> RunResult:
        executor = Executor(self.config)
        return await executor.execute(nodes)

    def _report(self, run_result: RunResult) -> dict[str, str]:
        reporter = Reporter(self.config.report)
        return reporter.generate_reports(run_result, output_dir=Path(self.config.report.output_dir))
