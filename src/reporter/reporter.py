"""Report generation orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from src.models.config import ReportConfig
from src.models.test_result import RunResult

from .html_report import generate_html_report
from .json_report import generate_json_report

logger = logging.getLogger(__name__)


def build_summary(run_result: RunResult) -> str:
    """One-paragraph plain-text summary of a run."""
    target = run_result.base_url or "the configured pages"
    parts = [
        f"Tested {target}: {run_result.total_tests} tests in {run_result.duration_seconds:.1f}s.",
        f"Results: {run_result.passed} passed, {run_result.failed} failed.",
    ]
    if run_result.aborted:
        parts.append("Run aborted after the first failure.")
    failures = [r for r in run_result.test_results if not r.passed]
    if failures:
        parts.append(f"Key failures: {', '.join(f.name for f in failures[:5])}")
    return " ".join(parts)


class Reporter:
    """Generates reports from test results."""

    def __init__(self, config: ReportConfig):
        self.config = config

    def generate_reports(
        self,
        run_result: RunResult,
        output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}
        logger.debug("Report output directory: %s", out_dir)
        summary = build_summary(run_result)

        if "html" in self.config.formats:
            path = out_dir / f"report_{run_result.run_id}.html"
            logger.debug("Generating HTML report...")
            generate_html_report(run_result, path, summary)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in self.config.formats:
            path = out_dir / f"report_{run_result.run_id}.json"
            logger.debug("Generating JSON report...")
            generate_json_report(run_result, path, summary)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        return generated
