"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from src.models.test_result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path, summary: str = "") -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump()
    report["summary"] = summary
    report["failures"] = [
        {"name": r.name, "error_kind": r.error_kind, "error": r.error}
        for r in run_result.test_results if not r.passed
    ]

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
