"""HTML report generator — a self-contained page with one card per test."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from src.models.test_result import RunResult, StepResult, TestResult

logger = logging.getLogger(__name__)

_STATUS_COLORS = {"passed": "#22c55e", "failed": "#ef4444"}


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        return f"data:image/png;base64,{data}"
    except OSError as e:
        logger.debug("Could not embed %s: %s", path, e)
        return ""


def _icon(passed: bool) -> str:
    if passed:
        return '<span class="icon pass-icon">&#10003;</span>'
    return '<span class="icon fail-icon">&#10007;</span>'


def _step_row(sr: StepResult) -> str:
    selector = f"<code>{html.escape(sr.selector)}</code>" if sr.selector else ""
    error = ""
    if sr.error_message:
        error = f'<div class="row-error">{html.escape(sr.error_message[:300])}</div>'
    return f'''
    <div class="row">
      {_icon(sr.status == "passed")}
      <div class="row-content"><span class="tag">{sr.step}. {html.escape(sr.step_type)}</span>
        {selector}{error}</div>
    </div>'''


def _build_test_card(r: TestResult) -> str:
    """Build an HTML card for a single test, indented by hierarchy level."""
    color = _STATUS_COLORS.get(r.status, "#94a3b8")
    indent = r.hierarchy_level * 2
    nav_note = ' <span class="test-meta">(continued on parent page)</span>' if r.skipped_navigation else ""

    card = f'''
    <div class="test-card {r.status}" style="margin-left: {indent}rem;">
      <div class="test-header" style="border-left: 4px solid {color};" onclick="this.parentElement.classList.toggle('expanded')">
        <span class="badge {r.status}">{r.status.upper()}</span>
        <strong>{html.escape(r.name)}</strong>{nav_note}
        <span class="test-meta">{r.duration_seconds:.1f}s &middot; {len(r.steps)} steps &middot; {len(r.assertion_results)} assertions</span>
      </div>
      <div class="test-body">
    '''

    if r.error:
        kind = f"{html.escape(r.error_kind)}: " if r.error_kind else ""
        card += f'<div class="failure-banner"><strong>{kind}</strong>{html.escape(r.error)}</div>'

    if r.steps:
        card += '<div class="section"><h4>Steps</h4>'
        card += "".join(_step_row(sr) for sr in r.steps)
        card += '</div>'

    if r.assertion_results:
        card += '<div class="section"><h4>Assertions</h4>'
        for ar in r.assertion_results:
            expected = ""
            if ar.expected_value is not None:
                expected = f' <span class="test-meta">expected: {html.escape(ar.expected_value)}</span>'
            card += f'''
            <div class="row">
              {_icon(ar.passed)}
              <div class="row-content"><span class="tag">{html.escape(ar.assertion_type)}</span>
                <code>{html.escape(ar.selector or "")}</code>{expected}
                <div class="test-meta">{html.escape(ar.message)}</div></div>
            </div>'''
        card += '</div>'

    images = [s for s in r.screenshots if s]
    if images:
        card += '<div class="section"><h4>Screenshots</h4><div class="screenshots-grid">'
        for img_path in images:
            data_uri = _embed_image(img_path)
            if data_uri:
                label = html.escape(Path(img_path).stem)
                card += f'''
                <div class="screenshot-item">
                  <img src="{data_uri}" alt="{label}" loading="lazy" onclick="this.classList.toggle('zoomed')"/>
                  <div class="test-meta">{label}</div>
                </div>'''
        card += '</div></div>'

    card += '</div></div>'
    return card


def generate_html_report(run_result: RunResult, output_path: Path, summary: str = "") -> None:
    """Generate a self-contained HTML report."""
    test_cards = "".join(_build_test_card(r) for r in run_result.test_results)
    aborted = '<div class="failure-banner">Run aborted after the first failure.</div>' if run_result.aborted else ""
    summary_html = f'<div class="summary-text">{html.escape(summary)}</div>' if summary else ""

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Web Test Report &mdash; {html.escape(run_result.run_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1200px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.passed .value {{ color: var(--pass); }}
  .stat.failed .value {{ color: var(--fail); }}
  .summary-text {{ background: var(--card); border-radius: 8px; padding: 1rem; margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; }}
  .badge.passed {{ background: #dcfce7; color: #166534; }}
  .badge.failed {{ background: #fecaca; color: #991b1b; }}
  .test-card {{ background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .test-header {{ display: flex; align-items: center; gap: 0.5rem; padding: 0.7rem 1rem; cursor: pointer; flex-wrap: wrap; }}
  .test-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .test-body {{ display: none; padding: 0 1rem 1rem 1rem; }}
  .test-card.expanded .test-body {{ display: block; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; font-size: 0.88rem; }}
  .section {{ margin-bottom: 1rem; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); text-transform: uppercase; margin-bottom: 0.4rem; border-bottom: 1px solid var(--border); }}
  .row {{ display: flex; align-items: flex-start; gap: 0.5rem; padding: 0.35rem 0; border-bottom: 1px solid #f1f5f9; font-size: 0.85rem; }}
  .icon {{ width: 18px; height: 18px; display: inline-flex; align-items: center; justify-content: center; border-radius: 50%; font-size: 0.7rem; flex-shrink: 0; }}
  .pass-icon {{ background: #dcfce7; color: #166534; }}
  .fail-icon {{ background: #fecaca; color: #991b1b; }}
  .row-content {{ flex: 1; }}
  .row-error {{ color: var(--fail); font-size: 0.82rem; }}
  .tag {{ background: #f1f5f9; padding: 0.1rem 0.4rem; border-radius: 3px; font-family: monospace; font-size: 0.8rem; font-weight: 600; }}
  code {{ background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.8rem; }}
  .screenshots-grid {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 0.6rem; }}
  .screenshot-item {{ text-align: center; }}
  .screenshot-item img {{ width: 100%; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .screenshot-item img.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); }}
</style>
</head>
<body>
<div class="container">
  <h1>Web Test Report</h1>
  <p class="meta">Run: {html.escape(run_result.run_id)} &middot; Target: {html.escape(run_result.base_url or "-")} &middot; {html.escape(run_result.started_at)} &middot; Duration: {run_result.duration_seconds}s</p>

  <div class="summary">
    <div class="stat"><div class="value">{run_result.total_tests}</div><div class="label">Total Tests</div></div>
    <div class="stat passed"><div class="value">{run_result.passed}</div><div class="label">Passed</div></div>
    <div class="stat failed"><div class="value">{run_result.failed}</div><div class="label">Failed</div></div>
  </div>

  {aborted}
  {summary_html}

  <div id="test-list">
    {test_cards}
  </div>
</div>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
