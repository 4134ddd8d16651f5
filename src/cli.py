"""CLI entry point for the web test engine."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.models.config import EngineConfig
from src.orchestrator import Orchestrator
from src.planner.scenario_loader import ScenarioLoadError

console = Console()

DEFAULT_CONFIG = "webtest-config.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str | None) -> EngineConfig:
    """Load an explicit config, the default file if present, or built-in defaults."""
    if config is None:
        if not Path(DEFAULT_CONFIG).exists():
            return EngineConfig()
        config = DEFAULT_CONFIG
    try:
        return EngineConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'webtest init' to create a default config.")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Declarative browser test runner"""
    setup_logging(verbose)


@cli.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", default=None, help=f"Config file path (default: {DEFAULT_CONFIG})")
@click.option("--base-url", default=None, help="Override browser.base_url")
@click.option("--headed", is_flag=True, help="Show the browser window")
def run(scenario: str, config: str | None, base_url: str | None, headed: bool) -> None:
    """Run a scenario or test list file."""
    cfg = _load_config(config)
    if base_url:
        cfg.browser.base_url = base_url
    if headed:
        cfg.browser.headless = False

    orchestrator = Orchestrator(cfg)
    try:
        results = orchestrator.run(scenario)
    except (ScenarioLoadError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title="Test Results")
    table.add_column("Test", style="bold")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Error")
    for test in results["tests"]:
        status = "[green]PASSED[/green]" if test["status"] == "passed" else "[red]FAILED[/red]"
        table.add_row(
            "  " * test["level"] + test["name"], status,
            f"{test['duration']:.1f}s", test["error"] or "",
        )
    console.print(table)

    summary = results["results"]
    colour = "green" if summary["failed"] == 0 else "red"
    console.print(
        f"\n[bold {colour}]{summary['passed']}/{summary['total']} passed, "
        f"{summary['failed']} failed[/bold {colour}]"
        + (" [yellow](run aborted)[/yellow]" if summary["aborted"] else "")
    )
    for fmt, path in results["reports"].items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    if summary["failed"]:
        sys.exit(1)


@cli.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", default=None, help="Config file path")
def validate(scenario: str, config: str | None) -> None:
    """Check a scenario or test list file without running it."""
    orchestrator = Orchestrator(_load_config(config))
    try:
        nodes = orchestrator.load(scenario)
    except (ScenarioLoadError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    problems = orchestrator.validate(nodes)
    errors = [p for p in problems if not p.startswith("warning:")]
    for problem in problems:
        style = "yellow" if problem.startswith("warning:") else "red"
        console.print(f"  [{style}]{problem}[/{style}]")
    if errors:
        console.print(f"[red]{len(errors)} error(s) found[/red]")
        sys.exit(1)
    console.print(f"[green]Valid:[/green] {len(nodes)} root test(s)")


@cli.command()
@click.option("--base-url", default=None, help="Base URL used when a scenario has no url")
def init(base_url: str | None) -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG} already exists. Overwrite?"):
            return

    cfg = EngineConfig()
    cfg.browser.base_url = base_url
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]webtest run scenarios/login.yaml[/blue]")


if __name__ == "__main__":
    cli()
