"""CLI entry point for theme QA runs."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from theme_qa.analysis.base import build_analyzer
from theme_qa.errors import ConfigError
from theme_qa.marker import FileMarkerStore
from theme_qa.models.config import QAConfig
from theme_qa.models.results import PhaseResult, RunReport
from theme_qa.orchestrator import Orchestrator, RunOptions
from theme_qa.phases.capture import run_capture
from theme_qa.phases.cleanup import run_cleanup
from theme_qa.phases.contract import emit_result, failure_result
from theme_qa.phases.create import run_create
from theme_qa.phases.runner import CONFIG_ENV, InProcessPhaseRunner, SubprocessPhaseRunner
from theme_qa.phases.setup import run_setup
from theme_qa.reporter import write_json_report
from theme_qa.session.client import connect
from theme_qa.viewports import filter_viewports

logger = logging.getLogger(__name__)

console = Console()
# Logs go to stderr so phase commands keep stdout for their JSON result
err_console = Console(stderr=True)

DEFAULT_CONFIG = "theme-qa.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def load_config(config_path: str, **overrides) -> QAConfig:
    """Config handed down by a parent run wins over the config file."""
    inherited = os.environ.get(CONFIG_ENV)
    if inherited:
        try:
            return QAConfig.model_validate_json(inherited)
        except ValueError as e:
            raise ConfigError(f"Invalid {CONFIG_ENV}: {e}") from e
    return QAConfig.from_sources(config_path, **overrides)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str) -> None:
    """Landing page theme QA for Mautic: create, capture, clean up."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.option("--theme", "-t", default=None, help="Theme to test (default from config)")
@click.option("--title", default=None, help="Title of the temporary page")
@click.option("--viewports", "-v", default="all", help="Viewport filter, e.g. 'mobile,tablet'")
@click.option("--skip-cleanup", "-s", is_flag=True, help="Keep the page after the run")
@click.option("--screenshot-dir", "-d", default=None, help="Screenshot output directory")
@click.option("--analyze", "-a", is_flag=True, help="Flag visual anomalies in each screenshot")
@click.option("--mautic-url", "-u", default=None, help="Mautic base URL")
@click.option("--isolated", is_flag=True, help="Run each phase in its own process")
@click.option("--report", "report_path", default=None, help="Write the JSON run report to this path")
@click.pass_context
def run(
    ctx: click.Context,
    theme: str | None,
    title: str | None,
    viewports: str,
    skip_cleanup: bool,
    screenshot_dir: str | None,
    analyze: bool,
    mautic_url: str | None,
    isolated: bool,
    report_path: str | None,
) -> None:
    """Run the full workflow: setup → create → capture → cleanup."""
    try:
        cfg = load_config(ctx.obj["config_path"], mautic_url=mautic_url)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not filter_viewports(viewports):
        console.print(f"[red]Viewport filter '{viewports}' selects no presets[/red]")
        console.print("Run 'theme-qa viewports' to list them.")
        sys.exit(1)

    marker = FileMarkerStore(cfg.marker_path)
    if isolated:
        runner = SubprocessPhaseRunner(cfg)
    else:
        runner = InProcessPhaseRunner(cfg, marker)

    options = RunOptions(
        theme=theme or cfg.theme,
        title=title,
        viewports=viewports,
        skip_cleanup=skip_cleanup,
        screenshot_dir=screenshot_dir or cfg.screenshot_dir,
        analyze=analyze,
    )
    report = Orchestrator(cfg, runner, marker).run(options)

    print_report(report)
    if report_path:
        path = write_json_report(report, report_path)
        console.print(f"  JSON report: [blue]{path}[/blue]")
    sys.exit(0 if report.success else 1)


def print_report(report: RunReport) -> None:
    if report.success:
        console.print("\n[bold green]Run Complete[/bold green]")
    else:
        console.print("\n[bold red]Run Failed[/bold red]")

    table = Table(title="Run Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Theme", report.theme)
    table.add_row("Page", f"{report.page.id} ({report.page.preview_url})" if report.page else "-")
    table.add_row("States", " → ".join(report.states))
    table.add_row("Duration", f"{report.duration_seconds}s")
    table.add_row("Screenshots", str(len(report.screenshots)))
    table.add_row("Issues", f"[yellow]{len(report.issues)}[/yellow]" if report.issues else "0")
    if report.error:
        table.add_row("Error", f"[red]{report.error_kind}: {report.error}[/red]")
    if report.cleanup_error:
        table.add_row("Cleanup error", f"[red]{report.cleanup_error}[/red]")
    console.print(table)

    if report.issues:
        issues = Table(title="Issues")
        issues.add_column("Viewport")
        issues.add_column("Severity")
        issues.add_column("Kind")
        issues.add_column("Message")
        for issue in report.issues:
            issues.add_row(issue.viewport, issue.severity, issue.kind, issue.message)
        console.print(issues)

    console.print_json(report.model_dump_json())


# ---------------------------------------------------------------------------
# Independently invocable phases
# ---------------------------------------------------------------------------


@cli.group()
def phase() -> None:
    """Run a single phase; prints one JSON result object on stdout."""
    pass


def _run_phase(
    ctx: click.Context,
    name: str,
    call: Callable[[object, QAConfig], Awaitable[PhaseResult]],
) -> None:
    async def _main() -> PhaseResult:
        cfg = load_config(ctx.obj["config_path"])
        async with connect(headless=cfg.headless) as client:
            return await call(client, cfg)

    try:
        result = asyncio.run(_main())
    except Exception as e:
        logger.error("Phase '%s' failed: %s", name, e)
        result = failure_result(name, e)
    emit_result(result)
    sys.exit(0 if result.success else 1)


@phase.command("setup")
@click.argument("screenshot_dir", required=False)
@click.pass_context
def phase_setup(ctx: click.Context, screenshot_dir: str | None) -> None:
    """Check config, screenshot directory and Mautic reachability."""
    _run_phase(ctx, "setup", lambda client, cfg: run_setup(client, cfg, screenshot_dir))


@phase.command("create")
@click.argument("theme")
@click.argument("title", required=False)
@click.pass_context
def phase_create(ctx: click.Context, theme: str, title: str | None) -> None:
    """Create a temporary landing page using THEME."""
    def call(client, cfg):
        return run_create(client, cfg, FileMarkerStore(cfg.marker_path), theme, title)

    _run_phase(ctx, "create", call)


@phase.command("capture")
@click.argument("preview_url")
@click.argument("theme")
@click.argument("viewports", required=False, default="all")
@click.argument("screenshot_dir", required=False)
@click.option("--analyze", is_flag=True, help="Flag visual anomalies in each screenshot")
@click.option("--page-id", default=None, help="Page id to carry into the result")
@click.pass_context
def phase_capture(
    ctx: click.Context,
    preview_url: str,
    theme: str,
    viewports: str,
    screenshot_dir: str | None,
    analyze: bool,
    page_id: str | None,
) -> None:
    """Screenshot PREVIEW_URL across the selected viewports."""
    def call(client, cfg):
        analyzer = build_analyzer(cfg, theme) if analyze else None
        return run_capture(
            client, cfg, preview_url, theme,
            viewports=viewports, screenshot_dir=screenshot_dir,
            analyzer=analyzer, page_id=page_id,
        )

    _run_phase(ctx, "capture", call)


@phase.command("cleanup")
@click.argument("page_id", required=False)
@click.option("--skip", is_flag=True, help="Preserve the page and report it as skipped")
@click.pass_context
def phase_cleanup(ctx: click.Context, page_id: str | None, skip: bool) -> None:
    """Delete PAGE_ID (default: the page recorded in the marker file)."""
    def call(client, cfg):
        return run_cleanup(client, cfg, FileMarkerStore(cfg.marker_path), page_id, skip=skip)

    _run_phase(ctx, "cleanup", call)


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("spec", required=False, default="all")
def viewports(spec: str) -> None:
    """List the viewport presets selected by SPEC."""
    presets = filter_viewports(spec)
    if not presets:
        console.print(f"[red]Viewport filter '{spec}' selects no presets[/red]")
        sys.exit(1)

    table = Table(title=f"Viewports: {spec}")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Size")
    for preset in presets:
        table.add_row(preset.name, preset.category, f"{preset.width}x{preset.height}")
    console.print(table)


@cli.command()
@click.option("--mautic-url", "-u", prompt="Mautic URL", help="Mautic base URL")
@click.pass_context
def init(ctx: click.Context, mautic_url: str) -> None:
    """Create a default configuration file."""
    config_path = Path(ctx.obj["config_path"])
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = QAConfig(mautic_url=mautic_url)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nSet credentials in the environment:")
    console.print("  [blue]export MAUTIC_USERNAME=... MAUTIC_PASSWORD=...[/blue]")
    console.print("\nThen run:")
    console.print("  [blue]theme-qa run --theme <theme-name>[/blue]")


if __name__ == "__main__":
    cli()
