"""Entry point: ``cronpost`` / ``python -m cronpost``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from itertools import islice

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cronpost.config import ServiceConfig, load_config, resolve_timezone
from cronpost.cron.clock import iter_fire_times, next_fire_after
from cronpost.cron.expression import parse
from cronpost.cron.store import JobStore
from cronpost.errors import PersistenceError, ScheduleError
from cronpost.logging_config import level_from_name, setup_logging
from cronpost.paths import CronpostPaths, resolve_paths

logger = logging.getLogger(__name__)

_console = Console()


def _load(paths: CronpostPaths) -> ServiceConfig:
    try:
        return load_config(paths)
    except (json.JSONDecodeError, OSError, ValueError):
        logger.exception("Failed to load config at %s", paths.config_path)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_serve(verbose: bool) -> None:
    """Load config and run the service until interrupted."""
    from cronpost.app import CronpostApp

    paths = resolve_paths()
    setup_logging(verbose=verbose, log_dir=paths.logs_dir)
    config = _load(paths)
    if not verbose:
        configured = level_from_name(config.log_level)
        if configured != logging.INFO:
            setup_logging(level=configured, log_dir=paths.logs_dir)
    paths = resolve_paths(paths.home, data_dir=config.data_dir)

    if not config.server.api_key:
        logger.warning("No API key configured: every /jobs request will be rejected")

    try:
        asyncio.run(CronpostApp(config, paths).run())
    except PersistenceError:
        logger.exception("Cannot load persisted jobs")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


def _cmd_status() -> None:
    """Print the persisted jobs with their next run time."""
    paths = resolve_paths()
    config = _load(paths)
    paths = resolve_paths(paths.home, data_dir=config.data_dir)
    tz = resolve_timezone(config.timezone)

    try:
        records = JobStore(jobs_path=paths.jobs_path).load()
    except PersistenceError as exc:
        _console.print(f"[bold red]{exc}[/bold red]")
        sys.exit(1)

    if not records:
        _console.print(Panel("[dim]No jobs registered.[/dim]", title="[bold]Jobs[/bold]"))
        return

    now = datetime.now(tz)
    table = Table(title=f"Jobs ({paths.jobs_path})")
    table.add_column("ID", style="bold green")
    table.add_column("Schedule")
    table.add_column("URL")
    table.add_column("Next run")
    table.add_column("Created")
    for job_id, record in records.items():
        try:
            next_run = next_fire_after(parse(record.schedule), now).isoformat()
        except ScheduleError as exc:
            next_run = f"[red]invalid: {exc}[/red]"
        table.add_row(job_id, record.schedule, record.url, next_run, record.created_at)
    _console.print(table)


def _cmd_validate(expression: str, count: int) -> None:
    """Parse *expression* and print its next fire times."""
    paths = resolve_paths()
    tz = resolve_timezone(_load(paths).timezone) if paths.config_path.exists() else None
    try:
        rule = parse(expression)
    except ScheduleError as exc:
        _console.print(
            Panel(f"[bold red]{exc}[/bold red]", title="[bold]Invalid[/bold]", border_style="red")
        )
        sys.exit(1)

    start = datetime.now(tz) if tz else datetime.now().astimezone()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim", justify="right")
    table.add_column(style="bold")
    for idx, fire in enumerate(islice(iter_fire_times(rule, start), count), start=1):
        table.add_row(str(idx), fire.isoformat())
    _console.print(
        Panel(table, title=f"[bold]{rule.expression}[/bold]", border_style="green", padding=(1, 1))
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cronpost",
        description="Cron-scheduled HTTP POST service.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the HTTP API and scheduler (default)")
    sub.add_parser("status", help="list persisted jobs and their next run")
    validate = sub.add_parser("validate", help="check a cron expression")
    validate.add_argument("expression", help='e.g. "*/5 * * * *"')
    validate.add_argument("-n", "--count", type=int, default=5, help="fire times to show")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)
    if args.command == "status":
        _cmd_status()
    elif args.command == "validate":
        _cmd_validate(args.expression, max(args.count, 1))
    else:
        _cmd_serve(args.verbose)


if __name__ == "__main__":
    main()
