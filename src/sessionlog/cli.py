"""CLI interface for sessionlog.

The host runs ``sessionlog hook <event>`` for every lifecycle event, with
the event payload as JSON on stdin. The other commands are for humans.
"""

import logging
import sys
from pathlib import Path

import click
from rich.table import Table

from sessionlog import render
from sessionlog.cli_utils import console, handle_error, setup_logging
from sessionlog.config import SessionLogConfig
from sessionlog.errors import HookInputError
from sessionlog.locator import SessionLocator
from sessionlog.models import HookEvent, parse_payload
from sessionlog.recorder import SessionRecorder
from sessionlog.recovery import OrphanRecovery
from sessionlog.redaction import Redactor

logger = logging.getLogger(__name__)

EVENT_NAMES = [event.value for event in HookEvent]


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """sessionlog - capture AI assistant sessions as markdown logs.

    Configuration (environment):
      SESSIONLOG_LOG_SUBDIR     - Log directory relative to the session cwd
      SESSIONLOG_AUTHOR         - Name shown on user turns
      SESSIONLOG_DEBUG_EVENTS   - Record every hook event for debugging
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@main.command()
@click.argument("event", type=click.Choice(EVENT_NAMES))
def hook(event: str) -> None:
    """Handle one hook EVENT with its JSON payload on stdin."""
    try:
        payload = parse_payload(sys.stdin.read(), HookEvent(event))
    except HookInputError as e:
        handle_error(e)
        return

    try:
        SessionRecorder(payload, SessionLogConfig()).dispatch(HookEvent(event))
    except Exception as e:
        # Only bad input fails a hook; anything else must not disturb the host session
        logger.error(f"{event} hook failed: {e}", exc_info=True)


@main.command("list")
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path), default=Path("."),
              help="Project directory (default: current)")
def list_logs(cwd: Path) -> None:
    """List session logs for a project."""
    config = SessionLogConfig()
    locator = SessionLocator(config.log_dir_for(cwd))
    logs = locator.log_files()
    if not logs:
        console.print(f"[dim]No session logs in {locator.log_dir}[/dim]")
        return

    active = {sid for sid, _ in locator.list_markers()}

    table = Table(title="Session Logs")
    table.add_column("File", style="cyan")
    table.add_column("Title")
    table.add_column("Prompts", justify="right", style="green")
    table.add_column("Active")

    for path in logs:
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        first_line = content.split("\n", 1)[0]
        title = first_line.removeprefix("# ").rsplit(" (", 1)[0]
        prompts = len(render.USER_TURN_RE.findall(content))
        sid = path.stem.rsplit("-", 1)[-1]
        table.add_row(path.name, title, str(prompts), "●" if sid in active else "")

    console.print(table)


@main.command()
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path), default=Path("."),
              help="Project directory (default: current)")
def recover(cwd: Path) -> None:
    """Finalize every session that still has an active marker."""
    config = SessionLogConfig()
    redactor = Redactor()
    locator = SessionLocator(config.log_dir_for(cwd), redactor, config.slug_max_words)
    results = OrphanRecovery(locator, config, redactor, str(cwd)).run(None)

    if not results:
        console.print("[dim]No orphaned sessions.[/dim]")
        return
    for result in results:
        target = result.log_path.name if result.log_path else "-"
        console.print(f"[cyan]{result.short_id}[/cyan] {result.outcome} {target}")


if __name__ == "__main__":
    main()
