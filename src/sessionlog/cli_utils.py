"""Shared utilities for sessionlog CLI commands."""

import logging
import sys

from rich.console import Console

from sessionlog.errors import HookInputError, SessionLogError

console = Console()
# Hooks must keep stdout clean for the host
err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    """Set up logging configuration (always to stderr)."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def handle_error(e: Exception) -> None:
    """Report an error on stderr and exit non-zero."""
    if isinstance(e, HookInputError):
        err_console.print(f"[red]Invalid hook input:[/red] {e}")
    elif isinstance(e, SessionLogError):
        err_console.print(f"[red]Error:[/red] {e}")
    else:
        err_console.print(f"[red]Unexpected Error:[/red] {e}")
    sys.exit(1)
