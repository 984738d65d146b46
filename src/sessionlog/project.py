"""Project and author identification for session log headers."""

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "User"

# git@host:org/repo(.git) and https://host/org/repo(.git)
_REMOTE_RE = re.compile(r"(?:^[^@/\s]+@[^:/\s]+:|[:/])([^/:\s]+/[^/\s]+?)(?:\.git)?/?$")


def _git(cwd: str, *args: str) -> str | None:
    """Stripped stdout of a git command run in ``cwd``, or None on any failure."""
    try:
        result = subprocess.run(
            ["git", "-C", cwd or ".", *args],
            capture_output=True, text=True, timeout=2,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"git {' '.join(args)} failed in {cwd}: {e}")
        return None
    out = result.stdout.strip()
    return out if result.returncode == 0 and out else None


def get_project_name(cwd: str) -> str:
    """Label for the log header.

    The ``org/repo`` part of the ``origin`` remote when the session runs in
    a git checkout, else the working directory's name.
    """
    url = _git(cwd, "remote", "get-url", "origin") if cwd else None
    match = _REMOTE_RE.search(url) if url else None
    if match:
        return match.group(1)
    return Path(cwd).name or cwd


def get_author(cwd: str, configured: str | None = None) -> str:
    """Name attributed to user turns.

    Order: configured value, then ``git config user.name``, then "User".
    """
    if configured and configured.strip():
        return configured.strip()
    name = _git(cwd, "config", "user.name")
    if name:
        return name
    logger.debug("No author configured; using generic label")
    return DEFAULT_AUTHOR
