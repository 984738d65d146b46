"""Filesystem helpers shared by the locator, side-file store and recorder."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def discard(path: Path | None) -> bool:
    """Delete a file, swallowing any error.

    Used for cleanup whose failure must never reach the host session.

    Returns:
        True if the file was removed.
    """
    if path is None:
        return False
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not delete {path}: {e}")
        return False


def atomic_write_text(path: Path, text: str) -> None:
    """Write text via tmp+rename so readers never see a partial file."""
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)
