"""Side-channel between subagent start and stop hooks.

A subagent's type is only known when it starts but is reported when it
stops, and the two hooks run as separate, possibly concurrent processes.
The start hook stores the type under the subagent's ID; the stop hook
reads it back with a bounded retry and then deletes it.

Files live at <log_dir>/.subagent-{agent_id}.json.
"""

import json
import logging
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from sessionlog.lib.files import atomic_write_text, discard
from sessionlog.lib.retry import retry

logger = logging.getLogger(__name__)

SIDECAR_PREFIX = ".subagent-"
UNKNOWN_TYPE = "Unknown"


class KeyValueStore(Protocol):
    """Minimal store used for start/stop correlation."""

    def put(self, key: str, value: str) -> None: ...

    def get(self, key: str) -> str | None: ...

    def delete(self, key: str) -> None: ...


class FileStore:
    """One small JSON file per key."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        # Agent IDs come from the host; keep them filename-safe
        safe = re.sub(r"[^\w\-]", "_", key)
        return self.directory / f"{SIDECAR_PREFIX}{safe}.json"

    def put(self, key: str, value: str) -> None:
        """Write atomically so a concurrent reader never sees half a file."""
        self.directory.mkdir(parents=True, exist_ok=True)
        data = {"value": value, "ts": time.time()}
        atomic_write_text(self.path_for(key), json.dumps(data))

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (ValueError, OSError) as e:
            logger.debug(f"Side-file {path.name} not readable yet: {e}")
            return None
        value = data.get("value") if isinstance(data, dict) else None
        return value if isinstance(value, str) else None

    def delete(self, key: str) -> None:
        discard(self.path_for(key))


class MemoryStore:
    """Dict-backed store for tests and in-process use."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def put(self, key: str, value: str) -> None:
        self.data[key] = value

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def read_with_retry(
    store: KeyValueStore,
    key: str,
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> str | None:
    """Read a key, retrying while the writer may still be in flight.

    The entry is deleted once read. Returns None if it never appears.
    """
    value = retry(lambda: store.get(key), attempts=attempts, delay=delay, sleep=sleep)
    if value is None:
        logger.warning(f"No subagent type recorded for {key} after {attempts} attempts")
        return None
    try:
        store.delete(key)
    except OSError as e:
        logger.debug(f"Could not remove side entry {key}: {e}")
    return value
