"""Diagnostic JSONL log of hook events.

Off by default (SESSIONLOG_DEBUG_EVENTS=1 to enable). One line per event in
<log_dir>/.debug/hook_events.jsonl, rotated at 10MB. Payloads are redacted
and oversized fields truncated. Failures never reach the caller.
"""

import json
import logging
import time
from pathlib import Path

from sessionlog.redaction import Redactor

logger = logging.getLogger(__name__)

DEBUG_SUBDIR = ".debug"
EVENTS_FILE = "hook_events.jsonl"
MAX_BYTES = 10_000_000
MAX_FIELD_CHARS = 2000


class EventLog:
    """Append-only debug channel for hook events."""

    def __init__(self, log_dir: Path, redactor: Redactor, enabled: bool = False):
        self.path = Path(log_dir) / DEBUG_SUBDIR / EVENTS_FILE
        self.redactor = redactor
        self.enabled = enabled

    def record(self, event: str, session_id: str, payload: dict | None = None) -> None:
        """Append one event line if the channel is enabled."""
        if not self.enabled:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            entry = {
                "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "event": event,
                "session_id": session_id[:8] if session_id else "",
            }
            if payload:
                entry["payload"] = self._scrub(payload)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except Exception as e:
            # Never break a hook because of diagnostics
            logger.debug(f"Could not record {event} event: {e}")

    def _rotate_if_needed(self) -> None:
        if self.path.exists() and self.path.stat().st_size > MAX_BYTES:
            rotated = self.path.with_suffix(".jsonl.1")
            rotated.unlink(missing_ok=True)
            self.path.rename(rotated)

    def _scrub(self, payload: dict) -> dict:
        """Redact and truncate a copy of the payload."""
        scrubbed = {}
        for key, value in payload.items():
            text = value if isinstance(value, str) else json.dumps(value, default=str)
            text = self.redactor.redact(text) or ""
            if len(text) > MAX_FIELD_CHARS:
                text = text[:MAX_FIELD_CHARS] + "..."
            scrubbed[key] = text
        return scrubbed
