"""Recovery of sessions that ended without a session_end hook.

A marker file exists for every open session. When a new session starts,
any marker belonging to a different session means that session died
(crash, killed terminal, closed laptop). Each one is finalized from its
transcript and its marker is removed, whether or not recovery succeeded.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import cached_property
from pathlib import Path

from sessionlog import render
from sessionlog.config import SessionLogConfig
from sessionlog.lib.files import discard
from sessionlog.locator import SessionLocator, find_transcript
from sessionlog.project import get_author, get_project_name
from sessionlog.redaction import Redactor
from sessionlog.summary import extract_token_snapshots, summarize
from sessionlog.transcript import parse_transcript

logger = logging.getLogger(__name__)

# Outcomes reported per orphan
NO_TRANSCRIPT = "no-transcript"
EMPTY = "empty"
APPENDED = "appended"
SYNTHESIZED = "synthesized"


@dataclass
class RecoveryResult:
    """What happened to one orphaned session."""
    short_id: str
    outcome: str
    log_path: Path | None = None


class OrphanRecovery:
    """Finalizes abandoned sessions found in a log directory."""

    def __init__(self, locator: SessionLocator, config: SessionLogConfig,
                 redactor: Redactor, cwd: str):
        self.locator = locator
        self.config = config
        self.redactor = redactor
        self.cwd = cwd

    @cached_property
    def author(self) -> str:
        return get_author(self.cwd, self.config.author)

    @cached_property
    def project(self) -> str:
        return get_project_name(self.cwd)

    def run(self, current_session_id: str | None = None) -> list[RecoveryResult]:
        """Recover every marker not owned by ``current_session_id``.

        With no current session, every marker is treated as orphaned.
        """
        current = current_session_id[:8] if current_session_id else None
        results = []
        for sid, marker_path in self.locator.list_markers():
            if sid == current:
                continue
            try:
                results.append(self.recover_one(sid, marker_path))
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Could not recover session {sid}: {e}")
            finally:
                discard(marker_path)

        if results:
            logger.info(f"Recovered {len(results)} orphaned session(s)")
        return results

    def recover_one(self, sid: str, marker_path: Path) -> RecoveryResult:
        marker = self.locator.read_marker(marker_path)
        session_id = marker.session_id if marker else sid

        transcript = self._resolve_transcript(sid, marker.transcript_path if marker else None)
        if transcript is None:
            logger.warning(f"No transcript found for orphaned session {sid}; dropping marker")
            return RecoveryResult(sid, NO_TRANSCRIPT)

        turns = parse_transcript(transcript, default_model=self.config.default_model)
        summary = summarize(turns)
        existing = self.locator.find_log_file(sid)

        if summary.is_empty:
            discard(existing)
            return RecoveryResult(sid, EMPTY)

        now = render.now_utc()
        tokens = extract_token_snapshots(turns)
        block = render.render_summary("recovered", summary, tokens, now, self.redactor.redact)

        if existing is not None:
            if render.has_user_turn(existing.read_text(encoding="utf-8", errors="replace")):
                with open(existing, "a", encoding="utf-8") as f:
                    f.write(block)
                return RecoveryResult(sid, APPENDED, existing)
            # Placeholder only; the prompts never reached it
            discard(existing)

        # Never live-logged: rebuild the whole file from the transcript
        first_prompt = next(t.prompt_text for t in turns if t.is_prompt)
        title = render.make_title(self.redactor.redact(first_prompt), self.config.title_max_chars)
        started = (
            datetime.fromtimestamp(marker.created_at, UTC) if marker and marker.created_at else now
        )
        path = self.locator.compute_new_log_path(sid, title, now=started)
        path.parent.mkdir(parents=True, exist_ok=True)

        content = render.render_reconstructed(
            title, self.project, session_id, started, turns, self.author, self.redactor.redact,
        )
        content += block
        path.write_text(content, encoding="utf-8")
        return RecoveryResult(sid, SYNTHESIZED, path)

    def _resolve_transcript(self, sid: str, stored: str | None) -> Path | None:
        """Marker's stored path if it still exists, else a search by prefix."""
        if stored and Path(stored).is_file():
            return Path(stored)
        return find_transcript(sid, self.config.transcripts_dir)
