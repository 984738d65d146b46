"""Hook event dispatcher: turns lifecycle events into session log updates.

One SessionRecorder handles exactly one hook invocation. Nothing is kept
in memory between invocations; every decision is made from what is on
disk (the log file, its marker, the host transcript).

Per-session lifecycle:
    session_start   recover orphans, sweep stale placeholders, create log + marker
    prompt          retitle/rename on first prompt, append user turn
    response        append assistant turn(s) since the last prompt
    session_end     append summary and drop marker (or delete an empty log)
    pre_compact     append summary + conversation snapshot, session stays open
"""

import logging
import re
import time
from collections.abc import Callable
from datetime import datetime
from functools import cached_property
from pathlib import Path

from sessionlog import render
from sessionlog.config import SessionLogConfig
from sessionlog.event_log import EventLog
from sessionlog.lib.files import discard
from sessionlog.lib.retry import retry
from sessionlog.locator import DEFAULT_SLUG, SessionLocator, short_id
from sessionlog.models import HookEvent, HookPayload
from sessionlog.project import get_author, get_project_name
from sessionlog.recovery import OrphanRecovery
from sessionlog.redaction import Redactor
from sessionlog.sidecar import UNKNOWN_TYPE, FileStore, KeyValueStore, read_with_retry
from sessionlog.summary import extract_token_snapshots, summarize
from sessionlog.transcript import (
    Turn,
    clean_user_text,
    last_assistant_text,
    parse_transcript,
    turns_since_last_prompt,
)

logger = logging.getLogger(__name__)

# Filenames that never got past the placeholder slug
_GENERIC_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}Z-" + DEFAULT_SLUG + r"-[^-]+\.md$")


class SessionRecorder:
    """Applies one hook event to the session log directory."""

    def __init__(
        self,
        payload: HookPayload,
        config: SessionLogConfig | None = None,
        redactor: Redactor | None = None,
        store: KeyValueStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = render.now_utc,
    ):
        self.payload = payload
        self.config = config or SessionLogConfig()
        self.redactor = redactor or Redactor()
        self.log_dir = self.config.log_dir_for(payload.cwd)
        self.locator = SessionLocator(self.log_dir, self.redactor, self.config.slug_max_words)
        self.store = store if store is not None else FileStore(self.log_dir)
        self.events = EventLog(self.log_dir, self.redactor, enabled=self.config.debug_events)
        self.sleep = sleep
        self.clock = clock
        self.sid = short_id(payload.session_id)

    @cached_property
    def author(self) -> str:
        return get_author(self.payload.cwd, self.config.author)

    @cached_property
    def project(self) -> str:
        return get_project_name(self.payload.cwd)

    def redact(self, text: str | None) -> str:
        return self.redactor.redact(text) or ""

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, event: HookEvent) -> None:
        """Run the handler for ``event``."""
        self.events.record(event.value, self.payload.session_id,
                           self.payload.model_dump(exclude_none=True))
        handler = getattr(self, f"on_{event.value}")
        handler()

    def on_session_start(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # Markers are the only trace a dead session leaves, so recovery runs
        # before anything else touches the directory.
        try:
            OrphanRecovery(self.locator, self.config, self.redactor, self.payload.cwd).run(
                self.payload.session_id,
            )
            self._sweep_stale_logs()
        except Exception as e:
            # Housekeeping is best-effort; never block this session's own log and marker
            logger.warning(f"Housekeeping at session start failed: {e}", exc_info=True)

        if self.locator.find_log_file(self.sid) is None:
            self._create_log(self.config.placeholder_title)

        self.locator.write_marker(self.payload.session_id, self.payload.transcript_path)

    def on_prompt(self) -> None:
        text = self.redact(clean_user_text(self.payload.prompt or ""))
        if not text:
            logger.debug(f"Empty prompt for session {self.sid}; nothing to log")
            return

        now = self.clock()
        path = self.locator.find_log_file(self.sid)
        if path is None:
            logger.warning(f"No log for session {self.sid} at prompt time; creating one")
            path = self._create_log(render.make_title(text, self.config.title_max_chars))
        else:
            path = self._promote_placeholder(path, text)

        self._append(path, render.render_user_turn(self.author, text, now))

    def on_response(self) -> None:
        path = self.locator.find_log_file(self.sid)
        if path is None:
            logger.warning(f"No log for session {self.sid}; dropping response")
            return

        # The host may still be flushing the assistant entry to the transcript
        self.sleep(self.config.response_initial_delay)
        turns = retry(
            self._pending_response_turns,
            attempts=self.config.response_retry_attempts,
            delay=self.config.response_retry_delay,
            sleep=self.sleep,
        )

        now = self.clock()
        if not turns:
            logger.warning(f"No assistant turns found for session {self.sid}")
            self._append(path, render.render_no_response(now))
            return

        chunks = [
            render.render_assistant_turn(
                turn.model or self.config.default_model, self.redact(turn.text), turn.tools, now,
            )
            for turn in turns
        ]
        self._append(path, "".join(chunks))

    def on_session_end(self) -> None:
        """Close the session with a summary, or remove it if it was empty.

        The transcript decides whether the session was empty. The one
        exception is a transcript that is not there at all (no path, or the
        file is gone) while the log already holds live user turns: that log
        is kept as it is and only the marker is removed.
        """
        turns = self._transcript()
        summary = summarize(turns)
        path = self.locator.find_log_file(self.sid)

        if summary.is_empty:
            if (path is not None and not self._transcript_exists()
                    and render.has_user_turn(self._read_log(path))):
                logger.warning(f"No transcript for session {self.sid}; keeping its live log")
            else:
                # A session nobody typed into leaves no trace
                discard(path)
            self.locator.delete_marker(self.sid)
            return

        now = self.clock()
        if path is None:
            path = self._create_reconstructed_log(turns)

        tokens = extract_token_snapshots(turns)
        self._append(path, render.render_summary("ended", summary, tokens, now, self.redact))
        self.locator.delete_marker(self.sid)

    def on_pre_compact(self) -> None:
        turns = self._transcript()
        summary = summarize(turns)
        tokens = extract_token_snapshots(turns)
        now = self.clock()

        path = self._ensure_log()
        block = render.render_summary("captured", summary, tokens, now, self.redact)
        block += "### Conversation\n\n"
        block += render.render_turns(turns, self.author, self.redact, now) or "_(empty)_\n\n"
        self._append(path, block)

    def on_permission_request(self) -> None:
        path = self._ensure_log()
        p = self.payload
        self._append(path, render.render_permission(
            self.redact(p.tool_name) or "unknown",
            self.redact(p.tool_description) or None,
            self.redact(p.tool_file_path) or None,
            self.clock(),
        ))

    def on_subagent_start(self) -> None:
        agent_type = self.payload.agent_type or UNKNOWN_TYPE
        # Stored first, unconditionally: the stop hook depends on it even
        # when there is no log to write to yet.
        self.store.put(self.payload.agent_id, agent_type)

        path = self.locator.find_log_file(self.sid)
        if path is None:
            logger.debug(f"No log for session {self.sid}; subagent start not logged")
            return
        self._append(path, render.render_subagent_start(self.redact(agent_type), self.clock()))

    def on_subagent_stop(self) -> None:
        agent_type = read_with_retry(
            self.store,
            self.payload.agent_id,
            attempts=self.config.subagent_retry_attempts,
            delay=self.config.subagent_retry_delay,
            sleep=self.sleep,
        ) or self.payload.agent_type or UNKNOWN_TYPE

        path = self.locator.find_log_file(self.sid)
        if path is None:
            logger.debug(f"No log for session {self.sid}; subagent stop not logged")
            return
        self._append(path, render.render_subagent_stop(
            self.redact(agent_type), self._subagent_excerpt(), self.clock(),
        ))

    def on_pre_tool_use(self) -> None:
        pass

    def on_post_tool_use(self) -> None:
        pass

    def on_notification(self) -> None:
        pass

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _transcript(self) -> list[Turn]:
        return parse_transcript(self.payload.transcript_path, default_model=self.config.default_model)

    def _transcript_exists(self) -> bool:
        path = self.payload.transcript_path
        return bool(path) and Path(path).is_file()

    def _pending_response_turns(self) -> list[Turn]:
        return turns_since_last_prompt(self._transcript())

    def _create_log(self, title: str) -> Path:
        now = self.clock()
        slug_title = None if title == self.config.placeholder_title else title
        path = self.locator.compute_new_log_path(self.sid, slug_title, now=now)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            render.render_header(title, self.project, self.payload.session_id, now,
                                 self.payload.permission_mode),
            encoding="utf-8",
        )
        return path

    def _create_reconstructed_log(self, turns: list[Turn]) -> Path:
        """Build a log from the transcript when live logging never happened."""
        now = self.clock()
        first_prompt = next((t.prompt_text for t in turns if t.is_prompt), "")
        title = render.make_title(self.redact(first_prompt), self.config.title_max_chars)
        path = self.locator.compute_new_log_path(self.sid, title, now=now)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render.render_reconstructed(
            title, self.project, self.payload.session_id, now, turns, self.author, self.redact,
            permission_mode=self.payload.permission_mode,
        ), encoding="utf-8")
        return path

    def _ensure_log(self) -> Path:
        path = self.locator.find_log_file(self.sid)
        if path is None:
            path = self._create_log(self.config.placeholder_title)
        return path

    def _promote_placeholder(self, path: Path, prompt: str) -> Path:
        """On the first prompt, retitle the header and rename the file."""
        content = self._read_log(path)
        if render.has_user_turn(content):
            return path

        title = render.make_title(prompt, self.config.title_max_chars)
        updated = render.replace_title(content, self.config.placeholder_title, title)
        if updated != content:
            path.write_text(updated, encoding="utf-8")

        new_path = self.locator.compute_new_log_path(self.sid, title, now=self.clock())
        if new_path == path:
            return path
        try:
            path.rename(new_path)
        except OSError as e:
            logger.warning(f"Could not rename {path.name} to {new_path.name}: {e}")
            return path
        return new_path

    def _sweep_stale_logs(self) -> None:
        """Delete placeholder logs from other sessions that never got a prompt.

        Catches crashes from before markers existed. Best effort.
        """
        placeholder = f"# {self.config.placeholder_title} ("
        own_suffix = f"-{self.sid}.md"
        for path in self.locator.log_files():
            if path.name.endswith(own_suffix):
                continue
            content = self._read_log(path)
            is_stale = content.startswith(placeholder) or _GENERIC_NAME_RE.match(path.name)
            if is_stale and not render.has_user_turn(content):
                if discard(path):
                    logger.info(f"Removed stale session log {path.name}")

    def _subagent_excerpt(self) -> str | None:
        """Tail of the subagent's final output, redacted then bounded."""
        path = self.payload.agent_transcript_path
        if not path:
            return None
        text = last_assistant_text(parse_transcript(path, default_model=self.config.default_model))
        if not text:
            return None
        text = self.redact(text)
        limit = self.config.subagent_excerpt_chars
        if len(text) > limit:
            text = text[:limit].rstrip() + "…"
        return text

    @staticmethod
    def _read_log(path: Path) -> str:
        """Log content for inspection; undecodable bytes are replaced, unreadable files read as empty."""
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Could not read {path.name}: {e}")
            return ""

    @staticmethod
    def _append(path: Path, text: str) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)
