"""Configuration for sessionlog.

Environment Variables:
    - SESSIONLOG_LOG_SUBDIR: Log directory relative to the session cwd
      (default: .claude/session-logs)
    - SESSIONLOG_AUTHOR: Name attributed to user turns (default: git user.name)
    - SESSIONLOG_DEBUG_EVENTS: Write every hook event to .debug/hook_events.jsonl

    Race tolerance (seconds / attempts):
    - SESSIONLOG_RESPONSE_INITIAL_DELAY, SESSIONLOG_RESPONSE_RETRY_ATTEMPTS,
      SESSIONLOG_RESPONSE_RETRY_DELAY
    - SESSIONLOG_SUBAGENT_RETRY_ATTEMPTS, SESSIONLOG_SUBAGENT_RETRY_DELAY
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionLogConfig(BaseSettings):
    """sessionlog configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SESSIONLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Storage
    # =========================================================================
    log_subdir: Path = Field(
        default=Path(".claude") / "session-logs",
        description="Directory for session logs, relative to the session cwd",
    )

    transcripts_dir: Path = Field(
        default=Path.home() / ".claude" / "projects",
        description="Where host transcripts live; searched when a marker's path is stale",
    )

    # =========================================================================
    # Rendering
    # =========================================================================
    author: str | None = Field(
        default=None,
        description="Name attributed to user turns (falls back to git user.name)",
    )
    default_model: str = Field(
        default="claude",
        description="Model label used when a transcript entry names none",
    )
    placeholder_title: str = Field(
        default="New Session",
        description="Provisional title until the first prompt arrives",
    )
    slug_max_words: int = Field(default=6, description="Word cap for filename slugs")
    title_max_chars: int = Field(default=60, description="Cap on generated titles")
    subagent_excerpt_chars: int = Field(
        default=500,
        description="Max characters of a subagent's final output to include",
    )

    # =========================================================================
    # Cross-process race tolerance
    # =========================================================================
    # The transcript writer can lag behind the hook that reports on it, and
    # subagent start/stop hooks can run concurrently. Both are read with a
    # bounded retry loop.
    response_initial_delay: float = Field(
        default=0.5,
        description="Seconds to wait before the first transcript read on response",
    )
    response_retry_attempts: int = Field(default=3, description="Transcript read attempts")
    response_retry_delay: float = Field(default=0.5, description="Seconds between attempts")
    subagent_retry_attempts: int = Field(default=5, description="Side-file read attempts")
    subagent_retry_delay: float = Field(default=0.1, description="Seconds between attempts")

    # =========================================================================
    # Diagnostics
    # =========================================================================
    debug_events: bool = Field(
        default=False,
        description="Append every hook event to <log_dir>/.debug/hook_events.jsonl",
    )

    def log_dir_for(self, cwd: str | Path) -> Path:
        """Resolve the log directory for a session working directory."""
        return Path(cwd) / self.log_subdir
