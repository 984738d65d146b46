"""Mapping between session IDs and files in the log directory.

Layout of a log directory:
    {UTC minute}Z-{slug}-{short_id}.md    one markdown log per session
    .active-{short_id}.json               marker: session open (maybe abandoned)
    .subagent-{agent_id}.json             subagent type side-file (see sidecar)

Only the first 8 characters of a session ID are used on disk. The host must
supply IDs whose 8-character prefix is unique among sessions sharing a log
directory (UUID4 session IDs satisfy this in practice). Nothing here checks
for collisions beyond warning when two logs share a suffix.
"""

import json
import logging
import re
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from sessionlog.lib.files import atomic_write_text, discard
from sessionlog.redaction import Redactor

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 8
MARKER_PREFIX = ".active-"
MARKER_SUFFIX = ".json"
DEFAULT_SLUG = "session"


def short_id(session_id: str) -> str:
    """First 8 characters of a session ID (all of it if shorter)."""
    return session_id[:SHORT_ID_LENGTH]


def utc_stamp(now: datetime | None = None) -> str:
    """Filename timestamp: UTC, minute precision, Z suffix."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).strftime("%Y-%m-%dT%H-%MZ")


def slugify(title: str | None, max_words: int = 6) -> str:
    """Turn a title into a filename-safe slug.

    Lowercases, drops non-word characters, and joins at most ``max_words``
    words with single hyphens. Falls back to "session" when nothing is left.
    The caller is responsible for redacting the title first.
    """
    if not title:
        return DEFAULT_SLUG
    cleaned = re.sub(r"[^\w\s-]", " ", title.lower())
    words = [w for w in re.split(r"[\s\-]+", cleaned) if w]
    if not words:
        return DEFAULT_SLUG
    return "-".join(words[:max(1, max_words)])


@dataclass
class Marker:
    """Contents of an active-session marker file."""
    session_id: str
    transcript_path: str | None = None
    created_at: float = field(default_factory=time.time)


class SessionLocator:
    """Finds and names the files belonging to sessions in one log directory."""

    def __init__(self, log_dir: Path, redactor: Redactor | None = None, slug_max_words: int = 6):
        self.log_dir = Path(log_dir)
        self.redactor = redactor or Redactor()
        self.slug_max_words = slug_max_words

    # -------------------------------------------------------------------------
    # Log files
    # -------------------------------------------------------------------------

    def find_log_file(self, sid: str) -> Path | None:
        """The log whose name ends with ``-{sid}.md``.

        Several matches mean a short-ID collision or a leftover from a
        failed rename. The most recently modified file wins.
        """
        if not self.log_dir.is_dir():
            return None

        suffix = f"-{sid}.md"
        matches = [
            p for p in self.log_dir.iterdir()
            if p.name.endswith(suffix) and not p.name.startswith(".") and p.is_file()
        ]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} log files end with {suffix}; using the most recently modified"
            )
            matches.sort(key=_mtime, reverse=True)
        return matches[0]

    def compute_new_log_path(self, sid: str, title: str | None = None,
                             now: datetime | None = None) -> Path:
        """Path for a new (or renamed) log file.

        The title is redacted before slugging, since filenames persist.
        """
        slug = slugify(self.redactor.redact(title), self.slug_max_words) if title else DEFAULT_SLUG
        return self.log_dir / f"{utc_stamp(now)}-{slug}-{sid}.md"

    def log_files(self) -> list[Path]:
        """All session logs in the directory, oldest name first."""
        if not self.log_dir.is_dir():
            return []
        return sorted(
            p for p in self.log_dir.glob("*.md")
            if p.is_file() and not p.name.startswith(".")
        )

    # -------------------------------------------------------------------------
    # Markers
    # -------------------------------------------------------------------------

    def marker_path(self, sid: str) -> Path:
        return self.log_dir / f"{MARKER_PREFIX}{sid}{MARKER_SUFFIX}"

    def write_marker(self, session_id: str, transcript_path: str | None) -> Path:
        """Write (or overwrite) the marker for a session. Last writer wins."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.marker_path(short_id(session_id))
        marker = Marker(session_id=session_id, transcript_path=transcript_path)
        atomic_write_text(path, json.dumps(asdict(marker), indent=2))
        return path

    def read_marker(self, path: Path) -> Marker | None:
        """Load a marker file, or None if it is unreadable."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Marker(**{
                k: v for k, v in data.items()
                if k in Marker.__dataclass_fields__
            })
        except (ValueError, TypeError, OSError) as e:
            logger.warning(f"Could not read marker {path.name}: {e}")
            return None

    def list_markers(self) -> list[tuple[str, Path]]:
        """(short_id, path) for every marker in the directory."""
        if not self.log_dir.is_dir():
            return []
        markers = []
        for path in sorted(self.log_dir.glob(f"{MARKER_PREFIX}*{MARKER_SUFFIX}")):
            sid = path.name[len(MARKER_PREFIX):-len(MARKER_SUFFIX)]
            if sid:
                markers.append((sid, path))
        return markers

    def delete_marker(self, sid: str) -> bool:
        return discard(self.marker_path(sid))


def find_transcript(sid: str, search_dir: Path) -> Path | None:
    """Search the host's transcript tree for ``{sid}*.jsonl``.

    Used when a marker's stored transcript path is missing or stale.
    Picks the most recently modified match.
    """
    if not sid or not search_dir.is_dir():
        return None
    try:
        matches = [p for p in search_dir.glob(f"*/{sid}*.jsonl") if p.is_file()]
        matches.extend(p for p in search_dir.glob(f"{sid}*.jsonl") if p.is_file())
    except OSError as e:
        logger.debug(f"Transcript search in {search_dir} failed: {e}")
        return None
    if not matches:
        return None
    return max(matches, key=_mtime)


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0
