"""Session-level aggregates derived from parsed transcript turns.

Two pure reductions:
- summarize(): prompt count, tools used, files modified, full turn list
- extract_token_snapshots(): context-usage reports the user requested
  during the session (the /context command output)
"""

import logging
import re
from dataclasses import dataclass, field

from sessionlog.transcript import Turn

logger = logging.getLogger(__name__)

# The host wraps local command output in these markers. Only blocks that
# carry a token usage line are treated as snapshots.
TOKEN_BLOCK_RE = re.compile(
    r"<local-command-stdout>([\s\S]*?)</local-command-stdout>",
)
_MODEL_RE = re.compile(r"^\s*\**Model:?\**:?\s*`?([^\s`*]+)`?", re.MULTILINE)
_TOKENS_RE = re.compile(
    r"\**Tokens:?\**:?\s*([\d.,]+k?)\s*/\s*([\d.,]+k?)\s*(?:tokens\s*)?\((\d+(?:\.\d+)?)%\)",
    re.IGNORECASE,
)
_TABLE_ROW_RE = re.compile(r"^\s*\|(.+)\|\s*$", re.MULTILINE)
_SEPARATOR_CELL_RE = re.compile(r"^:?-{2,}:?$")


@dataclass
class SessionSummary:
    """Aggregates for one session."""
    prompts_count: int = 0
    tools_used: list[str] = field(default_factory=list)
    files_modified: list[str] = field(default_factory=list)
    turns: list[Turn] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.prompts_count == 0


@dataclass
class TokenCategory:
    """One row of the category breakdown table."""
    name: str
    tokens: str
    percentage: str = ""


@dataclass
class TokenSnapshot:
    """One context-usage report, values kept exactly as printed."""
    model: str | None = None
    tokens_used: str = ""
    tokens_max: str = ""
    tokens_percentage: str = ""
    categories: list[TokenCategory] = field(default_factory=list)


@dataclass
class TokenData:
    """All snapshots in a session; the last one is the current reading."""
    snapshots: list[TokenSnapshot] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.snapshots)

    @property
    def current(self) -> TokenSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None

    @property
    def model(self) -> str | None:
        return self.current.model if self.current else None

    @property
    def tokens_used(self) -> str | None:
        return self.current.tokens_used if self.current else None

    @property
    def tokens_max(self) -> str | None:
        return self.current.tokens_max if self.current else None

    @property
    def tokens_percentage(self) -> str | None:
        return self.current.tokens_percentage if self.current else None


def summarize(turns: list[Turn]) -> SessionSummary:
    """Reduce a turn list to session aggregates.

    Tool names come from both flat tool turns and tool_use blocks inside
    assistant turns, since either shape can appear in a transcript.
    """
    summary = SessionSummary(turns=list(turns))

    for turn in turns:
        if turn.is_prompt:
            summary.prompts_count += 1

        if turn.role not in ("assistant", "tool"):
            continue
        for use in turn.tool_uses:
            if use.name and use.name not in summary.tools_used:
                summary.tools_used.append(use.name)
            path = use.modified_path
            if path and path not in summary.files_modified:
                summary.files_modified.append(path)

    summary.tools_used.sort()
    return summary


def parse_token_block(block: str) -> TokenSnapshot | None:
    """Parse one diagnostic block, or None if it has no token usage line."""
    tokens = _TOKENS_RE.search(block)
    if not tokens:
        return None

    snapshot = TokenSnapshot(
        tokens_used=tokens.group(1),
        tokens_max=tokens.group(2),
        tokens_percentage=tokens.group(3),
    )

    model = _MODEL_RE.search(block)
    if model:
        snapshot.model = model.group(1)

    snapshot.categories = _parse_category_table(block)
    return snapshot


def _parse_category_table(block: str) -> list[TokenCategory]:
    rows = [
        [cell.strip() for cell in row.group(1).split("|")]
        for row in _TABLE_ROW_RE.finditer(block)
    ]

    def is_separator(cells: list[str]) -> bool:
        return all(_SEPARATOR_CELL_RE.match(cell) for cell in cells if cell)

    categories: list[TokenCategory] = []
    for index, cells in enumerate(rows):
        if not cells or not cells[0] or is_separator(cells):
            continue
        # A row directly above a separator is a header
        if index + 1 < len(rows) and is_separator(rows[index + 1]):
            continue
        categories.append(TokenCategory(
            name=cells[0],
            tokens=cells[1] if len(cells) > 1 else "",
            percentage=cells[2] if len(cells) > 2 else "",
        ))
    return categories


def extract_token_snapshots(turns: list[Turn]) -> TokenData:
    """Collect every context-usage report found in user turns, in order."""
    data = TokenData()
    for turn in turns:
        if turn.role != "user" or "local-command-stdout" not in turn.text:
            continue
        for match in TOKEN_BLOCK_RE.finditer(turn.text):
            snapshot = parse_token_block(match.group(1))
            if snapshot is not None:
                data.snapshots.append(snapshot)

    if data.count > 1:
        logger.debug(f"Found {data.count} token snapshots, reporting the last")
    return data
