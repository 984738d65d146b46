"""Transcript parsing for Claude Code JSONL session files.

The host appends one JSON object per line while the session runs. This
module turns that log into an ordered list of Turns:
- user turns (raw strings or text content blocks)
- assistant turns (text blocks, tool_use blocks, model id)
- tool turns (flat tool_use records written by older hosts)

The file is re-read from scratch on every hook invocation. It may be
mid-write, so unparseable lines are skipped rather than aborting the parse.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Tools whose invocations count as modifying a file, and the input keys
# that carry the path.
FILE_EDIT_TOOLS = {
    "Edit": "file_path",
    "MultiEdit": "file_path",
    "Write": "file_path",
    "NotebookEdit": "notebook_path",
}

# Host-injected wrappers dropped from user text entirely
_STRIPPED_TAGS = (
    "system-reminder",
    "local-command-stdout",
    "local-command-stderr",
    "command-message",
    "user-prompt-submit-hook",
)

_STRIP_RE = re.compile(
    r"<(" + "|".join(_STRIPPED_TAGS) + r")>[\s\S]*?</\1>",
)
_COMMAND_NAME_RE = re.compile(r"<command-name>([\s\S]*?)</command-name>")
_COMMAND_ARGS_RE = re.compile(r"<command-args>([\s\S]*?)</command-args>")
_IDE_OPENED_RE = re.compile(r"<ide_opened_file>([\s\S]*?)</ide_opened_file>")
_IDE_SELECTION_RE = re.compile(r"<ide_selection>([\s\S]*?)</ide_selection>")
_IDE_PATH_RE = re.compile(r"(?:file|from)\s+(\S+?)(?::|\s|$)")


@dataclass
class ToolUse:
    """A single tool invocation."""
    name: str
    input: dict = field(default_factory=dict)

    @property
    def modified_path(self) -> str | None:
        """Path this invocation edits, if it is a file-editing tool."""
        key = FILE_EDIT_TOOLS.get(self.name)
        if not key:
            return None
        path = self.input.get(key)
        return path if isinstance(path, str) and path else None


@dataclass
class Turn:
    """One parsed transcript entry.

    ``role`` is "user", "assistant" or "tool". ``text`` is raw (uncleaned)
    for user turns so diagnostic blocks embedded by host commands remain
    available; use ``prompt_text`` for the human-authored part.
    """
    role: str
    text: str = ""
    tool_uses: list[ToolUse] = field(default_factory=list)
    model: str | None = None
    timestamp: str | None = None
    is_meta: bool = False

    @property
    def tools(self) -> list[str]:
        """Distinct tool names in first-use order."""
        names: list[str] = []
        for use in self.tool_uses:
            if use.name and use.name not in names:
                names.append(use.name)
        return names

    @property
    def prompt_text(self) -> str:
        """User text with host wrapper tags stripped or translated."""
        if self.role != "user":
            return ""
        return clean_user_text(self.text)

    @property
    def is_prompt(self) -> bool:
        """True for user turns carrying real human-authored text."""
        return self.role == "user" and not self.is_meta and bool(self.prompt_text)

    @property
    def has_content(self) -> bool:
        return bool(self.text.strip()) or bool(self.tool_uses)


def clean_user_text(text: str) -> str:
    """Strip host-injected wrapper tags from user text.

    IDE context tags become short bracketed notes, slash-command tags
    collapse to the command itself, and system/command-output blocks vanish.
    """
    if not text:
        return ""

    text = _STRIP_RE.sub("", text)
    text = _IDE_OPENED_RE.sub(lambda m: _ide_note("Opened file", m.group(1)), text)
    text = _IDE_SELECTION_RE.sub(lambda m: _ide_note("Selected code in", m.group(1)), text)
    text = _COMMAND_NAME_RE.sub(lambda m: m.group(1).strip(), text)
    text = _COMMAND_ARGS_RE.sub(lambda m: m.group(1).strip(), text)

    # Collapse the blank lines left behind by removed blocks
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _ide_note(label: str, body: str) -> str:
    match = _IDE_PATH_RE.search(body)
    if match:
        return f"[{label}: {match.group(1)}]"
    return f"[{label}]"


def _text_from_content(content) -> str:
    """Concatenate text from a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text", "")
            if isinstance(text, str) and text:
                parts.append(text)
    return "\n\n".join(parts)


def _tool_uses_from_content(content) -> list[ToolUse]:
    """Collect tool_use blocks, deduplicated by name within the turn."""
    if not isinstance(content, list):
        return []
    uses: list[ToolUse] = []
    seen: set[tuple[str, str]] = set()
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        name = block.get("name", "")
        tool_input = block.get("input", {})
        if not isinstance(tool_input, dict):
            tool_input = {}
        key = (name, json.dumps(tool_input, sort_keys=True, default=str))
        if not name or key in seen:
            continue
        seen.add(key)
        uses.append(ToolUse(name=name, input=tool_input))
    return uses


def parse_entry(entry: dict, default_model: str = "claude") -> Turn | None:
    """Convert one JSONL entry into a Turn, or None if it carries nothing.

    Args:
        entry: Parsed JSONL object.
        default_model: Model label when neither the entry nor its message
            names one.

    Returns:
        Turn, or None for progress/system entries and tool-result-only users.
    """
    if not isinstance(entry, dict):
        return None

    entry_type = entry.get("type", "")
    message = entry.get("message", {})
    if not isinstance(message, dict):
        message = {}
    timestamp = entry.get("timestamp")

    if entry_type == "user":
        text = _text_from_content(message.get("content", ""))
        if not text.strip():
            return None
        return Turn(
            role="user",
            text=text,
            timestamp=timestamp,
            is_meta=bool(entry.get("isMeta")),
        )

    if entry_type == "assistant":
        content = message.get("content", "")
        model = entry.get("model") or message.get("model") or default_model
        return Turn(
            role="assistant",
            text=_text_from_content(content),
            tool_uses=_tool_uses_from_content(content),
            model=model,
            timestamp=timestamp,
        )

    if entry_type == "tool_use":
        # Flat legacy record: {"type": "tool_use", "name": ..., "input": ...}
        name = entry.get("name") or entry.get("tool_name") or ""
        tool_input = entry.get("input") or entry.get("tool_input") or {}
        if not name:
            return None
        if not isinstance(tool_input, dict):
            tool_input = {}
        return Turn(
            role="tool",
            tool_uses=[ToolUse(name=name, input=tool_input)],
            timestamp=timestamp,
        )

    return None


def parse_lines(lines, default_model: str = "claude") -> list[Turn]:
    """Parse an iterable of JSONL lines, skipping blank and malformed ones."""
    turns: list[Turn] = []
    skipped = 0
    for raw_line in lines:
        raw_line = raw_line.strip()
        if not raw_line:
            continue
        try:
            entry = json.loads(raw_line)
        except json.JSONDecodeError:
            skipped += 1
            continue
        turn = parse_entry(entry, default_model=default_model)
        if turn is not None:
            turns.append(turn)

    if skipped:
        logger.debug(f"Skipped {skipped} malformed transcript lines")
    return turns


def parse_transcript(path: str | Path | None, default_model: str = "claude") -> list[Turn]:
    """Read and parse a transcript file.

    A missing path yields an empty list, not an error; the host may not have
    created the file yet.
    """
    if not path:
        return []
    path = Path(path)
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return parse_lines(f, default_model=default_model)
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Could not read transcript {path}: {e}")
        return []


def turns_since_last_prompt(turns: list[Turn]) -> list[Turn]:
    """Assistant turns after the most recent genuine user prompt.

    One response hook can cover several assistant entries, since tool-only
    assistant messages interleave with tool results between prompts.
    Assistant entries with neither text nor tools (thinking-only) are left
    out. With no prompt at all, every assistant turn qualifies.
    """
    start = 0
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].is_prompt:
            start = index + 1
            break

    return [
        turn for turn in turns[start:]
        if turn.role == "assistant" and turn.has_content
    ]


def last_assistant_text(turns: list[Turn]) -> str:
    """Text of the final assistant turn that has any."""
    for turn in reversed(turns):
        if turn.role == "assistant" and turn.text.strip():
            return turn.text.strip()
    return ""
