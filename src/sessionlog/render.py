"""Markdown fragments written to session logs.

All functions are pure: they take already-redacted text and return strings.
A log file looks like:

    # {title} ({start} UTC)

    **Project:** org/repo
    **Session ID:** 1234abcd-...
    **Started:** 2026-01-05T14:03:11Z
    **Permission Mode:** default

    ---

    _🧑 **Alice** · 14:03:20 UTC_

    prompt text

    _🤖 claude-sonnet-4-5 · 14:03:41 UTC_

    response text

    _Tools used: Edit, Bash_

    ---

    ## 🏁 Session Ended
    ...
"""

import re
from datetime import UTC, datetime

from sessionlog.summary import SessionSummary, TokenData
from sessionlog.transcript import Turn

# Line-start prefix of every rendered user turn. Its presence in a log is
# the signal that the session has received a real prompt.
USER_TURN_PREFIX = "_🧑 "
ASSISTANT_TURN_PREFIX = "_🤖 "
USER_TURN_RE = re.compile(r"^" + re.escape(USER_TURN_PREFIX), re.MULTILINE)

NO_RESPONSE_TEXT = "_(no response captured)_"
UNTITLED = "Untitled Session"

SUMMARY_HEADINGS = {
    "ended": ("🏁 Session Ended", "Ended"),
    "recovered": ("🔄 Session Recovered", "Recovered"),
    "captured": ("📸 Context Captured (pre-compaction)", "Captured"),
}


def now_utc() -> datetime:
    return datetime.now(UTC)


def iso(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def clock(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%H:%M:%S UTC")


def has_user_turn(content: str) -> bool:
    """True if a rendered log already contains a user turn."""
    return bool(USER_TURN_RE.search(content))


def make_title(prompt: str | None, max_chars: int = 60) -> str:
    """Title from the first non-empty line of an (already clean) prompt."""
    if not prompt:
        return UNTITLED
    first = next((line.strip() for line in prompt.splitlines() if line.strip()), "")
    first = re.sub(r"\s+", " ", first).strip("#>*_` ")
    if not first:
        return UNTITLED
    if len(first) <= max_chars:
        return first
    cut = first[:max_chars].rsplit(" ", 1)[0] or first[:max_chars]
    return cut.rstrip(" ,.;:") + "…"


def title_line(title: str, started: datetime) -> str:
    return f"# {title} ({started.astimezone(UTC).strftime('%Y-%m-%d %H:%M')} UTC)"


def replace_title(content: str, old_title: str, new_title: str) -> str:
    """Swap the title on the H1 line, leaving the timestamp and body alone."""
    prefix = f"# {old_title} ("
    if not content.startswith(prefix):
        return content
    return f"# {new_title} (" + content[len(prefix):]


def render_header(
    title: str,
    project: str,
    session_id: str,
    started: datetime,
    permission_mode: str | None = None,
) -> str:
    lines = [
        title_line(title, started),
        "",
        f"**Project:** {project}",
        f"**Session ID:** {session_id}",
        f"**Started:** {iso(started)}",
        f"**Permission Mode:** {permission_mode or 'default'}",
        "",
        "---",
        "",
    ]
    return "\n".join(lines) + "\n"


def render_user_turn(author: str, text: str, ts: datetime) -> str:
    return f"{USER_TURN_PREFIX}**{author}** · {clock(ts)}_\n\n{text.strip()}\n\n"


def render_assistant_turn(model: str, text: str, tools: list[str], ts: datetime) -> str:
    body = text.strip() or "_(tool use only)_"
    parts = [f"{ASSISTANT_TURN_PREFIX}{model} · {clock(ts)}_", "", body, ""]
    if tools:
        parts.extend([f"_Tools used: {', '.join(tools)}_", ""])
    parts.extend(["---", ""])
    return "\n".join(parts) + "\n"


def render_no_response(ts: datetime) -> str:
    return f"{ASSISTANT_TURN_PREFIX}{clock(ts)}_\n\n{NO_RESPONSE_TEXT}\n\n---\n\n"


def render_permission(tool_name: str, description: str | None,
                      file_path: str | None, ts: datetime) -> str:
    line = f"> 🔐 **Permission requested** · {clock(ts)} · `{tool_name}`"
    if description:
        line += f"\n> {description.strip().splitlines()[0]}"
    if file_path:
        line += f"\n> File: `{file_path}`"
    return line + "\n\n"


def render_subagent_start(agent_type: str, ts: datetime) -> str:
    return f"> 🧩 **Subagent started** · {clock(ts)} · {agent_type}\n\n"


def render_subagent_stop(agent_type: str, excerpt: str | None, ts: datetime) -> str:
    out = f"> 🧩 **Subagent finished** · {clock(ts)} · {agent_type}\n"
    if excerpt:
        quoted = "\n".join(f"> {line}" if line else ">" for line in excerpt.splitlines())
        out += ">\n" + quoted + "\n"
    return out + "\n"


def render_turns(turns: list[Turn], author: str, redact, fallback_ts: datetime) -> str:
    """Render a full conversation from parsed transcript turns."""
    chunks = []
    for turn in turns:
        ts = _turn_time(turn, fallback_ts)
        if turn.is_prompt:
            chunks.append(render_user_turn(author, redact(turn.prompt_text), ts))
        elif turn.role == "assistant" and turn.has_content:
            chunks.append(render_assistant_turn(
                turn.model or "assistant", redact(turn.text), turn.tools, ts,
            ))
    return "".join(chunks)


def render_summary(
    kind: str,
    summary: SessionSummary,
    tokens: TokenData,
    ts: datetime,
    redact,
) -> str:
    """Summary block appended at session end, recovery or compaction."""
    heading, stamp_label = SUMMARY_HEADINGS[kind]
    tools = ", ".join(summary.tools_used) if summary.tools_used else "_none_"
    lines = [
        f"## {heading}",
        "",
        f"**{stamp_label}:** {iso(ts)}",
        f"**Prompts:** {summary.prompts_count}",
        f"**Tools Used:** {tools}",
        f"**Files Modified:** {len(summary.files_modified)}",
    ]
    for path in summary.files_modified:
        lines.append(f"- `{redact(path)}`")
    lines.append("")
    lines.extend(_render_tokens(tokens, redact))
    return "\n".join(lines) + "\n"


def _render_tokens(tokens: TokenData, redact) -> list[str]:
    lines = ["### Token Usage", ""]
    current = tokens.current
    if current is None:
        return lines + ["_No context usage reported._", ""]

    if tokens.count > 1:
        lines.extend([f"_Context checked {tokens.count} times; showing the final reading._", ""])
    if current.model:
        lines.append(f"**Model:** {redact(current.model)}")
    lines.append(f"**Tokens:** {current.tokens_used} / {current.tokens_max} ({current.tokens_percentage}%)")
    lines.append("")

    if current.categories:
        lines.extend(["| Category | Tokens | Percentage |", "|---|---|---|"])
        for cat in current.categories:
            lines.append(f"| {redact(cat.name)} | {cat.tokens} | {cat.percentage} |")
        lines.append("")
    return lines


def _turn_time(turn: Turn, fallback: datetime) -> datetime:
    if turn.timestamp:
        try:
            parsed = datetime.fromisoformat(turn.timestamp.replace("Z", "+00:00"))
        except (ValueError, AttributeError, TypeError):
            return fallback
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return fallback


def render_reconstructed(
    title: str,
    project: str,
    session_id: str,
    started: datetime,
    turns: list[Turn],
    author: str,
    redact,
    permission_mode: str | None = "unknown",
) -> str:
    """Header plus the full conversation, for sessions never live-logged."""
    return (
        render_header(title, project, session_id, started, permission_mode)
        + render_turns(turns, author, redact, started)
    )
