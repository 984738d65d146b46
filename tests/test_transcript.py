"""Tests for transcript parsing."""

import json

from sessionlog.transcript import (
    ToolUse,
    clean_user_text,
    last_assistant_text,
    parse_entry,
    parse_lines,
    parse_transcript,
    turns_since_last_prompt,
)


# --- parse_entry tests ---

def test_user_raw_string():
    turn = parse_entry({"type": "user", "message": {"content": "please fix the bug"}})
    assert turn.role == "user"
    assert turn.text == "please fix the bug"
    assert turn.is_prompt


def test_user_text_blocks_concatenated():
    entry = {
        "type": "user",
        "message": {"content": [
            {"type": "text", "text": "first"},
            {"type": "image", "source": {}},
            {"type": "text", "text": "second"},
        ]},
    }
    assert parse_entry(entry).text == "first\n\nsecond"


def test_user_tool_result_only_is_not_a_turn():
    entry = {
        "type": "user",
        "message": {"content": [{"type": "tool_result", "tool_use_id": "x", "content": "output"}]},
    }
    assert parse_entry(entry) is None


def test_user_meta_is_not_a_prompt():
    turn = parse_entry({"type": "user", "isMeta": True, "message": {"content": "injected"}})
    assert turn is not None
    assert not turn.is_prompt


def test_assistant_text_tools_and_model():
    entry = {
        "type": "assistant",
        "message": {
            "model": "claude-nested",
            "content": [
                {"type": "text", "text": "Let me look."},
                {"type": "tool_use", "name": "Read", "input": {"file_path": "a.py"}},
                {"type": "tool_use", "name": "Read", "input": {"file_path": "b.py"}},
                {"type": "tool_use", "name": "Edit", "input": {"file_path": "a.py"}},
            ],
        },
    }
    turn = parse_entry(entry)
    assert turn.role == "assistant"
    assert turn.text == "Let me look."
    assert turn.tools == ["Read", "Edit"]
    assert turn.model == "claude-nested"


def test_assistant_model_priority():
    top = parse_entry({"type": "assistant", "model": "top", "message": {"model": "nested", "content": []}})
    nested = parse_entry({"type": "assistant", "message": {"model": "nested", "content": []}})
    fallback = parse_entry({"type": "assistant", "message": {"content": []}}, default_model="fallback")
    assert (top.model, nested.model, fallback.model) == ("top", "nested", "fallback")


def test_flat_tool_use_record():
    turn = parse_entry({"type": "tool_use", "tool_name": "Write", "tool_input": {"file_path": "x.md"}})
    assert turn.role == "tool"
    assert turn.tools == ["Write"]
    assert turn.tool_uses[0].modified_path == "x.md"


def test_other_types_ignored():
    assert parse_entry({"type": "progress", "data": {}}) is None
    assert parse_entry({"type": "system", "message": {"content": "x"}}) is None
    assert parse_entry(["not", "a", "dict"]) is None


# --- ToolUse ---

def test_modified_path_only_for_edit_tools():
    assert ToolUse("Edit", {"file_path": "a.py"}).modified_path == "a.py"
    assert ToolUse("NotebookEdit", {"notebook_path": "n.ipynb"}).modified_path == "n.ipynb"
    assert ToolUse("Read", {"file_path": "a.py"}).modified_path is None
    assert ToolUse("Write", {}).modified_path is None


# --- clean_user_text ---

def test_clean_strips_system_reminders():
    text = "fix it<system-reminder>internal note</system-reminder>"
    assert clean_user_text(text) == "fix it"


def test_clean_translates_ide_tags():
    text = (
        "<ide_opened_file>The user opened the file src/app.py in the IDE.</ide_opened_file>"
        "why does this fail?"
    )
    assert clean_user_text(text) == "[Opened file: src/app.py]why does this fail?"


def test_clean_ide_selection():
    text = "<ide_selection>The user selected the lines 3 to 9 from src/x.py:\ncode</ide_selection> explain"
    assert clean_user_text(text).startswith("[Selected code in src/x.py]")


def test_clean_slash_command():
    text = (
        "<command-message>review is running</command-message>\n"
        "<command-name>/review</command-name>\n<command-args>PR 12</command-args>"
    )
    assert clean_user_text(text) == "/review\nPR 12"


def test_command_output_only_is_not_a_prompt():
    turn = parse_entry({
        "type": "user",
        "message": {"content": "<local-command-stdout>## Context Usage</local-command-stdout>"},
    })
    assert turn is not None
    assert not turn.is_prompt


# --- parse_lines / parse_transcript ---

def test_malformed_lines_skipped():
    lines = [
        json.dumps({"type": "user", "message": {"content": "hello"}}),
        "{not json",
        "",
        json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "hi"}]}}),
        '{"type": "assistant", "message": {"content": [{"type": "te',  # partial write
    ]
    turns = parse_lines(lines)
    assert [t.role for t in turns] == ["user", "assistant"]


def test_missing_transcript_is_empty(tmp_path):
    assert parse_transcript(tmp_path / "nope.jsonl") == []
    assert parse_transcript(None) == []


def test_parse_transcript_file(make_transcript):
    writer = make_transcript("sess-1").user("Hello").assistant("Hi")
    turns = parse_transcript(writer.path)
    assert [t.text for t in turns] == ["Hello", "Hi"]


# --- prompt detection and turns since last prompt ---

def test_tool_results_are_not_prompts(make_transcript):
    writer = make_transcript("sess-2").assistant("working", tools=[("Bash", {"command": "ls"})]).tool_result()
    turns = parse_transcript(writer.path)
    assert turns
    assert not any(turn.is_prompt for turn in turns)


def test_turns_since_last_prompt(make_transcript):
    writer = (
        make_transcript("sess-3")
        .user("first question")
        .assistant("old answer")
        .user("second question")
        .assistant("", tools=[("Grep", {"pattern": "x"})])
        .tool_result()
        .assistant("new answer")
    )
    turns = turns_since_last_prompt(parse_transcript(writer.path))
    assert [t.text for t in turns] == ["", "new answer"]
    assert turns[0].tools == ["Grep"]


def test_turns_since_last_prompt_is_deterministic(make_transcript):
    writer = make_transcript("sess-4").user("q").assistant("a", tools=[("Read", {"file_path": "f"})])
    first = turns_since_last_prompt(parse_transcript(writer.path))
    second = turns_since_last_prompt(parse_transcript(writer.path))
    assert first == second


def test_turns_since_last_prompt_skips_empty_entries(make_transcript):
    writer = make_transcript("sess-5").user("q").assistant("")
    assert turns_since_last_prompt(parse_transcript(writer.path)) == []


def test_last_assistant_text():
    turns = parse_lines([
        json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "early"}]}}),
        json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "final"}]}}),
        json.dumps({"type": "assistant", "message": {"content": []}}),
    ])
    assert last_assistant_text(turns) == "final"
