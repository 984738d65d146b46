"""Pytest configuration for sessionlog tests."""

import json
import os
from pathlib import Path

import pytest

from sessionlog.config import SessionLogConfig


@pytest.fixture(autouse=True)
def clean_sessionlog_env(monkeypatch, tmp_path):
    """Clear sessionlog environment variables and prevent .env loading for test isolation."""
    for var in [k for k in os.environ if k.startswith("SESSIONLOG_")]:
        monkeypatch.delenv(var, raising=False)

    # Change to temp directory to avoid loading a local .env file
    monkeypatch.chdir(tmp_path)

    yield


class TranscriptWriter:
    """Builds a host-style JSONL transcript one entry at a time."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def raw(self, line: str) -> "TranscriptWriter":
        with open(self.path, "a") as f:
            f.write(line + "\n")
        return self

    def entry(self, data: dict) -> "TranscriptWriter":
        return self.raw(json.dumps(data))

    def user(self, text: str, **extra) -> "TranscriptWriter":
        return self.entry({"type": "user", "message": {"role": "user", "content": text}, **extra})

    def tool_result(self, content: str = "ok") -> "TranscriptWriter":
        return self.entry({
            "type": "user",
            "message": {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": content}],
            },
        })

    def assistant(self, text: str = "", tools: list[tuple[str, dict]] | None = None,
                  model: str | None = "claude-test-1") -> "TranscriptWriter":
        content = []
        if text:
            content.append({"type": "text", "text": text})
        for name, tool_input in tools or []:
            content.append({"type": "tool_use", "id": f"toolu_{name}", "name": name, "input": tool_input})
        message = {"role": "assistant", "content": content}
        if model:
            message["model"] = model
        return self.entry({"type": "assistant", "message": message})


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """Working directory of the simulated session."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def transcripts_dir(tmp_path) -> Path:
    return tmp_path / "claude-projects"


@pytest.fixture
def make_transcript(transcripts_dir):
    """Factory: make_transcript(session_id) -> TranscriptWriter."""
    def _make(session_id: str) -> TranscriptWriter:
        return TranscriptWriter(transcripts_dir / "-tmp-project" / f"{session_id}.jsonl")
    return _make


@pytest.fixture
def config(transcripts_dir) -> SessionLogConfig:
    """Config with no real waiting and no git lookups for the author."""
    return SessionLogConfig(
        author="Tester",
        transcripts_dir=transcripts_dir,
        response_initial_delay=0,
        response_retry_delay=0,
        subagent_retry_delay=0,
    )


@pytest.fixture
def log_dir(project_dir, config) -> Path:
    return config.log_dir_for(project_dir)
