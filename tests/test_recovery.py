"""Tests for orphaned session recovery."""

import calendar
import json

import pytest

from sessionlog import render
from sessionlog.locator import SessionLocator
from sessionlog.recovery import APPENDED, EMPTY, NO_TRANSCRIPT, SYNTHESIZED, OrphanRecovery
from sessionlog.redaction import Redactor

ORPHAN = "abc12345-aaaa-4000-8000-000000000001"


@pytest.fixture
def locator(log_dir):
    log_dir.mkdir(parents=True)
    return SessionLocator(log_dir, Redactor())


@pytest.fixture
def recovery(locator, config, project_dir):
    return OrphanRecovery(locator, config, Redactor(), str(project_dir))


def test_synthesizes_log_for_unlogged_session(recovery, locator, log_dir, make_transcript):
    transcript = (
        make_transcript(ORPHAN)
        .user("Why is CI red?")
        .assistant("Because of a typo", tools=[("Edit", {"file_path": "ci.yml"})])
        .user("Fix it please")
    )
    locator.write_marker(ORPHAN, str(transcript.path))

    results = recovery.run("def67890-bbbb-4000-8000-000000000002")

    assert [(r.short_id, r.outcome) for r in results] == [("abc12345", SYNTHESIZED)]
    log = results[0].log_path
    assert log.name.endswith("-why-is-ci-red-abc12345.md")
    content = log.read_text()
    assert content.startswith("# Why is CI red? (")
    assert f"**Session ID:** {ORPHAN}" in content
    assert len(render.USER_TURN_RE.findall(content)) == 2
    assert "## 🔄 Session Recovered" in content
    assert "**Prompts:** 2" in content
    assert "- `ci.yml`" in content
    assert not locator.marker_path("abc12345").exists()


def test_appends_to_live_log(recovery, locator, log_dir, make_transcript):
    transcript = make_transcript(ORPHAN).user("Hello").assistant("Hi")
    locator.write_marker(ORPHAN, str(transcript.path))
    existing = log_dir / "2026-01-01T10-00Z-hello-abc12345.md"
    existing.write_text("# Hello (2026-01-01 10:00 UTC)\n\n---\n\n_🧑 **Tester** · 10:00:05 UTC_\n\nHello\n\n")

    [result] = recovery.run()

    assert result.outcome == APPENDED
    assert result.log_path == existing
    content = existing.read_text()
    # Live turns are not duplicated, only the summary is added
    assert len(render.USER_TURN_RE.findall(content)) == 1
    assert content.rstrip().endswith("_No context usage reported._")
    assert "**Prompts:** 1" in content


def test_placeholder_log_is_rebuilt(recovery, locator, log_dir, make_transcript):
    transcript = make_transcript(ORPHAN).user("Hello").assistant("Hi")
    locator.write_marker(ORPHAN, str(transcript.path))
    placeholder = log_dir / "2026-01-01T10-00Z-session-abc12345.md"
    placeholder.write_text("# New Session (2026-01-01 10:00 UTC)\n\n---\n\n")

    [result] = recovery.run()

    assert result.outcome == SYNTHESIZED
    assert not placeholder.exists()
    assert render.has_user_turn(result.log_path.read_text())


def test_empty_orphan_leaves_no_log(recovery, locator, log_dir, make_transcript):
    transcript = make_transcript(ORPHAN).assistant("Nobody asked")
    locator.write_marker(ORPHAN, str(transcript.path))
    stale = log_dir / "2026-01-01T10-00Z-session-abc12345.md"
    stale.write_text("# New Session (2026-01-01 10:00 UTC)\n\n---\n\n")

    [result] = recovery.run()

    assert result.outcome == EMPTY
    assert not stale.exists()
    assert locator.log_files() == []
    assert locator.list_markers() == []


def test_missing_transcript_still_drops_marker(recovery, locator):
    locator.write_marker(ORPHAN, "/nowhere/gone.jsonl")

    [result] = recovery.run()

    assert result.outcome == NO_TRANSCRIPT
    assert result.log_path is None
    assert locator.list_markers() == []


def test_stale_path_falls_back_to_search(recovery, locator, make_transcript):
    make_transcript(ORPHAN).user("Found by search")
    locator.write_marker(ORPHAN, "/moved/elsewhere.jsonl")

    [result] = recovery.run()

    assert result.outcome == SYNTHESIZED
    assert "-found-by-search-abc12345.md" in result.log_path.name


def test_current_session_is_skipped(recovery, locator, make_transcript):
    transcript = make_transcript(ORPHAN).user("Still going")
    locator.write_marker(ORPHAN, str(transcript.path))

    assert recovery.run(ORPHAN) == []
    assert locator.marker_path("abc12345").exists()


def test_unreadable_marker_is_dropped(recovery, locator, log_dir, make_transcript):
    make_transcript(ORPHAN).user("Recovered anyway")
    (log_dir / ".active-abc12345.json").write_text("{not json")

    [result] = recovery.run()

    assert result.outcome == SYNTHESIZED
    assert locator.list_markers() == []


def test_started_time_comes_from_marker(recovery, locator, log_dir, make_transcript):
    transcript = make_transcript(ORPHAN).user("Old session")
    path = locator.write_marker(ORPHAN, str(transcript.path))
    data = json.loads(path.read_text())
    data["created_at"] = calendar.timegm((2025, 6, 1, 12, 0, 0))
    path.write_text(json.dumps(data))

    [result] = recovery.run()

    assert result.log_path.name.startswith("2025-06-01T")


def test_multiple_orphans(recovery, locator, make_transcript):
    first = make_transcript("11111111-x").user("One")
    second = make_transcript("22222222-y").assistant("none")
    locator.write_marker("11111111-x", str(first.path))
    locator.write_marker("22222222-y", str(second.path))

    results = recovery.run("33333333-z")

    assert {r.short_id: r.outcome for r in results} == {"11111111": SYNTHESIZED, "22222222": EMPTY}
    assert locator.list_markers() == []


def test_undecodable_existing_log_is_rebuilt(recovery, locator, log_dir, make_transcript):
    transcript = make_transcript(ORPHAN).user("Hello").assistant("Hi")
    locator.write_marker(ORPHAN, str(transcript.path))
    garbled = log_dir / "2026-01-01T10-00Z-session-abc12345.md"
    garbled.write_bytes(b"\xff\xfe\x00garbage")

    [result] = recovery.run()

    assert result.outcome == SYNTHESIZED
    assert not garbled.exists()
    assert render.has_user_turn(result.log_path.read_text())
    assert locator.list_markers() == []


def test_undecodable_marker_is_dropped(recovery, locator, log_dir, make_transcript):
    make_transcript(ORPHAN).user("Marker was garbled")
    (log_dir / ".active-abc12345.json").write_bytes(b"\xff\xfe{}")

    [result] = recovery.run()

    assert result.outcome == SYNTHESIZED
    assert locator.list_markers() == []


def test_failed_orphan_does_not_stop_the_rest(recovery, locator, log_dir, make_transcript):
    broken = make_transcript("11111111-x").user("Broken marker")
    path = locator.write_marker("11111111-x", str(broken.path))
    data = json.loads(path.read_text())
    data["created_at"] = "not a timestamp"
    path.write_text(json.dumps(data))
    good = make_transcript("22222222-y").user("Fine")
    locator.write_marker("22222222-y", str(good.path))

    results = recovery.run()

    assert [(r.short_id, r.outcome) for r in results] == [("22222222", SYNTHESIZED)]
    assert locator.list_markers() == []
