"""Tests for CLI commands: help, due, study, stats, recommend, adaptive, progress, config, serve."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from cadence.interface.cli import app

runner = CliRunner()


# --- Help ---


def test_cli_help():
    """Test that help text is displayed correctly."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition study sessions" in result.stdout
    assert "study" in result.stdout
    assert "progress" in result.stdout
    assert "config" in result.stdout


# --- Due ---


def test_due_lists_new_cards(mock_home, deck_file):
    result = runner.invoke(app, ["due", "--deck", str(deck_file)])

    assert result.exit_code == 0
    assert "Due cards: 4" in result.stdout
    assert "a1  [new]" in result.stdout


def test_due_json_with_filters(mock_home, deck_file):
    result = runner.invoke(
        app,
        ["due", "--deck", str(deck_file), "--difficulty", "intermediate", "--json"],
    )

    assert result.exit_code == 0
    assert [r["card_id"] for r in json.loads(result.stdout)] == ["b1"]


def test_due_without_deck_fails(mock_home):
    result = runner.invoke(app, ["due"])

    assert result.exit_code == 1
    assert "No deck configured" in result.output


def test_invalid_option_value_fails(mock_home, deck_file):
    result = runner.invoke(app, ["study", "--deck", str(deck_file), "--size", "0"])

    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


# --- Study ---


def test_study_session_updates_progress(mock_home, deck_file):
    # Reveal, grade correct; reveal, grade incorrect
    result = runner.invoke(
        app, ["study", "--deck", str(deck_file), "--size", "2"], input="\nc\n\ni\n"
    )

    assert result.exit_code == 0, result.output
    assert "What does await do?" in result.stdout
    assert "Session complete" in result.stdout
    assert "Correct: 1  Incorrect: 1  Skipped: 0" in result.stdout

    stats = runner.invoke(app, ["stats", "--deck", str(deck_file), "--json"])
    data = json.loads(stats.stdout)
    assert data["overview"]["learning"] == 2
    assert data["overview"]["due"] == 2
    assert data["study_time"]["session_count"] == 1
    assert data["study_time"]["streak_days"] == 1


def test_study_reprompts_on_unknown_answer_and_quits(mock_home, deck_file):
    result = runner.invoke(app, ["study", "--deck", str(deck_file)], input="\nx\nq\n")

    assert result.exit_code == 0, result.output
    assert "Session abandoned" in result.stdout

    due = runner.invoke(app, ["due", "--deck", str(deck_file)])
    assert "Due cards: 4" in due.stdout


# --- Stats / recommend / adaptive ---


def test_stats_text(mock_home, deck_file):
    result = runner.invoke(app, ["stats", "--deck", str(deck_file)])

    assert result.exit_code == 0
    assert "Total: 4  New: 4" in result.stdout
    assert "4 cards due for review" in result.stdout


def test_recommend_for_new_user(mock_home, deck_file):
    result = runner.invoke(app, ["recommend", "--deck", str(deck_file)])

    assert result.exit_code == 0
    assert "Recommended difficulty: beginner" in result.stdout


def test_adaptive_selection(mock_home, deck_file):
    result = runner.invoke(app, ["adaptive", "--deck", str(deck_file), "--limit", "2", "--json"])

    assert result.exit_code == 0
    assert [c["id"] for c in json.loads(result.stdout)] == ["a1", "a2"]


# --- Progress ---


def test_progress_export_and_import(mock_home, deck_file, tmp_path):
    runner.invoke(app, ["study", "--deck", str(deck_file), "--size", "1"], input="\nc\n")
    export_path = tmp_path / "export.json"

    result = runner.invoke(app, ["progress", "export", str(export_path)])
    assert result.exit_code == 0
    assert "Exported 1 records" in result.stdout
    document = json.loads(export_path.read_text(encoding="utf-8"))
    assert document["progress"][0]["card_id"] == "a1"

    result = runner.invoke(app, ["progress", "import", str(export_path), "--user", "bob"])
    assert result.exit_code == 0
    assert "Imported 1 records" in result.stdout

    due = runner.invoke(app, ["due", "--deck", str(deck_file), "--user", "bob", "--json"])
    assert "a1" not in [r["card_id"] for r in json.loads(due.stdout)]


def test_progress_import_unreadable_file(mock_home, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")

    result = runner.invoke(app, ["progress", "import", str(bad)])

    assert result.exit_code == 1
    assert "Cannot read" in result.output


def test_progress_import_wrong_document(mock_home, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"cards": []}', encoding="utf-8")

    result = runner.invoke(app, ["progress", "import", str(bad)])

    assert result.exit_code == 1
    assert "Not a progress document" in result.output


# --- Config ---


@patch("cadence.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    """Test config show command displays JSON."""
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "deck_path": Path("/tmp/deck.yaml"),
        "user_id": "alice",
        "verbose": 1,
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["user_id"] == "alice"
    assert data["deck_path"] == str(Path("/tmp/deck.yaml"))


# --- Serve ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9999"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "cadence.server:app", host="127.0.0.1", port=9999, reload=False
    )
