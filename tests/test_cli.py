"""Tests for the holdfast CLI."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from holdfast.cli import app
from holdfast.core.db import HistoryStore

runner = CliRunner()


def _run(db_path: Path, *extra: str, probes: str = "sample_suite:PROBES"):
    return runner.invoke(app, ["run", "--probes", probes, "--db", str(db_path), *extra])


class TestRunCommand:
    def test_run_scores_and_saves(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        result = _run(db_path)

        assert result.exit_code == 0, result.output
        # network 100% (0.09), privacy 0% (0.06), worker 100% (0.07) -> 72.7
        assert "73/100 (C)" in result.output
        assert "Total:" in result.output
        assert "Saved to history" in result.output
        assert HistoryStore(db_path).count() == 1

    def test_run_lists_open_and_errored_probes(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db")

        assert "Not blocked (1):" in result.output
        assert "[high] Cookie read" in result.output
        assert "cookie readable" in result.output
        assert "1 probe(s) errored" in result.output
        assert "sandbox killed the worker" in result.output

    def test_run_shows_category_labels(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db")
        assert "Network Attacks" in result.output
        assert "Privacy Attacks" in result.output
        assert "Worker Attacks" in result.output

    def test_second_run_shows_change(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        result = _run(db_path)

        assert result.exit_code == 0
        assert "Change since last run: +0" in result.output
        assert HistoryStore(db_path).count() == 2

    def test_no_save(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        result = _run(db_path, "--no-save")

        assert result.exit_code == 0
        assert "Saved to history" not in result.output
        assert HistoryStore(db_path).count() == 0

    def test_factory_suite(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db", probes="sample_suite:build")
        assert result.exit_code == 0, result.output
        assert "Cookie read" in result.output

    def test_empty_suite_warns(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db", probes="sample_suite:EMPTY")
        assert result.exit_code == 0
        assert "Probe suite is empty" in result.output
        assert "0/100 (F)" in result.output

    def test_bad_reference(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db", probes="no_such_suite_module:PROBES")
        assert result.exit_code == 1
        assert "Cannot import" in result.output

    def test_failing_factory(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db", probes="sample_suite:broken")
        assert result.exit_code == 1
        assert "factory failed" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_duplicate_ids(self, tmp_path: Path) -> None:
        result = _run(tmp_path / "history.db", probes="sample_suite:DUPLICATES")
        assert result.exit_code == 1
        assert "Duplicate probe id" in result.output

    def test_probes_option_required(self) -> None:
        result = runner.invoke(app, ["run"])
        assert result.exit_code != 0


class TestLatestCommand:
    def test_latest_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["latest", "--db", str(tmp_path / "history.db")])
        assert result.exit_code == 0
        assert "No results yet" in result.output

    def test_latest_after_run(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        result = runner.invoke(app, ["latest", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Defense Score" in result.output
        assert "73/100 (C)" in result.output


class TestHistoryCommand:
    def test_history_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["history", "--db", str(tmp_path / "history.db")])
        assert result.exit_code == 0
        assert "No results yet" in result.output

    def test_history_lists_runs(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        _run(db_path)
        result = runner.invoke(app, ["history", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Score History" in result.output
        assert result.output.count("73") >= 2
        assert "+0" in result.output


class TestClearCommand:
    def test_clear_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["clear", "--db", str(tmp_path / "history.db")])
        assert result.exit_code == 0
        assert "Nothing to clear" in result.output

    def test_clear_with_yes(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        result = runner.invoke(app, ["clear", "--yes", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "removed 1 score(s)" in result.output
        assert HistoryStore(db_path).count() == 0

    def test_clear_cancelled(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        result = runner.invoke(app, ["clear", "--db", str(db_path)], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert HistoryStore(db_path).count() == 1

    def test_clear_confirmed(self, tmp_path: Path) -> None:
        db_path = tmp_path / "history.db"
        _run(db_path)
        result = runner.invoke(app, ["clear", "--db", str(db_path)], input="y\n")

        assert result.exit_code == 0
        assert HistoryStore(db_path).count() == 0


class TestCategoriesCommand:
    def test_lists_every_category(self) -> None:
        result = runner.invoke(app, ["categories"])
        assert result.exit_code == 0
        assert "table v1" in result.output
        assert "side-channel" in result.output
        assert "0.12" in result.output
        assert "Advanced Exploitation" in result.output


class TestLogLevelOption:
    def test_accepts_log_level(self) -> None:
        result = runner.invoke(app, ["--log-level", "debug", "categories"])
        assert result.exit_code == 0
