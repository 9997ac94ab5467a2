"""Tests for the command line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from ferry.cli import main

pytestmark = pytest.mark.usefixtures("isolate_settings")


@pytest.fixture
def runner():
    return CliRunner()


class TestListCommand:
    def test_lists_directory(self, runner, sample_tree):
        result = runner.invoke(main, ["ls", str(sample_tree)])
        assert result.exit_code == 0, result.output
        assert "docs/" in result.output
        assert "readme.txt" in result.output
        assert "2 entries" in result.output

    def test_json_output(self, runner, sample_tree):
        result = runner.invoke(main, ["ls", str(sample_tree), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["path"] == str(sample_tree)
        assert data["error"] is None
        assert [e["name"] for e in data["entries"]] == ["docs", "readme.txt"]
        assert data["entries"][1]["size"] == len(b"hello ferry\n")

    def test_missing_directory_fails(self, runner, tmp_path):
        result = runner.invoke(main, ["ls", str(tmp_path / "missing")])
        assert result.exit_code == 1


class TestTransferCommands:
    def test_copy(self, runner, sample_tree, tmp_path):
        dest = tmp_path / "dest"
        dest.mkdir()
        result = runner.invoke(main, ["cp", str(sample_tree / "readme.txt"), str(sample_tree / "docs"), str(dest)])
        assert result.exit_code == 0, result.output
        assert (dest / "readme.txt").read_bytes() == b"hello ferry\n"
        assert (dest / "docs" / "guide.md").exists()
        assert "2 succeeded, 0 failed" in result.output

    def test_move_json(self, runner, sample_tree, tmp_path):
        dest = tmp_path / "dest"
        dest.mkdir()
        result = runner.invoke(main, ["mv", str(sample_tree), str(dest), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["jobs"][0]["state"] == "succeeded"
        assert data["jobs"][0]["target"] == str(dest / "project")
        assert data["stats"]["per_action"] == {"move": {"jobs": 1, "failed": 0}}
        assert not sample_tree.exists()

    def test_failed_job_sets_exit_code(self, runner, tmp_path):
        result = runner.invoke(main, ["cp", str(tmp_path / "ghost"), str(tmp_path)])
        assert result.exit_code == 1
        assert "0 succeeded, 1 failed" in result.output

    def test_remove_asks_for_confirmation(self, runner, sample_tree):
        result = runner.invoke(main, ["rm", str(sample_tree)], input="n\n")
        assert result.exit_code == 0
        assert "Aborted." in result.output
        assert sample_tree.exists()

    def test_remove_with_yes(self, runner, sample_tree):
        result = runner.invoke(main, ["rm", "--yes", str(sample_tree)])
        assert result.exit_code == 0, result.output
        assert not sample_tree.exists()


class TestConfigCommands:
    def test_show_defaults(self, runner, isolate_settings):
        result = runner.invoke(main, ["config", "show"])
        assert result.exit_code == 0
        assert str(isolate_settings) in result.output
        assert '"workers": 8' in result.output

    def test_set_then_get(self, runner, isolate_settings):
        result = runner.invoke(main, ["config", "set", "engine.workers", "3"])
        assert result.exit_code == 0
        assert json.loads(isolate_settings.read_text()) == {"engine": {"workers": 3}}

        result = runner.invoke(main, ["config", "get", "engine.workers"])
        assert result.output.strip() == "3"

    def test_set_plain_string(self, runner):
        runner.invoke(main, ["config", "set", "ui.theme", "dark"])
        result = runner.invoke(main, ["config", "get", "ui.theme"])
        assert result.output.strip() == '"dark"'

    def test_get_missing_key(self, runner):
        result = runner.invoke(main, ["config", "get", "no.such.key"])
        assert result.exit_code == 1
