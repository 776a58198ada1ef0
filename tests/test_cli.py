"""Tests for the command-line interface."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock

import pytest
import typer
from typer.testing import CliRunner

from reportflow import cli
from reportflow.cli import app, parse_input_pairs
from reportflow.config import get_config_manager

runner = CliRunner()


@pytest.fixture(autouse=True)
def drop_cli_log_handler():
    yield
    root = logging.getLogger("reportflow")
    for handler in list(root.handlers):
        if handler.get_name() == "reportflow":
            root.removeHandler(handler)


@pytest.fixture
def plugins_env(plugins_dir, write_plugin, monkeypatch):
    write_plugin()
    monkeypatch.setenv("REPORTFLOW_PLUGINS_DIR", str(plugins_dir))
    return plugins_dir


def _add_profile(name: str, key: str = "sk-test-1234567890") -> None:
    result = runner.invoke(
        app,
        ["profile", "add", "--name", name, "--api-key", key, "--provider", "deepseek"],
    )
    assert result.exit_code == 0, result.output


class TestProfiles:
    def test_add_first_becomes_default(self):
        result = runner.invoke(
            app, ["profile", "add", "--name", "main", "--api-key", "sk-abcdefghijkl"]
        )

        assert result.exit_code == 0
        assert "Profile 'main' added" in result.output
        assert "Set as default profile" in result.output
        profile = get_config_manager().get_profile("main")
        assert profile.model == "gpt-4o-mini"
        assert profile.temperature == 0.7

    def test_list_default_remove(self):
        _add_profile("first")
        _add_profile("second")

        listing = runner.invoke(app, ["profile", "list"]).output
        assert "* first (deepseek/deepseek-chat)" in listing
        assert "  second (deepseek/deepseek-chat)" in listing

        assert runner.invoke(app, ["profile", "default", "second"]).exit_code == 0
        assert get_config_manager().get_default_profile_name() == "second"

        assert runner.invoke(app, ["profile", "remove", "second"]).exit_code == 0
        assert get_config_manager().get_default_profile_name() == "first"

    def test_unknown_profile(self):
        result = runner.invoke(app, ["profile", "default", "ghost"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_empty_list(self):
        assert "No profiles configured" in runner.invoke(app, ["profile", "list"]).output


class TestConfigCommands:
    def test_show_masks_keys(self, tmp_path):
        _add_profile("main", key="sk-abcdefghijkl")
        runner.invoke(app, ["config", "set-output-dir", str(tmp_path / "out")])

        data = json.loads(runner.invoke(app, ["config", "show"]).output)

        assert data["default_profile"] == "main"
        assert data["profiles"][0]["api_key"] == "sk-a...ijkl"
        assert data["output_dir"] == str(tmp_path / "out")


class TestPipelineCommands:
    def test_list(self, plugins_env):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "acme.sales" in result.output

    def test_inspect_unknown(self, plugins_env):
        result = runner.invoke(app, ["inspect", "nope"])

        assert result.exit_code == 1
        assert "Pipeline not found: nope" in result.output

    def test_run(self, plugins_env, tmp_path, monkeypatch):
        from reportflow.reports import generator

        output = tmp_path / "acme.sales-1.html"
        generate = AsyncMock(return_value=output)
        monkeypatch.setattr(generator, "generate_report", generate)

        result = runner.invoke(app, ["run", "acme.sales", "-f", "html", "-i", "region=EU"])

        assert result.exit_code == 0, result.output
        assert f"Report saved to {output}" in result.output
        plugin, inputs, report_type, fmt, profile, name = generate.await_args.args
        assert plugin.id == "acme.sales"
        assert inputs == {"region": "EU"}
        assert (report_type, fmt, profile, name) == ("summary", "html", None, None)


class TestJobCommands:
    def test_submit_status_cancel(self):
        submitted = runner.invoke(
            app,
            ["jobs", "submit", "acme.sales", "-t", "summary", "-f", "pdf", "-i", "month=2024-05"],
        )
        assert submitted.exit_code == 0, submitted.output
        job_id = submitted.output.strip().split(": ")[1]

        status = json.loads(runner.invoke(app, ["jobs", "status", job_id]).output)
        assert status["status"] == "waiting"
        assert status["data"]["inputs"] == {"month": "2024-05"}

        assert runner.invoke(app, ["jobs", "cancel", job_id]).exit_code == 0
        assert runner.invoke(app, ["jobs", "status", job_id]).exit_code == 1

    def test_obliterate_requires_force(self):
        result = runner.invoke(app, ["jobs", "clean", "--obliterate"])

        assert result.exit_code == 1
        assert "Must set force=true" in result.output

    def test_clean(self):
        result = runner.invoke(app, ["jobs", "clean", "--type", "failed"])

        assert result.exit_code == 0
        assert "Deleted 0 failed jobs" in result.output


class TestInputPairs:
    def test_values_may_contain_equals(self):
        assert parse_input_pairs(["q=a=b", "x="]) == {"q": "a=b", "x": ""}

    def test_rejects_missing_separator(self):
        with pytest.raises(typer.BadParameter):
            parse_input_pairs(["oops"])


def test_main_is_entry_point():
    assert callable(cli.main)
