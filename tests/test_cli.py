"""Tests for CLI commands."""
import pytest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import yaml
from click.testing import CliRunner
from main import cli


@pytest.fixture
def runner():
    return CliRunner(env={"COLUMNS": "200"})


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Puppet nodes" in result.output
    assert "--inventory" in result.output


def test_cli_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_alerts_help(runner):
    result = runner.invoke(cli, ["alerts", "--help"])
    assert result.exit_code == 0
    for command in ("rules", "validate", "check", "test"):
        assert command in result.output


def test_alerts_rules(runner):
    result = runner.invoke(cli, ["alerts", "rules"])
    assert result.exit_code == 0
    assert "failed-production" in result.output


def test_alerts_validate_bundled(runner):
    result = runner.invoke(cli, ["alerts", "validate"])
    assert result.exit_code == 0
    assert "valid" in result.output


def test_alerts_validate_reports_problems(runner):
    with runner.isolated_filesystem():
        with open("rules.yaml", "w") as f:
            yaml.safe_dump({"rules": [
                {"id": "bad", "name": "bad", "conditions": [
                    {"type": "ConsecutiveFailures", "count": 0, "within_hours": 12}]},
            ]}, f)
        with open("config.yaml", "w") as f:
            yaml.safe_dump({"alerts": {"rules_path": os.path.abspath("rules.yaml")}}, f)
        result = runner.invoke(cli, ["--config", "config.yaml", "alerts", "validate"])
    assert result.exit_code == 1
    assert "[bad/bad-0]" in result.output


def test_nodes_from_inventory(runner, sample_inventory_path):
    result = runner.invoke(cli, ["--inventory", sample_inventory_path, "nodes"])
    assert result.exit_code == 0
    assert "web01" in result.output
    assert "db01" in result.output


def test_alerts_check_from_inventory(runner, sample_inventory_path):
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["--inventory", sample_inventory_path, "alerts", "check"])
    assert result.exit_code == 0
    assert "alert(s) triggered" in result.output or "All clear" in result.output


def test_alerts_test_rule(runner, sample_inventory_path):
    result = runner.invoke(cli, ["--inventory", sample_inventory_path,
                                 "alerts", "test", "failed-production"])
    assert result.exit_code == 0
    assert "Rule Test" in result.output
    assert "nodes matched" in result.output


def test_alerts_test_unknown_rule(runner, sample_inventory_path):
    result = runner.invoke(cli, ["--inventory", sample_inventory_path,
                                 "alerts", "test", "no-such-rule"])
    assert result.exit_code == 1
    assert "Unknown rule" in result.output


def test_inventory_must_exist(runner):
    result = runner.invoke(cli, ["--inventory", "/nonexistent.yaml", "nodes"])
    assert result.exit_code != 0
