"""Tests for the webhook-relay CLI commands."""

from __future__ import annotations

import json
from uuid import uuid4

from click.testing import CliRunner
import pytest

from webhook_relay import __version__
from webhook_relay.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.mark.unit
def test_version(runner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


@pytest.mark.unit
class TestConfigCommands:
    def test_validate_ok(self, runner):
        result = runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 0, result.output
        assert "Configuration valid: 0 route(s), backend=memory" in result.output

    def test_validate_reports_cross_domain_problem(self, runner, monkeypatch):
        monkeypatch.setenv("RELAY_QUEUE_BACKEND", "redis")
        monkeypatch.setenv("RELAY_CONCURRENCY", "60")

        result = runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 1
        assert "REDIS_MAX_CONNECTIONS" in result.output

    def test_validate_invalid_value(self, runner, monkeypatch):
        monkeypatch.setenv("RELAY_CONCURRENCY", "0")

        result = runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 1
        assert "Invalid RelaySettings configuration" in result.output

    def test_show_json_hides_secrets(self, runner, monkeypatch):
        monkeypatch.setenv("REDIS_PASSWORD", "hunter2")

        result = runner.invoke(cli, ["config", "show", "--format", "json"])

        assert result.exit_code == 0, result.output
        shown = json.loads(result.output)
        assert shown["relay"]["queue_backend"] == "memory"
        assert shown["redis"]["password"] == "***"
        assert "hunter2" not in result.output


@pytest.mark.unit
class TestRoutesCommand:
    def test_list_json(self, runner, monkeypatch):
        route_id = str(uuid4())
        monkeypatch.setenv(
            "RELAY_ROUTES",
            json.dumps(
                [
                    {
                        "id": route_id,
                        "name": "stripe",
                        "sourceEvent": "stripe:*",
                        "destinationUrl": "https://billing.example.com/in",
                    }
                ]
            ),
        )

        result = runner.invoke(cli, ["routes", "list", "--format", "json"])

        assert result.exit_code == 0, result.output
        (listed,) = json.loads(result.output)
        assert listed["id"] == route_id
        assert listed["sourceEvent"] == "stripe:*"
        assert listed["enabled"] is True

    def test_list_table_empty(self, runner):
        result = runner.invoke(cli, ["routes", "list"])

        assert result.exit_code == 0
        assert "No routes configured" in result.output


@pytest.mark.unit
def test_stats_json_with_memory_backend(runner):
    result = runner.invoke(cli, ["stats", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {
        "stats": {"waiting": 0, "active": 0, "completed": 0, "delayed": 0, "failed": 0, "retried": 0},
        "failures": [],
    }
