"""Tests for the spott CLI commands.

Testing approach:
- Uses Click's CliRunner for command invocation
- Recent searches write to the per-test state directory
- ``watch`` runs against the in-memory gateway, ``serve`` against a stubbed uvicorn
"""

import asyncio
import json

from click.testing import CliRunner
import pytest

from spott_service.cli.main import cli
from spott_service.client import SpottClient
from spott_service.infra.gateway.protocol import ChangeOperation
from tests.conftest import PRINCIPAL_ID
from tests.fixtures import FakeChannel, FakeGateway

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    return CliRunner()


class EmittingChannel(FakeChannel):
    """Channel that delivers one notification right after subscribing."""

    async def subscribe(self, on_status):
        await super().subscribe(on_status)
        asyncio.get_running_loop().call_soon(
            self.emit,
            "notifications",
            ChangeOperation.INSERT,
            {"id": "n1", "user_id": PRINCIPAL_ID, "title": "New follower"},
        )


class EmittingGateway(FakeGateway):
    def channel(self, name):
        channel = EmittingChannel(name)
        self.channels.append(channel)
        return channel


@pytest.fixture
def watch_gateway(monkeypatch, realtime_settings):
    """Route the watch command's client to an in-memory gateway."""
    gateway = EmittingGateway(user={"id": PRINCIPAL_ID})

    def make_client(access_token=None):
        return SpottClient(gateway, realtime_settings=realtime_settings)

    monkeypatch.setattr("spott_service.cli.commands.realtime.SpottClient", make_client)
    return gateway


# =============================================================================
# Root group
# =============================================================================


@pytest.mark.unit
class TestRootGroup:
    """The root group exposes version and help."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "spott, version 0.1.0" in result.output

    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "watch", "recent"):
            assert command in result.output


# =============================================================================
# recent
# =============================================================================


@pytest.mark.unit
class TestRecentCommands:
    """recent add/list/clear manage the persisted search list."""

    def test_empty_list(self, cli_runner):
        result = cli_runner.invoke(cli, ["recent", "list"])

        assert result.exit_code == 0
        assert "No recent searches" in result.output
        assert result.stdout == ""

    def test_add_then_list(self, cli_runner):
        cli_runner.invoke(cli, ["recent", "add", "Paris"])
        added = cli_runner.invoke(cli, ["recent", "add", "Rome"])

        listed = cli_runner.invoke(cli, ["recent", "list"])

        assert added.exit_code == 0
        assert "Recent searches: Rome, Paris" in added.output
        assert listed.stdout.splitlines() == ["Rome", "Paris"]

    def test_clear(self, cli_runner):
        cli_runner.invoke(cli, ["recent", "add", "Paris"])

        result = cli_runner.invoke(cli, ["recent", "clear"])
        listed = cli_runner.invoke(cli, ["recent", "list"])

        assert result.exit_code == 0
        assert "Recent searches cleared" in result.output
        assert "No recent searches" in listed.output


# =============================================================================
# watch
# =============================================================================


@pytest.mark.unit
class TestWatchCommand:
    """watch prints bus events as JSON lines."""

    def test_prints_events(self, cli_runner, watch_gateway):
        result = cli_runner.invoke(cli, ["watch", "--principal", PRINCIPAL_ID, "--duration", "0.05"])

        assert result.exit_code == 0, result.output
        (line,) = result.stdout.splitlines()
        event = json.loads(line)
        assert event["type"] == "notification_insert"
        assert event["payload"]["title"] == "New follower"
        assert f"unified-user-{PRINCIPAL_ID}" in result.output

    def test_type_filter(self, cli_runner, watch_gateway):
        result = cli_runner.invoke(
            cli,
            ["watch", "--principal", PRINCIPAL_ID, "--type", "post_like_insert", "--duration", "0.05"],
        )

        assert result.exit_code == 0
        assert result.stdout == ""

    def test_principal_from_token(self, cli_runner, watch_gateway):
        result = cli_runner.invoke(cli, ["watch", "--token", "tok", "--duration", "0.05"])

        assert result.exit_code == 0
        assert len(result.stdout.splitlines()) == 1

    def test_no_principal_fails(self, cli_runner, watch_gateway):
        watch_gateway.user = None

        result = cli_runner.invoke(cli, ["watch", "--duration", "0.05"])

        assert result.exit_code == 1
        assert "No principal" in result.output


# =============================================================================
# serve
# =============================================================================


@pytest.mark.unit
class TestServeCommand:
    """serve hands the app to uvicorn with settings defaults."""

    def test_defaults_from_settings(self, cli_runner, monkeypatch):
        runs = []
        monkeypatch.setattr(
            "spott_service.cli.commands.server.uvicorn.run",
            lambda target, **kwargs: runs.append((target, kwargs)),
        )

        result = cli_runner.invoke(cli, ["serve"])

        assert result.exit_code == 0
        assert runs == [
            (
                "spott_service.app.main:app",
                {"host": "0.0.0.0", "port": 8000, "reload": False, "log_level": "info"},
            )
        ]

    def test_overrides(self, cli_runner, monkeypatch):
        runs = []
        monkeypatch.setattr(
            "spott_service.cli.commands.server.uvicorn.run",
            lambda target, **kwargs: runs.append(kwargs),
        )

        result = cli_runner.invoke(
            cli, ["serve", "--host", "127.0.0.1", "--port", "9000", "--reload", "--log-level", "debug"]
        )

        assert result.exit_code == 0
        assert runs == [{"host": "127.0.0.1", "port": 9000, "reload": True, "log_level": "debug"}]
