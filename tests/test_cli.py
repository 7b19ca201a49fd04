"""Tests for the corkboard CLI (doctor, repair, session)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from corkboard import __version__
from corkboard.cli import cli
from corkboard.config import Settings
from tests.conftest import FakeBoardService


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(home=tmp_path, api_key="cli-key", token="cli-token")


@pytest.fixture
def fake_client(populated_service: FakeBoardService, monkeypatch: pytest.MonkeyPatch) -> FakeBoardService:
    monkeypatch.setattr("corkboard.cli._make_client", lambda settings: populated_service)
    return populated_service


def _write_session(settings: Settings, **state: str) -> None:
    settings.home.mkdir(parents=True, exist_ok=True)
    settings.session_path.write_text(json.dumps(state))


class TestDoctor:
    def test_healthy(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["doctor"], obj={"settings": settings})
        assert result.exit_code == 0, result.output
        assert "corkboard doctor" in result.output
        assert "0 issues  (ok)" in result.output
        assert "All checks passed." in result.output
        assert fake_client.closed

    def test_verbose_lists_passing_checks(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["doctor", "-v"], obj={"settings": settings})
        assert "OK  connectivity:" in result.output
        assert "--  board_reachability: No active board set" in result.output

    def test_stale_board_reported(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        _write_session(settings, activeBoardId="b-deleted")
        result = cli_runner.invoke(cli, ["doctor"], obj={"settings": settings})
        assert result.exit_code == 0, result.output
        assert "(degraded)" in result.output
        assert "!!  board_reachability:" in result.output
        assert "corkboard repair" in result.output

    def test_json(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["doctor", "--json"], obj={"settings": settings})
        reports = json.loads(result.output)
        assert [r["check"] for r in reports] == ["detailed", "metadata"]

    def test_missing_credentials(self, cli_runner: CliRunner, tmp_path: Path, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["doctor"], obj={"settings": Settings(home=tmp_path)})
        assert result.exit_code == 1
        assert fake_client.calls == []

    def test_credentials_not_printed(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["doctor", "-v", "--json"], obj={"settings": settings})
        assert "cli-key" not in result.output
        assert "cli-token" not in result.output


class TestRepair:
    def test_clears_stale_board(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        _write_session(settings, activeBoardId="b-deleted", activeWorkspaceId="ws1")
        result = cli_runner.invoke(cli, ["repair"], obj={"settings": settings})
        assert result.exit_code == 0, result.output
        assert "corkboard repair  ──  repaired" in result.output
        assert "OK  active_board_stale: cleared active board -> resolved" in result.output
        assert json.loads(settings.session_path.read_text()) == {"activeWorkspaceId": "ws1"}

    def test_nothing_to_repair(self, cli_runner: CliRunner, settings: Settings, fake_client: FakeBoardService) -> None:
        result = cli_runner.invoke(cli, ["repair", "--json"], obj={"settings": settings})
        assert json.loads(result.output)["status"] == "nothing_to_repair"


class TestSession:
    def test_show(self, cli_runner: CliRunner, settings: Settings) -> None:
        _write_session(settings, activeBoardId="b1")
        result = cli_runner.invoke(cli, ["session", "show"], obj={"settings": settings})
        data = json.loads(result.output)
        assert data["activeBoardId"] == "b1"
        assert data["path"] == str(settings.session_path)

    def test_clear(self, cli_runner: CliRunner, settings: Settings) -> None:
        _write_session(settings, activeBoardId="b1", activeWorkspaceId="ws1")
        result = cli_runner.invoke(cli, ["session", "clear"], obj={"settings": settings})
        assert result.exit_code == 0, result.output
        assert "Session cleared" in result.output
        assert json.loads(settings.session_path.read_text()) == {}

        again = cli_runner.invoke(cli, ["session", "clear"], obj={"settings": settings})
        assert "Session already empty" in again.output


class TestVersion:
    def test_version_flag(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
