"""Tests for environment settings and credential resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from corkboard.config import (
    DEFAULT_API_BASE,
    DEFAULT_HTTP_TIMEOUT,
    Credentials,
    Settings,
    resolve_credentials,
    strip_secrets,
    write_atomic,
)
from corkboard.errors import CredentialsError


class TestSettings:
    def test_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        settings = Settings.from_env({})
        assert settings.api_base == DEFAULT_API_BASE
        assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
        assert settings.default_board_id is None
        assert settings.session_path.name == "session.json"
        assert settings.home.name == ".corkboard"

    def test_from_environment(self, tmp_path: Path) -> None:
        settings = Settings.from_env(
            {
                "CORKBOARD_HOME": str(tmp_path / "state"),
                "TRELLO_API_KEY": " key ",
                "TRELLO_TOKEN": "tok",
                "TRELLO_BOARD_ID": "b1",
                "TRELLO_WORKSPACE_ID": "",
                "TRELLO_API_BASE": "https://proxy.test/1",
                "CORKBOARD_HTTP_TIMEOUT": "5",
            }
        )
        assert settings.home == tmp_path / "state"
        assert settings.api_key == "key"
        assert settings.default_board_id == "b1"
        assert settings.default_workspace_id is None
        assert settings.api_base == "https://proxy.test/1"
        assert settings.http_timeout == 5.0

    def test_bad_timeout_falls_back(self) -> None:
        assert Settings.from_env({"CORKBOARD_HTTP_TIMEOUT": "soon"}).http_timeout == DEFAULT_HTTP_TIMEOUT


class TestCredentials:
    def test_arguments_win_over_environment(self, tmp_path: Path) -> None:
        settings = Settings(home=tmp_path, api_key="env-key", token="env-token")
        creds = resolve_credentials({"trelloApiKey": "arg-key", "trelloToken": "arg-token"}, settings)
        assert creds == Credentials("arg-key", "arg-token")

    def test_environment_fallback(self, tmp_path: Path) -> None:
        settings = Settings(home=tmp_path, api_key="env-key", token="env-token")
        assert resolve_credentials({}, settings) == Credentials("env-key", "env-token")

    def test_blank_argument_ignored(self, tmp_path: Path) -> None:
        settings = Settings(home=tmp_path, api_key="env-key", token="env-token")
        creds = resolve_credentials({"trelloApiKey": "  ", "trelloToken": "arg-token"}, settings)
        assert creds == Credentials("env-key", "arg-token")

    def test_missing_everywhere(self, tmp_path: Path) -> None:
        with pytest.raises(CredentialsError) as exc_info:
            resolve_credentials({"trelloApiKey": "only-key"}, Settings(home=tmp_path))
        assert exc_info.value.code == "missing_credentials"

    def test_repr_masks_values(self) -> None:
        text = repr(Credentials("secret-key", "secret-token"))
        assert "secret" not in text

    def test_strip_secrets(self) -> None:
        assert strip_secrets({"trelloApiKey": "k", "trelloToken": "t", "boardId": "b1"}) == {"boardId": "b1"}


class TestWriteAtomic:
    def test_writes_and_leaves_no_temp(self, tmp_path: Path) -> None:
        target = tmp_path / "session.json"
        write_atomic(target, "{}\n")
        write_atomic(target, '{"activeBoardId": "b1"}\n')
        assert target.read_text() == '{"activeBoardId": "b1"}\n'
        assert list(tmp_path.iterdir()) == [target]
