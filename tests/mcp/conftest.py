"""Fixtures for MCP server tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from corkboard.config import Settings
from corkboard.session import SessionContext
from tests.conftest import FakeBoardService

ENV_KEY = "env-key-7777"
ENV_TOKEN = "env-token-8888"


@pytest.fixture
def mcp_service(tmp_path: Path, populated_service: FakeBoardService) -> Generator[FakeBoardService, None, None]:
    """Patch the MCP module globals with a fake Trello and a fresh session."""
    import corkboard.mcp_server as mcp_mod

    original = (mcp_mod._settings, mcp_mod._client, mcp_mod._session)
    mcp_mod._settings = Settings(home=tmp_path, api_key=ENV_KEY, token=ENV_TOKEN)
    mcp_mod._client = populated_service  # type: ignore[assignment]
    mcp_mod._session = SessionContext(tmp_path / "session.json")

    yield populated_service

    mcp_mod._settings, mcp_mod._client, mcp_mod._session = original


@pytest.fixture
def mcp_no_env_creds(mcp_service: FakeBoardService, tmp_path: Path) -> FakeBoardService:
    """Like mcp_service, but with no credentials in the environment."""
    import corkboard.mcp_server as mcp_mod

    mcp_mod._settings = Settings(home=tmp_path)
    return mcp_service
