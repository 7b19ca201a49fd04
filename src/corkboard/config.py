"""Environment-driven configuration and credential resolution.

Convention-based: state lives in ``~/.corkboard/`` (override with
``CORKBOARD_HOME``) holding ``session.json`` and ``corkboard.log``.
"""

from __future__ import annotations

import contextlib
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from corkboard.errors import CredentialsError

HOME_DIR_NAME = ".corkboard"
SESSION_FILENAME = "session.json"
DEFAULT_API_BASE = "https://api.trello.com/1"
DEFAULT_HTTP_TIMEOUT = 30.0

# Argument names the invocation framework uses to pass secrets per call.
API_KEY_ARG = "trelloApiKey"
TOKEN_ARG = "trelloToken"
SECRET_ARGS: frozenset[str] = frozenset({API_KEY_ARG, TOKEN_ARG})


@dataclass(frozen=True)
class Credentials:
    """API key + token pair. ``repr`` never shows the values."""

    api_key: str
    token: str

    def __repr__(self) -> str:
        return "Credentials(api_key=***, token=***)"

    def authorization_header(self) -> str:
        return f'OAuth oauth_consumer_key="{self.api_key}", oauth_token="{self.token}"'


@dataclass(frozen=True)
class Settings:
    home: Path
    api_base: str = DEFAULT_API_BASE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    api_key: str = ""
    token: str = ""
    default_board_id: str | None = None
    default_workspace_id: str | None = None

    @property
    def session_path(self) -> Path:
        return self.home / SESSION_FILENAME

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        home_raw = _clean(env.get("CORKBOARD_HOME"))
        home = Path(home_raw).expanduser() if home_raw else Path.home() / HOME_DIR_NAME
        timeout_raw = _clean(env.get("CORKBOARD_HTTP_TIMEOUT"))
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
        except ValueError:
            timeout = DEFAULT_HTTP_TIMEOUT
        return cls(
            home=home,
            api_base=_clean(env.get("TRELLO_API_BASE")) or DEFAULT_API_BASE,
            http_timeout=timeout,
            api_key=_clean(env.get("TRELLO_API_KEY")),
            token=_clean(env.get("TRELLO_TOKEN")),
            default_board_id=_clean(env.get("TRELLO_BOARD_ID")) or None,
            default_workspace_id=_clean(env.get("TRELLO_WORKSPACE_ID")) or None,
        )


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


def resolve_credentials(arguments: Mapping[str, Any], settings: Settings) -> Credentials:
    """Pick credentials for one call: explicit arguments win over the environment.

    Blank strings count as absent. Raises CredentialsError when either half
    is missing from both sources.
    """
    api_key = arguments.get(API_KEY_ARG)
    token = arguments.get(TOKEN_ARG)
    if not isinstance(api_key, str) or not api_key.strip():
        api_key = settings.api_key
    if not isinstance(token, str) or not token.strip():
        token = settings.token
    if not api_key or not token:
        msg = (
            "Trello credentials required. Pass trelloApiKey and trelloToken, "
            "or set TRELLO_API_KEY and TRELLO_TOKEN environment variables."
        )
        raise CredentialsError(msg)
    return Credentials(api_key=api_key.strip(), token=token.strip())


def strip_secrets(arguments: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *arguments* without credential fields (safe to log or validate)."""
    return {k: v for k, v in arguments.items() if k not in SECRET_ARGS}


def write_atomic(path: Path, content: str) -> None:
    """Write content to path atomically via temp file + os.replace()."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
