"""MCP server exposing Trello boards, cards, and checklists to agents.

Tools are defined per domain in ``corkboard.mcp_tools`` and merged into one
registry here. Every call goes through the same pipeline: credential
injection (explicit arguments win over the environment), JSON-schema
validation of the public arguments, dispatch, and mapping of domain errors
to ``{"error": ..., "code": ...}`` payloads.

Usage:
    corkboard-mcp                      # state in $CORKBOARD_HOME or ~/.corkboard
    corkboard-mcp --home /path/to/dir  # explicit state directory
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import time
from collections.abc import Callable
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from corkboard.checklists import ChecklistIndex
from corkboard.client import TrelloClient
from corkboard.config import Credentials, Settings, resolve_credentials, strip_secrets
from corkboard.diagnostics import DiagnosticsEngine
from corkboard.errors import CorkboardError
from corkboard.mcp_tools import boards, cards, checklists, health
from corkboard.mcp_tools.common import _text, _validate_args
from corkboard.repair import RepairEngine
from corkboard.resolver import ScopeResolver
from corkboard.session import SessionContext, load_session

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

server = Server("corkboard")
_settings: Settings | None = None
_client: TrelloClient | None = None
_session: SessionContext | None = None
_logger: logging.Logger | None = None
_request_creds: ContextVar[Credentials | None] = ContextVar("corkboard_request_creds", default=None)


def _build_registry() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    tools: list[Tool] = []
    handlers: dict[str, Callable[..., Any]] = {}
    for module in (boards, cards, checklists, health):
        module_tools, module_handlers = module.register()
        tools.extend(module_tools)
        handlers.update(module_handlers)
    return tools, handlers


_TOOLS, _HANDLERS = _build_registry()
_TOOLS_BY_NAME: dict[str, Tool] = {tool.name: tool for tool in _TOOLS}


def _get_settings() -> Settings:
    if _settings is None:
        msg = "Settings not initialized"
        raise RuntimeError(msg)
    return _settings


def _get_client() -> TrelloClient:
    if _client is None:
        msg = "Trello client not initialized"
        raise RuntimeError(msg)
    return _client


def _get_session() -> SessionContext:
    if _session is None:
        msg = "Session not initialized"
        raise RuntimeError(msg)
    return _session


def _get_creds() -> Credentials:
    creds = _request_creds.get()
    if creds is None:
        msg = "No credentials bound to this call"
        raise RuntimeError(msg)
    return creds


def _resolver() -> ScopeResolver:
    return ScopeResolver(_get_client(), _get_session(), _get_creds())


def _checklist_index() -> ChecklistIndex:
    return ChecklistIndex(_resolver())


def _diagnostics() -> DiagnosticsEngine:
    return DiagnosticsEngine(_get_client(), _get_session(), _get_creds())


def _repair_engine() -> RepairEngine:
    return RepairEngine(_diagnostics(), _get_session())


# ---------------------------------------------------------------------------
# Tool surface
# ---------------------------------------------------------------------------


@server.list_tools()  # type: ignore[untyped-decorator,no-untyped-call]
async def list_tools() -> list[Tool]:
    return list(_TOOLS)


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    arguments = arguments or {}
    public_args = strip_secrets(arguments)
    t0 = time.monotonic()

    try:
        result = await _dispatch(name, arguments, public_args)
    except CorkboardError as exc:
        if _logger:
            _logger.warning("tool_failed", extra={"tool": name, "args_data": public_args, "error": exc.code})
        return _text(exc.to_dict())
    except Exception:
        if _logger:
            _logger.error("tool_error", extra={"tool": name, "args_data": public_args}, exc_info=True)
        raise
    else:
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        if _logger:
            _logger.info("tool_call", extra={"tool": name, "args_data": public_args, "duration_ms": duration_ms})
        return result


async def _dispatch(name: str, arguments: dict[str, Any], public_args: dict[str, Any]) -> list[TextContent]:
    tool = _TOOLS_BY_NAME.get(name)
    if tool is None:
        return _text({"error": f"Unknown tool: {name}", "code": "unknown_tool"})
    creds = resolve_credentials(arguments, _get_settings())
    _validate_args(tool, public_args)
    token = _request_creds.set(creds)
    try:
        return await _HANDLERS[name](public_args)  # type: ignore[no-any-return]
    finally:
        _request_creds.reset(token)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


async def _run(home: Path | None) -> None:
    global _settings, _client, _session, _logger

    settings = Settings.from_env()
    if home is not None:
        settings = dataclasses.replace(settings, home=home)
    _settings = settings

    from corkboard.logging import setup_logging

    _logger = setup_logging(settings.home)

    loaded = load_session(
        settings.session_path,
        default_board_id=settings.default_board_id,
        default_workspace_id=settings.default_workspace_id,
    )
    if not loaded.ok:
        _logger.warning("session_load_failed", extra={"error": str(loaded.error)})
    _session = loaded.context
    _logger.info("mcp_server_start", extra={"tool": "server", "args_data": {"home": str(settings.home), **_session.snapshot()}})

    async with TrelloClient(base_url=settings.api_base, timeout=settings.http_timeout) as client:
        _client = client
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    import asyncio

    parser = argparse.ArgumentParser(description="Corkboard MCP server for Trello")
    parser.add_argument("--home", type=Path, default=None, help="State directory (default: $CORKBOARD_HOME or ~/.corkboard)")
    args = parser.parse_args()

    asyncio.run(_run(args.home))


if __name__ == "__main__":
    main()
