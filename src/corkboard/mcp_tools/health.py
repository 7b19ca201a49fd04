"""MCP tools for health diagnostics and self-repair."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from corkboard.mcp_tools.common import _object_schema, _text


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for health-domain tools."""
    tools = [
        Tool(
            name="get_health",
            description="Basic health check: is the Trello API reachable with these credentials, and how fast",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="get_health_detailed",
            description="Comprehensive health diagnostic with every subsystem probe",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="get_health_metadata",
            description="Verify referential consistency between the active board's lists, cards, checklists, labels, and members",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="get_health_performance",
            description="Latency statistics for read operations and observed write operations",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="perform_system_repair",
            description="Repair stale session state found by diagnostics. Never deletes or archives remote data.",
            inputSchema=_object_schema({}),
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "get_health": _handle_get_health,
        "get_health_detailed": _handle_get_health_detailed,
        "get_health_metadata": _handle_get_health_metadata,
        "get_health_performance": _handle_get_health_performance,
        "perform_system_repair": _handle_perform_system_repair,
    }

    return tools, handlers


async def _handle_get_health(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _diagnostics

    return _text((await _diagnostics().basic_health()).to_dict())


async def _handle_get_health_detailed(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _diagnostics

    return _text((await _diagnostics().detailed_health()).to_dict())


async def _handle_get_health_metadata(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _diagnostics

    return _text((await _diagnostics().metadata_health()).to_dict())


async def _handle_get_health_performance(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _diagnostics

    return _text((await _diagnostics().performance_health()).to_dict())


async def _handle_perform_system_repair(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_session, _repair_engine

    report = await _repair_engine().perform_repair()
    return _text({**report.to_dict(), "session": _get_session().snapshot()})
