"""Pure helpers and constants shared across MCP tool modules.

This module has NO dependency on ``mcp_server`` module globals, so it can
be imported freely without triggering circular-import issues.
"""

from __future__ import annotations

import json
from typing import Any

import jsonschema
from mcp.types import TextContent, Tool

from corkboard.errors import ValidationError


# Reusable property schemas. Credentials never appear here: call_tool
# injects them and strips them before validation.
BOARD_ID: dict[str, Any] = {
    "type": "string",
    "description": "ID of the Trello board (uses the active board if omitted)",
}
CARD_SCOPE: dict[str, Any] = {
    "type": "string",
    "description": "ID of the card to scope the checklist search to (recommended to avoid ambiguity)",
}
INCLUDE_ARCHIVED: dict[str, Any] = {
    "type": "boolean",
    "description": "Also search cards on archived lists when searching a board (default false)",
}


def _text(content: object) -> list[TextContent]:
    if isinstance(content, str):
        return [TextContent(type="text", text=content)]
    return [TextContent(type="text", text=json.dumps(content, indent=2, default=str))]


def _validate_args(tool: Tool, arguments: dict[str, Any]) -> None:
    """Check *arguments* against the tool's input schema.

    Raises ValidationError naming the offending field.
    """
    try:
        jsonschema.validate(arguments, tool.inputSchema)
    except jsonschema.ValidationError as exc:
        where = ".".join(str(p) for p in exc.absolute_path)
        msg = f"Invalid arguments for {tool.name}: {exc.message}"
        if where:
            msg += f" (at {where})"
        raise ValidationError(msg) from exc


def _object_schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema
