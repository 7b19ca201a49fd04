"""MCP tools for checklists and checklist items.

Name-based lookups go through :class:`~corkboard.checklists.ChecklistIndex`,
so they share the resolver's scoping and ambiguity rules.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from corkboard.checklists import ACCEPTANCE_CRITERIA
from corkboard.errors import NotFoundError
from corkboard.mcp_tools.common import BOARD_ID, CARD_SCOPE, INCLUDE_ARCHIVED, _object_schema, _text


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for checklist-domain tools."""
    tools = [
        Tool(
            name="create_checklist",
            description="Create a new checklist on a card",
            inputSchema=_object_schema(
                {
                    "name": {"type": "string", "description": "Name of the checklist"},
                    "cardId": {"type": "string", "description": "ID of the card"},
                },
                ["name", "cardId"],
            ),
        ),
        Tool(
            name="get_checklist_items",
            description="Get all items from a checklist by name. Pass cardId when several cards share the name.",
            inputSchema=_object_schema(
                {
                    "name": {"type": "string", "description": "Name of the checklist"},
                    "cardId": CARD_SCOPE,
                    "boardId": BOARD_ID,
                    "includeArchived": INCLUDE_ARCHIVED,
                },
                ["name"],
            ),
        ),
        Tool(
            name="add_checklist_item",
            description="Add a new item to a checklist found by name",
            inputSchema=_object_schema(
                {
                    "text": {"type": "string", "description": "Text of the checklist item"},
                    "checkListName": {"type": "string", "description": "Name of the checklist to add to"},
                    "cardId": CARD_SCOPE,
                    "boardId": BOARD_ID,
                    "includeArchived": INCLUDE_ARCHIVED,
                },
                ["text", "checkListName"],
            ),
        ),
        Tool(
            name="find_checklist_items_by_description",
            description="Search checklist items whose text contains the given string (case-insensitive)",
            inputSchema=_object_schema(
                {
                    "description": {"type": "string", "description": "Text to search for"},
                    "cardId": CARD_SCOPE,
                    "boardId": BOARD_ID,
                    "includeArchived": INCLUDE_ARCHIVED,
                },
                ["description"],
            ),
        ),
        Tool(
            name="get_acceptance_criteria",
            description=f'Get the "{ACCEPTANCE_CRITERIA}" checklist with its items and completion',
            inputSchema=_object_schema({"cardId": CARD_SCOPE, "boardId": BOARD_ID, "includeArchived": INCLUDE_ARCHIVED}),
        ),
        Tool(
            name="get_checklist_by_name",
            description="Get a checklist with all its items and completion fraction (0-1)",
            inputSchema=_object_schema(
                {
                    "name": {"type": "string", "description": "Name of the checklist"},
                    "cardId": CARD_SCOPE,
                    "boardId": BOARD_ID,
                    "includeArchived": INCLUDE_ARCHIVED,
                },
                ["name"],
            ),
        ),
        Tool(
            name="update_checklist_item",
            description=(
                "Mark a checklist item complete or incomplete. Identify it by checkItemId + cardId, "
                "or by its exact itemText (optionally narrowed with checkListName, cardId or boardId)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "cardId": {"type": "string", "description": "ID of the card containing the item"},
                    "checkItemId": {"type": "string", "description": "ID of the checklist item"},
                    "itemText": {"type": "string", "description": "Exact text of the checklist item"},
                    "checkListName": {"type": "string", "description": "Restrict itemText lookup to this checklist"},
                    "boardId": BOARD_ID,
                    "includeArchived": INCLUDE_ARCHIVED,
                    "state": {"type": "string", "enum": ["complete", "incomplete"], "description": "New state"},
                },
                "required": ["state"],
                "anyOf": [{"required": ["checkItemId", "cardId"]}, {"required": ["itemText"]}],
            },
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "create_checklist": _handle_create_checklist,
        "get_checklist_items": _handle_get_checklist_items,
        "add_checklist_item": _handle_add_checklist_item,
        "find_checklist_items_by_description": _handle_find_checklist_items_by_description,
        "get_acceptance_criteria": _handle_get_acceptance_criteria,
        "get_checklist_by_name": _handle_get_checklist_by_name,
        "update_checklist_item": _handle_update_checklist_item,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_create_checklist(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().create_checklist(_get_creds(), arguments["cardId"], arguments["name"]))


async def _handle_get_checklist_items(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _checklist_index

    items = await _checklist_index().get_checklist_items(
        arguments["name"],
        card_id=arguments.get("cardId"),
        board_id=arguments.get("boardId"),
        include_archived=arguments.get("includeArchived", False),
    )
    return _text(items)


async def _handle_add_checklist_item(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _checklist_index

    item = await _checklist_index().add_checklist_item(
        arguments["text"],
        arguments["checkListName"],
        card_id=arguments.get("cardId"),
        board_id=arguments.get("boardId"),
        include_archived=arguments.get("includeArchived", False),
    )
    return _text(item)


async def _handle_find_checklist_items_by_description(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _checklist_index

    matches = await _checklist_index().find_checklist_items_by_description(
        arguments["description"],
        card_id=arguments.get("cardId"),
        board_id=arguments.get("boardId"),
        include_archived=arguments.get("includeArchived", False),
    )
    return _text(matches)


async def _handle_get_acceptance_criteria(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _checklist_index

    summary = await _checklist_index().get_acceptance_criteria(
        card_id=arguments.get("cardId"),
        board_id=arguments.get("boardId"),
        include_archived=arguments.get("includeArchived", False),
    )
    if summary is None:
        msg = f'Checklist "{ACCEPTANCE_CRITERIA}" not found'
        raise NotFoundError(msg)
    return _text(summary)


async def _handle_get_checklist_by_name(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _checklist_index

    summary = await _checklist_index().get_checklist_by_name(
        arguments["name"],
        card_id=arguments.get("cardId"),
        board_id=arguments.get("boardId"),
        include_archived=arguments.get("includeArchived", False),
    )
    if summary is None:
        msg = f'Checklist "{arguments["name"]}" not found'
        raise NotFoundError(msg)
    return _text(summary)


async def _handle_update_checklist_item(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _resolver

    card_id = arguments.get("cardId")
    item_id = arguments.get("checkItemId")
    if not (item_id and card_id):
        match = await _resolver().resolve_checklist_item(
            arguments["itemText"],
            checklist_name=arguments.get("checkListName"),
            card_id=card_id,
            board_id=arguments.get("boardId"),
            include_archived=arguments.get("includeArchived", False),
        )
        card_id = match.owner.card_id
        item_id = match.item["id"]
    item = await _get_client().update_checklist_item(_get_creds(), card_id, item_id, arguments["state"])
    return _text(item)
