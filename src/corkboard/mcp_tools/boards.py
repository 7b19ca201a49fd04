"""MCP tools for boards, workspaces, lists, members, and labels."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from corkboard.errors import MissingScopeError
from corkboard.mcp_tools.common import BOARD_ID, _object_schema, _text


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for board-domain tools."""
    tools = [
        Tool(
            name="list_boards",
            description="List all boards the user has access to",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="set_active_board",
            description="Set the active board for future operations. The board must be reachable.",
            inputSchema=_object_schema(
                {"boardId": {"type": "string", "description": "ID of the board to set as active"}},
                ["boardId"],
            ),
        ),
        Tool(
            name="get_active_board_info",
            description="Get information about the currently active board",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="list_workspaces",
            description="List all workspaces the user has access to",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="set_active_workspace",
            description="Set the active workspace for future operations",
            inputSchema=_object_schema(
                {"workspaceId": {"type": "string", "description": "ID of the workspace to set as active"}},
                ["workspaceId"],
            ),
        ),
        Tool(
            name="list_boards_in_workspace",
            description="List all boards in a specific workspace",
            inputSchema=_object_schema(
                {"workspaceId": {"type": "string", "description": "ID of the workspace to list boards from"}},
                ["workspaceId"],
            ),
        ),
        Tool(
            name="create_board",
            description="Create a new Trello board, optionally within a workspace",
            inputSchema=_object_schema(
                {
                    "name": {"type": "string", "description": "Name of the board"},
                    "desc": {"type": "string", "description": "Description of the board"},
                    "idOrganization": {
                        "type": "string",
                        "minLength": 1,
                        "description": "Workspace ID to create the board in (uses the active workspace if omitted)",
                    },
                    "defaultLabels": {"type": "boolean", "default": True, "description": "Create default labels"},
                    "defaultLists": {"type": "boolean", "default": True, "description": "Create default lists"},
                },
                ["name"],
            ),
        ),
        Tool(
            name="get_lists",
            description="Retrieve all open lists from the board",
            inputSchema=_object_schema({"boardId": BOARD_ID}),
        ),
        Tool(
            name="add_list_to_board",
            description="Add a new list to the board",
            inputSchema=_object_schema(
                {"boardId": BOARD_ID, "name": {"type": "string", "description": "Name of the new list"}},
                ["name"],
            ),
        ),
        Tool(
            name="archive_list",
            description="Send a list to the archive",
            inputSchema=_object_schema(
                {"boardId": BOARD_ID, "listId": {"type": "string", "description": "ID of the list to archive"}},
                ["listId"],
            ),
        ),
        Tool(
            name="get_recent_activity",
            description="Fetch recent activity on the board",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "limit": {"type": "integer", "default": 10, "minimum": 1, "description": "Number of activities to fetch"},
                }
            ),
        ),
        Tool(
            name="get_board_members",
            description="Get all members of a board",
            inputSchema=_object_schema({"boardId": BOARD_ID}),
        ),
        Tool(
            name="get_board_labels",
            description="Get all labels of a board",
            inputSchema=_object_schema({"boardId": BOARD_ID}),
        ),
        Tool(
            name="create_label",
            description="Create a new label on a board",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "name": {"type": "string", "description": "Name of the label"},
                    "color": {
                        "type": "string",
                        "description": 'Label color (e.g. "red", "blue", "green", "yellow", "orange", "purple", "pink", "sky", "lime", "black", "null")',
                    },
                },
                ["name"],
            ),
        ),
        Tool(
            name="update_label",
            description="Update an existing label",
            inputSchema=_object_schema(
                {
                    "labelId": {"type": "string", "description": "ID of the label to update"},
                    "name": {"type": "string", "description": "New name for the label"},
                    "color": {"type": "string", "description": "New color for the label"},
                },
                ["labelId"],
            ),
        ),
        Tool(
            name="delete_label",
            description="Delete a label from a board",
            inputSchema=_object_schema(
                {"labelId": {"type": "string", "description": "ID of the label to delete"}},
                ["labelId"],
            ),
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "list_boards": _handle_list_boards,
        "set_active_board": _handle_set_active_board,
        "get_active_board_info": _handle_get_active_board_info,
        "list_workspaces": _handle_list_workspaces,
        "set_active_workspace": _handle_set_active_workspace,
        "list_boards_in_workspace": _handle_list_boards_in_workspace,
        "create_board": _handle_create_board,
        "get_lists": _handle_get_lists,
        "add_list_to_board": _handle_add_list_to_board,
        "archive_list": _handle_archive_list,
        "get_recent_activity": _handle_get_recent_activity,
        "get_board_members": _handle_get_board_members,
        "get_board_labels": _handle_get_board_labels,
        "create_label": _handle_create_label,
        "update_label": _handle_update_label,
        "delete_label": _handle_delete_label,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers: boards and workspaces
# ---------------------------------------------------------------------------


async def _handle_list_boards(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().list_boards(_get_creds()))


async def _handle_set_active_board(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board = await _get_session().set_active_board(_get_client(), _get_creds(), arguments["boardId"])
    return _text(
        {
            "status": "ok",
            "message": f'Successfully set active board to "{board.get("name", "")}" ({board.get("id", arguments["boardId"])})',
            "activeBoardId": _get_session().active_board_id,
        }
    )


async def _handle_get_active_board_info(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    session = _get_session()
    board_id = session.active_board_id
    if board_id is None:
        msg = "No active board set"
        raise MissingScopeError(msg)
    board = await _get_client().get_board(_get_creds(), board_id)
    return _text({**board, "isActive": True, "activeWorkspaceId": session.active_workspace_id or "Not set"})


async def _handle_list_workspaces(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().list_workspaces(_get_creds()))


async def _handle_set_active_workspace(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    workspace = await _get_session().set_active_workspace(_get_client(), _get_creds(), arguments["workspaceId"])
    name = workspace.get("displayName") or workspace.get("name") or ""
    return _text(
        {
            "status": "ok",
            "message": f'Successfully set active workspace to "{name}" ({workspace.get("id", arguments["workspaceId"])})',
            "activeWorkspaceId": _get_session().active_workspace_id,
        }
    )


async def _handle_list_boards_in_workspace(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().list_boards_in_workspace(_get_creds(), arguments["workspaceId"]))


async def _handle_create_board(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board = await _get_client().create_board(
        _get_creds(),
        arguments["name"],
        desc=arguments.get("desc"),
        id_organization=_get_session().resolve_workspace_id(arguments.get("idOrganization")),
        default_labels=arguments.get("defaultLabels", True),
        default_lists=arguments.get("defaultLists", True),
    )
    return _text(board)


# ---------------------------------------------------------------------------
# Handlers: lists and activity
# ---------------------------------------------------------------------------


async def _handle_get_lists(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    return _text(await _get_client().get_lists(_get_creds(), board_id))


async def _handle_add_list_to_board(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    return _text(await _get_client().add_list(_get_creds(), board_id, arguments["name"]))


async def _handle_archive_list(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().archive_list(_get_creds(), arguments["listId"]))


async def _handle_get_recent_activity(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    actions = await _get_client().get_board_actions(_get_creds(), board_id, limit=arguments.get("limit", 10))
    return _text(actions)


# ---------------------------------------------------------------------------
# Handlers: members and labels
# ---------------------------------------------------------------------------


async def _handle_get_board_members(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    return _text(await _get_client().get_board_members(_get_creds(), board_id))


async def _handle_get_board_labels(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    return _text(await _get_client().get_board_labels(_get_creds(), board_id))


async def _handle_create_label(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds, _get_session

    board_id = _get_session().resolve_board_id(arguments.get("boardId"))
    label = await _get_client().create_label(_get_creds(), board_id, arguments["name"], color=arguments.get("color"))
    return _text(label)


async def _handle_update_label(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    label = await _get_client().update_label(
        _get_creds(), arguments["labelId"], name=arguments.get("name"), color=arguments.get("color")
    )
    return _text(label)


async def _handle_delete_label(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    await _get_client().delete_label(_get_creds(), arguments["labelId"])
    return _text({"status": "deleted", "labelId": arguments["labelId"]})
