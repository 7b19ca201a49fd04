"""MCP tools for cards, attachments, members on cards, comments, and history."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from corkboard.errors import ValidationError
from corkboard.mcp_tools.common import BOARD_ID, _object_schema, _text
from corkboard.types import CardDict

DEFAULT_IMAGE_NAME = "Image Attachment"
DEFAULT_FILE_NAME = "File Attachment"
DEFAULT_IMAGE_MIME = "image/png"

_CARD_ID = {"type": "string", "description": "ID of the card"}

# update_card_details argument -> Trello card field
_CARD_FIELDS = {
    "name": "name",
    "description": "desc",
    "dueDate": "due",
    "start": "start",
    "dueComplete": "dueComplete",
    "labels": "idLabels",
}


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for card-domain tools."""
    tools = [
        Tool(
            name="get_cards_by_list_id",
            description="Fetch cards from a specific Trello list",
            inputSchema=_object_schema(
                {"boardId": BOARD_ID, "listId": {"type": "string", "description": "ID of the Trello list"}},
                ["listId"],
            ),
        ),
        Tool(
            name="get_my_cards",
            description="Fetch all cards assigned to the current user",
            inputSchema=_object_schema({}),
        ),
        Tool(
            name="get_card",
            description="Get detailed information about a card, optionally rendered as markdown",
            inputSchema=_object_schema(
                {
                    "cardId": _CARD_ID,
                    "includeMarkdown": {
                        "type": "boolean",
                        "default": False,
                        "description": "Return the card rendered as markdown instead of JSON",
                    },
                },
                ["cardId"],
            ),
        ),
        Tool(
            name="add_card_to_list",
            description="Add a new card to a list",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "listId": {"type": "string", "description": "ID of the list to add the card to"},
                    "name": {"type": "string", "description": "Name of the card"},
                    "description": {"type": "string", "description": "Description of the card"},
                    "dueDate": {"type": "string", "description": "Due date (ISO 8601)"},
                    "start": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
                    "labels": {"type": "array", "items": {"type": "string"}, "description": "Label IDs to apply"},
                },
                ["listId", "name"],
            ),
        ),
        Tool(
            name="update_card_details",
            description="Update an existing card's details",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "cardId": _CARD_ID,
                    "name": {"type": "string", "description": "New name for the card"},
                    "description": {"type": "string", "description": "New description"},
                    "dueDate": {"type": "string", "description": "New due date (ISO 8601)"},
                    "start": {"type": "string", "description": "New start date (YYYY-MM-DD)"},
                    "dueComplete": {"type": "boolean", "description": "Mark the due date complete or incomplete"},
                    "labels": {"type": "array", "items": {"type": "string"}, "description": "New label IDs"},
                },
                ["cardId"],
            ),
        ),
        Tool(
            name="archive_card",
            description="Send a card to the archive",
            inputSchema=_object_schema({"boardId": BOARD_ID, "cardId": _CARD_ID}, ["cardId"]),
        ),
        Tool(
            name="move_card",
            description="Move a card to a different list, potentially on a different board",
            inputSchema=_object_schema(
                {
                    "boardId": {"type": "string", "description": "ID of the target board when moving across boards"},
                    "cardId": _CARD_ID,
                    "listId": {"type": "string", "description": "ID of the target list"},
                },
                ["cardId", "listId"],
            ),
        ),
        Tool(
            name="assign_member_to_card",
            description="Assign a member to a card",
            inputSchema=_object_schema(
                {"cardId": _CARD_ID, "memberId": {"type": "string", "description": "ID of the member"}},
                ["cardId", "memberId"],
            ),
        ),
        Tool(
            name="remove_member_from_card",
            description="Remove a member from a card",
            inputSchema=_object_schema(
                {"cardId": _CARD_ID, "memberId": {"type": "string", "description": "ID of the member"}},
                ["cardId", "memberId"],
            ),
        ),
        Tool(
            name="get_card_history",
            description="Get the history of actions on a card",
            inputSchema=_object_schema(
                {
                    "cardId": _CARD_ID,
                    "filter": {
                        "type": "string",
                        "description": 'Action type filter (e.g. "all", "updateCard:idList", "commentCard", "addMemberToCard")',
                    },
                    "limit": {"type": "integer", "minimum": 1, "description": "Number of actions to fetch (default: all)"},
                },
                ["cardId"],
            ),
        ),
        Tool(
            name="attach_image_to_card",
            description="Attach an image to a card from a URL",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "cardId": _CARD_ID,
                    "imageUrl": {"type": "string", "description": "URL of the image"},
                    "name": {"type": "string", "default": DEFAULT_IMAGE_NAME, "description": "Attachment name"},
                },
                ["cardId", "imageUrl"],
            ),
        ),
        Tool(
            name="attach_file_to_card",
            description="Attach any file to a card from a URL",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "cardId": _CARD_ID,
                    "fileUrl": {"type": "string", "description": "URL of the file"},
                    "name": {"type": "string", "default": DEFAULT_FILE_NAME, "description": "Attachment name"},
                    "mimeType": {"type": "string", "description": 'MIME type (e.g. "application/pdf")'},
                },
                ["cardId", "fileUrl"],
            ),
        ),
        Tool(
            name="attach_image_data_to_card",
            description="Upload an image to a card from base64 data or a data URL",
            inputSchema=_object_schema(
                {
                    "boardId": BOARD_ID,
                    "cardId": _CARD_ID,
                    "imageData": {
                        "type": "string",
                        "description": "Base64 image data or a data URL (data:image/png;base64,...)",
                    },
                    "name": {"type": "string", "description": "Attachment name"},
                    "mimeType": {"type": "string", "default": DEFAULT_IMAGE_MIME, "description": "MIME type"},
                },
                ["cardId", "imageData"],
            ),
        ),
        Tool(
            name="add_comment",
            description="Add a comment to a card",
            inputSchema=_object_schema(
                {"cardId": _CARD_ID, "text": {"type": "string", "description": "Comment text"}},
                ["cardId", "text"],
            ),
        ),
        Tool(
            name="update_comment",
            description="Replace the text of a comment",
            inputSchema=_object_schema(
                {
                    "commentId": {"type": "string", "description": "ID of the comment"},
                    "text": {"type": "string", "description": "New comment text"},
                },
                ["commentId", "text"],
            ),
        ),
        Tool(
            name="delete_comment",
            description="Delete a comment from a card",
            inputSchema=_object_schema(
                {"commentId": {"type": "string", "description": "ID of the comment"}},
                ["commentId"],
            ),
        ),
        Tool(
            name="get_card_comments",
            description="Retrieve comments on a card",
            inputSchema=_object_schema(
                {
                    "cardId": _CARD_ID,
                    "limit": {"type": "integer", "default": 100, "minimum": 1, "description": "Maximum comments to return"},
                },
                ["cardId"],
            ),
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "get_cards_by_list_id": _handle_get_cards_by_list_id,
        "get_my_cards": _handle_get_my_cards,
        "get_card": _handle_get_card,
        "add_card_to_list": _handle_add_card_to_list,
        "update_card_details": _handle_update_card_details,
        "archive_card": _handle_archive_card,
        "move_card": _handle_move_card,
        "assign_member_to_card": _handle_assign_member_to_card,
        "remove_member_from_card": _handle_remove_member_from_card,
        "get_card_history": _handle_get_card_history,
        "attach_image_to_card": _handle_attach_image_to_card,
        "attach_file_to_card": _handle_attach_file_to_card,
        "attach_image_data_to_card": _handle_attach_image_data_to_card,
        "add_comment": _handle_add_comment,
        "update_comment": _handle_update_comment,
        "delete_comment": _handle_delete_comment,
        "get_card_comments": _handle_get_card_comments,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Rendering / decoding helpers
# ---------------------------------------------------------------------------


def card_to_markdown(card: CardDict | dict[str, Any]) -> str:
    """Render a card fetched with its nested resources as a markdown document."""
    lines = [f"# {card.get('name', '')}", ""]
    if card.get("url"):
        lines.append(f"**URL:** {card['url']}")
    board = card.get("board") or {}
    lst = card.get("list") or {}
    if board.get("name") or lst.get("name"):
        lines.append(f"**Location:** {board.get('name', '?')} / {lst.get('name', '?')}")
    if card.get("due"):
        done = " (complete)" if card.get("dueComplete") else ""
        lines.append(f"**Due:** {card['due']}{done}")
    labels = [label.get("name") or label.get("color", "") for label in card.get("labels") or []]
    if labels:
        lines.append(f"**Labels:** {', '.join(labels)}")
    members = [m.get("fullName") or m.get("username", "") for m in card.get("members") or []]
    if members:
        lines.append(f"**Members:** {', '.join(members)}")

    if card.get("desc"):
        lines += ["", "## Description", "", card["desc"]]

    for checklist in card.get("checklists") or []:
        items = checklist.get("checkItems") or []
        done_count = sum(1 for item in items if item.get("state") == "complete")
        lines += ["", f"## {checklist.get('name', 'Checklist')} ({done_count}/{len(items)})", ""]
        for item in sorted(items, key=lambda i: i.get("pos", 0)):
            mark = "x" if item.get("state") == "complete" else " "
            lines.append(f"- [{mark}] {item.get('name', '')}")

    attachments = card.get("attachments") or []
    if attachments:
        lines += ["", "## Attachments", ""]
        lines += [f"- [{a.get('name') or a.get('url', '')}]({a.get('url', '')})" for a in attachments]

    return "\n".join(lines).rstrip() + "\n"


def decode_image_data(image_data: str, mime_type: str | None = None) -> tuple[bytes, str]:
    """Decode base64 or a ``data:`` URL into (bytes, mime type).

    An explicit *mime_type* wins over the one embedded in a data URL.
    """
    payload = image_data.strip()
    embedded_mime = None
    if payload.startswith("data:"):
        header, sep, payload = payload.partition(",")
        if not sep or ";base64" not in header:
            msg = "imageData data URL must be base64-encoded (data:<mime>;base64,<data>)"
            raise ValidationError(msg)
        embedded_mime = header[len("data:") :].split(";", 1)[0] or None
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = f"imageData is not valid base64: {exc}"
        raise ValidationError(msg) from exc
    if not content:
        msg = "imageData is empty"
        raise ValidationError(msg)
    return content, mime_type or embedded_mime or DEFAULT_IMAGE_MIME


# ---------------------------------------------------------------------------
# Handlers: cards
# ---------------------------------------------------------------------------


async def _handle_get_cards_by_list_id(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().get_list_cards(_get_creds(), arguments["listId"]))


async def _handle_get_my_cards(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().get_my_cards(_get_creds()))


async def _handle_get_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    card = await _get_client().get_card(_get_creds(), arguments["cardId"])
    if arguments.get("includeMarkdown"):
        return _text(card_to_markdown(card))
    return _text(card)


async def _handle_add_card_to_list(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    card = await _get_client().add_card(
        _get_creds(),
        arguments["listId"],
        arguments["name"],
        description=arguments.get("description"),
        due=arguments.get("dueDate"),
        start=arguments.get("start"),
        label_ids=arguments.get("labels"),
    )
    return _text(card)


async def _handle_update_card_details(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    changes = {field: arguments[arg] for arg, field in _CARD_FIELDS.items() if arg in arguments}
    if not changes:
        msg = "update_card_details needs at least one field to change"
        raise ValidationError(msg)
    return _text(await _get_client().update_card(_get_creds(), arguments["cardId"], changes))


async def _handle_archive_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().archive_card(_get_creds(), arguments["cardId"]))


async def _handle_move_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    card = await _get_client().move_card(
        _get_creds(), arguments["cardId"], arguments["listId"], board_id=arguments.get("boardId")
    )
    return _text(card)


async def _handle_assign_member_to_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().assign_member(_get_creds(), arguments["cardId"], arguments["memberId"]))


async def _handle_remove_member_from_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().remove_member(_get_creds(), arguments["cardId"], arguments["memberId"]))


async def _handle_get_card_history(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    actions = await _get_client().get_card_actions(
        _get_creds(), arguments["cardId"], action_filter=arguments.get("filter"), limit=arguments.get("limit")
    )
    return _text(actions)


# ---------------------------------------------------------------------------
# Handlers: attachments
# ---------------------------------------------------------------------------


async def _handle_attach_image_to_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    attachment = await _get_client().add_attachment_url(
        _get_creds(), arguments["cardId"], arguments["imageUrl"], name=arguments.get("name") or DEFAULT_IMAGE_NAME
    )
    return _text(attachment)


async def _handle_attach_file_to_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    attachment = await _get_client().add_attachment_url(
        _get_creds(),
        arguments["cardId"],
        arguments["fileUrl"],
        name=arguments.get("name") or DEFAULT_FILE_NAME,
        mime_type=arguments.get("mimeType"),
    )
    return _text(attachment)


async def _handle_attach_image_data_to_card(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    content, mime_type = decode_image_data(arguments["imageData"], arguments.get("mimeType"))
    name = arguments.get("name") or f"image.{mime_type.rsplit('/', 1)[-1]}"
    attachment = await _get_client().upload_attachment(
        _get_creds(), arguments["cardId"], content, name=name, mime_type=mime_type
    )
    return _text(attachment)


# ---------------------------------------------------------------------------
# Handlers: comments
# ---------------------------------------------------------------------------


async def _handle_add_comment(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().add_comment(_get_creds(), arguments["cardId"], arguments["text"]))


async def _handle_update_comment(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    return _text(await _get_client().update_comment(_get_creds(), arguments["commentId"], arguments["text"]))


async def _handle_delete_comment(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    await _get_client().delete_comment(_get_creds(), arguments["commentId"])
    return _text({"status": "deleted", "commentId": arguments["commentId"]})


async def _handle_get_card_comments(arguments: dict[str, Any]) -> list[TextContent]:
    from corkboard.mcp_server import _get_client, _get_creds

    comments = await _get_client().get_card_comments(_get_creds(), arguments["cardId"], limit=arguments.get("limit", 100))
    return _text(comments)
