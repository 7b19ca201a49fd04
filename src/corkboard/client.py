"""Async client for the Trello REST API.

Every operation takes the caller's :class:`~corkboard.config.Credentials`
explicitly, so one client instance serves calls made with different key/token
pairs. HTTP and transport failures are wrapped in
:class:`~corkboard.errors.UpstreamError` naming the operation and entity;
nothing is retried here.

The client also keeps two pieces of observational state used by the
diagnostics engine: a bounded window of per-call latencies and the most
recent rate-limit headers the API returned.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from corkboard.config import DEFAULT_API_BASE, DEFAULT_HTTP_TIMEOUT, Credentials
from corkboard.errors import UpstreamError
from corkboard.types import (
    BoardDict,
    CardDict,
    CheckItemDict,
    ChecklistDict,
    LabelDict,
    ListDict,
    MemberDict,
    WorkspaceDict,
)

logger = logging.getLogger(__name__)

CallKind = Literal["read", "write"]

_METRICS_WINDOW = 200
_ERROR_DETAIL_LIMIT = 200

# Trello reports per-token and per-key budgets; token limits are tighter.
_RATE_LIMIT_HEADERS = (
    ("x-rate-limit-api-token-remaining", "x-rate-limit-api-token-max"),
    ("x-rate-limit-api-key-remaining", "x-rate-limit-api-key-max"),
)


@dataclass(frozen=True)
class CallMetric:
    operation: str
    kind: CallKind
    duration_ms: float
    ok: bool


@dataclass(frozen=True)
class RateLimitSnapshot:
    remaining: int
    limit: int | None
    observed_at: float

    @property
    def headroom(self) -> float | None:
        """Remaining budget as a fraction of the window limit, if known."""
        if not self.limit:
            return None
        return self.remaining / self.limit


class TrelloClient:
    """Thin async wrapper over the Trello REST endpoints corkboard uses."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self.metrics: deque[CallMetric] = deque(maxlen=_METRICS_WINDOW)
        self.rate_limit: RateLimitSnapshot | None = None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TrelloClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        creds: Credentials,
        *,
        entity_id: str | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        kind: CallKind = "read" if method == "GET" else "write"
        headers = {"Accept": "application/json", "Authorization": creds.authorization_header()}
        clean_params = {k: _encode_param(v) for k, v in (params or {}).items() if v is not None}
        t0 = time.monotonic()
        ok = False
        try:
            response = await self._http.request(
                method,
                path,
                params=clean_params or None,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            detail = _scrub(f"{type(exc).__name__}: {exc}", creds)
            raise UpstreamError(operation, detail, entity_id=entity_id) from exc
        finally:
            duration_ms = round((time.monotonic() - t0) * 1000, 1)

        self._observe_rate_limit(response.headers)
        try:
            if response.status_code >= 400:
                detail = _scrub(response.text[:_ERROR_DETAIL_LIMIT].strip() or response.reason_phrase, creds)
                raise UpstreamError(operation, detail, entity_id=entity_id, status_code=response.status_code)
            ok = True
        finally:
            self.metrics.append(CallMetric(operation, kind, duration_ms, ok))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _observe_rate_limit(self, headers: httpx.Headers) -> None:
        for remaining_key, limit_key in _RATE_LIMIT_HEADERS:
            remaining = headers.get(remaining_key)
            if remaining is None:
                continue
            try:
                limit_raw = headers.get(limit_key)
                self.rate_limit = RateLimitSnapshot(
                    remaining=int(remaining),
                    limit=int(limit_raw) if limit_raw is not None else None,
                    observed_at=time.time(),
                )
            except ValueError:
                logger.debug("Unparseable rate-limit header %s=%r", remaining_key, remaining)
            return

    def samples(self, kind: CallKind) -> list[float]:
        """Durations (ms) of successful calls of one kind in the current window."""
        return [m.duration_ms for m in self.metrics if m.kind == kind and m.ok]

    # ------------------------------------------------------------------
    # Members / workspaces
    # ------------------------------------------------------------------

    async def get_me(self, creds: Credentials) -> MemberDict:
        return await self._request("get_me", "GET", "/members/me", creds)  # type: ignore[no-any-return]

    async def list_workspaces(self, creds: Credentials) -> list[WorkspaceDict]:
        return await self._request("list_workspaces", "GET", "/members/me/organizations", creds)  # type: ignore[no-any-return]

    async def get_workspace(self, creds: Credentials, workspace_id: str) -> WorkspaceDict:
        return await self._request(  # type: ignore[no-any-return]
            "get_workspace", "GET", f"/organizations/{workspace_id}", creds, entity_id=workspace_id
        )

    async def get_my_cards(self, creds: Credentials) -> list[CardDict]:
        return await self._request("get_my_cards", "GET", "/members/me/cards", creds)  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def list_boards(self, creds: Credentials) -> list[BoardDict]:
        return await self._request(  # type: ignore[no-any-return]
            "list_boards", "GET", "/members/me/boards", creds, params={"filter": "open"}
        )

    async def list_boards_in_workspace(self, creds: Credentials, workspace_id: str) -> list[BoardDict]:
        return await self._request(  # type: ignore[no-any-return]
            "list_boards_in_workspace", "GET", f"/organizations/{workspace_id}/boards", creds, entity_id=workspace_id
        )

    async def get_board(self, creds: Credentials, board_id: str) -> BoardDict:
        return await self._request("get_board", "GET", f"/boards/{board_id}", creds, entity_id=board_id)  # type: ignore[no-any-return]

    async def create_board(
        self,
        creds: Credentials,
        name: str,
        *,
        desc: str | None = None,
        id_organization: str | None = None,
        default_labels: bool = True,
        default_lists: bool = True,
    ) -> BoardDict:
        return await self._request(  # type: ignore[no-any-return]
            "create_board",
            "POST",
            "/boards",
            creds,
            params={
                "name": name,
                "desc": desc,
                "idOrganization": id_organization,
                "defaultLabels": default_labels,
                "defaultLists": default_lists,
            },
        )

    async def get_lists(self, creds: Credentials, board_id: str, *, include_archived: bool = False) -> list[ListDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_lists",
            "GET",
            f"/boards/{board_id}/lists",
            creds,
            entity_id=board_id,
            params={"filter": "all" if include_archived else "open"},
        )

    async def get_board_cards(self, creds: Credentials, board_id: str) -> list[CardDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_board_cards", "GET", f"/boards/{board_id}/cards", creds, entity_id=board_id, params={"filter": "all"}
        )

    async def get_board_checklists(self, creds: Credentials, board_id: str) -> list[ChecklistDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_board_checklists", "GET", f"/boards/{board_id}/checklists", creds, entity_id=board_id
        )

    async def get_board_members(self, creds: Credentials, board_id: str) -> list[MemberDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_board_members", "GET", f"/boards/{board_id}/members", creds, entity_id=board_id
        )

    async def get_board_labels(self, creds: Credentials, board_id: str) -> list[LabelDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_board_labels", "GET", f"/boards/{board_id}/labels", creds, entity_id=board_id
        )

    async def get_board_actions(self, creds: Credentials, board_id: str, *, limit: int = 10) -> list[dict[str, Any]]:
        return await self._request(  # type: ignore[no-any-return]
            "get_recent_activity", "GET", f"/boards/{board_id}/actions", creds, entity_id=board_id, params={"limit": limit}
        )

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def add_list(self, creds: Credentials, board_id: str, name: str) -> ListDict:
        return await self._request(  # type: ignore[no-any-return]
            "add_list", "POST", "/lists", creds, entity_id=board_id, params={"name": name, "idBoard": board_id}
        )

    async def archive_list(self, creds: Credentials, list_id: str) -> ListDict:
        return await self._request(  # type: ignore[no-any-return]
            "archive_list", "PUT", f"/lists/{list_id}/closed", creds, entity_id=list_id, params={"value": True}
        )

    async def get_list_cards(self, creds: Credentials, list_id: str) -> list[CardDict]:
        return await self._request("get_list_cards", "GET", f"/lists/{list_id}/cards", creds, entity_id=list_id)  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    async def get_card(self, creds: Credentials, card_id: str) -> CardDict:
        return await self._request(  # type: ignore[no-any-return]
            "get_card",
            "GET",
            f"/cards/{card_id}",
            creds,
            entity_id=card_id,
            params={
                "attachments": True,
                "checklists": "all",
                "labels": True,
                "members": True,
                "list": True,
                "board": True,
            },
        )

    async def add_card(
        self,
        creds: Credentials,
        list_id: str,
        name: str,
        *,
        description: str | None = None,
        due: str | None = None,
        start: str | None = None,
        label_ids: list[str] | None = None,
    ) -> CardDict:
        return await self._request(  # type: ignore[no-any-return]
            "add_card",
            "POST",
            "/cards",
            creds,
            entity_id=list_id,
            params={
                "idList": list_id,
                "name": name,
                "desc": description,
                "due": due,
                "start": start,
                "idLabels": label_ids,
            },
        )

    async def update_card(self, creds: Credentials, card_id: str, changes: dict[str, Any]) -> CardDict:
        return await self._request(  # type: ignore[no-any-return]
            "update_card", "PUT", f"/cards/{card_id}", creds, entity_id=card_id, params=changes
        )

    async def archive_card(self, creds: Credentials, card_id: str) -> CardDict:
        return await self._request(  # type: ignore[no-any-return]
            "archive_card", "PUT", f"/cards/{card_id}", creds, entity_id=card_id, params={"closed": True}
        )

    async def move_card(self, creds: Credentials, card_id: str, list_id: str, *, board_id: str | None = None) -> CardDict:
        return await self._request(  # type: ignore[no-any-return]
            "move_card",
            "PUT",
            f"/cards/{card_id}",
            creds,
            entity_id=card_id,
            params={"idList": list_id, "idBoard": board_id},
        )

    async def assign_member(self, creds: Credentials, card_id: str, member_id: str) -> list[MemberDict]:
        return await self._request(  # type: ignore[no-any-return]
            "assign_member", "POST", f"/cards/{card_id}/idMembers", creds, entity_id=card_id, params={"value": member_id}
        )

    async def remove_member(self, creds: Credentials, card_id: str, member_id: str) -> list[MemberDict]:
        return await self._request(  # type: ignore[no-any-return]
            "remove_member", "DELETE", f"/cards/{card_id}/idMembers/{member_id}", creds, entity_id=card_id
        )

    async def get_card_actions(
        self,
        creds: Credentials,
        card_id: str,
        *,
        action_filter: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        return await self._request(  # type: ignore[no-any-return]
            "get_card_actions",
            "GET",
            f"/cards/{card_id}/actions",
            creds,
            entity_id=card_id,
            params={"filter": action_filter, "limit": limit},
        )

    async def add_attachment_url(
        self,
        creds: Credentials,
        card_id: str,
        url: str,
        *,
        name: str | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]:
        return await self._request(  # type: ignore[no-any-return]
            "add_attachment",
            "POST",
            f"/cards/{card_id}/attachments",
            creds,
            entity_id=card_id,
            params={"url": url, "name": name, "mimeType": mime_type},
        )

    async def upload_attachment(
        self,
        creds: Credentials,
        card_id: str,
        content: bytes,
        *,
        name: str,
        mime_type: str,
    ) -> dict[str, Any]:
        return await self._request(  # type: ignore[no-any-return]
            "upload_attachment",
            "POST",
            f"/cards/{card_id}/attachments",
            creds,
            entity_id=card_id,
            data={"name": name, "mimeType": mime_type},
            files={"file": (name, content, mime_type)},
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(self, creds: Credentials, card_id: str, text: str) -> dict[str, Any]:
        return await self._request(  # type: ignore[no-any-return]
            "add_comment", "POST", f"/cards/{card_id}/actions/comments", creds, entity_id=card_id, params={"text": text}
        )

    async def update_comment(self, creds: Credentials, comment_id: str, text: str) -> dict[str, Any]:
        return await self._request(  # type: ignore[no-any-return]
            "update_comment", "PUT", f"/actions/{comment_id}", creds, entity_id=comment_id, params={"text": text}
        )

    async def delete_comment(self, creds: Credentials, comment_id: str) -> None:
        await self._request("delete_comment", "DELETE", f"/actions/{comment_id}", creds, entity_id=comment_id)

    async def get_card_comments(self, creds: Credentials, card_id: str, *, limit: int = 100) -> list[dict[str, Any]]:
        return await self.get_card_actions(creds, card_id, action_filter="commentCard", limit=limit)

    # ------------------------------------------------------------------
    # Checklists
    # ------------------------------------------------------------------

    async def get_card_checklists(self, creds: Credentials, card_id: str) -> list[ChecklistDict]:
        return await self._request(  # type: ignore[no-any-return]
            "get_card_checklists", "GET", f"/cards/{card_id}/checklists", creds, entity_id=card_id
        )

    async def create_checklist(self, creds: Credentials, card_id: str, name: str) -> ChecklistDict:
        return await self._request(  # type: ignore[no-any-return]
            "create_checklist", "POST", "/checklists", creds, entity_id=card_id, params={"idCard": card_id, "name": name}
        )

    async def add_checklist_item(self, creds: Credentials, checklist_id: str, text: str) -> CheckItemDict:
        return await self._request(  # type: ignore[no-any-return]
            "add_checklist_item",
            "POST",
            f"/checklists/{checklist_id}/checkItems",
            creds,
            entity_id=checklist_id,
            params={"name": text},
        )

    async def update_checklist_item(self, creds: Credentials, card_id: str, item_id: str, state: str) -> CheckItemDict:
        return await self._request(  # type: ignore[no-any-return]
            "update_checklist_item",
            "PUT",
            f"/cards/{card_id}/checkItem/{item_id}",
            creds,
            entity_id=item_id,
            params={"state": state},
        )

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    async def create_label(self, creds: Credentials, board_id: str, name: str, *, color: str | None = None) -> LabelDict:
        return await self._request(  # type: ignore[no-any-return]
            "create_label",
            "POST",
            "/labels",
            creds,
            entity_id=board_id,
            params={"idBoard": board_id, "name": name, "color": color},
        )

    async def update_label(
        self,
        creds: Credentials,
        label_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> LabelDict:
        return await self._request(  # type: ignore[no-any-return]
            "update_label", "PUT", f"/labels/{label_id}", creds, entity_id=label_id, params={"name": name, "color": color}
        )

    async def delete_label(self, creds: Credentials, label_id: str) -> None:
        await self._request("delete_label", "DELETE", f"/labels/{label_id}", creds, entity_id=label_id)


def _encode_param(value: Any) -> Any:
    """Trello expects lowercase booleans and comma-joined id lists."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return value


def _scrub(text: str, creds: Credentials) -> str:
    for secret in (creds.api_key, creds.token):
        if secret:
            text = text.replace(secret, "***")
    return text
