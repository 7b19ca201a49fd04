"""Shared pytest fixtures for corkboard tests."""

from __future__ import annotations

import copy
from collections import deque
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from corkboard.client import CallMetric, RateLimitSnapshot
from corkboard.config import Credentials
from corkboard.errors import UpstreamError
from corkboard.session import SessionContext


class FakeBoardService:
    """In-memory stand-in for TrelloClient.

    Unknown ids raise ``UpstreamError`` with status 404, like the real API.
    ``failures`` maps a method name to an exception raised on every call to
    that method, for probe-isolation tests.
    """

    def __init__(self) -> None:
        self.workspaces: dict[str, dict[str, Any]] = {}
        self.boards: dict[str, dict[str, Any]] = {}
        self.lists: dict[str, dict[str, Any]] = {}
        self.cards: dict[str, dict[str, Any]] = {}
        self.checklists: dict[str, dict[str, Any]] = {}
        self.labels: dict[str, dict[str, Any]] = {}
        self.members: dict[str, list[dict[str, Any]]] = {}
        self.me: dict[str, Any] = {"id": "me", "username": "tester", "fullName": "Test User"}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.seen_creds: list[Credentials] = []
        self.metrics: deque[CallMetric] = deque(maxlen=200)
        self.rate_limit: RateLimitSnapshot | None = None
        self.closed = False
        self._next_id = 0

    # -- builders ------------------------------------------------------------

    def add_workspace(self, ws_id: str, name: str = "Workspace") -> dict[str, Any]:
        self.workspaces[ws_id] = {"id": ws_id, "name": name.lower(), "displayName": name}
        return self.workspaces[ws_id]

    def add_board(self, board_id: str, name: str = "Board", *, workspace: str | None = None) -> dict[str, Any]:
        self.boards[board_id] = {"id": board_id, "name": name, "idOrganization": workspace, "closed": False}
        self.members.setdefault(board_id, [])
        return self.boards[board_id]

    def add_list(self, list_id: str, board_id: str, name: str = "List", *, closed: bool = False) -> dict[str, Any]:
        self.lists[list_id] = {"id": list_id, "idBoard": board_id, "name": name, "closed": closed}
        return self.lists[list_id]

    def add_card(self, card_id: str, list_id: str, name: str = "Card", **fields: Any) -> dict[str, Any]:
        board_id = self.lists[list_id]["idBoard"] if list_id in self.lists else fields.pop("idBoard", None)
        card = {"id": card_id, "idList": list_id, "idBoard": board_id, "name": name, "closed": False, "idLabels": [], "idMembers": []}
        card.update(fields)
        self.cards[card_id] = card
        return card

    def add_checklist(self, checklist_id: str, card_id: str, name: str, items: list[tuple[str, str]] | None = None) -> dict[str, Any]:
        board_id = self.cards[card_id]["idBoard"] if card_id in self.cards else None
        check_items = [
            {"id": f"{checklist_id}-i{n}", "idChecklist": checklist_id, "name": text, "state": state, "pos": n}
            for n, (text, state) in enumerate(items or [])
        ]
        self.checklists[checklist_id] = {
            "id": checklist_id,
            "idCard": card_id,
            "idBoard": board_id,
            "name": name,
            "checkItems": check_items,
        }
        return self.checklists[checklist_id]

    def add_label(self, label_id: str, board_id: str, name: str = "", color: str = "green") -> dict[str, Any]:
        self.labels[label_id] = {"id": label_id, "idBoard": board_id, "name": name, "color": color}
        return self.labels[label_id]

    def add_member(self, board_id: str, member_id: str, name: str = "Member") -> dict[str, Any]:
        member = {"id": member_id, "fullName": name, "username": name.lower()}
        self.members.setdefault(board_id, []).append(member)
        return member

    # -- plumbing --------------------------------------------------------------

    def _enter(self, op: str, creds: Credentials, *args: Any) -> None:
        self.calls.append((op, args))
        self.seen_creds.append(creds)
        if op in self.failures:
            raise self.failures[op]

    @staticmethod
    def _missing(op: str, entity_id: str) -> UpstreamError:
        return UpstreamError(op, "The requested resource was not found.", entity_id=entity_id, status_code=404)

    def _get(self, table: dict[str, dict[str, Any]], op: str, entity_id: str) -> dict[str, Any]:
        if entity_id not in table:
            raise self._missing(op, entity_id)
        return copy.deepcopy(table[entity_id])

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-new{self._next_id}"

    def samples(self, kind: str) -> list[float]:
        return [m.duration_ms for m in self.metrics if m.kind == kind and m.ok]

    def calls_to(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    async def aclose(self) -> None:
        self.closed = True

    # -- members / workspaces --------------------------------------------------

    async def get_me(self, creds: Credentials) -> dict[str, Any]:
        self._enter("get_me", creds)
        return dict(self.me)

    async def list_workspaces(self, creds: Credentials) -> list[dict[str, Any]]:
        self._enter("list_workspaces", creds)
        return [copy.deepcopy(w) for w in self.workspaces.values()]

    async def get_workspace(self, creds: Credentials, workspace_id: str) -> dict[str, Any]:
        self._enter("get_workspace", creds, workspace_id)
        return self._get(self.workspaces, "get_workspace", workspace_id)

    # -- boards ------------------------------------------------------------------

    async def list_boards(self, creds: Credentials) -> list[dict[str, Any]]:
        self._enter("list_boards", creds)
        return [copy.deepcopy(b) for b in self.boards.values()]

    async def list_boards_in_workspace(self, creds: Credentials, workspace_id: str) -> list[dict[str, Any]]:
        self._enter("list_boards_in_workspace", creds, workspace_id)
        return [copy.deepcopy(b) for b in self.boards.values() if b.get("idOrganization") == workspace_id]

    async def get_board(self, creds: Credentials, board_id: str) -> dict[str, Any]:
        self._enter("get_board", creds, board_id)
        return self._get(self.boards, "get_board", board_id)

    async def create_board(self, creds: Credentials, name: str, **kwargs: Any) -> dict[str, Any]:
        self._enter("create_board", creds, name, kwargs)
        return copy.deepcopy(self.add_board(self._new_id("board"), name, workspace=kwargs.get("id_organization")))

    async def get_lists(self, creds: Credentials, board_id: str, *, include_archived: bool = False) -> list[dict[str, Any]]:
        self._enter("get_lists", creds, board_id, include_archived)
        if board_id not in self.boards:
            raise self._missing("get_lists", board_id)
        return [
            copy.deepcopy(lst)
            for lst in self.lists.values()
            if lst["idBoard"] == board_id and (include_archived or not lst["closed"])
        ]

    async def get_list_cards(self, creds: Credentials, list_id: str) -> list[dict[str, Any]]:
        self._enter("get_list_cards", creds, list_id)
        if list_id not in self.lists:
            raise self._missing("get_list_cards", list_id)
        return [copy.deepcopy(c) for c in self.cards.values() if c["idList"] == list_id and not c["closed"]]

    async def get_board_cards(self, creds: Credentials, board_id: str) -> list[dict[str, Any]]:
        self._enter("get_board_cards", creds, board_id)
        if board_id not in self.boards:
            raise self._missing("get_board_cards", board_id)
        return [copy.deepcopy(c) for c in self.cards.values() if c["idBoard"] == board_id]

    async def get_board_checklists(self, creds: Credentials, board_id: str) -> list[dict[str, Any]]:
        self._enter("get_board_checklists", creds, board_id)
        if board_id not in self.boards:
            raise self._missing("get_board_checklists", board_id)
        return [copy.deepcopy(cl) for cl in self.checklists.values() if cl["idBoard"] == board_id]

    async def get_board_members(self, creds: Credentials, board_id: str) -> list[dict[str, Any]]:
        self._enter("get_board_members", creds, board_id)
        if board_id not in self.boards:
            raise self._missing("get_board_members", board_id)
        return copy.deepcopy(self.members.get(board_id, []))

    async def get_board_labels(self, creds: Credentials, board_id: str) -> list[dict[str, Any]]:
        self._enter("get_board_labels", creds, board_id)
        if board_id not in self.boards:
            raise self._missing("get_board_labels", board_id)
        return [copy.deepcopy(lb) for lb in self.labels.values() if lb["idBoard"] == board_id]

    # -- cards / checklists ------------------------------------------------------

    async def get_card(self, creds: Credentials, card_id: str) -> dict[str, Any]:
        self._enter("get_card", creds, card_id)
        card = self._get(self.cards, "get_card", card_id)
        card["checklists"] = [copy.deepcopy(cl) for cl in self.checklists.values() if cl["idCard"] == card_id]
        return card

    async def get_card_checklists(self, creds: Credentials, card_id: str) -> list[dict[str, Any]]:
        self._enter("get_card_checklists", creds, card_id)
        if card_id not in self.cards:
            raise self._missing("get_card_checklists", card_id)
        return [copy.deepcopy(cl) for cl in self.checklists.values() if cl["idCard"] == card_id]

    async def add_checklist_item(self, creds: Credentials, checklist_id: str, text: str) -> dict[str, Any]:
        self._enter("add_checklist_item", creds, checklist_id, text)
        if checklist_id not in self.checklists:
            raise self._missing("add_checklist_item", checklist_id)
        items = self.checklists[checklist_id]["checkItems"]
        item = {"id": self._new_id("item"), "idChecklist": checklist_id, "name": text, "state": "incomplete", "pos": len(items)}
        items.append(item)
        return copy.deepcopy(item)

    async def update_checklist_item(self, creds: Credentials, card_id: str, item_id: str, state: str) -> dict[str, Any]:
        self._enter("update_checklist_item", creds, card_id, item_id, state)
        for checklist in self.checklists.values():
            if checklist["idCard"] != card_id:
                continue
            for item in checklist["checkItems"]:
                if item["id"] == item_id:
                    item["state"] = state
                    return copy.deepcopy(item)
        raise self._missing("update_checklist_item", item_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def creds() -> Credentials:
    return Credentials(api_key="test-key-0001", token="test-token-0002")


@pytest.fixture
def service() -> FakeBoardService:
    """Empty fake Trello with one workspace."""
    svc = FakeBoardService()
    svc.add_workspace("ws1", "Team")
    return svc


@pytest.fixture
def populated_service(service: FakeBoardService) -> FakeBoardService:
    """Board B1 with two cards sharing an "Acceptance Criteria" checklist.

    Creates:
    - Board b1 (workspace ws1): open list l1, archived list l2
    - Cards c1, c2 on l1; card c3 on archived list l2
    - c1 "Acceptance Criteria": 3 items, 1 complete; c1 "Empty": no items
    - c2 "Acceptance Criteria": 2 items, none complete
    - c3 "Release": 1 item
    - Board b2 (workspace ws1) with card c9 and its own "Deploy" checklist
    """
    service.add_board("b1", "Product", workspace="ws1")
    service.add_list("l1", "b1", "Doing")
    service.add_list("l2", "b1", "Old", closed=True)
    service.add_card("c1", "l1", "Login page")
    service.add_card("c2", "l1", "Signup page")
    service.add_card("c3", "l2", "Legacy cleanup")
    service.add_checklist(
        "cl1",
        "c1",
        "Acceptance Criteria",
        [("Validates email format", "complete"), ("Shows error on bad password", "incomplete"), ("Remembers user", "incomplete")],
    )
    service.add_checklist("cl1e", "c1", "Empty")
    service.add_checklist("cl2", "c2", "Acceptance Criteria", [("Sends welcome EMAIL", "incomplete"), ("Rejects duplicates", "incomplete")])
    service.add_checklist("cl3", "c3", "Release", [("Tag build", "incomplete")])
    service.add_board("b2", "Ops", workspace="ws1")
    service.add_list("l9", "b2", "Todo")
    service.add_card("c9", "l9", "Rotate keys")
    service.add_checklist("cl9", "c9", "Deploy", [("Roll out", "incomplete")])
    return service


@pytest.fixture
def session(tmp_path: Path) -> SessionContext:
    """Empty session persisted under tmp_path."""
    return SessionContext(tmp_path / "session.json")


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
