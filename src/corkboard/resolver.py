"""Scope-aware resolution of checklists and checklist items by name.

Checklist names are only unique within one card, so every lookup is scoped:

* ``card_id`` given: search only that card's checklists;
* otherwise a board (explicit ``board_id`` or the session's active board):
  every checklist on a card that sits on an open list (archived lists
  only when the caller asks for them);
* otherwise: :class:`~corkboard.errors.MissingScopeError`. There is no
  global search.

Name matching is exact and case-sensitive. Zero matches raise
:class:`~corkboard.errors.NotFoundError`, more than one raises
:class:`~corkboard.errors.AmbiguousMatchError` listing every candidate. The
resolver never picks one by position or recency.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from corkboard.config import Credentials
from corkboard.errors import AmbiguousMatchError, MissingScopeError, NotFoundError
from corkboard.types import CardDict, CheckItemDict, ChecklistDict
from corkboard.types.api import ChecklistCandidate, CheckItemMatch

if TYPE_CHECKING:
    from corkboard.client import TrelloClient
    from corkboard.session import SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scope:
    """The (card, board) context a lookup searched. Exactly one is set."""

    card_id: str | None = None
    board_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.card_id:
            return {"cardId": self.card_id}
        return {"boardId": self.board_id}

    def describe(self) -> str:
        return f"card {self.card_id}" if self.card_id else f"board {self.board_id}"


@dataclass(frozen=True)
class ChecklistMatch:
    """A checklist together with the card (and board) that owns it."""

    checklist: ChecklistDict
    card_id: str
    card_name: str
    board_id: str | None

    @property
    def items(self) -> list[CheckItemDict]:
        return list(self.checklist.get("checkItems") or [])

    def candidate(self) -> ChecklistCandidate:
        return ChecklistCandidate(
            checklistId=self.checklist.get("id", ""),
            checklistName=self.checklist.get("name", ""),
            cardId=self.card_id,
            cardName=self.card_name,
            boardId=self.board_id,
        )


@dataclass(frozen=True)
class ItemMatch:
    item: CheckItemDict
    owner: ChecklistMatch

    def to_dict(self) -> CheckItemMatch:
        return CheckItemMatch(
            id=self.item.get("id", ""),
            name=self.item.get("name", ""),
            state=self.item.get("state", "incomplete"),
            checklistId=self.owner.checklist.get("id", ""),
            checklistName=self.owner.checklist.get("name", ""),
            cardId=self.owner.card_id,
            cardName=self.owner.card_name,
        )


class ScopeResolver:
    def __init__(self, service: TrelloClient, session: SessionContext, creds: Credentials) -> None:
        self.service = service
        self.session = session
        self.creds = creds

    def scope_for(self, card_id: str | None = None, board_id: str | None = None) -> Scope:
        """Pick the narrowest available scope; raises MissingScopeError if none."""
        if card_id:
            return Scope(card_id=card_id)
        return Scope(board_id=self.session.resolve_board_id(board_id))

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def checklists_in_scope(self, scope: Scope, *, include_archived: bool = False) -> list[ChecklistMatch]:
        """Every checklist visible under *scope*, ordered by (card id, checklist id).

        A board scope costs three requests however many cards it holds:
        lists, cards, and checklists are each fetched board-wide and joined
        locally.
        """
        if scope.card_id:
            card = await self.service.get_card(self.creds, scope.card_id)
            matches = [
                ChecklistMatch(cl, scope.card_id, card.get("name", ""), card.get("idBoard"))
                for cl in card.get("checklists") or []
            ]
        elif scope.board_id:
            matches = await self._board_checklists(scope.board_id, include_archived=include_archived)
        else:
            msg = "No card or board to search in"
            raise MissingScopeError(msg)
        matches.sort(key=lambda m: (m.card_id, m.checklist.get("id", "")))
        return matches

    async def _board_checklists(self, board_id: str, *, include_archived: bool) -> list[ChecklistMatch]:
        lists, cards, checklists = await asyncio.gather(
            self.service.get_lists(self.creds, board_id, include_archived=include_archived),
            self.service.get_board_cards(self.creds, board_id),
            self.service.get_board_checklists(self.creds, board_id),
        )
        list_ids = {lst["id"] for lst in lists if include_archived or not lst.get("closed")}
        visible: dict[str, CardDict] = {
            card["id"]: card for card in cards if not card.get("closed") and card.get("idList") in list_ids
        }
        logger.debug("Scanned %d lists / %d cards on board %s", len(list_ids), len(visible), board_id)
        return [
            ChecklistMatch(cl, cl["idCard"], visible[cl["idCard"]].get("name", ""), visible[cl["idCard"]].get("idBoard") or board_id)
            for cl in checklists
            if cl.get("idCard") in visible
        ]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def resolve_checklist(
        self,
        name: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> ChecklistMatch:
        scope = self.scope_for(card_id, board_id)
        matches = [
            m
            for m in await self.checklists_in_scope(scope, include_archived=include_archived)
            if m.checklist.get("name") == name
        ]
        if not matches:
            msg = f'Checklist "{name}" not found in {scope.describe()}'
            raise NotFoundError(msg, scope=scope.to_dict())
        if len(matches) > 1:
            cards = ", ".join(f"{m.card_name or '?'} ({m.card_id})" for m in matches)
            msg = f'Checklist name "{name}" is ambiguous in {scope.describe()}: found on {len(matches)} checklists ({cards})'
            raise AmbiguousMatchError(msg, candidates=[dict(m.candidate()) for m in matches])
        return matches[0]

    async def resolve_checklist_item(
        self,
        text: str,
        *,
        checklist_name: str | None = None,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> ItemMatch:
        """Resolve one checklist item by its exact text, same policy as checklists."""
        scope = self.scope_for(card_id, board_id)
        matches = [
            ItemMatch(item, owner)
            for owner in await self.checklists_in_scope(scope, include_archived=include_archived)
            if checklist_name is None or owner.checklist.get("name") == checklist_name
            for item in owner.items
            if item.get("name") == text
        ]
        if not matches:
            where = f' in checklist "{checklist_name}"' if checklist_name else ""
            msg = f'Checklist item "{text}" not found{where} in {scope.describe()}'
            raise NotFoundError(msg, scope=scope.to_dict())
        if len(matches) > 1:
            msg = f'Checklist item "{text}" is ambiguous in {scope.describe()}: {len(matches)} matches'
            raise AmbiguousMatchError(msg, candidates=[dict(m.to_dict()) for m in matches])
        return matches[0]

    async def find_items_by_description(
        self,
        text: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> list[ItemMatch]:
        """All items whose text contains *text* (case-insensitive). May be empty."""
        scope = self.scope_for(card_id, board_id)
        needle = text.casefold()
        return [
            ItemMatch(item, owner)
            for owner in await self.checklists_in_scope(scope, include_archived=include_archived)
            for item in owner.items
            if needle in (item.get("name") or "").casefold()
        ]
