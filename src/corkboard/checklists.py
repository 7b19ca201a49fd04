"""Derived checklist queries built on :class:`~corkboard.resolver.ScopeResolver`.

Nothing is cached: each call re-runs the scope traversal, so reads never
observe stale data and calling order never changes a result.
"""

from __future__ import annotations

from collections.abc import Sequence

from corkboard.errors import NotFoundError
from corkboard.resolver import ScopeResolver
from corkboard.types import CheckItemDict
from corkboard.types.api import ChecklistSummary, CheckItemMatch

ACCEPTANCE_CRITERIA = "Acceptance Criteria"


def completion_percentage(items: Sequence[CheckItemDict]) -> float:
    """Fraction of *items* in state ``complete``; 0.0 for an empty checklist."""
    if not items:
        return 0.0
    done = sum(1 for item in items if item.get("state") == "complete")
    return done / len(items)


class ChecklistIndex:
    def __init__(self, resolver: ScopeResolver) -> None:
        self.resolver = resolver

    async def get_checklist_items(
        self,
        name: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> list[CheckItemDict]:
        match = await self.resolver.resolve_checklist(name, card_id=card_id, board_id=board_id, include_archived=include_archived)
        return match.items

    async def get_checklist_by_name(
        self,
        name: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> ChecklistSummary | None:
        """Checklist with items and completion, or None when no checklist has *name*.

        Only "not found" becomes None; ambiguity and missing scope still raise.
        """
        try:
            match = await self.resolver.resolve_checklist(name, card_id=card_id, board_id=board_id, include_archived=include_archived)
        except NotFoundError:
            return None
        items = match.items
        return ChecklistSummary(
            id=match.checklist.get("id", ""),
            name=match.checklist.get("name", name),
            cardId=match.card_id,
            cardName=match.card_name,
            boardId=match.board_id,
            items=items,
            completed=sum(1 for item in items if item.get("state") == "complete"),
            total=len(items),
            completionPercentage=completion_percentage(items),
        )

    async def get_acceptance_criteria(
        self,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> ChecklistSummary | None:
        return await self.get_checklist_by_name(ACCEPTANCE_CRITERIA, card_id=card_id, board_id=board_id, include_archived=include_archived)

    async def find_checklist_items_by_description(
        self,
        text: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> list[CheckItemMatch]:
        matches = await self.resolver.find_items_by_description(text, card_id=card_id, board_id=board_id, include_archived=include_archived)
        return [m.to_dict() for m in matches]

    async def add_checklist_item(
        self,
        text: str,
        checklist_name: str,
        *,
        card_id: str | None = None,
        board_id: str | None = None,
        include_archived: bool = False,
    ) -> CheckItemDict:
        """Append an item to the checklist named *checklist_name* within scope."""
        match = await self.resolver.resolve_checklist(checklist_name, card_id=card_id, board_id=board_id, include_archived=include_archived)
        return await self.resolver.service.add_checklist_item(self.resolver.creds, match.checklist["id"], text)
