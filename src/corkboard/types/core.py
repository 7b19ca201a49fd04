"""TypedDicts for the Trello entities the core reads.

Remote payloads carry many more keys than listed here; these shapes only
document the keys corkboard depends on. All are ``total=False`` because the
remote omits fields depending on the ``fields=`` query parameter.
"""

from __future__ import annotations

from typing import Literal, NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)

CheckItemState = Literal["complete", "incomplete"]


class WorkspaceDict(TypedDict, total=False):
    id: str
    name: str
    displayName: str


class BoardDict(TypedDict, total=False):
    id: str
    name: str
    desc: str
    idOrganization: str | None
    closed: bool
    url: str


class ListDict(TypedDict, total=False):
    id: str
    idBoard: str
    name: str
    closed: bool


class CardDict(TypedDict, total=False):
    id: str
    idList: str
    idBoard: str
    name: str
    desc: str
    due: str | None
    start: str | None
    dueComplete: bool
    idLabels: list[str]
    idMembers: list[str]
    closed: bool


class CheckItemDict(TypedDict, total=False):
    id: str
    idChecklist: str
    name: str
    state: CheckItemState
    pos: float


class ChecklistDict(TypedDict, total=False):
    id: str
    idCard: str
    idBoard: str
    name: str
    checkItems: list[CheckItemDict]


class LabelDict(TypedDict, total=False):
    id: str
    idBoard: str
    name: str
    color: str | None


class MemberDict(TypedDict, total=False):
    id: str
    fullName: str
    username: str


class SessionState(TypedDict, total=False):
    """Shape of the persisted session file."""

    activeBoardId: str
    activeWorkspaceId: str
