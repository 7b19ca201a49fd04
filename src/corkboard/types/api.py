"""TypedDicts for MCP tool responses and diagnostics/repair reports."""

from __future__ import annotations

from typing import Any, Literal, NotRequired, TypedDict

from corkboard.types.core import CheckItemDict, ISOTimestamp

ReportStatus = Literal["ok", "degraded", "down"]
FindingStatus = Literal["ok", "warning", "failed", "skipped"]
Severity = Literal["info", "warning", "error"]
PostRepairStatus = Literal["resolved", "unresolved", "unchanged", "failed"]

# ---------------------------------------------------------------------------
# Shared types
# ---------------------------------------------------------------------------


class ErrorResponse(TypedDict):
    """Standard error envelope returned by MCP error paths."""

    error: str
    code: str


class EntityRef(TypedDict):
    type: str
    id: str


# ---------------------------------------------------------------------------
# Checklist queries
# ---------------------------------------------------------------------------


class ChecklistCandidate(TypedDict):
    """One match listed in an ambiguous-name error."""

    checklistId: str
    checklistName: str
    cardId: str
    cardName: str
    boardId: str | None


class ChecklistSummary(TypedDict):
    """get_checklist_by_name response.

    ``completionPercentage`` is a fraction in ``[0, 1]``.
    """

    id: str
    name: str
    cardId: str
    cardName: str
    boardId: str | None
    items: list[CheckItemDict]
    completed: int
    total: int
    completionPercentage: float


class CheckItemMatch(TypedDict):
    """find_checklist_items_by_description result row."""

    id: str
    name: str
    state: str
    checklistId: str
    checklistName: str
    cardId: str
    cardName: str


# ---------------------------------------------------------------------------
# Diagnostics / repair
# ---------------------------------------------------------------------------


class FindingDict(TypedDict):
    check: str
    status: FindingStatus
    severity: Severity
    code: str
    message: str
    entity: NotRequired[EntityRef]
    metrics: NotRequired[dict[str, Any]]


class HealthReportDict(TypedDict):
    check: str
    status: ReportStatus
    timestamp: ISOTimestamp
    findings: list[FindingDict]


class RepairResultDict(TypedDict):
    code: str
    message: str
    original_status: FindingStatus
    action: str
    post_status: PostRepairStatus
    entity: NotRequired[EntityRef]
    error: NotRequired[str]


class RepairReportDict(TypedDict):
    status: Literal["repaired", "partial", "nothing_to_repair", "no_automated_action"]
    timestamp: ISOTimestamp
    results: list[RepairResultDict]
