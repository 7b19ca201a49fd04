"""Self-repair driven by diagnostic findings.

Repairs only touch local session state. Nothing here deletes or archives a
remote entity; an integrity problem on the board itself is reported with
action ``none available`` and left for a human.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from corkboard.diagnostics import ACTIVE_BOARD_STALE, ACTIVE_WORKSPACE_STALE, DiagnosticsEngine, Finding
from corkboard.errors import RepairError
from corkboard.session import SessionContext
from corkboard.types import ISOTimestamp
from corkboard.types.api import PostRepairStatus, RepairReportDict, RepairResultDict

logger = logging.getLogger(__name__)

NO_ACTION = "none available"


@dataclass
class RepairResult:
    finding: Finding
    action: str
    post_status: PostRepairStatus
    error: str | None = None

    def to_dict(self) -> RepairResultDict:
        data = RepairResultDict(
            code=self.finding.code,
            message=self.finding.message,
            original_status=self.finding.status,
            action=self.action,
            post_status=self.post_status,
        )
        if self.finding.entity is not None:
            data["entity"] = self.finding.entity
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class RepairReport:
    results: list[RepairResult]
    timestamp: str

    @property
    def status(self) -> str:
        if not self.results:
            return "nothing_to_repair"
        attempted = [r for r in self.results if r.action != NO_ACTION]
        if not attempted:
            return "no_automated_action"
        if all(r.post_status == "resolved" for r in attempted):
            return "repaired"
        return "partial"

    def to_dict(self) -> RepairReportDict:
        return RepairReportDict(
            status=self.status,  # type: ignore[typeddict-item]
            timestamp=ISOTimestamp(self.timestamp),
            results=[r.to_dict() for r in self.results],
        )


class RepairEngine:
    def __init__(self, diagnostics: DiagnosticsEngine, session: SessionContext) -> None:
        self.diagnostics = diagnostics
        self.session = session
        self._repairs: dict[str, tuple[str, Callable[[Finding], Awaitable[None]]]] = {
            ACTIVE_BOARD_STALE: ("cleared active board", self._clear_board),
            ACTIVE_WORKSPACE_STALE: ("cleared active workspace", self._clear_workspace),
        }

    async def perform_repair(self) -> RepairReport:
        """Run detailed + metadata diagnostics and fix what can be fixed locally."""
        findings = (await self.diagnostics.detailed_health()).issues()
        findings += (await self.diagnostics.metadata_health()).issues()

        results: list[RepairResult] = []
        seen: set[tuple[str, str | None]] = set()
        for finding in findings:
            key = (finding.code, finding.entity["id"] if finding.entity else None)
            if key in seen:
                continue
            seen.add(key)
            results.append(await self._repair_one(finding))

        report = RepairReport(results, datetime.now(UTC).isoformat())
        logger.info("repair_completed", extra={"args_data": {"status": report.status, "results": len(results)}})
        return report

    async def _repair_one(self, finding: Finding) -> RepairResult:
        if finding.code not in self._repairs:
            return RepairResult(finding, NO_ACTION, "unchanged")
        action, fix = self._repairs[finding.code]
        try:
            await self._apply(fix, finding)
        except RepairError as exc:
            logger.warning("repair_failed", extra={"error": str(exc)})
            return RepairResult(finding, action, "failed", error=str(exc))
        after = await self.diagnostics.recheck(finding.code)
        still_broken = any(f.code == finding.code and f.entity == finding.entity for f in after)
        return RepairResult(finding, action, "unresolved" if still_broken else "resolved")

    async def _apply(self, fix: Callable[[Finding], Awaitable[None]], finding: Finding) -> None:
        try:
            await fix(finding)
        except RepairError:
            raise
        except Exception as exc:
            msg = f"Repair for {finding.code} failed: {exc}"
            raise RepairError(msg) from exc

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _clear_board(self, finding: Finding) -> None:
        expected = finding.entity["id"] if finding.entity else None
        changed = await self.session.clear_active_board(expected=expected)
        logger.info("active_board_cleared", extra={"args_data": {"boardId": expected, "changed": changed}})

    async def _clear_workspace(self, finding: Finding) -> None:
        expected = finding.entity["id"] if finding.entity else None
        changed = await self.session.clear_active_workspace(expected=expected)
        logger.info("active_workspace_cleared", extra={"args_data": {"workspaceId": expected, "changed": changed}})
