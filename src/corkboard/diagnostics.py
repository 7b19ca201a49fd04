"""Health checks against the remote board service and the local session.

Four report kinds, each produced fresh per invocation (nothing persisted):

* **basic**: one round-trip (list workspaces): reachable? authenticated? latency.
* **detailed**: basic connectivity plus a fixed probe battery. Probes are
  isolated: an exception inside one becomes that probe's ``failed`` finding
  and the remaining probes still run.
* **metadata**: referential-integrity cross-checks on the active board.
* **performance**: latency samples for read operations, plus write latency
  the client observed during normal tool calls. Diagnostics never write.

Every finding carries a machine-readable ``code``; the repair engine
dispatches on it.
"""

from __future__ import annotations

import logging
import statistics
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from corkboard.config import Credentials
from corkboard.errors import UpstreamError
from corkboard.types import BoardDict, CardDict, ChecklistDict, ISOTimestamp, LabelDict, ListDict, MemberDict, WorkspaceDict
from corkboard.types.api import EntityRef, FindingDict, FindingStatus, HealthReportDict, ReportStatus, Severity

if TYPE_CHECKING:
    from corkboard.client import TrelloClient
    from corkboard.session import SessionContext

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

SLOW_RESPONSE_MS = 2000.0
ACCEPTABLE_MEDIAN_MS = 1000.0
RATE_LIMIT_LOW_HEADROOM = 0.1
PERFORMANCE_SAMPLES = 3
CHECKLIST_SAMPLE_CARDS = 5

# ---------------------------------------------------------------------------
# Finding codes
# ---------------------------------------------------------------------------

CONNECTIVITY_OK = "connectivity_ok"
SLOW_RESPONSE = "slow_response"
AUTH_FAILED = "auth_failed"
SERVICE_UNREACHABLE = "service_unreachable"
PROBE_FAILED = "probe_failed"
NO_ACTIVE_BOARD = "no_active_board"
ACTIVE_BOARD_OK = "active_board_ok"
ACTIVE_BOARD_STALE = "active_board_stale"
NO_ACTIVE_WORKSPACE = "no_active_workspace"
ACTIVE_WORKSPACE_OK = "active_workspace_ok"
ACTIVE_WORKSPACE_STALE = "active_workspace_stale"
BOARD_UNAVAILABLE = "board_unavailable"
WORKSPACE_UNAVAILABLE = "workspace_unavailable"
BOARD_CONTENTS = "board_contents"
CHECKLISTS_OK = "checklists_ok"
RATE_LIMIT_OK = "rate_limit_ok"
RATE_LIMIT_LOW = "rate_limit_low"
RATE_LIMIT_UNKNOWN = "rate_limit_unknown"
SESSION_PERSISTED = "session_persisted"
SESSION_NOT_PERSISTED = "session_not_persisted"
SESSION_EPHEMERAL = "session_ephemeral"
CARD_LIST_MISMATCH = "card_list_mismatch"
ORPHAN_CHECKLIST = "orphan_checklist"
UNKNOWN_CARD_LABEL = "unknown_card_label"
UNKNOWN_CARD_MEMBER = "unknown_card_member"
BOARD_WORKSPACE_MISMATCH = "board_workspace_mismatch"
INTEGRITY_OK = "integrity_ok"
LATENCY_MEASURED = "latency_measured"
SLOW_OPERATIONS = "slow_operations"
NO_SAMPLES = "no_samples"

# Findings from these checks decide whether a report is "down".
_CONNECTIVITY_CHECK = "connectivity"


@dataclass
class Finding:
    check: str
    status: FindingStatus
    severity: Severity
    code: str
    message: str
    entity: EntityRef | None = None
    metrics: dict[str, Any] | None = None

    @property
    def is_issue(self) -> bool:
        return self.status in ("warning", "failed")

    def to_dict(self) -> FindingDict:
        data = FindingDict(
            check=self.check,
            status=self.status,
            severity=self.severity,
            code=self.code,
            message=self.message,
        )
        if self.entity is not None:
            data["entity"] = self.entity
        if self.metrics is not None:
            data["metrics"] = self.metrics
        return data


@dataclass
class HealthReport:
    check: str
    findings: list[Finding]
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def status(self) -> ReportStatus:
        if any(f.check == _CONNECTIVITY_CHECK and f.status == "failed" for f in self.findings):
            return "down"
        if any(f.is_issue for f in self.findings):
            return "degraded"
        return "ok"

    def issues(self) -> list[Finding]:
        return [f for f in self.findings if f.is_issue]

    def to_dict(self) -> HealthReportDict:
        return HealthReportDict(
            check=self.check,
            status=self.status,
            timestamp=ISOTimestamp(self.timestamp),
            findings=[f.to_dict() for f in self.findings],
        )


@dataclass
class _ProbeContext:
    """Results shared between probes of one report run."""

    board: BoardDict | None = None
    workspace: WorkspaceDict | None = None
    memo: dict[str, Any] = field(default_factory=dict)


def _entity(kind: str, entity_id: str) -> EntityRef:
    return EntityRef(type=kind, id=entity_id)


def _latency_stats(samples: list[float]) -> dict[str, Any]:
    return {
        "samples": len(samples),
        "min_ms": round(min(samples), 1),
        "median_ms": round(statistics.median(samples), 1),
        "max_ms": round(max(samples), 1),
    }


Probe = Callable[[_ProbeContext], Awaitable[list[Finding]]]


class DiagnosticsEngine:
    def __init__(
        self,
        service: TrelloClient,
        session: SessionContext,
        creds: Credentials,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.service = service
        self.session = session
        self.creds = creds
        self.clock = clock

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def basic_health(self) -> HealthReport:
        ctx = _ProbeContext()
        return HealthReport("basic", await self._run_probe(_CONNECTIVITY_CHECK, self._probe_connectivity, ctx))

    async def detailed_health(self) -> HealthReport:
        ctx = _ProbeContext()
        probes: list[tuple[str, Probe]] = [
            (_CONNECTIVITY_CHECK, self._probe_connectivity),
            ("board_reachability", self._probe_active_board),
            ("workspace_reachability", self._probe_active_workspace),
            ("board_contents", self._probe_board_contents),
            ("checklists", self._probe_checklists),
            ("rate_limit", self._probe_rate_limit),
            ("session_persistence", self._probe_session_persistence),
        ]
        findings: list[Finding] = []
        for name, probe in probes:
            findings.extend(await self._run_probe(name, probe, ctx))
        return HealthReport("detailed", findings)

    async def metadata_health(self) -> HealthReport:
        ctx = _ProbeContext()
        probes: list[tuple[str, Probe]] = [
            ("board_reachability", self._probe_active_board),
            ("workspace_reachability", self._probe_active_workspace),
            ("card_lists", self._probe_card_lists),
            ("checklist_cards", self._probe_checklist_cards),
            ("card_labels", self._probe_card_labels),
            ("card_members", self._probe_card_members),
            ("board_workspace", self._probe_board_workspace),
        ]
        findings: list[Finding] = []
        for name, probe in probes:
            findings.extend(await self._run_probe(name, probe, ctx))
        return HealthReport("metadata", findings)

    async def performance_health(self) -> HealthReport:
        operations: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("get_me", lambda: self.service.get_me(self.creds)),
            ("list_boards", lambda: self.service.list_boards(self.creds)),
        ]
        board_id = self.session.active_board_id
        if board_id:
            operations.append(("get_board", lambda: self.service.get_board(self.creds, board_id)))
            operations.append(("get_lists", lambda: self.service.get_lists(self.creds, board_id)))

        findings: list[Finding] = []
        read_samples: list[float] = []
        for op_name, call in operations:
            samples: list[float] = []
            try:
                for _ in range(PERFORMANCE_SAMPLES):
                    t0 = self.clock()
                    await call()
                    samples.append((self.clock() - t0) * 1000)
            except Exception as exc:
                logger.warning("performance probe %s failed", op_name, exc_info=True)
                findings.append(Finding(f"read:{op_name}", "failed", "error", PROBE_FAILED, f"{op_name} failed: {exc}"))
                continue
            read_samples.extend(samples)
            findings.append(self._latency_finding(f"read:{op_name}", samples))

        findings.append(self._class_finding("read", read_samples))
        findings.append(self._class_finding("write", self.service.samples("write")))
        return HealthReport("performance", findings)

    # ------------------------------------------------------------------
    # Single checks (used by the repair engine to confirm a fix)
    # ------------------------------------------------------------------

    async def recheck(self, code: str) -> list[Finding]:
        """Re-run the one probe that produces findings with *code*."""
        probe_by_code: dict[str, tuple[str, Probe]] = {
            ACTIVE_BOARD_STALE: ("board_reachability", self._probe_active_board),
            ACTIVE_WORKSPACE_STALE: ("workspace_reachability", self._probe_active_workspace),
        }
        if code not in probe_by_code:
            msg = f"No single check produces {code}"
            raise KeyError(msg)
        name, probe = probe_by_code[code]
        return await self._run_probe(name, probe, _ProbeContext())

    # ------------------------------------------------------------------
    # Probe runner
    # ------------------------------------------------------------------

    async def _run_probe(self, name: str, probe: Probe, ctx: _ProbeContext) -> list[Finding]:
        try:
            return await probe(ctx)
        except Exception as exc:
            logger.warning("probe_failed", extra={"tool": name, "error": str(exc)}, exc_info=True)
            return [Finding(name, "failed", "error", PROBE_FAILED, f"{name} probe failed: {exc}")]

    async def _memo(self, ctx: _ProbeContext, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        if key not in ctx.memo:
            ctx.memo[key] = await factory()
        return ctx.memo[key]

    def _board_or_skip(self, ctx: _ProbeContext, check: str) -> tuple[BoardDict | None, list[Finding]]:
        if ctx.board is not None:
            return ctx.board, []
        reason = "no active board set" if self.session.active_board_id is None else "active board unreachable"
        return None, [Finding(check, "skipped", "info", BOARD_UNAVAILABLE, f"Skipped: {reason}")]

    # ------------------------------------------------------------------
    # Probes: connectivity and session
    # ------------------------------------------------------------------

    async def _probe_connectivity(self, ctx: _ProbeContext) -> list[Finding]:
        check = _CONNECTIVITY_CHECK
        t0 = self.clock()
        try:
            workspaces = await self.service.list_workspaces(self.creds)
        except UpstreamError as exc:
            latency = round((self.clock() - t0) * 1000, 1)
            if exc.is_auth_failure:
                return [Finding(check, "failed", "error", AUTH_FAILED, f"Credentials rejected: {exc}", metrics={"latency_ms": latency})]
            return [Finding(check, "failed", "error", SERVICE_UNREACHABLE, f"Service unreachable: {exc}", metrics={"latency_ms": latency})]
        latency = round((self.clock() - t0) * 1000, 1)
        metrics = {"latency_ms": latency, "workspaces": len(workspaces)}
        if latency > SLOW_RESPONSE_MS:
            return [Finding(check, "warning", "warning", SLOW_RESPONSE, f"Service responded slowly ({latency} ms)", metrics=metrics)]
        return [Finding(check, "ok", "info", CONNECTIVITY_OK, f"Connected ({latency} ms)", metrics=metrics)]

    async def _probe_active_board(self, ctx: _ProbeContext) -> list[Finding]:
        check = "board_reachability"
        board_id = self.session.active_board_id
        if board_id is None:
            return [Finding(check, "skipped", "info", NO_ACTIVE_BOARD, "No active board set")]
        try:
            board = await self.service.get_board(self.creds, board_id)
        except UpstreamError as exc:
            if not exc.is_unreachable:
                raise
            return [
                Finding(
                    check,
                    "failed",
                    "error",
                    ACTIVE_BOARD_STALE,
                    f"Active board {board_id} is no longer accessible",
                    entity=_entity("board", board_id),
                )
            ]
        ctx.board = board
        return [Finding(check, "ok", "info", ACTIVE_BOARD_OK, f'Active board "{board.get("name", board_id)}" reachable', entity=_entity("board", board_id))]

    async def _probe_active_workspace(self, ctx: _ProbeContext) -> list[Finding]:
        check = "workspace_reachability"
        workspace_id = self.session.active_workspace_id
        if workspace_id is None:
            return [Finding(check, "skipped", "info", NO_ACTIVE_WORKSPACE, "No active workspace set")]
        try:
            workspace = await self.service.get_workspace(self.creds, workspace_id)
        except UpstreamError as exc:
            if not exc.is_unreachable:
                raise
            return [
                Finding(
                    check,
                    "failed",
                    "error",
                    ACTIVE_WORKSPACE_STALE,
                    f"Active workspace {workspace_id} is no longer accessible",
                    entity=_entity("workspace", workspace_id),
                )
            ]
        ctx.workspace = workspace
        name = workspace.get("displayName") or workspace.get("name") or workspace_id
        return [Finding(check, "ok", "info", ACTIVE_WORKSPACE_OK, f'Active workspace "{name}" reachable', entity=_entity("workspace", workspace_id))]

    async def _probe_rate_limit(self, ctx: _ProbeContext) -> list[Finding]:
        check = "rate_limit"
        snapshot = self.service.rate_limit
        if snapshot is None:
            return [Finding(check, "skipped", "info", RATE_LIMIT_UNKNOWN, "No rate-limit headers observed yet")]
        metrics: dict[str, Any] = {"remaining": snapshot.remaining, "limit": snapshot.limit}
        headroom = snapshot.headroom
        if headroom is not None:
            metrics["headroom"] = round(headroom, 3)
            if headroom < RATE_LIMIT_LOW_HEADROOM:
                return [Finding(check, "warning", "warning", RATE_LIMIT_LOW, f"Rate limit nearly exhausted ({snapshot.remaining} left)", metrics=metrics)]
        return [Finding(check, "ok", "info", RATE_LIMIT_OK, f"{snapshot.remaining} requests left in window", metrics=metrics)]

    async def _probe_session_persistence(self, ctx: _ProbeContext) -> list[Finding]:
        check = "session_persistence"
        if self.session.path is None:
            return [Finding(check, "skipped", "info", SESSION_EPHEMERAL, "Session is in-memory only")]
        if self.session.last_save_error:
            return [
                Finding(
                    check,
                    "warning",
                    "warning",
                    SESSION_NOT_PERSISTED,
                    f"Last session save failed; active board/workspace will not survive a restart: {self.session.last_save_error}",
                )
            ]
        return [Finding(check, "ok", "info", SESSION_PERSISTED, f"Session stored at {self.session.path}")]

    # ------------------------------------------------------------------
    # Probes: board contents
    # ------------------------------------------------------------------

    async def _lists(self, ctx: _ProbeContext, board_id: str) -> list[ListDict]:
        return await self._memo(ctx, "lists", lambda: self.service.get_lists(self.creds, board_id, include_archived=True))  # type: ignore[no-any-return]

    async def _cards(self, ctx: _ProbeContext, board_id: str) -> list[CardDict]:
        return await self._memo(ctx, "cards", lambda: self.service.get_board_cards(self.creds, board_id))  # type: ignore[no-any-return]

    async def _probe_board_contents(self, ctx: _ProbeContext) -> list[Finding]:
        check = "board_contents"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        lists = await self._lists(ctx, board["id"])
        cards = await self._cards(ctx, board["id"])
        metrics = {
            "open_lists": sum(1 for lst in lists if not lst.get("closed")),
            "archived_lists": sum(1 for lst in lists if lst.get("closed")),
            "open_cards": sum(1 for c in cards if not c.get("closed")),
            "archived_cards": sum(1 for c in cards if c.get("closed")),
        }
        return [Finding(check, "ok", "info", BOARD_CONTENTS, f"{metrics['open_lists']} lists, {metrics['open_cards']} cards", metrics=metrics)]

    async def _probe_checklists(self, ctx: _ProbeContext) -> list[Finding]:
        check = "checklists"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        cards = sorted((c for c in await self._cards(ctx, board["id"]) if not c.get("closed")), key=lambda c: c["id"])
        sample = cards[:CHECKLIST_SAMPLE_CARDS]
        checklists = 0
        items = 0
        for card in sample:
            for checklist in await self.service.get_card_checklists(self.creds, card["id"]):
                checklists += 1
                items += len(checklist.get("checkItems") or [])
        metrics = {"cards_sampled": len(sample), "checklists": checklists, "items": items}
        return [Finding(check, "ok", "info", CHECKLISTS_OK, f"Read {checklists} checklists from {len(sample)} cards", metrics=metrics)]

    # ------------------------------------------------------------------
    # Probes: referential integrity
    # ------------------------------------------------------------------

    async def _probe_card_lists(self, ctx: _ProbeContext) -> list[Finding]:
        check = "card_lists"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        list_ids = {lst["id"] for lst in await self._lists(ctx, board["id"])}
        cards = await self._cards(ctx, board["id"])
        findings = [
            Finding(
                check,
                "failed",
                "error",
                CARD_LIST_MISMATCH,
                f'Card "{card.get("name", "")}" points at list {card.get("idList")} which is not on board {board["id"]}',
                entity=_entity("card", card["id"]),
            )
            for card in cards
            if card.get("idList") not in list_ids or card.get("idBoard", board["id"]) != board["id"]
        ]
        return findings or [Finding(check, "ok", "info", INTEGRITY_OK, f"All {len(cards)} cards sit on lists of this board")]

    async def _probe_checklist_cards(self, ctx: _ProbeContext) -> list[Finding]:
        check = "checklist_cards"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        card_ids = {c["id"] for c in await self._cards(ctx, board["id"])}
        checklists: list[ChecklistDict] = await self.service.get_board_checklists(self.creds, board["id"])
        findings = [
            Finding(
                check,
                "failed",
                "error",
                ORPHAN_CHECKLIST,
                f'Checklist "{cl.get("name", "")}" belongs to card {cl.get("idCard")} which does not exist on this board',
                entity=_entity("checklist", cl["id"]),
            )
            for cl in checklists
            if cl.get("idCard") not in card_ids
        ]
        return findings or [Finding(check, "ok", "info", INTEGRITY_OK, f"All {len(checklists)} checklists belong to existing cards")]

    async def _probe_card_labels(self, ctx: _ProbeContext) -> list[Finding]:
        check = "card_labels"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        labels: list[LabelDict] = await self.service.get_board_labels(self.creds, board["id"])
        label_ids = {label["id"] for label in labels}
        findings = [
            Finding(
                check,
                "warning",
                "warning",
                UNKNOWN_CARD_LABEL,
                f'Card "{card.get("name", "")}" references label {label_id} not defined on this board',
                entity=_entity("card", card["id"]),
            )
            for card in await self._cards(ctx, board["id"])
            for label_id in card.get("idLabels") or []
            if label_id not in label_ids
        ]
        return findings or [Finding(check, "ok", "info", INTEGRITY_OK, "All card labels are defined on the board")]

    async def _probe_card_members(self, ctx: _ProbeContext) -> list[Finding]:
        check = "card_members"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        members: list[MemberDict] = await self.service.get_board_members(self.creds, board["id"])
        member_ids = {m["id"] for m in members}
        findings = [
            Finding(
                check,
                "warning",
                "warning",
                UNKNOWN_CARD_MEMBER,
                f'Card "{card.get("name", "")}" is assigned to {member_id} who is not a board member',
                entity=_entity("card", card["id"]),
            )
            for card in await self._cards(ctx, board["id"])
            for member_id in card.get("idMembers") or []
            if member_id not in member_ids
        ]
        return findings or [Finding(check, "ok", "info", INTEGRITY_OK, "All assigned members belong to the board")]

    async def _probe_board_workspace(self, ctx: _ProbeContext) -> list[Finding]:
        check = "board_workspace"
        board, skipped = self._board_or_skip(ctx, check)
        if board is None:
            return skipped
        # Only a workspace confirmed reachable in this run is compared.
        if ctx.workspace is None:
            reason = "no active workspace set" if self.session.active_workspace_id is None else "active workspace unreachable"
            return [Finding(check, "skipped", "info", WORKSPACE_UNAVAILABLE, f"Skipped: {reason}")]
        workspace_id = ctx.workspace.get("id") or self.session.active_workspace_id
        board_workspace = board.get("idOrganization")
        if board_workspace and board_workspace != workspace_id:
            return [
                Finding(
                    check,
                    "warning",
                    "warning",
                    BOARD_WORKSPACE_MISMATCH,
                    f"Active board belongs to workspace {board_workspace}, not the active workspace {workspace_id}",
                    entity=_entity("board", board["id"]),
                )
            ]
        return [Finding(check, "ok", "info", INTEGRITY_OK, "Active board and workspace are consistent")]

    # ------------------------------------------------------------------
    # Performance helpers
    # ------------------------------------------------------------------

    def _latency_finding(self, check: str, samples: list[float]) -> Finding:
        stats = _latency_stats(samples)
        if stats["median_ms"] > ACCEPTABLE_MEDIAN_MS:
            return Finding(check, "warning", "warning", SLOW_OPERATIONS, f"median {stats['median_ms']} ms (slow)", metrics={**stats, "verdict": "slow"})
        return Finding(check, "ok", "info", LATENCY_MEASURED, f"median {stats['median_ms']} ms", metrics={**stats, "verdict": "acceptable"})

    def _class_finding(self, kind: str, samples: list[float]) -> Finding:
        check = f"class:{kind}"
        if not samples:
            return Finding(check, "skipped", "info", NO_SAMPLES, f"No {kind} operations sampled", metrics={"samples": 0, "verdict": "no_samples"})
        return self._latency_finding(check, samples)
