"""Persisted session state: the active board and active workspace.

The session is the only mutable state shared between concurrent tool calls.
Every mutation (confirm remotely, mutate, persist) runs under one
``asyncio.Lock`` so two racing ``set_active_board`` calls serialize and the
last one to acquire the lock wins; the state is never a mix of the two.

Persistence is best-effort in both directions:

* load: a missing or unreadable file yields an empty context (seeded from the
  environment defaults) and never aborts startup; see :func:`load_session`;
* save: a write failure is logged and remembered in ``last_save_error`` but
  the in-memory mutation stands.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from corkboard.config import Credentials, write_atomic
from corkboard.errors import MissingScopeError, NotFoundError, UpstreamError
from corkboard.types import BoardDict, SessionState, WorkspaceDict

if TYPE_CHECKING:
    from corkboard.client import TrelloClient

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(
        self,
        path: Path | None,
        *,
        active_board_id: str | None = None,
        active_workspace_id: str | None = None,
    ) -> None:
        self.path = path
        self._active_board_id = active_board_id
        self._active_workspace_id = active_workspace_id
        self._lock = asyncio.Lock()
        self.last_save_error: str | None = None

    @property
    def active_board_id(self) -> str | None:
        return self._active_board_id

    @property
    def active_workspace_id(self) -> str | None:
        return self._active_workspace_id

    def snapshot(self) -> SessionState:
        state = SessionState()
        if self._active_board_id:
            state["activeBoardId"] = self._active_board_id
        if self._active_workspace_id:
            state["activeWorkspaceId"] = self._active_workspace_id
        return state

    def resolve_board_id(self, explicit: str | None = None) -> str:
        """Return *explicit* if given, else the active board.

        Raises MissingScopeError when neither is available.
        """
        if explicit:
            return explicit
        if self._active_board_id:
            return self._active_board_id
        msg = "No boardId supplied and no active board set. Pass boardId or call set_active_board first."
        raise MissingScopeError(msg)

    def resolve_workspace_id(self, explicit: str | None = None) -> str | None:
        return explicit or self._active_workspace_id

    # ------------------------------------------------------------------
    # Mutations (all serialized)
    # ------------------------------------------------------------------

    async def set_active_board(self, service: TrelloClient, creds: Credentials, board_id: str) -> BoardDict:
        """Make *board_id* the active board after confirming it is reachable."""
        async with self._lock:
            try:
                board = await service.get_board(creds, board_id)
            except UpstreamError as exc:
                if exc.is_unreachable:
                    msg = f"Board not found or not accessible: {board_id}"
                    raise NotFoundError(msg, scope={"boardId": board_id}) from exc
                raise
            self._active_board_id = board.get("id") or board_id
            self._save()
            logger.info("active_board_set", extra={"args_data": {"boardId": self._active_board_id}})
            return board

    async def set_active_workspace(self, service: TrelloClient, creds: Credentials, workspace_id: str) -> WorkspaceDict:
        """Make *workspace_id* the active workspace after confirming it is reachable."""
        async with self._lock:
            try:
                workspace = await service.get_workspace(creds, workspace_id)
            except UpstreamError as exc:
                if exc.is_unreachable:
                    msg = f"Workspace not found or not accessible: {workspace_id}"
                    raise NotFoundError(msg, scope={"workspaceId": workspace_id}) from exc
                raise
            self._active_workspace_id = workspace.get("id") or workspace_id
            self._save()
            logger.info("active_workspace_set", extra={"args_data": {"workspaceId": self._active_workspace_id}})
            return workspace

    async def clear_active_board(self, *, expected: str | None = None) -> bool:
        """Unset the active board. Returns True if anything changed.

        With *expected*, only clears when the current value still equals it,
        so a repair never discards a board someone set in the meantime.
        """
        async with self._lock:
            if self._active_board_id is None:
                return False
            if expected is not None and self._active_board_id != expected:
                return False
            self._active_board_id = None
            self._save()
            return True

    async def clear_active_workspace(self, *, expected: str | None = None) -> bool:
        async with self._lock:
            if self._active_workspace_id is None:
                return False
            if expected is not None and self._active_workspace_id != expected:
                return False
            self._active_workspace_id = None
            self._save()
            return True

    def _save(self) -> None:
        """Persist the current state (best-effort, never fatal)."""
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_atomic(self.path, json.dumps(self.snapshot(), indent=2) + "\n")
        except OSError as exc:
            self.last_save_error = str(exc)
            logger.warning("session_save_failed", extra={"error": str(exc)}, exc_info=True)
        else:
            self.last_save_error = None


# ---------------------------------------------------------------------------
# Startup load
# ---------------------------------------------------------------------------


@dataclass
class SessionLoad:
    """Outcome of reading the session file at startup.

    ``context`` is always usable. ``error`` is set when the file existed but
    could not be read or parsed, in which case ``context`` is the empty
    (environment-seeded) fallback.
    """

    context: SessionContext
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def load_session(
    path: Path,
    *,
    default_board_id: str | None = None,
    default_workspace_id: str | None = None,
) -> SessionLoad:
    """Read the persisted session, falling back to environment defaults.

    Persisted values take precedence over the defaults: the defaults only
    seed a session that has never been saved (or could not be read).
    """
    fallback = SessionContext(path, active_board_id=default_board_id, active_workspace_id=default_workspace_id)
    if not path.exists():
        return SessionLoad(fallback)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            msg = f"{path} must contain a JSON object"
            raise ValueError(msg)
        board_id = raw.get("activeBoardId")
        workspace_id = raw.get("activeWorkspaceId")
        if board_id is not None and not isinstance(board_id, str):
            msg = "activeBoardId must be a string"
            raise ValueError(msg)
        if workspace_id is not None and not isinstance(workspace_id, str):
            msg = "activeWorkspaceId must be a string"
            raise ValueError(msg)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read %s, starting with an empty session: %s", path, exc)
        return SessionLoad(fallback, error=exc)
    context = SessionContext(
        path,
        active_board_id=board_id or None,
        active_workspace_id=workspace_id or None,
    )
    return SessionLoad(context)
