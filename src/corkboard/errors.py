"""Exception taxonomy shared by the session, resolver, client, and tool layers.

Every exception carries a machine-readable ``code`` that the MCP layer
copies verbatim into the ``{"error": ..., "code": ...}`` payload.
"""

from __future__ import annotations

from typing import Any


class CorkboardError(Exception):
    """Base class for all errors raised by corkboard."""

    code = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "code": self.code}


class ValidationError(CorkboardError):
    """Tool arguments failed the declared input schema."""

    code = "validation_error"


class CredentialsError(CorkboardError):
    """No API key / token available from arguments or environment."""

    code = "missing_credentials"


class MissingScopeError(CorkboardError):
    """A name lookup was attempted with no card or board to search in."""

    code = "missing_scope"


class NotFoundError(CorkboardError):
    """Nothing matched a resolution query (or the remote entity is gone)."""

    code = "not_found"

    def __init__(self, message: str, *, scope: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.scope = scope or {}

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.scope:
            data["scope"] = self.scope
        return data


class AmbiguousMatchError(CorkboardError):
    """More than one entity matched a name within the searched scope."""

    code = "ambiguous_match"

    def __init__(self, message: str, *, candidates: list[dict[str, Any]]) -> None:
        super().__init__(message)
        self.candidates = candidates

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["candidates"] = self.candidates
        data["hint"] = "Pass cardId (or a narrower boardId) to select exactly one"
        return data


class UpstreamError(CorkboardError):
    """A call to the remote board service failed.

    ``status_code`` is ``None`` for transport failures (DNS, timeout, reset).
    """

    code = "upstream_error"

    def __init__(
        self,
        operation: str,
        detail: str,
        *,
        entity_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        target = f" ({entity_id})" if entity_id else ""
        status = f" [HTTP {status_code}]" if status_code is not None else ""
        super().__init__(f"{operation}{target} failed{status}: {detail}")
        self.operation = operation
        self.entity_id = entity_id
        self.status_code = status_code

    @property
    def is_unreachable(self) -> bool:
        """True when the entity does not exist or these credentials cannot see it."""
        return self.status_code in (401, 403, 404)

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["operation"] = self.operation
        if self.entity_id:
            data["entity_id"] = self.entity_id
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class RepairError(CorkboardError):
    """A corrective action failed while running a repair."""

    code = "repair_failed"
