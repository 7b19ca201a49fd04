# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from client.py, session.py, or the engines; this prevents circular imports.
"""Typed shapes for remote entities and tool/report payloads."""

from __future__ import annotations

from corkboard.types.core import (
    BoardDict,
    CardDict,
    CheckItemDict,
    ChecklistDict,
    ISOTimestamp,
    LabelDict,
    ListDict,
    MemberDict,
    SessionState,
    WorkspaceDict,
)

__all__ = [
    "BoardDict",
    "CardDict",
    "CheckItemDict",
    "ChecklistDict",
    "ISOTimestamp",
    "LabelDict",
    "ListDict",
    "MemberDict",
    "SessionState",
    "WorkspaceDict",
]
