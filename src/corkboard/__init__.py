"""Corkboard: Trello boards, cards, and checklists for agents over MCP."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("corkboard")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from corkboard.client import TrelloClient
from corkboard.session import SessionContext

__all__ = ["SessionContext", "TrelloClient", "__version__"]
