"""MCP tool surface: registry, credential injection, validation, error mapping."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from corkboard.config import Credentials
from corkboard.errors import UpstreamError
from corkboard.mcp_server import _TOOLS, call_tool, list_tools
from corkboard.mcp_tools import boards, cards, checklists, health
from corkboard.session import SessionContext
from tests.conftest import FakeBoardService
from tests.mcp._helpers import _parse
from tests.mcp.conftest import ENV_KEY, ENV_TOKEN


class TestRegistry:
    def test_each_module_registers_handlers_for_its_tools(self) -> None:
        for module in (boards, cards, checklists, health):
            tools, handlers = module.register()
            assert [t.name for t in tools] == list(handlers), module.__name__

    async def test_list_tools_is_complete_and_unique(self) -> None:
        tools = await list_tools()
        names = [t.name for t in tools]
        assert len(names) == len(set(names)) == 45
        assert {"get_checklist_by_name", "perform_system_repair", "attach_image_data_to_card"} <= set(names)

    def test_public_schemas_omit_credentials(self) -> None:
        for tool in _TOOLS:
            props = tool.inputSchema.get("properties", {})
            assert "trelloApiKey" not in props, tool.name
            assert "trelloToken" not in props, tool.name


class TestCredentialInjection:
    async def test_explicit_arguments_win(self, mcp_service: FakeBoardService) -> None:
        await call_tool("list_boards", {"trelloApiKey": "arg-key", "trelloToken": "arg-token"})
        assert mcp_service.seen_creds[-1] == Credentials("arg-key", "arg-token")

    async def test_environment_fallback(self, mcp_service: FakeBoardService) -> None:
        await call_tool("list_boards", {})
        assert mcp_service.seen_creds[-1] == Credentials(ENV_KEY, ENV_TOKEN)

    async def test_missing_credentials(self, mcp_no_env_creds: FakeBoardService) -> None:
        data = _parse(await call_tool("list_boards", {}))
        assert data["code"] == "missing_credentials"
        assert mcp_no_env_creds.calls == []

    async def test_credentials_not_logged(self, mcp_service: FakeBoardService, tmp_path: Path) -> None:
        import corkboard.mcp_server as mcp_mod
        from corkboard.logging import setup_logging

        original = mcp_mod._logger
        mcp_mod._logger = setup_logging(tmp_path / "logs")
        try:
            await call_tool("get_lists", {"boardId": "b1", "trelloApiKey": "arg-key-secret", "trelloToken": "arg-token-secret"})
            for handler in mcp_mod._logger.handlers:
                handler.flush()
            content = (tmp_path / "logs" / "corkboard.log").read_text()
        finally:
            mcp_mod._logger = original
            corkboard_logger = logging.getLogger("corkboard")
            for handler in corkboard_logger.handlers[:]:
                handler.close()
                corkboard_logger.removeHandler(handler)
        assert "tool_call" in content
        assert "arg-key-secret" not in content
        assert "arg-token-secret" not in content


class TestValidation:
    async def test_wrong_type(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_lists", {"boardId": 123}))
        assert data["code"] == "validation_error"
        assert "boardId" in data["error"]
        assert mcp_service.calls == []

    async def test_missing_required(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_checklist_by_name", {"cardId": "c1"}))
        assert data["code"] == "validation_error"

    async def test_update_item_needs_an_identifier(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("update_checklist_item", {"cardId": "c1", "state": "complete"}))
        assert data["code"] == "validation_error"

    async def test_enum_checked(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("update_checklist_item", {"cardId": "c1", "checkItemId": "x", "state": "done"}))
        assert data["code"] == "validation_error"

    async def test_bad_image_data(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("attach_image_data_to_card", {"cardId": "c1", "imageData": "data:image/png;base64,@@@"}))
        assert data["code"] == "validation_error"

    async def test_unknown_tool(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("frobnicate", {}))
        assert data["code"] == "unknown_tool"


class TestErrorMapping:
    async def test_upstream_error_payload(self, mcp_service: FakeBoardService) -> None:
        mcp_service.failures["get_lists"] = UpstreamError("get_lists", "server error", entity_id="b1", status_code=500)
        data = _parse(await call_tool("get_lists", {"boardId": "b1"}))
        assert data["code"] == "upstream_error"
        assert data["status_code"] == 500
        assert data["entity_id"] == "b1"

    async def test_unexpected_error_propagates(self, mcp_service: FakeBoardService) -> None:
        mcp_service.failures["list_boards"] = RuntimeError("bug")
        with pytest.raises(RuntimeError, match="bug"):
            await call_tool("list_boards", {})

    async def test_missing_scope(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_checklist_items", {"name": "Acceptance Criteria"}))
        assert data["code"] == "missing_scope"

    async def test_ambiguous_payload(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_checklist_by_name", {"name": "Acceptance Criteria", "boardId": "b1"}))
        assert data["code"] == "ambiguous_match"
        assert [c["cardId"] for c in data["candidates"]] == ["c1", "c2"]
        assert "cardId" in data["hint"]

    async def test_checklist_not_found_message(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_checklist_by_name", {"name": "Nope", "boardId": "b1"}))
        assert data == {"error": 'Checklist "Nope" not found', "code": "not_found"}


class TestSessionTools:
    async def test_no_active_board(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_active_board_info", {}))
        assert data["error"] == "No active board set"

    async def test_set_then_use_active_board(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("set_active_board", {"boardId": "b1"}))
        assert data["message"] == 'Successfully set active board to "Product" (b1)'

        info = _parse(await call_tool("get_active_board_info", {}))
        assert info["id"] == "b1"
        assert info["isActive"] is True
        assert info["activeWorkspaceId"] == "Not set"

        summary = _parse(await call_tool("get_checklist_by_name", {"name": "Acceptance Criteria", "cardId": "c1"}))
        assert summary["completed"] == 1
        assert summary["completionPercentage"] == pytest.approx(1 / 3)

        matches = _parse(await call_tool("find_checklist_items_by_description", {"description": "email"}))
        assert len(matches) == 2

    async def test_set_unknown_board(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("set_active_board", {"boardId": "b-missing"}))
        assert data["code"] == "not_found"


class TestChecklistTools:
    async def test_update_item_by_text(self, mcp_service: FakeBoardService) -> None:
        data = _parse(
            await call_tool("update_checklist_item", {"itemText": "Remembers user", "cardId": "c1", "state": "complete"})
        )
        assert data["state"] == "complete"
        summary = _parse(await call_tool("get_acceptance_criteria", {"cardId": "c1"}))
        assert summary["completed"] == 2

    async def test_update_item_by_id(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("update_checklist_item", {"cardId": "c2", "checkItemId": "cl2-i0", "state": "complete"}))
        assert data["id"] == "cl2-i0"
        assert mcp_service.checklists["cl2"]["checkItems"][0]["state"] == "complete"

    async def test_include_archived_flag(self, mcp_service: FakeBoardService) -> None:
        missing = _parse(await call_tool("get_checklist_by_name", {"name": "Release", "boardId": "b1"}))
        assert missing["code"] == "not_found"

        found = _parse(await call_tool("get_checklist_by_name", {"name": "Release", "boardId": "b1", "includeArchived": True}))
        assert found["cardId"] == "c3"

        updated = _parse(
            await call_tool(
                "update_checklist_item",
                {"itemText": "Tag build", "boardId": "b1", "includeArchived": True, "state": "complete"},
            )
        )
        assert updated["state"] == "complete"
        assert mcp_service.checklists["cl3"]["checkItems"][0]["state"] == "complete"

    async def test_include_archived_must_be_boolean(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_checklist_items", {"name": "Release", "boardId": "b1", "includeArchived": "yes"}))
        assert data["code"] == "validation_error"

    async def test_add_item(self, mcp_service: FakeBoardService) -> None:
        data = _parse(
            await call_tool("add_checklist_item", {"text": "Audit log", "checkListName": "Acceptance Criteria", "cardId": "c2"})
        )
        assert data["name"] == "Audit log"


class TestCardTools:
    async def test_get_card_markdown(self, mcp_service: FakeBoardService) -> None:
        text = _parse(await call_tool("get_card", {"cardId": "c1", "includeMarkdown": True}))
        assert text.startswith("# Login page")
        assert "- [x] Validates email format" in text
        assert "## Acceptance Criteria (1/3)" in text

    async def test_get_card_json(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_card", {"cardId": "c1"}))
        assert data["id"] == "c1"


class TestHealthTools:
    async def test_get_health(self, mcp_service: FakeBoardService) -> None:
        data = _parse(await call_tool("get_health", {}))
        assert data["check"] == "basic"
        assert data["status"] == "ok"

    async def test_repair_clears_stale_board(self, mcp_service: FakeBoardService, tmp_path: Path) -> None:
        import corkboard.mcp_server as mcp_mod

        mcp_mod._session = SessionContext(tmp_path / "session.json", active_board_id="b-deleted")

        before = _parse(await call_tool("get_health_detailed", {}))
        assert before["status"] == "degraded"

        report = _parse(await call_tool("perform_system_repair", {}))
        assert report["status"] == "repaired"
        assert report["results"][0]["post_status"] == "resolved"
        assert report["session"] == {}

        info = _parse(await call_tool("get_active_board_info", {}))
        assert info["error"] == "No active board set"

    async def test_metadata_report(self, mcp_service: FakeBoardService) -> None:
        await call_tool("set_active_board", {"boardId": "b1"})
        data = _parse(await call_tool("get_health_metadata", {}))
        assert data["check"] == "metadata"
        assert data["status"] == "ok"
