"""Command-line companion to the corkboard MCP server.

Reads the same environment and session file as the server.

Usage:
    corkboard doctor                 # Detailed + metadata health checks
    corkboard doctor --verbose       # Include passing checks
    corkboard doctor --json          # Machine-readable reports
    corkboard repair                 # Clear stale session state
    corkboard session show           # Print the persisted session
    corkboard session clear          # Forget the active board and workspace
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from corkboard import __version__
from corkboard.client import TrelloClient
from corkboard.config import Credentials, Settings, resolve_credentials
from corkboard.diagnostics import DiagnosticsEngine, Finding
from corkboard.errors import CredentialsError
from corkboard.repair import RepairEngine
from corkboard.session import SessionContext, load_session

_T = TypeVar("_T")


def _make_client(settings: Settings) -> TrelloClient:
    return TrelloClient(base_url=settings.api_base, timeout=settings.http_timeout)


def _load_session(settings: Settings) -> SessionContext:
    loaded = load_session(
        settings.session_path,
        default_board_id=settings.default_board_id,
        default_workspace_id=settings.default_workspace_id,
    )
    if not loaded.ok:
        click.echo(f"Warning: could not read {settings.session_path}: {loaded.error}", err=True)
    return loaded.context


def _require_credentials(settings: Settings) -> Credentials:
    try:
        return resolve_credentials({}, settings)
    except CredentialsError as e:
        click.echo(str(e), err=True)
        sys.exit(1)


def _with_client(settings: Settings, work: Callable[[TrelloClient], Awaitable[_T]]) -> _T:
    async def _go() -> _T:
        client = _make_client(settings)
        try:
            return await work(client)
        finally:
            await client.aclose()

    return asyncio.run(_go())


def _echo_finding(f: Finding) -> None:
    icon = {"ok": "OK", "skipped": "--"}.get(f.status, "!!")
    click.echo(f"  {icon}  {f.check}: {f.message}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="corkboard")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Corkboard: Trello boards for agents."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("settings", Settings.from_env())


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Show passing and skipped checks too")
@click.option("--json", "as_json", is_flag=True, help="Output the raw reports as JSON")
@click.pass_context
def doctor(ctx: click.Context, verbose: bool, as_json: bool) -> None:
    """Run detailed and metadata health checks against Trello."""
    settings: Settings = ctx.obj["settings"]
    creds = _require_credentials(settings)
    session = _load_session(settings)

    async def _work(client: TrelloClient) -> list[Any]:
        engine = DiagnosticsEngine(client, session, creds)
        return [await engine.detailed_health(), await engine.metadata_health()]

    reports = _with_client(settings, _work)

    if as_json:
        click.echo(json_mod.dumps([r.to_dict() for r in reports], indent=2, default=str))
        return

    findings = [f for r in reports for f in r.findings]
    passed = sum(1 for f in findings if not f.is_issue)
    failed = sum(1 for f in findings if f.is_issue)
    status = "down" if any(r.status == "down" for r in reports) else ("degraded" if failed else "ok")

    click.echo(f"corkboard doctor  ──  {passed} passed  {failed} issues  ({status})")
    click.echo()
    for f in findings:
        if not f.is_issue and not verbose:
            continue
        _echo_finding(f)

    if failed == 0:
        click.echo("\nAll checks passed.")
    else:
        click.echo("\nRun 'corkboard repair' to fix stale session state.")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output the repair report as JSON")
@click.pass_context
def repair(ctx: click.Context, as_json: bool) -> None:
    """Repair issues found by diagnostics (session state only)."""
    settings: Settings = ctx.obj["settings"]
    creds = _require_credentials(settings)
    session = _load_session(settings)

    async def _work(client: TrelloClient) -> Any:
        return await RepairEngine(DiagnosticsEngine(client, session, creds), session).perform_repair()

    report = _with_client(settings, _work)

    if as_json:
        click.echo(json_mod.dumps(report.to_dict(), indent=2, default=str))
        return

    click.echo(f"corkboard repair  ──  {report.status}")
    for r in report.results:
        icon = "OK" if r.post_status == "resolved" else "!!"
        click.echo(f"  {icon}  {r.finding.code}: {r.action} -> {r.post_status}")
        if r.error:
            click.echo(f"       error: {r.error}")


@cli.group()
def session() -> None:
    """Inspect or reset the persisted session."""


@session.command("show")
@click.pass_context
def session_show(ctx: click.Context) -> None:
    """Print the active board and workspace."""
    settings: Settings = ctx.obj["settings"]
    state = _load_session(settings)
    click.echo(json_mod.dumps({"path": str(settings.session_path), **state.snapshot()}, indent=2))


@session.command("clear")
@click.pass_context
def session_clear(ctx: click.Context) -> None:
    """Forget the active board and workspace."""
    settings: Settings = ctx.obj["settings"]
    state = _load_session(settings)

    async def _clear() -> bool:
        board = await state.clear_active_board()
        workspace = await state.clear_active_workspace()
        return board or workspace

    changed = asyncio.run(_clear())
    if state.last_save_error:
        click.echo(f"Error: could not write {settings.session_path}: {state.last_save_error}", err=True)
        sys.exit(1)
    click.echo("Session cleared" if changed else "Session already empty")
