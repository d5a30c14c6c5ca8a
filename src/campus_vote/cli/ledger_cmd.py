"""CLI commands for putting elections on the ledger and keeping them in step.

Provides deploy, status sync, a read-only status view and result finalization.
"""

import asyncio
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger

if TYPE_CHECKING:
    from campus_vote.lib.ledger import LedgerContext
    from campus_vote.schemas.ledger import DeploymentReport, StatusSyncReport

ledger_app = typer.Typer()

ElectionIdOption = Annotated[int, typer.Option("--election-id", help="Local election id")]


def _ledger_context() -> "LedgerContext":
    from campus_vote.core.config import get_settings
    from campus_vote.lib.ledger import build_ledger_context

    try:
        return build_ledger_context(get_settings())
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


def _print_deployment(report: "DeploymentReport") -> None:
    typer.echo(f"Election {report.election_id} -> ledger handle {report.ledger_election_handle}")
    for outcome in report.succeeded:
        handle = f" [{outcome.ledger_handle}]" if outcome.ledger_handle is not None else ""
        typer.echo(f"  ok    {outcome.step:<18} {outcome.name}{handle} {outcome.detail}".rstrip())
    for outcome in report.failed:
        kind = f" ({outcome.kind})" if outcome.kind else ""
        typer.echo(f"  FAIL  {outcome.step:<18} {outcome.name}: {outcome.detail}{kind}")
    for warning in report.warnings:
        typer.echo(f"  warn  {warning}")
    typer.echo(
        f"{len(report.succeeded)} succeeded, {len(report.failed)} failed, {report.ledger_writes} ledger write(s)"
    )


def _print_sync(report: "StatusSyncReport") -> None:
    typer.echo(
        f"Election {report.election_id}: {report.action} "
        f"({report.previous_status} -> {report.current_status}, expected {report.expected_status})"
    )
    for warning in report.warnings:
        typer.echo(f"  warn  {warning}")


@ledger_app.command("deploy")
def deploy(election_id: ElectionIdOption) -> None:
    """Deploy an election, its candidates and tickets to the ledger."""
    asyncio.run(_deploy_impl(election_id))


async def _deploy_impl(election_id: int) -> None:
    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.services import deployment_service
    from campus_vote.services.election_service import ElectionNotFoundError

    ledger = _ledger_context()
    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            report = await deployment_service.deploy_election(session, ledger, election_id)
    except ElectionNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()

    _print_deployment(report)
    if not report.ok:
        raise typer.Exit(code=1)


@ledger_app.command("sync")
def sync(
    election_id: Annotated[
        int | None,
        typer.Option("--election-id", help="Sync a single election; every deployed election when omitted"),
    ] = None,
) -> None:
    """Advance ledger election status to match the schedule."""
    asyncio.run(_sync_impl(election_id))


async def _sync_impl(election_id: int | None) -> None:
    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.services import status_sync_service

    ledger = _ledger_context()
    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            ids = [election_id] if election_id is not None else None
            logger.info("Syncing ledger status for {}", f"election {election_id}" if ids else "all deployed elections")
            batch = await status_sync_service.sync_many(session, ledger, ids)
    finally:
        await dispose_engine()

    for report in batch.reports:
        _print_sync(report)
    for failure in batch.failures:
        typer.echo(f"Election {failure.election_id}: FAILED {failure.reason}", err=True)
    typer.echo(f"{batch.succeeded} succeeded, {batch.failed} failed")
    if batch.failed:
        raise typer.Exit(code=1)


@ledger_app.command("status")
def status(election_id: ElectionIdOption) -> None:
    """Show an election's ledger status and live vote counts."""
    asyncio.run(_status_impl(election_id))


async def _status_impl(election_id: int) -> None:
    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.lib.ledger import LedgerError
    from campus_vote.services import ledger_view_service

    ledger = _ledger_context()
    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            view = await ledger_view_service.get_ledger_view(session, ledger, election_id)
    except LedgerError as e:
        typer.echo(f"Error: ledger read failed ({e.kind}): {e.message}", err=True)
        raise typer.Exit(code=1) from e
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()

    typer.echo(
        f"Election {view.election_id} (ledger {view.ledger_handle}, {view.category}): "
        f"{view.status}, expected {view.expected_status}"
    )
    typer.echo(f"Window: {view.start.isoformat()} -> {view.end.isoformat()}")
    typer.echo(f"Total votes cast: {view.total_votes_cast}  finalized: {view.results_finalized}")
    for entry in view.entries:
        name = f"{entry.full_name} / {entry.running_mate_name}" if entry.running_mate_name else entry.full_name
        count = "?" if entry.vote_count is None else str(entry.vote_count)
        typer.echo(f"  {name:<50} {count:>8}")


@ledger_app.command("finalize")
def finalize(election_id: ElectionIdOption) -> None:
    """Finalize the results of a completed election on the ledger."""
    asyncio.run(_finalize_impl(election_id))


async def _finalize_impl(election_id: int) -> None:
    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.lib.ledger import LedgerError
    from campus_vote.services import status_sync_service

    ledger = _ledger_context()
    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            receipt = await status_sync_service.finalize_election(session, ledger, election_id)
    except LedgerError as e:
        typer.echo(f"Error: finalization failed ({e.kind}): {e.message}", err=True)
        raise typer.Exit(code=1) from e
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()

    if receipt is None:
        typer.echo(f"Results of election {election_id} were already finalized")
    else:
        typer.echo(f"Finalized results of election {election_id} in tx {receipt.tx_hash}")
