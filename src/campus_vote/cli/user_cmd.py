"""User management CLI commands."""

import asyncio

import typer

user_app = typer.Typer()


@user_app.command("create")
def create_user(
    email: str = typer.Option(..., prompt=True, help="Email address (login name)"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    role: str = typer.Option("student", prompt=True, help="User role (admin/student)"),
    faculty: str = typer.Option(..., prompt=True, help="Faculty code or name, e.g. SITE"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if the user already exists",
    ),
) -> None:
    """Create a new user interactively."""
    asyncio.run(_create_user(email, password, role, faculty, if_not_exists=if_not_exists))


async def _create_user(
    email: str,
    password: str,
    role: str,
    faculty: str,
    *,
    if_not_exists: bool = False,
) -> None:
    from pydantic import ValidationError

    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.schemas.auth import UserCreateRequest
    from campus_vote.services.auth_service import create_user

    try:
        request = UserCreateRequest(email=email, password=password, role=role, faculty=faculty)
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            user = await create_user(session, request)
            typer.echo(f"User '{user.email}' created with role '{user.role}' ({user.faculty})")
    except ValueError as e:
        if if_not_exists and "already exists" in str(e):
            typer.echo(f"User '{email}' already exists, skipping (--if-not-exists)")
            return
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()


@user_app.command("list")
def list_users() -> None:
    """List all users."""
    asyncio.run(_list_users())


async def _list_users() -> None:
    from campus_vote.core.config import get_settings
    from campus_vote.core.database import dispose_engine, init_engine, session_scope
    from campus_vote.services.auth_service import list_users

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            users, total = await list_users(session, page_size=1000)
            typer.echo(f"{'Email':<35} {'Role':<8} {'Faculty':<10} {'Active':<6}")
            typer.echo("-" * 62)
            for user in users:
                typer.echo(f"{user.email:<35} {user.role:<8} {user.faculty:<10} {user.is_active!s:<6}")
            typer.echo(f"\nTotal: {total}")
    finally:
        await dispose_engine()
