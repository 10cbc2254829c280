"""Admin command-line utilities for diagramsync.

Creates users, inspects and grants workspace access, and manages the
database schema without going through the HTTP API.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

if TYPE_CHECKING:
    from datetime import datetime

    from diagramsync.db.models import User

console = Console()


def _format_timestamp(dt: datetime | None) -> str:
    """Format a timestamp for display, or 'Never' if None."""
    if dt is None:
        return "Never"
    return dt.strftime("%Y-%m-%d %H:%M")


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for diagramsync-admin subcommands."""
    parser = argparse.ArgumentParser(
        prog="diagramsync-admin",
        description="Manage users, workspace access and the database schema.",
    )
    sub = parser.add_subparsers(dest="group", required=True)

    # users
    users_p = sub.add_parser("users", help="Manage users")
    users_sub = users_p.add_subparsers(dest="command", required=True)
    users_sub.add_parser("list", help="List all users")
    create_p = users_sub.add_parser("create", help="Create a new user")
    create_p.add_argument("email", help="User email address")
    create_p.add_argument(
        "--password", default=None, help="Password (prompted for if omitted)"
    )

    # workspaces
    ws_p = sub.add_parser("workspaces", help="Inspect and share workspaces")
    ws_sub = ws_p.add_subparsers(dest="command", required=True)
    ws_list_p = ws_sub.add_parser("list", help="List a user's workspaces")
    ws_list_p.add_argument("email", help="User email address")
    grant_p = ws_sub.add_parser("grant", help="Give a user access to a workspace")
    grant_p.add_argument("workspace_id", help="Workspace id")
    grant_p.add_argument("email", help="User email address")
    grant_p.add_argument("--role", default="editor", help="Role (default: editor)")
    members_p = ws_sub.add_parser("members", help="List a workspace's members")
    members_p.add_argument("workspace_id", help="Workspace id")

    # db
    db_p = sub.add_parser("db", help="Schema management")
    db_sub = db_p.add_subparsers(dest="command", required=True)
    db_sub.add_parser("upgrade", help="Run Alembic migrations to head")
    db_sub.add_parser("create", help="Create missing tables directly (SQLite)")

    return parser


async def _require_user(email: str, con: Console) -> User:
    """Look up user by email or exit with error."""
    from diagramsync.db.users import get_user_by_email

    user = await get_user_by_email(email)
    if user is None:
        con.print(f"[red]Error:[/] no user found with email '{email}'")
        sys.exit(1)
    return user


async def _cmd_users_list(*, console: Console | None = None) -> None:
    """List users as a Rich table."""
    from diagramsync.db.users import list_users

    con = console or globals()["console"]
    users = await list_users()

    if not users:
        con.print("[yellow]No users found.[/]")
        return

    table = Table(title="Users")
    table.add_column("Email", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Created")

    for u in users:
        table.add_row(u.email, str(u.id), _format_timestamp(u.created_at))

    con.print(table)


async def _cmd_users_create(
    email: str,
    password: str,
    *,
    console: Console | None = None,
) -> None:
    """Create a user with a password."""
    from diagramsync.auth.passwords import hash_password
    from diagramsync.config import get_settings
    from diagramsync.db.users import create_user
    from diagramsync.errors import ConflictError

    con = console or globals()["console"]
    rounds = get_settings().session.bcrypt_rounds
    try:
        user = await create_user(email, hash_password(password, rounds))
    except ConflictError:
        con.print(f"[yellow]Already exists:[/] '{email}'")
        return
    con.print(f"[green]Created[/] user '{user.email}' (id={user.id})")


async def _cmd_workspaces_list(
    email: str, *, console: Console | None = None
) -> None:
    """List the workspaces a user can open."""
    from diagramsync.db.workspaces import list_workspaces

    con = console or globals()["console"]
    user = await _require_user(email, con)
    rows = await list_workspaces(user.id)

    if not rows:
        con.print(f"[yellow]No workspaces for '{user.email}'.[/]")
        return

    table = Table(title=f"Workspaces for {user.email}")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Updated")

    for w in rows:
        table.add_row(w.id, w.name, _format_timestamp(w.updated_at))

    con.print(table)


async def _cmd_workspaces_grant(
    workspace_id: str,
    email: str,
    *,
    role: str = "editor",
    console: Console | None = None,
) -> None:
    """Grant a user a role on a workspace."""
    from diagramsync.db.workspaces import add_member
    from diagramsync.errors import NotFoundError, ValidationError

    con = console or globals()["console"]
    user = await _require_user(email, con)
    try:
        membership = await add_member(workspace_id, user.id, role)
    except NotFoundError:
        con.print(f"[red]Error:[/] no workspace with id '{workspace_id}'")
        sys.exit(1)
    except ValidationError as e:
        con.print(f"[red]Error:[/] {e.message}")
        sys.exit(1)
    con.print(
        f"[green]Granted[/] {membership.role} on '{workspace_id}' to '{user.email}'."
    )


async def _cmd_workspaces_members(
    workspace_id: str, *, console: Console | None = None
) -> None:
    """List a workspace's members and their roles."""
    from diagramsync.db.users import get_user_by_id
    from diagramsync.db.workspaces import list_members

    con = console or globals()["console"]
    members = await list_members(workspace_id)
    if not members:
        con.print(f"[yellow]No workspace with id '{workspace_id}'.[/]")
        return

    table = Table(title=f"Members of {workspace_id}")
    table.add_column("Email", style="cyan")
    table.add_column("Role")

    for m in members:
        user = await get_user_by_id(m.user_id)
        table.add_row(user.email if user else str(m.user_id), m.role)

    con.print(table)


def _cmd_db(command: str, *, console: Console | None = None) -> None:
    """Create or migrate the schema."""
    from diagramsync.db.bootstrap import create_schema, run_alembic_upgrade

    con = console or globals()["console"]
    match command:
        case "upgrade":
            run_alembic_upgrade()
            con.print("[green]Migrations applied.[/]")
        case "create":
            asyncio.run(create_schema())
            con.print("[green]Schema created.[/]")


def manage() -> None:
    """Admin entry point.

    Usage:
        diagramsync-admin <group> <command> [options]

    Commands:
        users list                              List all users
        users create <email> [--password PW]    Create a user
        workspaces list <email>                 List a user's workspaces
        workspaces grant <id> <email> [--role]  Share a workspace
        workspaces members <id>                 List a workspace's members
        db upgrade                              Run Alembic migrations
        db create                               Create tables directly
    """
    from diagramsync.config import get_settings

    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:])

    if not get_settings().database.url:
        console.print("[red]Error:[/] DATABASE__URL not set")
        sys.exit(1)

    if args.group == "db":
        try:
            _cmd_db(args.command)
        except RuntimeError as e:
            console.print(f"[red]Error:[/] {e}")
            sys.exit(1)
        return

    password = None
    if args.group == "users" and args.command == "create":
        password = args.password or Prompt.ask("Password", password=True)
        if not password:
            console.print("[red]Error:[/] password must not be empty")
            sys.exit(1)

    async def _run() -> None:
        from diagramsync.db.engine import close_db, init_db

        await init_db()
        try:
            match (args.group, args.command):
                case ("users", "list"):
                    await _cmd_users_list()
                case ("users", "create"):
                    await _cmd_users_create(args.email, password or "")
                case ("workspaces", "list"):
                    await _cmd_workspaces_list(args.email)
                case ("workspaces", "grant"):
                    await _cmd_workspaces_grant(
                        args.workspace_id, args.email, role=args.role
                    )
                case ("workspaces", "members"):
                    await _cmd_workspaces_members(args.workspace_id)
        finally:
            await close_db()

    asyncio.run(_run())
