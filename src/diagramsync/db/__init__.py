"""Database module for diagramsync.

Provides async SQLModel operations on SQLite or PostgreSQL.
"""

from __future__ import annotations

from diagramsync.db.bootstrap import (
    create_schema,
    get_expected_tables,
    is_db_configured,
    run_alembic_upgrade,
    verify_schema,
)
from diagramsync.db.engine import close_db, get_engine, get_session, init_db
from diagramsync.db.models import (
    EDITOR_ROLE,
    OWNER_ROLE,
    Membership,
    SessionRecord,
    User,
    Workspace,
)
from diagramsync.db.sessions import (
    create_session_record,
    delete_session_record,
    resolve_session,
)
from diagramsync.db.users import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    list_users,
)
from diagramsync.db.workspaces import (
    PersistedUpdate,
    WorkspaceSnapshot,
    WorkspaceSummary,
    add_member,
    create_workspace,
    get_workspace,
    has_access,
    list_members,
    list_workspaces,
    update_workspace,
)

__all__ = [
    "EDITOR_ROLE",
    "OWNER_ROLE",
    "Membership",
    "PersistedUpdate",
    "SessionRecord",
    "User",
    "Workspace",
    "WorkspaceSnapshot",
    "WorkspaceSummary",
    "add_member",
    "close_db",
    "create_schema",
    "create_session_record",
    "create_user",
    "create_workspace",
    "delete_session_record",
    "get_engine",
    "get_expected_tables",
    "get_session",
    "get_user_by_email",
    "get_user_by_id",
    "get_workspace",
    "has_access",
    "init_db",
    "is_db_configured",
    "list_members",
    "list_users",
    "list_workspaces",
    "resolve_session",
    "run_alembic_upgrade",
    "update_workspace",
    "verify_schema",
]
