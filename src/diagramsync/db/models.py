"""SQLModel database models for diagramsync.

Four relations: principals (``user``), server-side session records,
workspaces holding the opaque diagram document, and memberships granting
principals access to workspaces.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Uuid,
)
from sqlmodel import Field, SQLModel

OWNER_ROLE = "owner"
EDITOR_ROLE = "editor"
MEMBERSHIP_ROLES = frozenset({OWNER_ROLE, EDITOR_ROLE})


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite.

    SQLite stores timestamps without zone information; every timestamp
    this application writes is UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_iso(value: datetime) -> str:
    """ISO 8601 text for a stored timestamp, always with a UTC offset."""
    return as_utc(value).isoformat()


def _timestamptz_column() -> Any:
    """Create a TIMESTAMP WITH TIME ZONE column."""
    return Column(DateTime(timezone=True), nullable=False)


def _cascade_fk_column(target: str, *, primary_key: bool = False) -> Any:
    """Create a UUID foreign key column with CASCADE DELETE."""
    return Column(
        Uuid(),
        ForeignKey(target, ondelete="CASCADE"),
        nullable=False,
        primary_key=primary_key,
    )


class User(SQLModel, table=True):
    """A principal that can sign in and hold workspace memberships.

    Attributes:
        id: Primary key UUID, auto-generated.
        email: Unique, lower-cased email address.
        password_hash: bcrypt hash including its salt.
        created_at: Timestamp when the user signed up.
    """

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamptz_column()
    )


class SessionRecord(SQLModel, table=True):
    """Server-side record backing a signed session cookie.

    The cookie carries only ``id``. Deleting the row invalidates every copy
    of that cookie.
    """

    __tablename__ = "session_record"

    id: str = Field(sa_column=Column(String(64), primary_key=True, nullable=False))
    user_id: UUID = Field(sa_column=_cascade_fk_column("user.id"))
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamptz_column()
    )


class Workspace(SQLModel, table=True):
    """Server-persisted container for one diagram document.

    Attributes:
        id: Caller-supplied, globally unique identifier.
        name: Display name.
        owner_id: Principal that created the workspace.
        document: Serialized JSON of the diagram. Opaque to the server.
        created_at: Timestamp when the workspace was created.
        updated_at: Server-assigned timestamp of the last update.
    """

    id: str = Field(sa_column=Column(String(255), primary_key=True, nullable=False))
    name: str = Field(sa_column=Column(sa.Text(), nullable=False))
    owner_id: UUID = Field(sa_column=_cascade_fk_column("user.id"))
    document: str = Field(sa_column=Column(sa.Text(), nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamptz_column()
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamptz_column()
    )


class Membership(SQLModel, table=True):
    """Per-principal, per-workspace access grant.

    One row per (user, workspace). Exactly one ``owner`` row exists for
    every workspace, inserted in the same transaction as the workspace.
    """

    __table_args__ = (
        CheckConstraint(
            "role IN ('owner', 'editor')", name="ck_membership_role_valid"
        ),
    )

    user_id: UUID = Field(sa_column=_cascade_fk_column("user.id", primary_key=True))
    workspace_id: str = Field(
        sa_column=Column(
            String(255),
            ForeignKey("workspace.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        )
    )
    role: str = Field(
        default=EDITOR_ROLE,
        sa_column=Column(String(20), nullable=False, server_default=EDITOR_ROLE),
    )
