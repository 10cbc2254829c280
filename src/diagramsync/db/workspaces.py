"""CRUD operations for Workspace and Membership.

Every read and write is gated on a membership row for the calling
principal. A missing workspace and a workspace the caller cannot access
raise the same ``NotFoundError``, so ids cannot be enumerated.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from diagramsync.db.engine import get_session
from diagramsync.db.models import (
    EDITOR_ROLE,
    MEMBERSHIP_ROLES,
    OWNER_ROLE,
    Membership,
    Workspace,
    as_utc,
    utcnow,
)
from diagramsync.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceSummary:
    """Listing row: what ``GET /api/workspaces`` returns per workspace."""

    id: str
    name: str
    updated_at: datetime


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """A workspace with its decoded document."""

    id: str
    name: str
    document: Any
    updated_at: datetime


@dataclass(frozen=True)
class PersistedUpdate:
    """What a successful update changed, as handed to the broadcaster.

    ``name`` and ``document`` are None when the caller did not supply them.
    """

    id: str
    updated_at: datetime
    name: str | None = None
    document: Any = None


def _encode_document(document: Any) -> str:
    return json.dumps({} if document is None else document)


def _snapshot(workspace: Workspace) -> WorkspaceSnapshot:
    return WorkspaceSnapshot(
        id=workspace.id,
        name=workspace.name,
        document=json.loads(workspace.document),
        updated_at=as_utc(workspace.updated_at),
    )


async def _exists(workspace_id: str) -> bool:
    async with get_session() as session:
        return await session.get(Workspace, workspace_id) is not None


async def _accessible(
    session: AsyncSession, workspace_id: str, user_id: UUID
) -> Workspace:
    """Load a workspace the user is a member of, or raise NotFoundError."""
    result = await session.exec(
        select(Workspace)
        .join(Membership, Membership.workspace_id == Workspace.id)  # type: ignore[arg-type]  -- SQLAlchemy == returns ColumnElement
        .where(Workspace.id == workspace_id, Membership.user_id == user_id)
    )
    workspace = result.first()
    if workspace is None:
        raise NotFoundError
    return workspace


async def list_workspaces(user_id: UUID) -> list[WorkspaceSummary]:
    """List workspaces the user is a member of, most recently updated first."""
    async with get_session() as session:
        result = await session.exec(
            select(Workspace)
            .join(Membership, Membership.workspace_id == Workspace.id)  # type: ignore[arg-type]  -- SQLAlchemy == returns ColumnElement
            .where(Membership.user_id == user_id)
            .order_by(Workspace.updated_at.desc())  # type: ignore[attr-defined]
        )
        return [
            WorkspaceSummary(id=w.id, name=w.name, updated_at=as_utc(w.updated_at))
            for w in result.all()
        ]


async def create_workspace(
    workspace_id: str,
    name: str,
    owner_id: UUID,
    document: Any = None,
) -> Workspace:
    """Create a workspace and its owner membership in one transaction.

    Args:
        workspace_id: Caller-supplied, globally unique id.
        name: Display name.
        owner_id: Principal creating the workspace.
        document: JSON-serializable diagram; stored verbatim.

    Returns:
        The created Workspace.

    Raises:
        ConflictError: If a workspace with this id already exists.
        InternalError: On any other storage failure. Neither row is kept.
    """
    try:
        async with get_session() as session:
            if await session.get(Workspace, workspace_id) is not None:
                raise ConflictError("Workspace already exists")

            now = utcnow()
            workspace = Workspace(
                id=workspace_id,
                name=name,
                owner_id=owner_id,
                document=_encode_document(document),
                created_at=now,
                updated_at=now,
            )
            session.add(workspace)
            # Parent row first so the membership foreign key resolves
            await session.flush()
            session.add(
                Membership(
                    user_id=owner_id, workspace_id=workspace_id, role=OWNER_ROLE
                )
            )
            await session.flush()
            await session.refresh(workspace)
    except IntegrityError as e:
        # Lost an insert race on the id, or a foreign key failed
        if await _exists(workspace_id):
            raise ConflictError("Workspace already exists") from e
        raise InternalError("Failed to create workspace") from e
    except SQLAlchemyError as e:
        raise InternalError("Failed to create workspace") from e

    logger.info("Workspace %s created by %s", workspace_id, owner_id)
    return workspace


async def get_workspace(workspace_id: str, user_id: UUID) -> WorkspaceSnapshot:
    """Fetch a workspace the user is a member of.

    Raises:
        NotFoundError: If the workspace is missing or the user has no access.
    """
    async with get_session() as session:
        return _snapshot(await _accessible(session, workspace_id, user_id))


async def update_workspace(
    workspace_id: str,
    user_id: UUID,
    *,
    name: str | None = None,
    document: Any = None,
    on_persisted: Callable[[PersistedUpdate], Awaitable[None]] | None = None,
) -> PersistedUpdate:
    """Apply a partial update and stamp a new ``updated_at``.

    Fields passed as None are untouched. The new timestamp comes
    from this process's clock and is never earlier than the stored one.
    ``on_persisted`` runs after the transaction commits.

    Raises:
        NotFoundError: If the workspace is missing or the user has no access.
    """
    try:
        async with get_session() as session:
            workspace = await _accessible(session, workspace_id, user_id)
            if name is not None:
                workspace.name = name
            if document is not None:
                workspace.document = _encode_document(document)

            stamp = max(utcnow(), as_utc(workspace.updated_at))
            workspace.updated_at = stamp
            session.add(workspace)
    except SQLAlchemyError as e:
        raise InternalError("Failed to update workspace") from e

    update = PersistedUpdate(
        id=workspace_id,
        updated_at=stamp,
        name=name,
        document=document,
    )
    logger.debug("Workspace %s updated by %s at %s", workspace_id, user_id, stamp)

    if on_persisted is not None:
        await on_persisted(update)

    return update


async def has_access(workspace_id: str, user_id: UUID) -> bool:
    """Return True if the user holds any membership on the workspace."""
    async with get_session() as session:
        membership = await session.get(Membership, (user_id, workspace_id))
        return membership is not None


async def add_member(
    workspace_id: str, user_id: UUID, role: str = EDITOR_ROLE
) -> Membership:
    """Grant a user access to an existing workspace.

    Re-granting an existing member changes their role, except that the
    owner membership is never downgraded.

    Raises:
        ValidationError: If ``role`` is unknown.
        NotFoundError: If the workspace does not exist.
    """
    if role not in MEMBERSHIP_ROLES:
        raise ValidationError(f"Unknown role: {role}")

    async with get_session() as session:
        if await session.get(Workspace, workspace_id) is None:
            raise NotFoundError

        membership = await session.get(Membership, (user_id, workspace_id))
        if membership is None:
            membership = Membership(
                user_id=user_id, workspace_id=workspace_id, role=role
            )
        elif membership.role != OWNER_ROLE:
            membership.role = role
        session.add(membership)
        await session.flush()
        await session.refresh(membership)

    logger.info("Granted %s on %s to %s", membership.role, workspace_id, user_id)
    return membership


async def list_members(workspace_id: str) -> list[Membership]:
    """List memberships of a workspace, owner first."""
    async with get_session() as session:
        result = await session.exec(
            select(Membership).where(Membership.workspace_id == workspace_id)
        )
        return sorted(result.all(), key=lambda m: m.role != OWNER_ROLE)
