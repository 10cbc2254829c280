"""HTTP routes: authentication and workspace CRUD.

Handlers stay thin. Authorization and storage rules live in
``diagramsync.auth`` and ``diagramsync.db.workspaces``; errors raised there
become ``{"error": message}`` responses in the app factory.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from diagramsync.auth.manager import AuthSessionManager
from diagramsync.auth.models import SessionUser
from diagramsync.db import workspaces as store
from diagramsync.db.models import to_iso
from diagramsync.errors import AuthError, ValidationError
from diagramsync.realtime.broadcaster import Broadcaster
from diagramsync.server.schemas import (
    CredentialsIn,
    OkOut,
    SessionOut,
    UserOut,
    WorkspaceCreatedOut,
    WorkspaceCreateIn,
    WorkspaceOut,
    WorkspaceSummaryOut,
    WorkspaceUpdatedOut,
    WorkspaceUpdateIn,
)

router = APIRouter(prefix="/api")


def get_auth(request: Request) -> AuthSessionManager:
    return request.app.state.auth


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


Auth = Annotated[AuthSessionManager, Depends(get_auth)]


async def require_user(request: Request, auth: Auth) -> SessionUser:
    """Dependency: the signed-in principal, or 401."""
    user = await auth.current_session(request.session)
    if user is None:
        raise AuthError
    return user


CurrentUser = Annotated[SessionUser, Depends(require_user)]


def _user_out(user: SessionUser) -> UserOut:
    return UserOut(**user.to_dict())


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
@router.post("/auth/signup", response_model=UserOut)
async def signup(
    request: Request, auth: Auth, body: CredentialsIn | None = None
) -> UserOut:
    body = body or CredentialsIn()
    user = await auth.signup(request.session, body.email, body.password)
    return _user_out(user)


@router.post("/auth/login", response_model=UserOut)
async def login(
    request: Request, auth: Auth, body: CredentialsIn | None = None
) -> UserOut:
    body = body or CredentialsIn()
    user = await auth.login(request.session, body.email, body.password)
    return _user_out(user)


@router.post("/auth/logout", response_model=OkOut)
async def logout(request: Request, auth: Auth) -> OkOut:
    await auth.logout(request.session)
    return OkOut()


@router.get("/session", response_model=SessionOut)
async def session(request: Request, auth: Auth) -> SessionOut:
    user = await auth.current_session(request.session)
    return SessionOut(user=_user_out(user) if user else None)


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------
@router.get("/workspaces", response_model=list[WorkspaceSummaryOut])
async def list_workspaces(user: CurrentUser) -> list[WorkspaceSummaryOut]:
    rows = await store.list_workspaces(user.id)
    return [
        WorkspaceSummaryOut(id=w.id, name=w.name, updated_at=to_iso(w.updated_at))
        for w in rows
    ]


@router.post("/workspaces", response_model=WorkspaceCreatedOut)
async def create_workspace(
    user: CurrentUser, body: WorkspaceCreateIn | None = None
) -> WorkspaceCreatedOut:
    if body is None or not body.id or not body.name:
        raise ValidationError("id and name required")
    workspace = await store.create_workspace(body.id, body.name, user.id, body.document)
    return WorkspaceCreatedOut(id=workspace.id, name=workspace.name)


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceOut)
async def get_workspace(workspace_id: str, user: CurrentUser) -> WorkspaceOut:
    snapshot = await store.get_workspace(workspace_id, user.id)
    return WorkspaceOut(
        id=snapshot.id,
        name=snapshot.name,
        document=snapshot.document,
        updated_at=to_iso(snapshot.updated_at),
    )


@router.put("/workspaces/{workspace_id}", response_model=WorkspaceUpdatedOut)
async def update_workspace(
    workspace_id: str,
    user: CurrentUser,
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
    body: WorkspaceUpdateIn | None = None,
) -> WorkspaceUpdatedOut:
    body = body or WorkspaceUpdateIn()
    update = await store.update_workspace(
        workspace_id,
        user.id,
        name=body.name,
        document=body.document,
        on_persisted=broadcaster.notify_persisted,
    )
    return WorkspaceUpdatedOut(updated_at=to_iso(update.updated_at))
