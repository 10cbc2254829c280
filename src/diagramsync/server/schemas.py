"""Request and response bodies for the HTTP API.

Request fields are all optional so that a missing field reaches the
handler and produces the API's own 400 message rather than a generic
validation error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsIn(BaseModel):
    email: str | None = None
    password: str | None = None


class WorkspaceCreateIn(BaseModel):
    id: str | None = None
    name: str | None = None
    document: Any = None


class WorkspaceUpdateIn(BaseModel):
    """Partial update. Absent or null fields are left unchanged."""

    name: str | None = None
    document: Any = None


class UserOut(BaseModel):
    id: str
    email: str


class SessionOut(BaseModel):
    user: UserOut | None = None


class OkOut(BaseModel):
    ok: bool = True


class WorkspaceSummaryOut(_CamelModel):
    id: str
    name: str
    updated_at: str


class WorkspaceCreatedOut(BaseModel):
    id: str
    name: str


class WorkspaceOut(_CamelModel):
    id: str
    name: str
    document: Any
    updated_at: str


class WorkspaceUpdatedOut(_CamelModel):
    ok: bool = True
    updated_at: str
