"""Client-side view of a diagram document.

The server stores documents as opaque JSON. The client gives the known
sub-collections names and parses the date fields; every other key is
carried through untouched.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Entity = dict[str, Any]

COLLECTIONS = ("tables", "relationships", "dependencies", "areas", "custom_types")


class Diagram(BaseModel):
    """A diagram document with camelCase wire keys.

    Unknown keys are kept as extras and written back by ``to_wire``.
    """

    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    name: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tables: list[Entity] = Field(default_factory=list)
    relationships: list[Entity] = Field(default_factory=list)
    dependencies: list[Entity] = Field(default_factory=list)
    areas: list[Entity] = Field(default_factory=list)
    custom_types: list[Entity] = Field(default_factory=list)

    @classmethod
    def from_document(
        cls, document: Any, *, workspace_id: str, name: str | None = None
    ) -> Diagram:
        """Normalise a server document, filling id and name from the workspace."""
        data = dict(document) if isinstance(document, dict) else {}
        data.setdefault("id", workspace_id)
        if name is not None:
            data.setdefault("name", name)
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and ISO dates."""
        return self.model_dump(mode="json", by_alias=True)

    def merged(self, attributes: dict[str, Any]) -> Diagram:
        """Copy with ``attributes`` applied. Accepts field names or wire keys."""
        wire = self.to_wire()
        for key, value in attributes.items():
            field = type(self).model_fields.get(key)
            wire[field.alias if field and field.alias else key] = value
        return type(self).model_validate(wire)
