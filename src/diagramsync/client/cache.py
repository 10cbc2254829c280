"""Client-side read-through, write-back cache of diagram documents.

One ``Diagram`` per workspace id, loaded on first use. Every mutation is
read-modify-persist-whole: take the cached (or freshly fetched) document,
change one sub-collection, stamp a local ``updated_at``, keep it in the
cache, then PUT the entire document.

There is no version check. Two clients editing from stale copies
overwrite each other at whole-document granularity; the later write wins.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from diagramsync.client.diagram import Diagram, Entity
from diagramsync.client.sync import ApiError

if TYPE_CHECKING:
    from collections.abc import Callable

    from diagramsync.client.sync import SyncClient

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {"defaultDiagramId": ""}


class DiagramNotFoundError(LookupError):
    """The diagram is neither cached nor fetchable."""

    def __init__(self, diagram_id: str) -> None:
        self.diagram_id = diagram_id
        super().__init__(f"Diagram not found: {diagram_id}")


class EntityNotFoundError(LookupError):
    """No diagram holds an entity with the given id."""

    def __init__(self, collection: str, entity_id: str) -> None:
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(f"{collection} entry not found: {entity_id}")


def _now() -> datetime:
    return datetime.now(UTC)


class EntityCollection:
    """Operations on one named sub-collection of every cached diagram.

    Reached as ``cache.tables``, ``cache.relationships`` and so on.
    """

    def __init__(
        self,
        cache: ClientCache,
        field: str,
        *,
        sort_by_name: bool = False,
    ) -> None:
        self._cache = cache
        self.field = field
        self._sort_by_name = sort_by_name

    def _items(self, diagram: Diagram) -> list[Entity]:
        return getattr(diagram, self.field)

    async def add(self, diagram_id: str, entity: Entity) -> Diagram:
        def append(diagram: Diagram) -> None:
            setattr(diagram, self.field, [*self._items(diagram), entity])

        return await self._cache.mutate(diagram_id, append)

    async def put(self, diagram_id: str, entity: Entity) -> Diagram:
        """Replace the entity with the same id, or append it."""

        def upsert(diagram: Diagram) -> None:
            items = self._items(diagram)
            if any(e.get("id") == entity.get("id") for e in items):
                items = [entity if e.get("id") == entity.get("id") else e for e in items]
            else:
                items = [*items, entity]
            setattr(diagram, self.field, items)

        return await self._cache.mutate(diagram_id, upsert)

    async def get(self, diagram_id: str, entity_id: str) -> Entity | None:
        diagram = await self._cache.get(diagram_id)
        return next((e for e in self._items(diagram) if e.get("id") == entity_id), None)

    async def update(
        self,
        entity_id: str,
        attributes: dict[str, Any],
        *,
        diagram_id: str | None = None,
    ) -> Diagram:
        """Merge ``attributes`` into an existing entity.

        Without ``diagram_id`` the cached diagrams are searched for the
        entity.

        Raises:
            EntityNotFoundError: If no diagram holds ``entity_id``.
        """
        if diagram_id is None:
            diagram_id = self._cache.find_holder(self.field, entity_id)
            if diagram_id is None:
                raise EntityNotFoundError(self.field, entity_id)

        def merge(diagram: Diagram) -> None:
            items = self._items(diagram)
            if not any(e.get("id") == entity_id for e in items):
                raise EntityNotFoundError(self.field, entity_id)
            setattr(
                diagram,
                self.field,
                [{**e, **attributes} if e.get("id") == entity_id else e for e in items],
            )

        return await self._cache.mutate(diagram_id, merge)

    async def delete(self, diagram_id: str, entity_id: str) -> Diagram:
        """Remove an entity and persist.

        Raises:
            EntityNotFoundError: If the diagram has no such entity. Nothing
                is stamped or persisted.
        """

        def remove(diagram: Diagram) -> None:
            items = self._items(diagram)
            kept = [e for e in items if e.get("id") != entity_id]
            if len(kept) == len(items):
                raise EntityNotFoundError(self.field, entity_id)
            setattr(diagram, self.field, kept)

        return await self._cache.mutate(diagram_id, remove)

    async def list(self, diagram_id: str) -> list[Entity]:
        items = list(self._items(await self._cache.get(diagram_id)))
        if self._sort_by_name:
            items.sort(key=lambda e: str(e.get("name", "")))
        return items

    async def clear(self, diagram_id: str) -> Diagram:
        def empty(diagram: Diagram) -> None:
            setattr(diagram, self.field, [])

        return await self._cache.mutate(diagram_id, empty)


class ClientCache:
    """Id-keyed mirror of the workspaces a client has touched.

    Args:
        client: Used for fetches and whole-document persists.
    """

    def __init__(self, client: SyncClient) -> None:
        self._client = client
        self._diagrams: dict[str, Diagram] = {}
        self._filters: dict[str, dict[str, Any]] = {}
        self._config: dict[str, Any] | None = None

        self.tables = EntityCollection(self, "tables")
        self.relationships = EntityCollection(self, "relationships", sort_by_name=True)
        self.dependencies = EntityCollection(self, "dependencies")
        self.areas = EntityCollection(self, "areas")
        self.custom_types = EntityCollection(self, "custom_types", sort_by_name=True)

    def __contains__(self, diagram_id: object) -> bool:
        return diagram_id in self._diagrams

    def peek(self, diagram_id: str) -> Diagram | None:
        """The cached copy, without fetching."""
        return self._diagrams.get(diagram_id)

    def find_holder(self, field: str, entity_id: str) -> str | None:
        """Id of the first cached diagram whose ``field`` holds ``entity_id``."""
        for diagram_id, diagram in self._diagrams.items():
            if any(e.get("id") == entity_id for e in getattr(diagram, field)):
                return diagram_id
        return None

    # -- read-through -----------------------------------------------------

    async def _fetch(self, diagram_id: str) -> Diagram:
        remote = await self._client.get_workspace(diagram_id)
        try:
            diagram = Diagram.from_document(
                remote.document, workspace_id=remote.id, name=remote.name
            )
        except ValidationError as e:
            # Stored documents are opaque to the server; any shape can arrive
            logger.warning("Unreadable diagram in %s: %s", diagram_id, e)
            raise DiagramNotFoundError(diagram_id) from e
        self._diagrams[diagram_id] = diagram
        return diagram

    async def get(self, diagram_id: str) -> Diagram:
        """Cached copy, else fetch and cache.

        Raises:
            DiagramNotFoundError: If the fetch fails.
        """
        cached = self._diagrams.get(diagram_id)
        if cached is not None:
            return cached
        try:
            return await self._fetch(diagram_id)
        except (ApiError, httpx.TransportError) as e:
            logger.debug("Fetch of %s failed: %s", diagram_id, e)
            raise DiagramNotFoundError(diagram_id) from e

    async def get_diagram(self, diagram_id: str) -> Diagram | None:
        """Like ``get`` but a failed fetch resolves to None."""
        try:
            return await self.get(diagram_id)
        except DiagramNotFoundError:
            return None

    # -- write-back -------------------------------------------------------

    async def persist(self, diagram_id: str) -> datetime:
        """PUT the cached document. Returns the server's ``updatedAt``."""
        diagram = self._diagrams[diagram_id]
        return await self._client.update_workspace(
            diagram_id, name=diagram.name, document=diagram.to_wire()
        )

    async def mutate(
        self, diagram_id: str, change: Callable[[Diagram], None]
    ) -> Diagram:
        """Read-modify-persist-whole.

        Raises:
            DiagramNotFoundError: If the diagram cannot be loaded.
            ApiError: If the persist fails. The local change is kept.
        """
        diagram = await self.get(diagram_id)
        change(diagram)
        diagram.updated_at = _now()
        self._diagrams[diagram_id] = diagram
        await self.persist(diagram_id)
        return diagram

    # -- diagrams ---------------------------------------------------------

    async def add_diagram(self, diagram: Diagram | dict[str, Any]) -> Diagram:
        """Cache a new diagram and create its workspace.

        A diagram whose workspace already exists is saved over it instead.
        """
        if not isinstance(diagram, Diagram):
            diagram = Diagram.model_validate(diagram)
        self._diagrams[diagram.id] = diagram
        try:
            await self._client.create_workspace(
                diagram.id, diagram.name, diagram.to_wire()
            )
        except ApiError as e:
            if e.status_code != 409:
                raise
            await self.persist(diagram.id)
        return diagram

    async def list_diagrams(self) -> list[Diagram]:
        """Every accessible diagram, most recently updated first.

        Workspaces that fail to fetch are left out.
        """
        results: list[Diagram] = []
        for info in await self._client.list_workspaces():
            diagram = await self.get_diagram(info.id)
            if diagram is not None:
                results.append(diagram)
        return results

    async def update_diagram(
        self, diagram_id: str, attributes: dict[str, Any]
    ) -> Diagram:
        """Merge top-level attributes and persist the whole document.

        Raises:
            DiagramNotFoundError: If the diagram cannot be loaded.
        """
        current = await self.get(diagram_id)
        diagram = current.merged(attributes)
        diagram.updated_at = _now()
        self._diagrams[diagram_id] = diagram
        await self.persist(diagram_id)
        return diagram

    def delete_diagram(self, diagram_id: str) -> None:
        """Forget a diagram locally. The server copy is untouched."""
        self.evict(diagram_id)

    def evict(self, diagram_id: str) -> None:
        self._diagrams.pop(diagram_id, None)

    def clear(self) -> None:
        self._diagrams.clear()

    # -- reconciliation ---------------------------------------------------

    def apply_broadcast(self, event: dict[str, Any]) -> None:
        """Fold a ``persisted-update`` event into the cache.

        A full document replaces the entry. Name and ``updatedAt`` alone
        patch an existing entry. Neither an entry nor a document: no-op.
        A document the model rejects evicts the entry; the next read
        refetches.
        """
        diagram_id = event.get("id")
        if not isinstance(diagram_id, str):
            return

        document = event.get("document")
        if document is not None:
            try:
                self._diagrams[diagram_id] = Diagram.from_document(
                    document, workspace_id=diagram_id, name=event.get("name")
                )
            except ValidationError:
                logger.warning("Dropping %s: broadcast document unreadable", diagram_id)
                self.evict(diagram_id)
            return

        current = self._diagrams.get(diagram_id)
        if current is None:
            return
        if event.get("name") is not None:
            current.name = event["name"]
        if event.get("updatedAt") is not None:
            current.updated_at = datetime.fromisoformat(event["updatedAt"])

    async def preload(self) -> int:
        """Fetch every accessible workspace when signed in.

        Best effort: individual failures are skipped.

        Returns:
            Number of diagrams now cached.
        """
        try:
            if await self._client.session() is None:
                return 0
            infos = await self._client.list_workspaces()
        except (ApiError, httpx.TransportError) as e:
            logger.warning("Preload skipped: %s", e)
            return 0
        for info in infos:
            try:
                await self._fetch(info.id)
            except (ApiError, httpx.TransportError, DiagramNotFoundError) as e:
                logger.warning("Preload of %s failed: %s", info.id, e)
        return len(self._diagrams)

    # -- filters and config (local only) ----------------------------------

    def get_diagram_filter(self, diagram_id: str) -> dict[str, Any] | None:
        return self._filters.get(diagram_id)

    def update_diagram_filter(self, diagram_id: str, diagram_filter: dict[str, Any]) -> None:
        self._filters[diagram_id] = diagram_filter

    def delete_diagram_filter(self, diagram_id: str) -> None:
        self._filters.pop(diagram_id, None)

    def get_config(self) -> dict[str, Any] | None:
        return self._config

    def update_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge ``config`` over the current (or default) config."""
        self._config = {**(self._config or DEFAULT_CONFIG), **config}
        return self._config
