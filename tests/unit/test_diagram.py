"""Tests for the client-side Diagram model."""

from __future__ import annotations

from datetime import UTC, datetime

from diagramsync.client.diagram import Diagram


class TestFromDocument:
    """Normalising server documents."""

    def test_fills_id_and_name_from_workspace(self) -> None:
        diagram = Diagram.from_document({}, workspace_id="ws-1", name="Shop")
        assert diagram.id == "ws-1"
        assert diagram.name == "Shop"
        assert diagram.tables == []

    def test_document_values_win(self) -> None:
        diagram = Diagram.from_document(
            {"id": "ws-1", "name": "Inner"}, workspace_id="ws-1", name="Outer"
        )
        assert diagram.name == "Inner"

    def test_non_object_document_is_empty(self) -> None:
        diagram = Diagram.from_document(None, workspace_id="ws-1")
        assert diagram.id == "ws-1"
        assert diagram.custom_types == []

    def test_camel_case_keys(self) -> None:
        diagram = Diagram.from_document(
            {
                "customTypes": [{"id": "t1", "name": "money"}],
                "updatedAt": "2024-05-01T12:00:00+00:00",
            },
            workspace_id="ws-1",
        )
        assert diagram.custom_types == [{"id": "t1", "name": "money"}]
        assert diagram.updated_at == datetime(2024, 5, 1, 12, tzinfo=UTC)


class TestToWire:
    def test_unknown_keys_survive(self) -> None:
        diagram = Diagram.from_document(
            {"database": "postgres", "notes": [{"id": "n1"}]}, workspace_id="ws-1"
        )
        wire = diagram.to_wire()
        assert wire["database"] == "postgres"
        assert wire["notes"] == [{"id": "n1"}]

    def test_uses_camel_case_and_iso_dates(self) -> None:
        diagram = Diagram(
            id="ws-1", updated_at=datetime(2024, 5, 1, 12, tzinfo=UTC)
        )
        wire = diagram.to_wire()
        assert "customTypes" in wire
        assert "custom_types" not in wire
        assert wire["updatedAt"] == "2024-05-01T12:00:00Z"


class TestMerged:
    def test_accepts_field_names_and_wire_keys(self) -> None:
        diagram = Diagram(id="ws-1", name="Old")
        merged = diagram.merged({"name": "New", "customTypes": [{"id": "t"}]})
        assert merged.name == "New"
        assert merged.custom_types == [{"id": "t"}]

    def test_snake_case_field(self) -> None:
        merged = Diagram(id="ws-1").merged({"custom_types": [{"id": "t"}]})
        assert merged.custom_types == [{"id": "t"}]

    def test_original_unchanged(self) -> None:
        diagram = Diagram(id="ws-1", name="Old")
        diagram.merged({"name": "New"})
        assert diagram.name == "Old"

    def test_extra_attribute(self) -> None:
        merged = Diagram(id="ws-1").merged({"database": "mysql"})
        assert merged.to_wire()["database"] == "mysql"
