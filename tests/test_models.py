# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for data models and typed errors."""

from designloom.catalog import EntityKind
from designloom.errors import (
    AlreadyExists,
    HasDependents,
    MissingReference,
    NotFound,
    PersistenceError,
    UnknownRelationship,
)
from designloom.models import (
    ConsistencyReport,
    Dependent,
    EntitySummary,
    OperationResult,
    WriteSet,
)


class TestDependent:
    """Tests for Dependent."""

    def test_serialization(self):
        dependent = Dependent(EntityKind.TEST_RESULT, "TR-W1-analyst-001", "workflow_id")

        data = dependent.to_dict()

        assert data == {"kind": "test-result", "id": "TR-W1-analyst-001", "field": "workflow_id"}
        assert Dependent.from_dict(data) == dependent


class TestEntitySummary:
    """Tests for EntitySummary."""

    def test_from_record_keeps_summary_fields(self):
        record = {"id": "cap-a", "name": "Loader", "status": "planned", "description": "Long text"}

        summary = EntitySummary.from_record(EntityKind.CAPABILITY, record)

        assert summary.to_dict() == {"id": "cap-a", "name": "Loader", "status": "planned"}

    def test_name_falls_back_to_id(self):
        summary = EntitySummary.from_record(EntityKind.TOKENS, {"id": "base"})

        assert summary.name == "base"


class TestWriteSet:
    """Tests for WriteSet."""

    def test_save_after_delete_ignored(self):
        ws = WriteSet()
        ws.delete(EntityKind.WORKFLOW, "W1")
        ws.save(EntityKind.WORKFLOW, {"id": "W1"})

        assert ws.saves == {}
        assert ws.is_deleted(EntityKind.WORKFLOW, "W1")

    def test_delete_drops_staged_save(self):
        ws = WriteSet()
        ws.save(EntityKind.WORKFLOW, {"id": "W1"})
        ws.delete(EntityKind.WORKFLOW, "W1")

        assert ws.staged(EntityKind.WORKFLOW, "W1") is None
        assert ws.touched() == ["workflow:W1 (deleted)"]

    def test_is_empty(self):
        assert WriteSet().is_empty()


class TestOperationResult:
    """Tests for OperationResult."""

    def test_ok(self):
        result = OperationResult.ok({"id": "W1"}, warnings=["dropped seed"])

        assert result.to_dict() == {
            "success": True,
            "data": {"id": "W1"},
            "warnings": ["dropped seed"],
        }

    def test_fail(self):
        result = OperationResult.fail(NotFound("workflow", "W9").to_dict())

        assert result.to_dict() == {
            "success": False,
            "error": {
                "code": "not_found",
                "message": "workflow 'W9' not found",
                "kind": "workflow",
                "id": "W9",
            },
        }

    def test_consistency_report(self):
        report = ConsistencyReport(warnings=["duplicate"])

        assert report.to_dict() == {"valid": True, "errors": [], "warnings": ["duplicate"]}


class TestErrors:
    """Tests for typed error payloads."""

    def test_missing_reference_payload(self):
        data = MissingReference("personas", "persona", "ghost").to_dict()

        assert data["code"] == "missing_reference"
        assert data["field"] == "personas"
        assert data["referenced_kind"] == "persona"
        assert data["missing_id"] == "ghost"

    def test_has_dependents_lists_every_dependent(self):
        dependents = [
            Dependent(EntityKind.WORKFLOW, "W1", "requires_capabilities"),
            Dependent(EntityKind.COMPONENT, "loader", "implements_capabilities"),
        ]

        error = HasDependents("capability", "cap-a", dependents)

        assert "2 entities" in error.message
        assert error.to_dict()["dependents"] == [d.to_dict() for d in dependents]

    def test_codes_are_distinct(self):
        codes = {
            AlreadyExists("workflow", "W1").code,
            NotFound("workflow", "W1").code,
            MissingReference("personas", "persona", "x").code,
            UnknownRelationship("workflow", "persona", "likes").code,
            HasDependents("persona", "x", []).code,
            PersistenceError("workflow", "W1", "disk full").code,
        }

        assert len(codes) == 6
