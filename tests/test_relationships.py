# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the relationship engine.

Tests cover:
- Planning produces write sets without touching documents or index
- dependents_of scans forward and reverse fields
- check_consistency reports broken references and one-sided links
"""

import pytest

from designloom.catalog import EntityKind
from designloom.errors import MissingReference, UnknownRelationship
from designloom.index import EntityIndex
from designloom.models import Dependent
from designloom.persistence import InMemoryDocumentStore
from designloom.relationships import RelationshipEngine
from tests import samples


def _engine(documents: dict) -> RelationshipEngine:
    store = InMemoryDocumentStore(documents)
    return RelationshipEngine(EntityIndex(store), store)


class TestPlanning:
    """Plans are pure: nothing changes until commit."""

    def test_plan_link_has_no_side_effects(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1")},
                EntityKind.PERSONA: {"analyst": samples.persona("analyst")},
            }
        )

        ws = engine.plan_link("workflow", "W1", "persona", "analyst", "uses")

        assert sorted(ws.touched()) == ["persona:analyst", "workflow:W1"]
        assert "personas" not in engine.index.get(EntityKind.WORKFLOW, "W1")
        assert "personas" not in engine.documents.read(EntityKind.WORKFLOW, "W1")

    def test_commit_applies_to_index_and_documents(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1")},
                EntityKind.PERSONA: {"analyst": samples.persona("analyst")},
            }
        )

        engine.link("workflow", "W1", "persona", "analyst", "uses")

        assert engine.index.get(EntityKind.WORKFLOW, "W1")["personas"] == ["analyst"]
        assert engine.documents.read(EntityKind.PERSONA, "analyst")["workflows"] == ["W1"]

    def test_plan_link_rejects_unknown_triple(self):
        engine = _engine({})

        with pytest.raises(UnknownRelationship):
            engine.plan_link("persona", "analyst", "workflow", "W1", "uses")

    def test_unlink_tolerates_missing_target(self):
        """Unlink cleans whichever side still exists."""
        engine = _engine(
            {EntityKind.WORKFLOW: {"W1": samples.workflow("W1", personas=["gone"])}}
        )

        engine.unlink("workflow", "W1", "persona", "gone", "uses")

        assert engine.index.get(EntityKind.WORKFLOW, "W1")["personas"] == []

    def test_plan_removal_of_unreferenced_entity(self):
        engine = _engine({EntityKind.CAPABILITY: {"cap-a": samples.capability("cap-a")}})

        ws = engine.plan_removal(EntityKind.CAPABILITY, "cap-a")

        assert ws.saves == {}
        assert ws.deletes == [(EntityKind.CAPABILITY, "cap-a")]


class TestValidateReferences:
    """Tests for validate_references."""

    def test_restricted_to_fields(self):
        engine = _engine({})
        record = samples.workflow("W1", requires=["missing"], personas=["nobody"])

        with pytest.raises(MissingReference) as exc_info:
            engine.validate_references(EntityKind.WORKFLOW, record, fields=["personas"])

        assert exc_info.value.field == "personas"

    def test_nested_issue_references(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1")},
                EntityKind.PERSONA: {"analyst": samples.persona("analyst")},
            }
        )
        record = samples.usability_result(
            issues=[
                {
                    "severity": "major",
                    "description": "Search box hidden",
                    "affected_components": ["search-box"],
                }
            ]
        )

        with pytest.raises(MissingReference) as exc_info:
            engine.validate_references(EntityKind.TEST_RESULT, record)

        assert exc_info.value.field == "issues.affected_components"
        assert exc_info.value.missing_id == "search-box"


class TestDependents:
    """Tests for dependents_of and dependencies_of."""

    def test_forward_and_reverse_dependents(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1", requires=["cap-a"])},
                EntityKind.CAPABILITY: {
                    "cap-a": samples.capability("cap-a", used_by_workflows=["W1"])
                },
                EntityKind.VIEW: {"V01": samples.view("V01", workflows=["W1"])},
            }
        )

        assert engine.dependents_of("capability", "cap-a") == [
            Dependent(EntityKind.WORKFLOW, "W1", "requires_capabilities")
        ]
        dependents = engine.dependents_of("workflow", "W1")
        assert Dependent(EntityKind.VIEW, "V01", "workflows") in dependents
        assert Dependent(EntityKind.CAPABILITY, "cap-a", "used_by_workflows") in dependents


class TestConsistency:
    """Tests for the graph-wide audit."""

    def test_consistent_graph(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1", requires=["cap-a"])},
                EntityKind.CAPABILITY: {
                    "cap-a": samples.capability("cap-a", used_by_workflows=["W1"])
                },
            }
        )

        report = engine.check_consistency()

        assert report.valid
        assert report.errors == []

    def test_one_sided_forward_link(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1", requires=["cap-a"])},
                EntityKind.CAPABILITY: {"cap-a": samples.capability("cap-a")},
            }
        )

        report = engine.check_consistency()

        assert not report.valid
        assert any("used_by_workflows" in error for error in report.errors)

    def test_one_sided_reverse_link(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1")},
                EntityKind.CAPABILITY: {
                    "cap-a": samples.capability("cap-a", used_by_workflows=["W1"])
                },
            }
        )

        report = engine.check_consistency()

        assert len(report.errors) == 1
        assert "requires_capabilities" in report.errors[0]

    def test_broken_reference(self):
        engine = _engine(
            {EntityKind.WORKFLOW: {"W1": samples.workflow("W1", personas=["ghost"])}}
        )

        report = engine.check_consistency()

        assert report.errors == ["Workflow 'W1': 'personas' references missing Persona 'ghost'"]

    def test_duplicate_ids_are_warnings(self):
        engine = _engine(
            {
                EntityKind.WORKFLOW: {"W1": samples.workflow("W1", requires=["cap-a", "cap-a"])},
                EntityKind.CAPABILITY: {
                    "cap-a": samples.capability("cap-a", used_by_workflows=["W1"])
                },
            }
        )

        report = engine.check_consistency()

        assert report.valid
        assert report.warnings == ["Workflow 'W1': duplicate IDs in 'requires_capabilities'"]
