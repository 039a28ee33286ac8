# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the in-memory entity index."""

import yaml

from designloom.catalog import EntityKind
from designloom.index import EntityIndex
from designloom.models import WriteSet
from designloom.persistence import InMemoryDocumentStore, YamlDocumentStore
from tests import samples


def _index() -> EntityIndex:
    documents = InMemoryDocumentStore(
        {
            EntityKind.WORKFLOW: {
                "W2": samples.workflow("W2", category="reporting"),
                "W1": samples.workflow("W1"),
            },
            EntityKind.PERSONA: {"analyst": samples.persona("analyst")},
        }
    )
    return EntityIndex(documents)


class TestEntityIndex:
    """Tests for EntityIndex."""

    def test_loads_every_kind(self):
        index = _index()

        assert index.ids(EntityKind.WORKFLOW) == ["W1", "W2"]
        assert index.count(EntityKind.PERSONA) == 1
        assert index.count(EntityKind.VIEW) == 0

    def test_get_returns_copy(self):
        index = _index()

        record = index.get(EntityKind.WORKFLOW, "W1")
        record["name"] = "Changed"

        assert index.get(EntityKind.WORKFLOW, "W1")["name"] == "Workflow W1"
        assert index.get(EntityKind.WORKFLOW, "W404") is None

    def test_list_with_predicate(self):
        index = _index()

        summaries = index.list(EntityKind.WORKFLOW, lambda r: r["category"] == "reporting")

        assert [s.to_dict() for s in summaries] == [
            {"id": "W2", "name": "Workflow W2", "category": "reporting"}
        ]

    def test_counts(self):
        counts = _index().counts()

        assert counts["workflow"] == 2
        assert counts["test-result"] == 0

    def test_apply_write_set(self):
        index = _index()
        ws = WriteSet()
        ws.save(EntityKind.CAPABILITY, samples.capability("cap-a"))
        ws.delete(EntityKind.WORKFLOW, "W2")

        index.apply(ws)

        assert index.exists(EntityKind.CAPABILITY, "cap-a")
        assert not index.exists(EntityKind.WORKFLOW, "W2")

    def test_upsert_and_remove(self):
        index = _index()

        index.upsert(EntityKind.COMPONENT, samples.component("comp-x"))
        assert index.exists(EntityKind.COMPONENT, "comp-x")

        assert index.remove(EntityKind.COMPONENT, "comp-x") is True
        assert index.remove(EntityKind.COMPONENT, "comp-x") is False

    def test_refresh_picks_up_new_documents(self):
        documents = InMemoryDocumentStore()
        index = EntityIndex(documents)
        documents.save(EntityKind.PERSONA, "analyst", samples.persona("analyst"))

        assert not index.exists(EntityKind.PERSONA, "analyst")
        index.refresh()
        assert index.exists(EntityKind.PERSONA, "analyst")

    def test_duplicate_ids_keep_first(self, tmp_path):
        directory = tmp_path / "workflows"
        directory.mkdir()
        with open(directory / "W1.yaml", "w") as f:
            yaml.safe_dump(samples.workflow("W1"), f)
        with open(directory / "copy.yaml", "w") as f:
            yaml.safe_dump(samples.workflow("W1", name="Copy"), f)

        index = EntityIndex(YamlDocumentStore(tmp_path))

        assert index.ids(EntityKind.WORKFLOW) == ["W1"]
        assert index.get(EntityKind.WORKFLOW, "W1")["name"] == "Workflow W1"

    def test_deferred_load(self):
        documents = InMemoryDocumentStore({EntityKind.PERSONA: {"analyst": samples.persona()}})

        index = EntityIndex(documents, load=False)

        assert index.count(EntityKind.PERSONA) == 0
