# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Mutation operations over the design entity store.

``DesignStore`` is the owned store value: it holds the document store, the
index and the relationship engine, and exposes create/update/delete plus the
link and query primitives. Every mutation either commits completely or
raises one of the errors in ``designloom.errors`` with nothing changed.
"""

import copy
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from designloom.catalog import EntityKind, extract_ids, fields_for, parse_kind, reverse_ids
from designloom.errors import AlreadyExists, HasDependents, NotFound, StructuralInvalid
from designloom.index import EntityIndex
from designloom.models import Dependent, EntitySummary, WriteSet
from designloom.persistence import DocumentStore, YamlDocumentStore
from designloom.relationships import RelationshipEngine
from designloom.schemas import validate_structure

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

INITIAL_VERSION = "1.0.0"
_SEMVER = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
METADATA_FIELDS = ("version", "created_at", "updated_at")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def bump_patch(version: Optional[str]) -> str:
    """Increment the patch component of a semantic version.

    A missing or malformed version counts as the initial version.
    """
    match = _SEMVER.match(version or "")
    if match is None:
        return "1.0.1"
    major, minor, patch = (int(part) for part in match.groups())
    return f"{major}.{minor}.{patch + 1}"


class DesignStore:
    """Design entity store: index + relationship engine + document store.

    Args:
        base_path: Data directory for YAML documents. Ignored when
            ``documents`` is given.
        documents: Document store to use instead of YAML files.
        structural_validation: Run structural validation before accepting input.
        clock: Timestamp source for version metadata (overridable in tests).
    """

    def __init__(
        self,
        base_path: Optional[Path] = None,
        documents: Optional[DocumentStore] = None,
        structural_validation: bool = True,
        clock: Callable[[], str] = utc_now,
    ):
        if documents is None:
            if base_path is None:
                raise ValueError("Either base_path or documents must be provided")
            documents = YamlDocumentStore(base_path)
        self.documents = documents
        self.structural_validation = structural_validation
        self.clock = clock
        self.index = EntityIndex(documents)
        self.engine = RelationshipEngine(self.index, documents)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, kind: Any, entity_id: str) -> Record:
        """Return a copy of the entity.

        Raises:
            NotFound: If the entity does not exist.
        """
        kind = parse_kind(kind)
        record = self.index.get(kind, entity_id)
        if record is None:
            raise NotFound(kind.value, entity_id)
        return record

    def exists(self, kind: Any, entity_id: str) -> bool:
        return self.index.exists(parse_kind(kind), entity_id)

    def resolve(self, kind: Any, entity_id: str) -> Dict[str, List[Dict[str, str]]]:
        """Resolve every reference and reverse field of an entity to ``{id, name}`` pairs.

        IDs that no longer resolve are omitted.
        """
        kind = parse_kind(kind)
        record = self.get(kind, entity_id)
        spec = fields_for(kind)
        resolved: Dict[str, List[Dict[str, str]]] = {}

        for ref in spec.reference_fields:
            entries = self._named(ref.target, extract_ids(record, ref))
            if entries:
                resolved[ref.name] = entries
        for rev in spec.reverse_fields:
            entries = self._named(rev.source, reverse_ids(record, rev.name))
            if entries:
                resolved[rev.name] = entries
        return resolved

    def _named(self, kind: EntityKind, ids: List[str]) -> List[Dict[str, str]]:
        entries: List[Dict[str, str]] = []
        for entity_id in ids:
            target = self.index.get(kind, entity_id)
            if target is not None:
                entries.append({"id": entity_id, "name": str(target.get("name", entity_id))})
        return entries

    def list(self, kind: Any, filters: Optional[Mapping[str, Any]] = None) -> List[EntitySummary]:
        """List entities of a kind, optionally filtered.

        A filter on a list field matches when the list contains the value; a
        filter on any other field matches on equality. ``None`` values are
        ignored.
        """
        kind = parse_kind(kind)
        active = {key: value for key, value in (filters or {}).items() if value is not None}
        if not active:
            return self.index.list(kind)
        return self.index.list(kind, lambda record: _matches(record, active))

    def dependents_of(self, kind: Any, entity_id: str) -> List[Dependent]:
        return self.engine.dependents_of(kind, entity_id)

    def dependencies_of(self, kind: Any, entity_id: str) -> List[Dependent]:
        return self.engine.dependencies_of(kind, entity_id)

    def refresh(self) -> None:
        self.index.refresh()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self, kind: Any, data: Mapping[str, Any], warnings: Optional[List[str]] = None
    ) -> Record:
        """Create an entity and link the reverse side of every reference it declares.

        Caller-supplied reverse fields are accepted as seeds: entries naming an
        existing entity are kept (and the forward side is added there), the
        rest are dropped; a message for each is appended to ``warnings`` when
        a list is given.

        Returns:
            The stored record.

        Raises:
            AlreadyExists: If the ID is taken.
            StructuralInvalid: If the document fails structural validation.
            MissingReference: If a forward reference names nothing.
        """
        kind = parse_kind(kind)
        entity_id = data.get("id") if isinstance(data, Mapping) else None
        if isinstance(entity_id, str) and self.index.exists(kind, entity_id):
            logger.warning(f"Rejected create: {kind.value} '{entity_id}' already exists")
            raise AlreadyExists(kind.value, entity_id)

        record = self._validate(kind, data)
        entity_id = record["id"]
        if self.index.exists(kind, entity_id):
            raise AlreadyExists(kind.value, entity_id)

        self.engine.validate_references(kind, record)

        now = self.clock()
        record["version"] = INITIAL_VERSION
        record["created_at"] = now
        record["updated_at"] = now

        ws = WriteSet()
        ws.save(kind, record)
        self.engine.plan_forward_links(kind, record, ws)
        dropped = self.engine.plan_reverse_seeds(kind, record, ws)
        if warnings is not None:
            warnings.extend(dropped)
        self.engine.commit(ws)

        logger.info(
            f"Created {kind.value} '{entity_id}' ({len(ws.saves) - 1} related documents updated)"
        )
        return copy.deepcopy(record)

    def update(self, kind: Any, entity_id: str, data: Mapping[str, Any]) -> Record:
        """Merge ``data`` into an existing entity.

        Only supplied top-level fields are replaced. For each changed reference
        field the added and removed IDs are linked and unlinked on the other
        side; reverse fields are never written from caller input.

        Raises:
            NotFound: If the entity does not exist.
            StructuralInvalid: If ``data`` tries to change ``id`` or a reverse
                field, or the merged document fails structural validation.
            MissingReference: If a changed reference names nothing.
        """
        kind = parse_kind(kind)
        existing = self.index.get(kind, entity_id)
        if existing is None:
            raise NotFound(kind.value, entity_id)

        spec = fields_for(kind)
        changes = dict(data)
        if "id" in changes and changes["id"] != entity_id:
            raise StructuralInvalid("id", "the ID of an existing entity cannot change")
        changes.pop("id", None)
        for name in spec.reverse_names:
            if name in changes:
                raise StructuralInvalid(
                    name, "maintained by the store; change the forward side instead"
                )
        for name in METADATA_FIELDS:
            changes.pop(name, None)

        merged = copy.deepcopy(existing)
        merged.update(copy.deepcopy(changes))
        merged = self._validate(kind, merged)

        changed_fields = [key for key in changes if merged.get(key) != existing.get(key)]
        self.engine.validate_references(kind, merged, fields=changed_fields)

        merged["version"] = bump_patch(existing.get("version"))
        now = self.clock()
        merged["created_at"] = existing.get("created_at") or now
        merged["updated_at"] = now

        ws = WriteSet()
        ws.save(kind, merged)
        for ref in spec.reference_fields:
            if ref.top_level not in changed_fields:
                continue
            self.engine.plan_reference_delta(
                kind,
                entity_id,
                ref,
                extract_ids(existing, ref),
                extract_ids(merged, ref),
                ws,
            )
        self.engine.commit(ws)

        logger.info(
            f"Updated {kind.value} '{entity_id}' to {merged['version']} "
            f"(fields: {', '.join(changed_fields) or 'none'})"
        )
        return copy.deepcopy(merged)

    def delete(self, kind: Any, entity_id: str, force: bool = False) -> List[Dependent]:
        """Delete an entity.

        Without ``force`` the delete is refused while anything references the
        entity. With ``force`` every reference is scrubbed in the same commit.

        Returns:
            The dependents that were scrubbed (empty for a plain delete).

        Raises:
            NotFound: If the entity does not exist.
            HasDependents: If dependents exist and ``force`` is False.
        """
        kind = parse_kind(kind)
        dependents = self.engine.dependents_of(kind, entity_id)
        if dependents and not force:
            logger.warning(
                f"Rejected delete of {kind.value} '{entity_id}': "
                f"{len(dependents)} dependents, force not set"
            )
            raise HasDependents(kind.value, entity_id, dependents)

        ws = self.engine.plan_removal(kind, entity_id)
        self.engine.commit(ws)

        logger.info(
            f"Deleted {kind.value} '{entity_id}'"
            + (f" (forced, scrubbed {len(dependents)} references)" if dependents else "")
        )
        return dependents

    def link(
        self, from_kind: Any, from_id: str, to_kind: Any, to_id: str, relationship: Any
    ) -> bool:
        """Link two entities. Returns False when the link was already present."""
        ws = self.engine.link(from_kind, from_id, to_kind, to_id, relationship)
        return not ws.is_empty()

    def unlink(
        self, from_kind: Any, from_id: str, to_kind: Any, to_id: str, relationship: Any
    ) -> bool:
        """Unlink two entities. Returns False when there was nothing to remove."""
        ws = self.engine.unlink(from_kind, from_id, to_kind, to_id, relationship)
        return not ws.is_empty()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, kind: EntityKind, data: Mapping[str, Any]) -> Record:
        if not self.structural_validation:
            if not isinstance(data, Mapping) or not isinstance(data.get("id"), str):
                raise StructuralInvalid("id", "a string ID is required")
            return copy.deepcopy(dict(data))
        return validate_structure(kind, dict(data))


def _matches(record: Record, filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        actual = record.get(key)
        if isinstance(actual, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True
