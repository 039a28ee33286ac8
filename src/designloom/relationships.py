# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relationship engine: reference validation, bidirectional links, cascading scrub.

Every mutation follows the same two-phase discipline:

1. Plan: a pure scan of the index produces a ``WriteSet`` holding every
   document that must change (no I/O, no index mutation).
2. Commit: the write set goes through the document store, then the index
   applies it in one step.

If the document store fails part-way through a commit, documents already
written are restored best-effort from the index (which still holds the
pre-commit state), the index is left untouched, and the error propagates.
A crash between writes can still leave a torn state on disk; ``refresh()``
surfaces it and ``check_consistency()`` reports it.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from designloom.catalog import (
    EntityKind,
    ReferenceField,
    extract_ids,
    fields_for,
    holds_id,
    parse_kind,
    referencing_fields,
    relationship_mapping,
    reverse_fields_holding,
    reverse_ids,
    strip_id,
)
from designloom.errors import MissingReference, NotFound, PersistenceError
from designloom.index import EntityIndex
from designloom.models import ConsistencyReport, Dependent, EntityKey, WriteSet
from designloom.persistence import DocumentStore

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _append_unique(record: Record, field: str, value: str) -> bool:
    current = record.get(field)
    if not isinstance(current, list):
        current = []
    if value in current:
        record[field] = current
        return False
    record[field] = current + [value]
    return True


def _remove_all(record: Record, field: str, value: str) -> bool:
    current = record.get(field)
    if not isinstance(current, list) or value not in current:
        return False
    record[field] = [item for item in current if item != value]
    return True


class RelationshipEngine:
    """Keeps reference fields valid and every relationship bidirectional.

    Reverse fields are only ever changed here; the mutation layer never
    writes them directly.
    """

    def __init__(self, index: EntityIndex, documents: DocumentStore):
        self.index = index
        self.documents = documents

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_references(
        self, kind: EntityKind, record: Record, fields: Optional[Iterable[str]] = None
    ) -> None:
        """Check that every forward reference in ``record`` names an existing entity.

        Args:
            kind: Kind of ``record``.
            record: Document to check.
            fields: Restrict the check to these top-level keys (None checks all).

        Raises:
            MissingReference: On the first ID with no matching entity.
        """
        only = set(fields) if fields is not None else None
        for ref in fields_for(kind).reference_fields:
            if only is not None and ref.top_level not in only:
                continue
            for ref_id in extract_ids(record, ref):
                if not self.index.exists(ref.target, ref_id):
                    logger.warning(
                        f"{kind.value} '{record.get('id')}' field '{ref.name}' references "
                        f"missing {ref.target.value} '{ref_id}'"
                    )
                    raise MissingReference(ref.name, ref.target.value, ref_id)

    # ------------------------------------------------------------------
    # Planning helpers
    # ------------------------------------------------------------------

    def _working(self, ws: WriteSet, kind: EntityKind, entity_id: str) -> Optional[Record]:
        """Record as it will look after ``ws``: the staged copy, else a fresh index copy."""
        staged = ws.staged(kind, entity_id)
        if staged is not None:
            return staged
        if ws.is_deleted(kind, entity_id):
            return None
        return self.index.get(kind, entity_id)

    def _require(self, ws: WriteSet, kind: EntityKind, entity_id: str) -> Record:
        record = self._working(ws, kind, entity_id)
        if record is None:
            raise NotFound(kind.value, entity_id)
        return record

    # ------------------------------------------------------------------
    # Link / unlink
    # ------------------------------------------------------------------

    def plan_link(
        self,
        from_kind: Any,
        from_id: str,
        to_kind: Any,
        to_id: str,
        relationship: Any,
        ws: Optional[WriteSet] = None,
    ) -> WriteSet:
        """Stage both sides of a link. Already-present IDs are not duplicated."""
        forward, reverse = relationship_mapping(from_kind, to_kind, relationship)
        from_kind, to_kind = parse_kind(from_kind), parse_kind(to_kind)
        ws = ws if ws is not None else WriteSet()

        source = self._require(ws, from_kind, from_id)
        if (from_kind, from_id) == (to_kind, to_id):
            target = source
        else:
            target = self._require(ws, to_kind, to_id)

        source_changed = _append_unique(source, forward, to_id)
        target_changed = _append_unique(target, reverse, from_id)
        if source_changed or (target is source and target_changed):
            ws.save(from_kind, source)
        if target_changed and target is not source:
            ws.save(to_kind, target)
        return ws

    def plan_unlink(
        self,
        from_kind: Any,
        from_id: str,
        to_kind: Any,
        to_id: str,
        relationship: Any,
        ws: Optional[WriteSet] = None,
    ) -> WriteSet:
        """Stage removal of both sides of a link.

        Absent links and missing entities are not errors: whichever side
        exists is cleaned and nothing else happens.
        """
        forward, reverse = relationship_mapping(from_kind, to_kind, relationship)
        from_kind, to_kind = parse_kind(from_kind), parse_kind(to_kind)
        ws = ws if ws is not None else WriteSet()

        source = self._working(ws, from_kind, from_id)
        if (from_kind, from_id) == (to_kind, to_id):
            target = source
        else:
            target = self._working(ws, to_kind, to_id)

        source_changed = source is not None and _remove_all(source, forward, to_id)
        target_changed = target is not None and _remove_all(target, reverse, from_id)
        if source is not None and (source_changed or (target is source and target_changed)):
            ws.save(from_kind, source)
        if target is not None and target is not source and target_changed:
            ws.save(to_kind, target)
        return ws

    def link(
        self, from_kind: Any, from_id: str, to_kind: Any, to_id: str, relationship: Any
    ) -> WriteSet:
        """Create a link and persist both sides.

        Raises:
            UnknownRelationship: If the triple is not in the relationship table.
            NotFound: Naming whichever side does not exist.
        """
        ws = self.plan_link(from_kind, from_id, to_kind, to_id, relationship)
        if ws.is_empty():
            logger.info(f"Link {from_id} -[{relationship}]-> {to_id} already present")
            return ws
        self.commit(ws)
        logger.info(f"Linked {from_id} -[{relationship}]-> {to_id}")
        return ws

    def unlink(
        self, from_kind: Any, from_id: str, to_kind: Any, to_id: str, relationship: Any
    ) -> WriteSet:
        """Remove a link from both sides. Unlinking an absent link succeeds as a no-op.

        Raises:
            UnknownRelationship: If the triple is not in the relationship table.
        """
        ws = self.plan_unlink(from_kind, from_id, to_kind, to_id, relationship)
        if ws.is_empty():
            logger.info(f"Link {from_id} -[{relationship}]-> {to_id} not present, nothing to do")
            return ws
        self.commit(ws)
        logger.info(f"Unlinked {from_id} -[{relationship}]-> {to_id}")
        return ws

    # ------------------------------------------------------------------
    # Create / update support
    # ------------------------------------------------------------------

    def plan_forward_links(self, kind: EntityKind, record: Record, ws: WriteSet) -> None:
        """Stage reverse sides for every forward reference of a new record.

        ``record`` must already be staged in ``ws``.
        """
        entity_id = record["id"]
        for ref in fields_for(kind).reference_fields:
            if ref.reverse is None:
                continue
            for ref_id in extract_ids(record, ref):
                target = self._require(ws, ref.target, ref_id)
                if _append_unique(target, ref.reverse, entity_id):
                    ws.save(ref.target, target)

    def plan_reverse_seeds(self, kind: EntityKind, record: Record, ws: WriteSet) -> List[str]:
        """Reconcile caller-supplied reverse values on a new record.

        Seeds naming an existing entity are kept and the forward side is
        staged on that entity; seeds naming nothing are dropped.

        Returns:
            Warning messages for dropped seeds.
        """
        warnings: List[str] = []
        entity_id = record["id"]
        for rev in fields_for(kind).reverse_fields:
            seeds = reverse_ids(record, rev.name)
            kept: List[str] = []
            for source_id in seeds:
                if source_id in kept:
                    continue
                if (rev.source, source_id) == (kind, entity_id):
                    source = record
                else:
                    source = self._working(ws, rev.source, source_id)
                if source is None:
                    warnings.append(
                        f"Dropped '{source_id}' from {rev.name}: "
                        f"{rev.source.value} '{source_id}' does not exist"
                    )
                    continue
                kept.append(source_id)
                if _append_unique(source, rev.forward, entity_id) and source is not record:
                    ws.save(rev.source, source)
            record[rev.name] = kept

        for message in warnings:
            logger.warning(f"{kind.value} '{entity_id}': {message}")
        return warnings

    def plan_reference_delta(
        self,
        kind: EntityKind,
        entity_id: str,
        ref: ReferenceField,
        old_ids: List[str],
        new_ids: List[str],
        ws: WriteSet,
    ) -> None:
        """Stage reverse-side changes for one changed forward field.

        Only targets added to or removed from the field are touched, so reverse
        links contributed by other entities are never rewritten.
        """
        if ref.reverse is None:
            return
        for added in [i for i in new_ids if i not in old_ids]:
            target = self._require(ws, ref.target, added)
            if _append_unique(target, ref.reverse, entity_id):
                ws.save(ref.target, target)
        for removed in [i for i in old_ids if i not in new_ids]:
            target = self._working(ws, ref.target, removed)
            if target is not None and _remove_all(target, ref.reverse, entity_id):
                ws.save(ref.target, target)

    # ------------------------------------------------------------------
    # Dependents / delete support
    # ------------------------------------------------------------------

    def dependents_of(self, kind: Any, entity_id: str) -> List[Dependent]:
        """Every (kind, id, field) whose forward or reverse field holds ``entity_id``.

        Raises:
            NotFound: If the entity does not exist.
        """
        kind = parse_kind(kind)
        if not self.index.exists(kind, entity_id):
            raise NotFound(kind.value, entity_id)

        found: List[Dependent] = []
        for spec, ref in referencing_fields(kind):
            for other_id, record in self.index.records(spec.kind):
                if (spec.kind, other_id) == (kind, entity_id):
                    continue
                if holds_id(record, ref, entity_id):
                    found.append(Dependent(spec.kind, other_id, ref.name))
        for spec, rev in reverse_fields_holding(kind):
            for other_id, record in self.index.records(spec.kind):
                if (spec.kind, other_id) == (kind, entity_id):
                    continue
                if entity_id in reverse_ids(record, rev.name):
                    found.append(Dependent(spec.kind, other_id, rev.name))
        return found

    def dependencies_of(self, kind: Any, entity_id: str) -> List[Dependent]:
        """Entities ``entity_id`` references through its own forward fields.

        Raises:
            NotFound: If the entity does not exist.
        """
        kind = parse_kind(kind)
        record = self.index.get(kind, entity_id)
        if record is None:
            raise NotFound(kind.value, entity_id)
        return [
            Dependent(ref.target, ref_id, ref.name)
            for ref in fields_for(kind).reference_fields
            for ref_id in extract_ids(record, ref)
        ]

    def plan_removal(
        self, kind: EntityKind, entity_id: str, ws: Optional[WriteSet] = None
    ) -> WriteSet:
        """Stage deletion of an entity plus a scrub of its ID from every other entity.

        Entities holding a required scalar reference to the deleted entity
        (a test result's workflow or persona) cannot exist without it and are
        removed as well, recursively.
        """
        ws = ws if ws is not None else WriteSet()
        if ws.is_deleted(kind, entity_id):
            return ws
        ws.delete(kind, entity_id)

        for spec, ref in referencing_fields(kind):
            for other_id, indexed in self.index.records(spec.kind):
                if not holds_id(indexed, ref, entity_id) and ws.staged(spec.kind, other_id) is None:
                    continue
                record = self._working(ws, spec.kind, other_id)
                if record is None or not holds_id(record, ref, entity_id):
                    continue
                if ref.scalar and ref.required:
                    logger.info(
                        f"Removing {spec.kind.value} '{other_id}' along with "
                        f"{kind.value} '{entity_id}' ({ref.name} is required)"
                    )
                    self.plan_removal(spec.kind, other_id, ws)
                    continue
                strip_id(record, ref, entity_id)
                ws.save(spec.kind, record)

        for spec, rev in reverse_fields_holding(kind):
            for other_id, indexed in self.index.records(spec.kind):
                if entity_id not in reverse_ids(indexed, rev.name):
                    if ws.staged(spec.kind, other_id) is None:
                        continue
                record = self._working(ws, spec.kind, other_id)
                if record is not None and _remove_all(record, rev.name, entity_id):
                    ws.save(spec.kind, record)
        return ws

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, ws: WriteSet) -> None:
        """Write every staged document, then apply the write set to the index.

        Raises:
            PersistenceError: If the document store fails; documents already
                written are restored best-effort and the index is unchanged.
        """
        written: List[EntityKey] = []
        try:
            for (kind, entity_id), record in ws.saves.items():
                self.documents.save(kind, entity_id, record)
                written.append((kind, entity_id))
            for kind, entity_id in ws.deletes:
                self.documents.delete(kind, entity_id)
                written.append((kind, entity_id))
        except Exception as e:
            logger.error(
                f"Commit failed after {len(written)} of "
                f"{len(ws.saves) + len(ws.deletes)} documents: {e}"
            )
            self._rollback(written)
            if isinstance(e, PersistenceError):
                raise
            failed_kind, failed_id = self._failed_key(ws, len(written))
            raise PersistenceError(failed_kind.value, failed_id, str(e)) from e

        self.index.apply(ws)
        logger.debug(f"Committed {len(written)} documents: {', '.join(ws.touched())}")

    @staticmethod
    def _failed_key(ws: WriteSet, position: int) -> EntityKey:
        keys = list(ws.saves) + list(ws.deletes)
        return keys[min(position, len(keys) - 1)]

    def _rollback(self, written: List[EntityKey]) -> None:
        """Restore documents already written from the index (best effort)."""
        for kind, entity_id in reversed(written):
            previous = self.index.get(kind, entity_id)
            try:
                if previous is None:
                    self.documents.delete(kind, entity_id)
                else:
                    self.documents.save(kind, entity_id, previous)
            except Exception as rollback_error:
                logger.error(f"Rollback failed for {kind.value} '{entity_id}': {rollback_error}")
                logger.error("Documents may be inconsistent on disk - refresh and validate")
                return
        if written:
            logger.info(f"Rolled back {len(written)} documents")

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def check_consistency(self) -> ConsistencyReport:
        """Audit referential integrity and bidirectionality across the whole index.

        Checks for:
        - Broken references: an ID in any reference or reverse field naming nothing
        - One-sided links: a forward entry without its reverse entry, or vice versa
        - Duplicate IDs inside one reference list
        """
        report = ConsistencyReport()

        for kind, entity_id, record in self.index.all_records():
            spec = fields_for(kind)
            where = f"{spec.label} '{entity_id}'"

            for ref in spec.reference_fields:
                ids = extract_ids(record, ref)
                raw = record.get(ref.name) if len(ref.path) == 1 else None
                if isinstance(raw, list) and len(raw) != len(set(map(str, raw))):
                    report.warnings.append(f"{where}: duplicate IDs in '{ref.name}'")
                for ref_id in ids:
                    target = self.index.get(ref.target, ref_id)
                    if target is None:
                        report.errors.append(
                            f"{where}: '{ref.name}' references missing "
                            f"{fields_for(ref.target).label} '{ref_id}'"
                        )
                    elif ref.reverse and entity_id not in reverse_ids(target, ref.reverse):
                        report.errors.append(
                            f"{where}: '{ref.name}' lists '{ref_id}' but "
                            f"{fields_for(ref.target).label} '{ref_id}'.{ref.reverse} "
                            f"does not list '{entity_id}'"
                        )

            for rev in spec.reverse_fields:
                forward = fields_for(rev.source).reference(rev.forward)
                assert forward is not None
                for source_id in reverse_ids(record, rev.name):
                    source = self.index.get(rev.source, source_id)
                    if source is None:
                        report.errors.append(
                            f"{where}: '{rev.name}' references missing "
                            f"{fields_for(rev.source).label} '{source_id}'"
                        )
                    elif entity_id not in extract_ids(source, forward):
                        report.errors.append(
                            f"{where}: '{rev.name}' lists '{source_id}' but "
                            f"{fields_for(rev.source).label} '{source_id}'.{rev.forward} "
                            f"does not list '{entity_id}'"
                        )

        if report.errors:
            logger.warning(f"Consistency check found {len(report.errors)} errors")
        return report

