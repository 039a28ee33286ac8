# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""DesignLoomService - operation boundary for the design entity store.

Owns the store and the analytics engine and exposes the store-level operation
surface. Errors raised by the core are recovered here into ``OperationResult``
values; nothing typed as ``DesignLoomError`` escapes this layer.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from designloom.analytics import PRIORITY_FOCUSES, AnalyticsEngine
from designloom.config import Config
from designloom.errors import DesignLoomError, StructuralInvalid
from designloom.models import OperationResult
from designloom.path_resolver import resolve_data_path
from designloom.store import DesignStore

logger = logging.getLogger(__name__)


class DesignLoomService:
    """Business logic coordinator used by the transport layer.

    Args:
        config: Configuration. If None, loads from the default location.
        store: Store to use. If None, one is opened on the resolved data path.
        data_path: Overrides ``config.data_path`` when no store is given.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[DesignStore] = None,
        data_path: Optional[Path] = None,
    ):
        self.config = config if config is not None else Config()

        if store is None:
            resolved = resolve_data_path(data_path or self.config.data_path)
            logger.info(f"Opening design store at {resolved}")
            store = DesignStore(
                base_path=resolved, structural_validation=self.config.validate_structure
            )
        self.store = store
        self.analytics = AnalyticsEngine(
            store.index,
            store.engine,
            gap_category_threshold=self.config.gap_category_threshold,
            ready_status=self.config.ready_status,
        )

    def _run(self, operation: str, action: Callable[[], Any]) -> OperationResult:
        try:
            outcome = action()
        except DesignLoomError as e:
            logger.warning(f"{operation} failed: {e.message}")
            return OperationResult.fail(e.to_dict())
        if isinstance(outcome, OperationResult):
            return outcome
        return OperationResult.ok(outcome)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, kind: str, data: Mapping[str, Any]) -> OperationResult:
        def action() -> OperationResult:
            warnings: List[str] = []
            record = self.store.create(kind, data, warnings=warnings)
            return OperationResult.ok(record, warnings=warnings)

        return self._run(f"create {kind}", action)

    def update(self, kind: str, entity_id: str, data: Mapping[str, Any]) -> OperationResult:
        return self._run(
            f"update {kind} '{entity_id}'", lambda: self.store.update(kind, entity_id, data)
        )

    def delete(self, kind: str, entity_id: str, force: bool = False) -> OperationResult:
        def action() -> Dict[str, Any]:
            scrubbed = self.store.delete(kind, entity_id, force=force)
            return {
                "deleted": {"kind": kind, "id": entity_id},
                "scrubbed": [d.to_dict() for d in scrubbed],
            }

        return self._run(f"delete {kind} '{entity_id}'", action)

    def link(
        self, from_kind: str, from_id: str, to_kind: str, to_id: str, relationship: str
    ) -> OperationResult:
        def action() -> Dict[str, Any]:
            changed = self.store.link(from_kind, from_id, to_kind, to_id, relationship)
            return {"linked": True, "changed": changed}

        return self._run(f"link {from_id} -[{relationship}]-> {to_id}", action)

    def unlink(
        self, from_kind: str, from_id: str, to_kind: str, to_id: str, relationship: str
    ) -> OperationResult:
        def action() -> Dict[str, Any]:
            changed = self.store.unlink(from_kind, from_id, to_kind, to_id, relationship)
            return {"linked": False, "changed": changed}

        return self._run(f"unlink {from_id} -[{relationship}]-> {to_id}", action)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, kind: str, entity_id: str) -> OperationResult:
        def action() -> Dict[str, Any]:
            record = self.store.get(kind, entity_id)
            record["_resolved"] = self.store.resolve(kind, entity_id)
            return record

        return self._run(f"get {kind} '{entity_id}'", action)

    def list(self, kind: str, filters: Optional[Mapping[str, Any]] = None) -> OperationResult:
        return self._run(
            f"list {kind}", lambda: [s.to_dict() for s in self.store.list(kind, filters)]
        )

    def dependents_of(self, kind: str, entity_id: str) -> OperationResult:
        return self._run(
            f"dependents of {kind} '{entity_id}'",
            lambda: [d.to_dict() for d in self.store.dependents_of(kind, entity_id)],
        )

    def dependencies_of(self, kind: str, entity_id: str) -> OperationResult:
        return self._run(
            f"dependencies of {kind} '{entity_id}'",
            lambda: [d.to_dict() for d in self.store.dependencies_of(kind, entity_id)],
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def find_orphans(self, kind: Optional[str] = None) -> OperationResult:
        return self._run("find orphans", lambda: self.analytics.find_orphans(kind))

    def find_gaps(self) -> OperationResult:
        return self._run("find gaps", self.analytics.find_gaps)

    def coverage_report(self) -> OperationResult:
        return self._run("coverage report", self.analytics.coverage_report)

    def test_coverage(self) -> OperationResult:
        return self._run("test coverage", self.analytics.test_coverage)

    def suggest_priority(
        self, focus: str = "capability", limit: Optional[int] = None
    ) -> OperationResult:
        def action() -> Dict[str, Any]:
            if focus not in PRIORITY_FOCUSES:
                raise StructuralInvalid(
                    "focus", f"must be one of {', '.join(PRIORITY_FOCUSES)}, got '{focus}'"
                )
            if limit is not None and limit <= 0:
                raise StructuralInvalid("limit", "must be a positive integer")
            return self.analytics.suggest_priority(focus, limit or self.config.priority_limit)

        return self._run("suggest priority", action)

    def validate(self) -> OperationResult:
        return self._run("validate", self.analytics.validate)

    def refresh(self) -> OperationResult:
        def action() -> Dict[str, Any]:
            self.store.refresh()
            return {"counts": self.store.index.counts()}

        return self._run("refresh", action)
