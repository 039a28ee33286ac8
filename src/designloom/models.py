# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the design entity store.

- Dependent: An entity whose field names another entity
- EntitySummary: Compact listing entry for an entity
- WriteSet: Fully computed set of document writes and deletes
- ConsistencyReport: Result of a graph-wide integrity audit
- OperationResult: Success payload or typed error returned at the service boundary

All models serialize to JSON-compatible dicts via ``to_dict()``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from designloom.catalog import EntityKind

EntityKey = Tuple[EntityKind, str]


@dataclass(frozen=True)
class Dependent:
    """An entity that references another through ``field``."""

    kind: EntityKind
    id: str
    field: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "id": self.id, "field": self.field}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dependent":
        return cls(kind=EntityKind(data["kind"]), id=data["id"], field=data["field"])


# Scalar fields copied into a summary when the entity has them
SUMMARY_FIELDS = ("category", "status", "role", "test_type", "workflow_id", "persona_id", "date")


@dataclass
class EntitySummary:
    """Listing entry: identity plus the few scalar fields used for filtering."""

    kind: EntityKind
    id: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, kind: EntityKind, record: Dict[str, Any]) -> "EntitySummary":
        attributes = {key: record[key] for key in SUMMARY_FIELDS if key in record}
        return cls(
            kind=kind,
            id=record["id"],
            name=str(record.get("name", record["id"])),
            attributes=attributes,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"id": self.id, "name": self.name}
        result.update(self.attributes)
        return result


@dataclass
class WriteSet:
    """Every document a mutation will write or delete, computed before any I/O.

    A key staged for deletion is never also saved.
    """

    saves: Dict[EntityKey, Dict[str, Any]] = field(default_factory=dict)
    deletes: List[EntityKey] = field(default_factory=list)

    def save(self, kind: EntityKind, record: Dict[str, Any]) -> None:
        key = (kind, record["id"])
        if key in self.deletes:
            return
        self.saves[key] = record

    def delete(self, kind: EntityKind, entity_id: str) -> None:
        key = (kind, entity_id)
        self.saves.pop(key, None)
        if key not in self.deletes:
            self.deletes.append(key)

    def staged(self, kind: EntityKind, entity_id: str) -> Optional[Dict[str, Any]]:
        return self.saves.get((kind, entity_id))

    def is_deleted(self, kind: EntityKind, entity_id: str) -> bool:
        return (kind, entity_id) in self.deletes

    def is_empty(self) -> bool:
        return not self.saves and not self.deletes

    def touched(self) -> List[str]:
        """Human-readable list of affected documents, for logs and results."""
        names = [f"{kind.value}:{entity_id}" for kind, entity_id in self.saves]
        names.extend(f"{kind.value}:{entity_id} (deleted)" for kind, entity_id in self.deletes)
        return names


@dataclass
class ConsistencyReport:
    """Outcome of a full integrity audit."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


@dataclass
class OperationResult:
    """Result value returned across the service boundary.

    Exactly one of ``data`` (on success) or ``error`` (on failure) is set.
    """

    success: bool
    data: Any = None
    error: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, warnings: Optional[List[str]] = None) -> "OperationResult":
        return cls(success=True, data=data, warnings=warnings or [])

    @classmethod
    def fail(cls, error: Dict[str, Any]) -> "OperationResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = self.warnings
        return result
