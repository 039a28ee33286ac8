# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Typed errors raised by the design entity store.

Every error carries a stable ``code`` and the fields a caller needs to
self-correct. The core raises them; the service layer converts them into
result values with ``to_dict()`` so nothing is thrown past the component
boundary.
"""

from typing import Any, Dict, List, Optional


class DesignLoomError(Exception):
    """Base exception for all store errors."""

    code = "design_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        """Typed fields of the error (overridden by subclasses)."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to JSON-serializable dictionary."""
        result: Dict[str, Any] = {"code": self.code, "message": self.message}
        result.update(self.details())
        return result


class StructuralInvalid(DesignLoomError):
    """Input failed structural validation (shape, ID pattern, required field)."""

    code = "structural_invalid"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid field '{field}': {reason}")
        self.field = field
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class UnknownEntityKind(StructuralInvalid):
    """A kind name outside the closed catalog."""

    def __init__(self, value: str, allowed: List[str]):
        super().__init__(
            "entity_type",
            f"unknown entity type '{value}' (expected one of: {', '.join(allowed)})",
        )
        self.value = value


class AlreadyExists(DesignLoomError):
    """Create with an ID that is already taken within its kind."""

    code = "already_exists"

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} '{entity_id}' already exists")
        self.kind = kind
        self.id = entity_id

    def details(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id}


class NotFound(DesignLoomError):
    """Operation targets an entity that does not exist."""

    code = "not_found"

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} '{entity_id}' not found")
        self.kind = kind
        self.id = entity_id

    def details(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id}


class MissingReference(DesignLoomError):
    """A reference field names an entity that does not exist."""

    code = "missing_reference"

    def __init__(self, field: str, referenced_kind: str, missing_id: str):
        super().__init__(
            f"Field '{field}' references {referenced_kind} '{missing_id}' which does not exist"
        )
        self.field = field
        self.referenced_kind = referenced_kind
        self.missing_id = missing_id

    def details(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "referenced_kind": self.referenced_kind,
            "missing_id": self.missing_id,
        }


class UnknownRelationship(DesignLoomError):
    """Link or unlink names a (from, to, relationship) triple outside the table."""

    code = "unknown_relationship"

    def __init__(self, from_kind: str, to_kind: str, relationship: str):
        super().__init__(
            f"Unknown relationship '{relationship}' from {from_kind} to {to_kind}"
        )
        self.from_kind = from_kind
        self.to_kind = to_kind
        self.relationship = relationship

    def details(self) -> Dict[str, Any]:
        return {
            "from_kind": self.from_kind,
            "to_kind": self.to_kind,
            "relationship": self.relationship,
        }


class HasDependents(DesignLoomError):
    """Unforced delete blocked by entities that still reference the target.

    ``dependents`` is the full list, not a count, so the caller can decide
    whether to retry with ``force``.
    """

    code = "has_dependents"

    def __init__(self, kind: str, entity_id: str, dependents: List[Any]):
        super().__init__(
            f"Cannot delete {kind} '{entity_id}': referenced by {len(dependents)} "
            f"entit{'y' if len(dependents) == 1 else 'ies'}. Use force to delete anyway"
        )
        self.kind = kind
        self.id = entity_id
        self.dependents = dependents

    def details(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "dependents": [d.to_dict() for d in self.dependents],
        }


class PersistenceError(DesignLoomError):
    """The persistence adapter failed to read or write a document."""

    code = "persistence_error"

    def __init__(self, kind: str, entity_id: Optional[str], reason: str):
        target = f"{kind} '{entity_id}'" if entity_id else kind
        super().__init__(f"Persistence failure for {target}: {reason}")
        self.kind = kind
        self.id = entity_id
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "reason": self.reason}
