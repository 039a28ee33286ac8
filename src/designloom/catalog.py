# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Static catalog of entity kinds and relationship kinds.

The catalog is closed: every entity kind, every reference field and every
relationship the store understands is declared here and nowhere else.

Components:
- EntityKind: the eight design entity kinds
- RelationshipKind: the five named edge types between kinds
- ReferenceField: a field on one kind that holds IDs of another kind
- ReverseField: a store-maintained field holding the inverse of a relationship
- KindSpec: per-kind directory, label, reference and reverse fields
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from designloom.errors import UnknownEntityKind, UnknownRelationship


class EntityKind(str, Enum):
    """Entity kinds. Values are the names callers and the transport use."""

    WORKFLOW = "workflow"
    CAPABILITY = "capability"
    PERSONA = "persona"
    COMPONENT = "component"
    TOKENS = "tokens"
    VIEW = "view"
    INTERACTION = "interaction"
    TEST_RESULT = "test-result"


class RelationshipKind(str, Enum):
    """Directed edge types, each bound to one forward and one reverse field."""

    REQUIRES = "requires"  # workflow -> capability
    USES = "uses"  # workflow -> persona
    SUGGESTS = "suggests"  # workflow -> component
    IMPLEMENTS = "implements"  # component -> capability
    DEPENDS = "depends"  # component -> component


@dataclass(frozen=True)
class ReferenceField:
    """A field holding IDs of another entity kind.

    ``path`` walks into nested structures: each segment is a mapping key, and
    any list met along the way is iterated (so ``("layout", "zones",
    "components")`` reaches every zone's component list).

    Attributes:
        name: Dotted name used in errors and dependent listings.
        target: Kind the IDs belong to.
        path: Keys leading to the ID list (or scalar ID).
        scalar: True when the leaf is a single ID rather than a list.
        required: True when the entity is meaningless without the reference;
            a forced delete of the target removes the referencing entity.
        relationship: Relationship kind when the field has a reverse side.
        reverse: Reverse field name on the target kind, if any.
    """

    name: str
    target: EntityKind
    path: Tuple[str, ...]
    scalar: bool = False
    required: bool = False
    relationship: Optional[RelationshipKind] = None
    reverse: Optional[str] = None

    @property
    def top_level(self) -> str:
        """Top-level key of the record this field lives under."""
        return self.path[0]


@dataclass(frozen=True)
class ReverseField:
    """Store-maintained inverse of a relationship, living on the target kind."""

    name: str
    source: EntityKind
    forward: str
    relationship: RelationshipKind


@dataclass(frozen=True)
class KindSpec:
    """Catalog entry for a single entity kind."""

    kind: EntityKind
    directory: str
    label: str
    reference_fields: Tuple[ReferenceField, ...] = ()
    reverse_fields: Tuple[ReverseField, ...] = ()

    def reference(self, name: str) -> Optional[ReferenceField]:
        for ref in self.reference_fields:
            if ref.name == name:
                return ref
        return None

    @property
    def reverse_names(self) -> Tuple[str, ...]:
        return tuple(rev.name for rev in self.reverse_fields)


def _rel(
    name: str, target: EntityKind, relationship: RelationshipKind, reverse: str
) -> ReferenceField:
    return ReferenceField(
        name=name, target=target, path=(name,), relationship=relationship, reverse=reverse
    )


# Relationship table: (from, to, relationship) -> (forward field, reverse field)
RELATIONSHIPS: Dict[Tuple[EntityKind, EntityKind, RelationshipKind], Tuple[str, str]] = {
    (EntityKind.WORKFLOW, EntityKind.CAPABILITY, RelationshipKind.REQUIRES): (
        "requires_capabilities",
        "used_by_workflows",
    ),
    (EntityKind.WORKFLOW, EntityKind.PERSONA, RelationshipKind.USES): ("personas", "workflows"),
    (EntityKind.WORKFLOW, EntityKind.COMPONENT, RelationshipKind.SUGGESTS): (
        "suggested_components",
        "used_in_workflows",
    ),
    (EntityKind.COMPONENT, EntityKind.CAPABILITY, RelationshipKind.IMPLEMENTS): (
        "implements_capabilities",
        "implemented_by_components",
    ),
    (EntityKind.COMPONENT, EntityKind.COMPONENT, RelationshipKind.DEPENDS): (
        "dependencies",
        "dependents",
    ),
}


def _build_catalog() -> Dict[EntityKind, KindSpec]:
    forward: Dict[EntityKind, List[ReferenceField]] = {kind: [] for kind in EntityKind}
    reverse: Dict[EntityKind, List[ReverseField]] = {kind: [] for kind in EntityKind}

    for (source, target, relationship), (fwd, rev) in RELATIONSHIPS.items():
        forward[source].append(_rel(fwd, target, relationship, rev))
        reverse[target].append(ReverseField(rev, source, fwd, relationship))

    # Forward-only references: validated and scrubbed, no reverse side
    forward[EntityKind.COMPONENT].append(
        ReferenceField(
            "interaction_pattern", EntityKind.INTERACTION, ("interaction_pattern",), scalar=True
        )
    )
    forward[EntityKind.TOKENS].append(
        ReferenceField("extends", EntityKind.TOKENS, ("extends",), scalar=True)
    )
    forward[EntityKind.VIEW].extend(
        [
            ReferenceField("workflows", EntityKind.WORKFLOW, ("workflows",)),
            ReferenceField(
                "layout.zones.components",
                EntityKind.COMPONENT,
                ("layout", "zones", "components"),
            ),
        ]
    )
    forward[EntityKind.TEST_RESULT].extend(
        [
            ReferenceField(
                "workflow_id", EntityKind.WORKFLOW, ("workflow_id",), scalar=True, required=True
            ),
            ReferenceField(
                "persona_id", EntityKind.PERSONA, ("persona_id",), scalar=True, required=True
            ),
            ReferenceField(
                "issues.affected_components",
                EntityKind.COMPONENT,
                ("issues", "affected_components"),
            ),
            ReferenceField(
                "issues.affected_capabilities",
                EntityKind.CAPABILITY,
                ("issues", "affected_capabilities"),
            ),
        ]
    )

    layout = {
        EntityKind.WORKFLOW: ("workflows", "Workflow"),
        EntityKind.CAPABILITY: ("capabilities", "Capability"),
        EntityKind.PERSONA: ("personas", "Persona"),
        EntityKind.COMPONENT: ("components", "Component"),
        EntityKind.TOKENS: ("tokens", "Tokens"),
        EntityKind.VIEW: ("views", "View"),
        EntityKind.INTERACTION: ("interactions", "Interaction"),
        EntityKind.TEST_RESULT: ("test-results", "TestResult"),
    }
    return {
        kind: KindSpec(
            kind=kind,
            directory=layout[kind][0],
            label=layout[kind][1],
            reference_fields=tuple(forward[kind]),
            reverse_fields=tuple(reverse[kind]),
        )
        for kind in EntityKind
    }


CATALOG: Dict[EntityKind, KindSpec] = _build_catalog()


def parse_kind(value: Any) -> EntityKind:
    """Coerce a caller-supplied kind name to an EntityKind.

    Raises:
        UnknownEntityKind: If the value names no catalog kind.
    """
    if isinstance(value, EntityKind):
        return value
    try:
        return EntityKind(str(value).strip().lower().replace("_", "-"))
    except ValueError:
        raise UnknownEntityKind(str(value), [kind.value for kind in EntityKind]) from None


def parse_relationship(value: Any) -> RelationshipKind:
    """Coerce a relationship name; unknown names are reported by the caller's triple."""
    if isinstance(value, RelationshipKind):
        return value
    return RelationshipKind(str(value).strip().lower())


def fields_for(kind: EntityKind) -> KindSpec:
    """Return the catalog entry for ``kind``."""
    return CATALOG[parse_kind(kind)]


def relationship_mapping(from_kind: Any, to_kind: Any, relationship: Any) -> Tuple[str, str]:
    """Resolve the (forward_field, reverse_field) pair for a relationship triple.

    Raises:
        UnknownRelationship: If the triple is not in the relationship table.
    """
    try:
        key = (parse_kind(from_kind), parse_kind(to_kind), parse_relationship(relationship))
    except (UnknownEntityKind, ValueError):
        raise UnknownRelationship(str(from_kind), str(to_kind), str(relationship)) from None
    mapping = RELATIONSHIPS.get(key)
    if mapping is None:
        raise UnknownRelationship(key[0].value, key[1].value, key[2].value)
    return mapping


def referencing_fields(target: EntityKind) -> Iterator[Tuple[KindSpec, ReferenceField]]:
    """Yield every (kind, reference field) whose IDs belong to ``target``."""
    for spec in CATALOG.values():
        for ref in spec.reference_fields:
            if ref.target == target:
                yield spec, ref


def reverse_fields_holding(source: EntityKind) -> Iterator[Tuple[KindSpec, ReverseField]]:
    """Yield every (kind, reverse field) whose IDs belong to ``source``."""
    for spec in CATALOG.values():
        for rev in spec.reverse_fields:
            if rev.source == source:
                yield spec, rev


def _leaves(value: Any, path: Tuple[str, ...]) -> Iterator[Tuple[Any, str]]:
    """Yield (container, key) pairs for every leaf reachable through ``path``."""
    if isinstance(value, list):
        for item in value:
            yield from _leaves(item, path)
        return
    if not isinstance(value, dict):
        return
    if len(path) == 1:
        if path[0] in value:
            yield value, path[0]
        return
    yield from _leaves(value.get(path[0]), path[1:])


def extract_ids(record: Dict[str, Any], ref: ReferenceField) -> List[str]:
    """Return the distinct IDs ``record`` holds in ``ref``, in first-seen order."""
    ids: List[str] = []
    for container, key in _leaves(record, ref.path):
        value = container[key]
        candidates = [value] if ref.scalar else (value or [])
        if not isinstance(candidates, list):
            continue
        for candidate in candidates:
            if isinstance(candidate, str) and candidate and candidate not in ids:
                ids.append(candidate)
    return ids


def strip_id(record: Dict[str, Any], ref: ReferenceField, entity_id: str) -> bool:
    """Remove ``entity_id`` from ``ref`` in place.

    List leaves lose every occurrence; a matching scalar leaf is removed from
    its mapping.

    Returns:
        True if the record changed.
    """
    changed = False
    for container, key in list(_leaves(record, ref.path)):
        value = container[key]
        if ref.scalar:
            if value == entity_id:
                del container[key]
                changed = True
        elif isinstance(value, list) and entity_id in value:
            container[key] = [item for item in value if item != entity_id]
            changed = True
    return changed


def holds_id(record: Dict[str, Any], ref: ReferenceField, entity_id: str) -> bool:
    return entity_id in extract_ids(record, ref)


def reverse_ids(record: Dict[str, Any], field: str) -> List[str]:
    """Return the IDs held in a top-level reverse field (missing means empty)."""
    value = record.get(field) or []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]
