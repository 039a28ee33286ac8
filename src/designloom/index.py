# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory index of every known design entity.

The index is rebuilt from the document store on construction and on explicit
``refresh()``, and is the single source of truth for reads between refreshes.

Limitations:
- NOT thread-safe: a single logical writer is assumed
- Out-of-band edits on disk are only observed after ``refresh()``
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from designloom.catalog import EntityKind
from designloom.models import EntitySummary, WriteSet
from designloom.persistence import DocumentStore

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
RecordPredicate = Callable[[Record], bool]


class EntityIndex:
    """Cache of all entities keyed by (kind, id).

    ``get`` hands out deep copies, so callers can never alter indexed state
    except through ``upsert``/``remove``/``apply``.
    """

    def __init__(self, documents: DocumentStore, load: bool = True):
        self.documents = documents
        self._entities: Dict[EntityKind, Dict[str, Record]] = {kind: {} for kind in EntityKind}
        if load:
            self.load_all()

    def load_all(self) -> None:
        """Populate the cache from the document store for every kind.

        A kind with no stored documents yields an empty set. The previous
        cache is replaced in one assignment once every kind has loaded.
        """
        loaded: Dict[EntityKind, Dict[str, Record]] = {}
        for kind in EntityKind:
            entities: Dict[str, Record] = {}
            for entity_id, record in self.documents.load(kind):
                if entity_id in entities:
                    logger.warning(
                        f"Duplicate {kind.value} id '{entity_id}' while loading, keeping first"
                    )
                    continue
                entities[entity_id] = record
            loaded[kind] = entities

        self._entities = loaded
        logger.info(
            "Index loaded: "
            + ", ".join(f"{kind.value}={len(entities)}" for kind, entities in loaded.items())
        )

    def refresh(self) -> None:
        """Discard the cache and reload, picking up out-of-band edits."""
        logger.info("Refreshing index from document store")
        self.load_all()

    def get(self, kind: EntityKind, entity_id: str) -> Optional[Record]:
        record = self._entities[kind].get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    def exists(self, kind: EntityKind, entity_id: str) -> bool:
        return entity_id in self._entities[kind]

    def ids(self, kind: EntityKind) -> List[str]:
        return sorted(self._entities[kind])

    def records(self, kind: EntityKind) -> Iterator[Tuple[str, Record]]:
        """Iterate live (id, record) pairs of ``kind``, sorted by ID.

        For read-only traversals inside the package; records must not be mutated.
        """
        entities = self._entities[kind]
        for entity_id in self.ids(kind):
            yield entity_id, entities[entity_id]

    def all_records(self) -> Iterator[Tuple[EntityKind, str, Record]]:
        for kind in EntityKind:
            for entity_id, record in self.records(kind):
                yield kind, entity_id, record

    def list(
        self, kind: EntityKind, predicate: Optional[RecordPredicate] = None
    ) -> List[EntitySummary]:
        """Summaries of ``kind`` entities matching ``predicate`` (all when None)."""
        return [
            EntitySummary.from_record(kind, record)
            for _, record in self.records(kind)
            if predicate is None or predicate(record)
        ]

    def count(self, kind: EntityKind) -> int:
        return len(self._entities[kind])

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(entities) for kind, entities in self._entities.items()}

    def upsert(self, kind: EntityKind, record: Record) -> None:
        self._entities[kind][record["id"]] = copy.deepcopy(record)

    def remove(self, kind: EntityKind, entity_id: str) -> bool:
        return self._entities[kind].pop(entity_id, None) is not None

    def apply(self, write_set: WriteSet) -> None:
        """Apply a fully computed write set.

        Per-kind tables are rebuilt off to the side and swapped in together,
        so a failure part-way leaves the previous state intact.
        """
        staged: Dict[EntityKind, Dict[str, Record]] = {}

        def table(kind: EntityKind) -> Dict[str, Record]:
            if kind not in staged:
                staged[kind] = dict(self._entities[kind])
            return staged[kind]

        for (kind, entity_id), record in write_set.saves.items():
            table(kind)[entity_id] = copy.deepcopy(record)
        for kind, entity_id in write_set.deletes:
            table(kind).pop(entity_id, None)

        self._entities.update(staged)
