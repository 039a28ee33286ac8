# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Persistence adapters for design documents.

One directory per entity kind, one file per entity named by its ID. The store
only depends on the ``DocumentStore`` interface, so the YAML-on-disk backend
can be swapped for the in-memory one in tests or embedded use.

Components:
- DocumentStore: Abstract load/save/delete contract
- YamlDocumentStore: ``<base>/<kind directory>/<id>.yaml`` files
- InMemoryDocumentStore: Dict-backed implementation, no I/O
"""

import copy
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from designloom.catalog import EntityKind, fields_for
from designloom.errors import PersistenceError

logger = logging.getLogger(__name__)

# Loaded document: (id, record)
LoadedDocument = Tuple[str, Dict[str, Any]]

YAML_SUFFIXES = (".yaml", ".yml")


class DocumentStore(ABC):
    """Abstract storage interface for entity documents.

    Contract:
    - load() of a kind whose directory does not exist returns an empty list
    - save() fully overwrites the target document
    - delete() succeeds when the document is already absent
    """

    @abstractmethod
    def load(self, kind: EntityKind) -> List[LoadedDocument]:
        """Load every document of ``kind``.

        Returns:
            List of (id, record) pairs. Empty when nothing is stored.
        """
        pass

    @abstractmethod
    def save(self, kind: EntityKind, entity_id: str, record: Dict[str, Any]) -> None:
        """Write ``record`` as the document for ``entity_id``.

        Raises:
            PersistenceError: If the write fails.
        """
        pass

    @abstractmethod
    def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Remove the document for ``entity_id``.

        Raises:
            PersistenceError: If the removal fails.
        """
        pass

    @abstractmethod
    def read(self, kind: EntityKind, entity_id: str) -> Optional[Dict[str, Any]]:
        """Read the stored document for ``entity_id`` directly, bypassing any cache.

        Returns:
            The record, or None if no document exists.
        """
        pass


class YamlDocumentStore(DocumentStore):
    """YAML files on disk.

    Layout::

        <base_path>/
            workflows/W01.yaml
            capabilities/graph-search.yaml
            ...

    Files that fail to parse, or do not hold a mapping, are skipped with a
    warning so one bad document never blocks loading the rest.

    Hand-written documents may live in ``<id>.yml`` or in a file whose name
    differs from the ID they declare. ``load`` remembers every file each ID
    was read from; ``save`` writes ``<id>.yaml`` and removes those other
    files, and ``delete`` removes all of them.
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self._sources: Dict[Tuple[EntityKind, str], List[Path]] = {}

    def directory_for(self, kind: EntityKind) -> Path:
        return self.base_path / fields_for(kind).directory

    def path_for(self, kind: EntityKind, entity_id: str) -> Path:
        self._check_id(kind, entity_id)
        return self.directory_for(kind) / f"{entity_id}.yaml"

    def paths_holding(self, kind: EntityKind, entity_id: str) -> List[Path]:
        """Every file that may hold ``entity_id``: canonical name first, then
        the ``.yml`` spelling, then any differently named file it was loaded from."""
        canonical = self.path_for(kind, entity_id)
        paths = [canonical, canonical.with_suffix(".yml")]
        for source in self._sources.get((kind, entity_id), []):
            if source not in paths:
                paths.append(source)
        return paths

    def _check_id(self, kind: EntityKind, entity_id: str) -> None:
        # IDs become file names
        if not entity_id or "/" in entity_id or "\\" in entity_id or ".." in entity_id:
            raise PersistenceError(kind.value, entity_id, "ID is not a safe file name")

    def load(self, kind: EntityKind) -> List[LoadedDocument]:
        for key in [key for key in self._sources if key[0] == kind]:
            del self._sources[key]

        directory = self.directory_for(kind)
        if not directory.is_dir():
            logger.debug(f"No {kind.value} directory at {directory}, treating as empty")
            return []

        documents: List[LoadedDocument] = []
        for path in sorted(directory.iterdir()):
            if path.suffix not in YAML_SUFFIXES or not path.is_file():
                continue
            record = self._read_file(path)
            if record is None:
                continue
            entity_id = record.get("id")
            if not isinstance(entity_id, str) or not entity_id:
                logger.warning(f"Skipping {path}: document has no string 'id'")
                continue
            if entity_id != path.stem:
                logger.warning(f"Document {path} declares id '{entity_id}' different from its name")
            self._sources.setdefault((kind, entity_id), []).append(path)
            documents.append((entity_id, record))

        logger.debug(f"Loaded {len(documents)} {kind.value} documents from {directory}")
        return documents

    def read(self, kind: EntityKind, entity_id: str) -> Optional[Dict[str, Any]]:
        for path in self.paths_holding(kind, entity_id):
            if path.exists():
                return self._read_file(path)
        return None

    def _read_file(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f"Skipping {path}: YAML parse error: {e}")
            return None
        except OSError as e:
            logger.warning(f"Skipping {path}: cannot read file: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Skipping {path}: expected a mapping, got {type(data).__name__}")
            return None
        return data

    def save(self, kind: EntityKind, entity_id: str, record: Dict[str, Any]) -> None:
        path, *stale = self.paths_holding(kind, entity_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            content = yaml.safe_dump(
                record,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
                indent=2,
                width=100,
            )
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to write {path}: {e}")
            raise PersistenceError(kind.value, entity_id, str(e)) from e

        # The document now lives only at its canonical name
        self._remove_files(kind, entity_id, stale)
        self._sources[(kind, entity_id)] = [path]
        logger.debug(f"Wrote {path}")

    def delete(self, kind: EntityKind, entity_id: str) -> None:
        self._remove_files(kind, entity_id, self.paths_holding(kind, entity_id))
        self._sources.pop((kind, entity_id), None)

    def _remove_files(self, kind: EntityKind, entity_id: str, paths: List[Path]) -> None:
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                logger.debug(f"Delete of absent document {path}, nothing to do")
                continue
            except OSError as e:
                logger.error(f"Failed to delete {path}: {e}")
                raise PersistenceError(kind.value, entity_id, str(e)) from e
            logger.debug(f"Deleted {path}")


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed document store.

    Records are deep-copied on the way in and out, so it behaves like a
    serialized backend: callers never share structure with stored documents.
    """

    def __init__(self, documents: Optional[Dict[EntityKind, Dict[str, Dict[str, Any]]]] = None):
        self._documents: Dict[EntityKind, Dict[str, Dict[str, Any]]] = {}
        for kind, records in (documents or {}).items():
            self._documents[kind] = copy.deepcopy(records)

    def load(self, kind: EntityKind) -> List[LoadedDocument]:
        return [
            (entity_id, copy.deepcopy(record))
            for entity_id, record in sorted(self._documents.get(kind, {}).items())
        ]

    def read(self, kind: EntityKind, entity_id: str) -> Optional[Dict[str, Any]]:
        record = self._documents.get(kind, {}).get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    def save(self, kind: EntityKind, entity_id: str, record: Dict[str, Any]) -> None:
        self._documents.setdefault(kind, {})[entity_id] = copy.deepcopy(record)

    def delete(self, kind: EntityKind, entity_id: str) -> None:
        self._documents.get(kind, {}).pop(entity_id, None)
