# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for the Designloom test suite."""

from pathlib import Path

import pytest

from designloom.config import Config
from designloom.persistence import InMemoryDocumentStore
from designloom.store import DesignStore

FIXED_TIME = "2025-01-14T09:30:00+00:00"


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def store(documents: InMemoryDocumentStore) -> DesignStore:
    """Store backed by an in-memory document store and a fixed clock."""
    return DesignStore(documents=documents, clock=lambda: FIXED_TIME)


@pytest.fixture
def yaml_store(tmp_path: Path) -> DesignStore:
    """Store writing YAML documents under a temporary directory."""
    return DesignStore(base_path=tmp_path / "design", clock=lambda: FIXED_TIME)


@pytest.fixture
def default_config(tmp_path: Path) -> Config:
    """Configuration with every default (no file present)."""
    return Config(config_path=tmp_path / "missing.yml")
