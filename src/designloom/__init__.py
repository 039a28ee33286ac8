# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Designloom: design entity store with a consistent relationship graph."""

from .analytics import AnalyticsEngine
from .catalog import EntityKind, RelationshipKind, fields_for, relationship_mapping
from .config import Config
from .errors import (
    AlreadyExists,
    DesignLoomError,
    HasDependents,
    MissingReference,
    NotFound,
    PersistenceError,
    StructuralInvalid,
    UnknownRelationship,
)
from .index import EntityIndex
from .models import Dependent, EntitySummary, OperationResult, WriteSet
from .persistence import DocumentStore, InMemoryDocumentStore, YamlDocumentStore
from .relationships import RelationshipEngine
from .service import DesignLoomService
from .store import DesignStore

__version__ = "0.1.0"

__all__ = [
    "AnalyticsEngine",
    "EntityKind",
    "RelationshipKind",
    "fields_for",
    "relationship_mapping",
    "Config",
    "DesignLoomError",
    "StructuralInvalid",
    "AlreadyExists",
    "NotFound",
    "MissingReference",
    "UnknownRelationship",
    "HasDependents",
    "PersistenceError",
    "EntityIndex",
    "Dependent",
    "EntitySummary",
    "OperationResult",
    "WriteSet",
    "DocumentStore",
    "InMemoryDocumentStore",
    "YamlDocumentStore",
    "RelationshipEngine",
    "DesignLoomService",
    "DesignStore",
]

# Conditional import for MCP server (requires the mcp package)
try:
    from .mcp_server import DesignLoomMCPServer

    __all__.append("DesignLoomMCPServer")
except ImportError:
    # MCP package not available
    pass
