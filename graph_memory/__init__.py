"""File-backed knowledge graph memory.

A small labeled graph of entities (named nodes with a type and free-text
observations) and relations (typed directed edges between entity names),
persisted to a single newline-delimited JSON file.

Storage:
- One JSONL file, one record per line tagged "entity" or "relation"
- Every operation reloads the file; mutations rewrite it atomically
- Path resolved by graph_memory.config and passed in explicitly

Usage:
    >>> from graph_memory import KnowledgeGraphManager
    >>> manager = KnowledgeGraphManager("memory.jsonl")
    >>> created = manager.create_entities([
    ...     {"name": "John", "entityType": "person", "observations": ["Likes coffee"]},
    ...     {"name": "Anthropic", "entityType": "organization"},
    ... ])
    >>> [entity.name for entity in created]
    ['John', 'Anthropic']
    >>> _ = manager.create_relations([{"from": "John", "to": "Anthropic", "relationType": "works_at"}])
    >>> related = manager.get_related_nodes("John", depth=1)
    >>> [entity.name for entity in related.entries]
    ['John', 'Anthropic']
"""

from .config import GraphMemoryConfig, load_config
from .dispatch import ToolDispatcher
from .errors import (
    ConfigError,
    EntityNotFoundError,
    GraphMemoryError,
    MissingArgumentError,
    ToolArgumentError,
    ToolError,
    UnknownToolError,
)
from .schema import (
    Entity,
    EntityDraft,
    GraphFilter,
    GraphStats,
    KnowledgeGraph,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    PaginatedGraph,
    Pagination,
    Relation,
    RelationDraft,
    TypeCount,
)
from .store import KnowledgeGraphManager

__all__ = [
    "KnowledgeGraphManager",
    "ToolDispatcher",
    "GraphMemoryConfig",
    "load_config",
    "Entity",
    "Relation",
    "KnowledgeGraph",
    "EntityDraft",
    "RelationDraft",
    "ObservationAddition",
    "ObservationDeletion",
    "ObservationResult",
    "Pagination",
    "GraphFilter",
    "PaginatedGraph",
    "GraphStats",
    "TypeCount",
    "GraphMemoryError",
    "EntityNotFoundError",
    "ConfigError",
    "ToolError",
    "UnknownToolError",
    "MissingArgumentError",
    "ToolArgumentError",
]
