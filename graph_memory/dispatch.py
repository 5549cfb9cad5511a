"""Request dispatch: named tools mapped onto KnowledgeGraphManager.

The dispatcher owns argument presence checks, payload validation and
rendering results as JSON text. Protocol framing belongs to the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import GraphMemoryError, MissingArgumentError, ToolArgumentError, UnknownToolError
from .schema import (
    EntityDraft,
    GraphFilter,
    ObservationAddition,
    ObservationDeletion,
    Pagination,
    RelationDraft,
)
from .store import READ_GRAPH_LIMIT, SEARCH_LIMIT, KnowledgeGraphManager

logger = logging.getLogger(__name__)

_STRING_LIST = TypeAdapter(list[str])
_ENTITY_DRAFTS = TypeAdapter(list[EntityDraft])
_RELATION_DRAFTS = TypeAdapter(list[RelationDraft])
_OBSERVATION_ADDITIONS = TypeAdapter(list[ObservationAddition])
_OBSERVATION_DELETIONS = TypeAdapter(list[ObservationDeletion])
_PAGINATION_SCHEMA = {
    "type": "object",
    "properties": {
        "offset": {"type": "integer", "minimum": 0},
        "limit": {"type": "integer", "minimum": 0},
    },
}


def _array_of(model: type[BaseModel]) -> dict[str, Any]:
    return {"type": "array", "items": model.model_json_schema(by_alias=True)}


@dataclass(frozen=True)
class ToolSpec:
    """Name, description and JSON schema of one dispatchable tool."""

    name: str
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object", "properties": self.properties}
        if self.required:
            schema["required"] = list(self.required)
        return {"name": self.name, "description": self.description, "inputSchema": schema}


TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        "create_entities",
        "Create multiple new entities in the knowledge graph",
        {"entities": _array_of(EntityDraft)},
        ("entities",),
    ),
    ToolSpec(
        "create_relations",
        "Create multiple new relations between entities in the knowledge graph. "
        "Relations should be in active voice",
        {"relations": _array_of(RelationDraft)},
        ("relations",),
    ),
    ToolSpec(
        "add_observations",
        "Add new observations to existing entities in the knowledge graph",
        {"observations": _array_of(ObservationAddition)},
        ("observations",),
    ),
    ToolSpec(
        "delete_entities",
        "Delete multiple entities and their associated relations from the knowledge graph",
        {"entityNames": {"type": "array", "items": {"type": "string"}}},
        ("entityNames",),
    ),
    ToolSpec(
        "delete_observations",
        "Delete specific observations from entities in the knowledge graph",
        {"deletions": _array_of(ObservationDeletion)},
        ("deletions",),
    ),
    ToolSpec(
        "delete_relations",
        "Delete multiple relations from the knowledge graph",
        {"relations": _array_of(RelationDraft)},
        ("relations",),
    ),
    ToolSpec(
        "read_graph",
        "Read the knowledge graph with optional filtering and pagination",
        {"pagination": _PAGINATION_SCHEMA, "filter": GraphFilter.model_json_schema(by_alias=True)},
    ),
    ToolSpec(
        "search_nodes",
        "Search for nodes in the knowledge graph based on a query",
        {"query": {"type": "string"}, "pagination": _PAGINATION_SCHEMA},
        ("query",),
    ),
    ToolSpec(
        "open_nodes",
        "Open specific nodes in the knowledge graph by their names",
        {"names": {"type": "array", "items": {"type": "string"}}},
        ("names",),
    ),
    ToolSpec(
        "get_related_nodes",
        "Get nodes related to a specific node up to a certain depth",
        {
            "startingNodeName": {"type": "string"},
            "depth": {"type": "integer", "minimum": 0, "default": 1},
        },
        ("startingNodeName",),
    ),
    ToolSpec("get_graph_stats", "Get statistics about the knowledge graph"),
    ToolSpec("get_entity_types_summary", "Get a summary of entity types and their counts"),
    ToolSpec("get_relation_types_summary", "Get a summary of relation types and their counts"),
)

_DELETE_MESSAGES = {
    "delete_entities": "Entities deleted successfully",
    "delete_observations": "Observations deleted successfully",
    "delete_relations": "Relations deleted successfully",
}


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    return value


def render(value: Any) -> str:
    """Serialize a store result as indented JSON text."""
    return json.dumps(to_jsonable(value), indent=2)


class ToolDispatcher:
    """Maps tool names onto a KnowledgeGraphManager."""

    def __init__(self, manager: KnowledgeGraphManager):
        self.manager = manager
        self._specs = {spec.name: spec for spec in TOOLS}
        self._handlers: dict[str, Callable[[Mapping[str, Any]], Any]] = {
            "create_entities": lambda a: self.manager.create_entities(
                _ENTITY_DRAFTS.validate_python(a["entities"])
            ),
            "create_relations": lambda a: self.manager.create_relations(
                _RELATION_DRAFTS.validate_python(a["relations"])
            ),
            "add_observations": lambda a: self.manager.add_observations(
                _OBSERVATION_ADDITIONS.validate_python(a["observations"])
            ),
            "delete_entities": lambda a: self.manager.delete_entities(
                _STRING_LIST.validate_python(a["entityNames"])
            ),
            "delete_observations": lambda a: self.manager.delete_observations(
                _OBSERVATION_DELETIONS.validate_python(a["deletions"])
            ),
            "delete_relations": lambda a: self.manager.delete_relations(
                _RELATION_DRAFTS.validate_python(a["relations"])
            ),
            "read_graph": self._read_graph,
            "search_nodes": self._search_nodes,
            "open_nodes": lambda a: self.manager.open_nodes(
                _STRING_LIST.validate_python(a["names"])
            ),
            "get_related_nodes": self._get_related_nodes,
            "get_graph_stats": lambda a: self.manager.get_graph_stats(),
            "get_entity_types_summary": lambda a: self.manager.get_entity_types_summary(),
            "get_relation_types_summary": lambda a: self.manager.get_relation_types_summary(),
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._specs)

    def list_tools(self) -> list[dict[str, Any]]:
        return [spec.to_dict() for spec in TOOLS]

    def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        """Run a tool and return its JSON (or plain text) response.

        Raises:
            UnknownToolError: no tool with that name
            MissingArgumentError: a required argument is absent
            ToolArgumentError: an argument failed validation
            EntityNotFoundError: add_observations named an unknown entity
        """
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        if arguments is None and spec.required:
            raise MissingArgumentError(f"No arguments provided for tool: {name}")
        arguments = arguments or {}
        for key in spec.required:
            if arguments.get(key) is None:
                raise MissingArgumentError(f"Missing {key} argument")

        try:
            result = self._handlers[name](arguments)
        except ValidationError as exc:
            raise ToolArgumentError(f"Invalid arguments for {name}: {exc}") from exc

        if name in _DELETE_MESSAGES:
            return _DELETE_MESSAGES[name]
        return render(result)

    def handle(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        """Like call(), but request errors come back as "Error: ..." text.

        I/O errors are not caught.
        """
        try:
            return self.call(name, arguments)
        except (GraphMemoryError, KeyError, ValueError) as exc:
            logger.error(f"Error in {name}: {exc}")
            return f"Error: {exc}"

    def _read_graph(self, arguments: Mapping[str, Any]) -> Any:
        pagination = self._pagination(arguments.get("pagination"), READ_GRAPH_LIMIT)
        graph_filter = GraphFilter.model_validate(arguments.get("filter") or {})
        return self.manager.read_graph(pagination, graph_filter)

    def _search_nodes(self, arguments: Mapping[str, Any]) -> Any:
        query = arguments["query"]
        if not isinstance(query, str):
            raise ToolArgumentError("query must be a string")
        pagination = self._pagination(arguments.get("pagination"), SEARCH_LIMIT)
        return self.manager.search_nodes(query, pagination)

    def _get_related_nodes(self, arguments: Mapping[str, Any]) -> Any:
        start = arguments["startingNodeName"]
        depth = arguments.get("depth")
        if depth is None:
            depth = 1
        if not isinstance(start, str):
            raise ToolArgumentError("startingNodeName must be a string")
        if isinstance(depth, bool) or not isinstance(depth, int):
            raise ToolArgumentError("depth must be an integer")
        return self.manager.get_related_nodes(start, depth)

    @staticmethod
    def _pagination(raw: Any, default_limit: int) -> Pagination:
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ToolArgumentError("pagination must be an object")
        return Pagination.model_validate({"offset": 0, "limit": default_limit, **raw})
