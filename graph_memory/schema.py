"""Knowledge graph data model.

Entities are named nodes carrying a type label and free-text observations.
Relations are typed, directed edges between entity *names* (they may dangle).
Field names on disk and on the wire are camelCase; Python attributes are
snake_case and mapped through aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENTITY_RECORD = "entity"
RELATION_RECORD = "relation"


def generate_uuid() -> str:
    return str(uuid4())


def current_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_timestamp(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (or date) to an aware datetime, None if unparseable."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Entity(_WireModel):
    """A node in the knowledge graph, keyed by ``name``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uuid: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    name: str
    entity_type: str = Field(alias="entityType")
    observations: list[str] = Field(default_factory=list)


class Relation(_WireModel):
    """A directed edge ``from --relationType--> to`` between entity names."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uuid: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    from_: str = Field(alias="from")
    to: str
    relation_type: str = Field(alias="relationType")

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_, self.to, self.relation_type)


class KnowledgeGraph(_WireModel):
    entries: list[Entity] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)


class EntityDraft(_WireModel):
    """Input for entity creation: an entity without identity or timestamps."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    entity_type: str = Field(alias="entityType")
    observations: list[str] = Field(default_factory=list)


class RelationDraft(_WireModel):
    """Input for relation creation and deletion.

    Extra fields such as ``uuid`` are ignored, so full relation records
    returned by a query can be passed straight back for deletion.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_: str = Field(alias="from")
    to: str
    relation_type: str = Field(alias="relationType")

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_, self.to, self.relation_type)


class ObservationAddition(_WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    entity_name: str = Field(alias="entityName")
    contents: list[str]


class ObservationDeletion(_WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    entity_name: str = Field(alias="entityName")
    observations: list[str]


class ObservationResult(_WireModel):
    entity_name: str = Field(alias="entityName")
    added_observations: list[str] = Field(alias="addedObservations")


class Pagination(_WireModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=1000, ge=0)

    @property
    def end(self) -> int:
        return self.offset + self.limit


class GraphFilter(_WireModel):
    """Optional clauses for read_graph; present clauses are AND-combined."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    entity_types: Optional[list[str]] = Field(default=None, alias="entityTypes")
    relation_types: Optional[list[str]] = Field(default=None, alias="relationTypes")
    search_text: Optional[str] = Field(default=None, alias="searchText")
    from_date: Optional[str] = Field(default=None, alias="fromDate")
    to_date: Optional[str] = Field(default=None, alias="toDate")

    @field_validator("from_date", "to_date")
    @classmethod
    def _check_date(cls, value: Optional[str]) -> Optional[str]:
        if value and parse_timestamp(value) is None:
            raise ValueError(f"Invalid date: {value}")
        return value


class PaginatedGraph(_WireModel):
    items: KnowledgeGraph
    total: int
    has_more: bool = Field(alias="hasMore")
    next_offset: Optional[int] = Field(default=None, alias="nextOffset")


class GraphStats(_WireModel):
    entity_count: int = Field(alias="entityCount")
    relation_count: int = Field(alias="relationCount")
    observation_count: int = Field(alias="observationCount")
    last_updated: str = Field(alias="lastUpdated")


class TypeCount(_WireModel):
    type: str
    count: int
