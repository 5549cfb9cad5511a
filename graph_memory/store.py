"""JSONL storage backend and query engine for the knowledge graph.

The whole graph lives in one newline-delimited JSON file. Every public
operation reloads the file, and mutating operations rewrite it atomically
before returning, so the file is the single source of truth between calls.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from .errors import EntityNotFoundError
from .schema import (
    ENTITY_RECORD,
    RELATION_RECORD,
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
    current_timestamp,
    format_timestamp,
    generate_uuid,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

READ_GRAPH_LIMIT = 1000
SEARCH_LIMIT = 20


def _later(current: str, candidate: str) -> str:
    """Pick the later of two timestamps so updatedAt never moves backwards."""
    current_ts = parse_timestamp(current)
    candidate_ts = parse_timestamp(candidate)
    if current_ts is not None and candidate_ts is not None and candidate_ts < current_ts:
        return current
    return candidate


def _entity_matches(entity: Entity, needle: str) -> bool:
    return (
        needle in entity.name.lower()
        or needle in entity.entity_type.lower()
        or any(needle in observation.lower() for observation in entity.observations)
    )


def _relation_matches(relation: Relation, needle: str) -> bool:
    return (
        needle in relation.from_.lower()
        or needle in relation.to.lower()
        or needle in relation.relation_type.lower()
    )


def _within_dates(updated_at: str, graph_filter: GraphFilter) -> bool:
    if not graph_filter.from_date and not graph_filter.to_date:
        return True
    updated = parse_timestamp(updated_at)
    if updated is None:
        return False
    from_date = parse_timestamp(graph_filter.from_date)
    if from_date is not None and updated < from_date:
        return False
    to_date = parse_timestamp(graph_filter.to_date)
    if to_date is not None and updated > to_date:
        return False
    return True


def _paginate(
    entities: list[Entity], relations: list[Relation], pagination: Pagination
) -> PaginatedGraph:
    # One offset/limit window is applied to both lists
    total_entities = len(entities)
    total_relations = len(relations)
    has_more = pagination.end < total_entities or pagination.end < total_relations
    return PaginatedGraph(
        items=KnowledgeGraph(
            entries=entities[pagination.offset:pagination.end],
            relations=relations[pagination.offset:pagination.end],
        ),
        total=max(total_entities, total_relations),
        has_more=has_more,
        next_offset=pagination.end if has_more else None,
    )


def _coerce(model: Any, records: Iterable[Any]) -> list[Any]:
    """Accept model instances or plain wire dicts."""
    return [record if isinstance(record, model) else model.model_validate(record) for record in records]


def _type_counts(types: Iterable[str]) -> list[TypeCount]:
    counts: dict[str, int] = {}
    for type_name in types:
        counts[type_name] = counts.get(type_name, 0) + 1
    return [TypeCount(type=type_name, count=count) for type_name, count in counts.items()]


class KnowledgeGraphManager:
    """File-backed knowledge graph store.

    Entity names and relation ``(from, to, relationType)`` triples are the
    uniqueness keys. Operations on one manager are serialized by an internal
    lock; separate processes writing the same file are not coordinated.
    """

    def __init__(self, memory_file_path: Union[str, Path]):
        """Initialize the store.

        Args:
            memory_file_path: Backing JSONL file. Need not exist yet.
        """
        if not str(memory_file_path):
            raise ValueError("Memory file path cannot be empty")
        self.memory_file_path = Path(memory_file_path)
        self._lock = threading.RLock()

    # -- persistence -----------------------------------------------------

    def load_graph(self) -> KnowledgeGraph:
        """Read the backing file into a graph.

        Blank lines and unknown record types are skipped; malformed lines are
        logged and skipped. A missing file is an empty graph.
        """
        try:
            data = self.memory_file_path.read_bytes()
        except FileNotFoundError:
            return KnowledgeGraph()

        graph = KnowledgeGraph()
        for line_number, raw_line in enumerate(data.split(b"\n"), 1):
            if not raw_line.strip():
                continue
            try:
                item = json.loads(raw_line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.warning(f"Skipping malformed line {line_number} in {self.memory_file_path}: {exc}")
                continue
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object line {line_number} in {self.memory_file_path}")
                continue

            record_type = item.pop("type", None)
            if record_type not in (ENTITY_RECORD, RELATION_RECORD):
                continue

            # Legacy records predate identity and timestamps
            created_at = item.get("createdAt") or item.get("updatedAt") or current_timestamp()
            item["uuid"] = item.get("uuid") or generate_uuid()
            item["createdAt"] = created_at
            item["updatedAt"] = item.get("updatedAt") or created_at

            try:
                if record_type == ENTITY_RECORD:
                    graph.entries.append(Entity.model_validate(item))
                else:
                    graph.relations.append(Relation.model_validate(item))
            except ValidationError as exc:
                logger.warning(
                    f"Skipping invalid {record_type} on line {line_number} in {self.memory_file_path}: {exc}"
                )
        return graph

    def save_graph(self, graph: KnowledgeGraph) -> None:
        """Atomically replace the backing file with the serialized graph."""
        lines = [
            json.dumps({"type": ENTITY_RECORD, **entity.model_dump(by_alias=True)})
            for entity in graph.entries
        ]
        lines.extend(
            json.dumps({"type": RELATION_RECORD, **relation.model_dump(by_alias=True)})
            for relation in graph.relations
        )
        content = "\n".join(lines)

        path = self.memory_file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=path.parent, prefix=f".{path.name}.", delete=False, encoding="utf-8"
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                tmp_file.write(content)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, path)
        finally:
            if tmp_path and tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
        logger.debug(
            f"Saved {len(graph.entries)} entities and {len(graph.relations)} relations to {path}"
        )

    # -- mutations -------------------------------------------------------

    def create_entities(self, entities: Iterable[EntityDraft]) -> list[Entity]:
        """Create entities whose names are not already taken.

        Duplicates (existing names, or names repeated within the batch) are
        silently dropped. Returns only the entities actually created.
        """
        with self._lock:
            graph = self.load_graph()
            timestamp = current_timestamp()
            taken = {entity.name for entity in graph.entries}

            created: list[Entity] = []
            for draft in _coerce(EntityDraft, entities):
                if draft.name in taken:
                    continue
                taken.add(draft.name)
                created.append(
                    Entity(
                        uuid=generate_uuid(),
                        created_at=timestamp,
                        updated_at=timestamp,
                        name=draft.name,
                        entity_type=draft.entity_type,
                        observations=list(dict.fromkeys(draft.observations)),
                    )
                )

            if created:
                graph.entries.extend(created)
                self.save_graph(graph)
                logger.info(f"Created {len(created)} entities")
            return created

    def create_relations(self, relations: Iterable[RelationDraft]) -> list[Relation]:
        """Create relations whose (from, to, relationType) triple is new."""
        with self._lock:
            graph = self.load_graph()
            timestamp = current_timestamp()
            taken = {relation.key for relation in graph.relations}

            created: list[Relation] = []
            for draft in _coerce(RelationDraft, relations):
                if draft.key in taken:
                    continue
                taken.add(draft.key)
                created.append(
                    Relation(
                        uuid=generate_uuid(),
                        created_at=timestamp,
                        updated_at=timestamp,
                        from_=draft.from_,
                        to=draft.to,
                        relation_type=draft.relation_type,
                    )
                )

            if created:
                graph.relations.extend(created)
                self.save_graph(graph)
                logger.info(f"Created {len(created)} relations")
            return created

    def add_observations(
        self, additions: Iterable[ObservationAddition]
    ) -> list[ObservationResult]:
        """Append new observations to existing entities.

        Raises:
            EntityNotFoundError: an addition names an unknown entity. Nothing
                is written in that case.
        """
        with self._lock:
            graph = self.load_graph()
            timestamp = current_timestamp()
            by_name = {entity.name: entity for entity in graph.entries}

            results: list[ObservationResult] = []
            for addition in _coerce(ObservationAddition, additions):
                entity = by_name.get(addition.entity_name)
                if entity is None:
                    raise EntityNotFoundError(addition.entity_name)

                known = set(entity.observations)
                added: list[str] = []
                for content in addition.contents:
                    if content in known:
                        continue
                    known.add(content)
                    added.append(content)

                if added:
                    entity.observations.extend(added)
                    entity.updated_at = _later(entity.updated_at, timestamp)
                results.append(
                    ObservationResult(entity_name=addition.entity_name, added_observations=added)
                )

            self.save_graph(graph)
            return results

    def delete_observations(self, deletions: Iterable[ObservationDeletion]) -> None:
        """Remove observations by exact match; unknown entities are skipped."""
        with self._lock:
            graph = self.load_graph()
            timestamp = current_timestamp()
            by_name = {entity.name: entity for entity in graph.entries}

            for deletion in _coerce(ObservationDeletion, deletions):
                entity = by_name.get(deletion.entity_name)
                if entity is None:
                    continue
                doomed = set(deletion.observations)
                remaining = [o for o in entity.observations if o not in doomed]
                if len(remaining) != len(entity.observations):
                    entity.observations = remaining
                    entity.updated_at = _later(entity.updated_at, timestamp)

            self.save_graph(graph)

    def delete_entities(self, entity_names: Iterable[str]) -> None:
        """Delete entities by name along with every relation touching them."""
        with self._lock:
            graph = self.load_graph()
            names = set(entity_names)
            graph.entries = [e for e in graph.entries if e.name not in names]
            graph.relations = [
                r for r in graph.relations if r.from_ not in names and r.to not in names
            ]
            self.save_graph(graph)

    def delete_relations(self, relations: Iterable[RelationDraft]) -> None:
        """Delete relations matching any given triple; non-matches are ignored."""
        with self._lock:
            graph = self.load_graph()
            doomed = {relation.key for relation in _coerce(RelationDraft, relations)}
            graph.relations = [r for r in graph.relations if r.key not in doomed]
            self.save_graph(graph)

    # -- queries ---------------------------------------------------------

    def read_graph(
        self,
        pagination: Optional[Pagination] = None,
        graph_filter: Optional[GraphFilter] = None,
    ) -> PaginatedGraph:
        """Return a filtered, paginated view of the whole graph."""
        pagination = pagination or Pagination(offset=0, limit=READ_GRAPH_LIMIT)
        graph_filter = graph_filter or GraphFilter()

        with self._lock:
            graph = self.load_graph()

        entities = graph.entries
        relations = graph.relations

        if graph_filter.entity_types:
            entity_types = set(graph_filter.entity_types)
            entities = [e for e in entities if e.entity_type in entity_types]
        if graph_filter.relation_types:
            relation_types = set(graph_filter.relation_types)
            relations = [r for r in relations if r.relation_type in relation_types]
        if graph_filter.search_text:
            needle = graph_filter.search_text.lower()
            entities = [e for e in entities if _entity_matches(e, needle)]
            relations = [r for r in relations if _relation_matches(r, needle)]
        entities = [e for e in entities if _within_dates(e.updated_at, graph_filter)]
        relations = [r for r in relations if _within_dates(r.updated_at, graph_filter)]

        return _paginate(entities, relations, pagination)

    def search_nodes(self, query: str, pagination: Optional[Pagination] = None) -> PaginatedGraph:
        """Case-insensitive substring search over entities and relations.

        A relation is included when its own fields match, or when both of its
        endpoints are matched entities.
        """
        pagination = pagination or Pagination(offset=0, limit=SEARCH_LIMIT)
        needle = query.lower()

        with self._lock:
            graph = self.load_graph()

        entities = [e for e in graph.entries if _entity_matches(e, needle)]
        matched_names = {e.name for e in entities}
        relations = [
            r
            for r in graph.relations
            if _relation_matches(r, needle)
            or (r.from_ in matched_names and r.to in matched_names)
        ]
        return _paginate(entities, relations, pagination)

    def open_nodes(self, names: Iterable[str]) -> KnowledgeGraph:
        """Fetch entities by name plus the relations among them."""
        wanted = set(names)
        with self._lock:
            graph = self.load_graph()

        entities = [e for e in graph.entries if e.name in wanted]
        found = {e.name for e in entities}
        relations = [r for r in graph.relations if r.from_ in found and r.to in found]
        return KnowledgeGraph(entries=entities, relations=relations)

    def get_related_nodes(self, starting_node_name: str, depth: int = 1) -> KnowledgeGraph:
        """Breadth-first neighbourhood of an entity, up to ``depth`` hops.

        Relations are followed in both directions. Names reached only through
        dangling relations take part in the traversal but are not returned
        as entities.
        """
        if depth < 0:
            raise ValueError(f"depth must be >= 0, got {depth}")

        with self._lock:
            graph = self.load_graph()

        if depth == 0:
            return KnowledgeGraph(
                entries=[e for e in graph.entries if e.name == starting_node_name]
            )

        visited = {starting_node_name}
        frontier = [starting_node_name]
        level = 0
        while level < depth and frontier:
            frontier_names = set(frontier)
            next_frontier: list[str] = []
            for relation in graph.relations:
                if relation.from_ not in frontier_names and relation.to not in frontier_names:
                    continue
                for name in (relation.from_, relation.to):
                    if name not in visited:
                        visited.add(name)
                        next_frontier.append(name)
            frontier = next_frontier
            level += 1

        return KnowledgeGraph(
            entries=[e for e in graph.entries if e.name in visited],
            relations=[r for r in graph.relations if r.from_ in visited and r.to in visited],
        )

    def get_graph_stats(self) -> GraphStats:
        with self._lock:
            graph = self.load_graph()

        timestamps = [
            parsed
            for parsed in (
                parse_timestamp(record.updated_at)
                for record in [*graph.entries, *graph.relations]
            )
            if parsed is not None
        ]
        return GraphStats(
            entity_count=len(graph.entries),
            relation_count=len(graph.relations),
            observation_count=sum(len(e.observations) for e in graph.entries),
            last_updated=format_timestamp(max(timestamps)) if timestamps else "N/A",
        )

    def get_entity_types_summary(self) -> list[TypeCount]:
        with self._lock:
            graph = self.load_graph()
        return _type_counts(e.entity_type for e in graph.entries)

    def get_relation_types_summary(self) -> list[TypeCount]:
        with self._lock:
            graph = self.load_graph()
        return _type_counts(r.relation_type for r in graph.relations)
