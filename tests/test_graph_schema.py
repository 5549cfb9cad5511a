"""Tests for graph record models and timestamp helpers."""

import re
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from graph_memory.schema import (
    EntityDraft,
    GraphFilter,
    ObservationAddition,
    PaginatedGraph,
    KnowledgeGraph,
    Pagination,
    Relation,
    RelationDraft,
    current_timestamp,
    format_timestamp,
    parse_timestamp,
)


def test_current_timestamp_format():
    """Timestamps are UTC with millisecond precision and a Z suffix"""
    ts = current_timestamp()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", ts)


def test_format_timestamp_converts_to_utc():
    value = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_timestamp(value) == "2024-05-01T12:00:00.123Z"


@pytest.mark.parametrize(
    "raw",
    ["2024-05-01T12:00:00.000Z", "2024-05-01T12:00:00+00:00", "2024-05-01T12:00:00"],
)
def test_parse_timestamp_variants(raw):
    assert parse_timestamp(raw) == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_garbage():
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp(42) is None


def test_relation_uses_wire_aliases():
    relation = Relation.model_validate(
        {
            "uuid": "u1",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-01T00:00:00.000Z",
            "from": "A",
            "to": "B",
            "relationType": "knows",
        }
    )
    assert relation.from_ == "A"
    assert relation.key == ("A", "B", "knows")
    dumped = relation.model_dump(by_alias=True)
    assert dumped["from"] == "A"
    assert dumped["relationType"] == "knows"
    assert "from_" not in dumped


def test_entity_draft_accepts_python_names_and_defaults_observations():
    draft = EntityDraft(name="John", entity_type="person")
    assert draft.observations == []
    assert draft.to_wire() == {"name": "John", "entityType": "person", "observations": []}


def test_entity_draft_forbids_unknown_fields():
    with pytest.raises(ValidationError):
        EntityDraft.model_validate({"name": "John", "entityType": "person", "uuid": "x"})


def test_entity_draft_requires_name():
    with pytest.raises(ValidationError):
        EntityDraft.model_validate({"name": "", "entityType": "person"})


def test_relation_draft_ignores_record_metadata():
    draft = RelationDraft.model_validate(
        {"uuid": "u1", "createdAt": "x", "from": "A", "to": "B", "relationType": "knows"}
    )
    assert draft.key == ("A", "B", "knows")


def test_observation_addition_requires_contents():
    with pytest.raises(ValidationError):
        ObservationAddition.model_validate({"entityName": "John"})


def test_pagination_rejects_negative_values():
    with pytest.raises(ValidationError):
        Pagination(offset=-1, limit=10)
    with pytest.raises(ValidationError):
        Pagination(offset=0, limit=-5)
    assert Pagination(offset=5, limit=10).end == 15


def test_graph_filter_validates_dates():
    GraphFilter.model_validate({"fromDate": "2024-01-01", "toDate": "2024-12-31T23:59:59Z"})
    with pytest.raises(ValidationError):
        GraphFilter.model_validate({"fromDate": "last week"})


def test_paginated_graph_omits_missing_next_offset():
    page = PaginatedGraph(items=KnowledgeGraph(), total=0, has_more=False)
    assert page.to_wire() == {
        "items": {"entries": [], "relations": []},
        "total": 0,
        "hasMore": False,
    }
