from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from graph_memory.store import KnowledgeGraphManager

OLD_TS = "2020-01-01T00:00:00.000Z"


def write_records(path: Path, records: list[dict[str, Any]]) -> None:
    """Write raw JSONL records, bypassing the store."""
    path.write_text("\n".join(json.dumps(record) for record in records), encoding="utf-8")


def read_records(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def entity_record(name: str, entity_type: str = "person", observations=None, ts: str = OLD_TS) -> dict[str, Any]:
    return {
        "type": "entity",
        "uuid": f"uuid-{name}",
        "createdAt": ts,
        "updatedAt": ts,
        "name": name,
        "entityType": entity_type,
        "observations": list(observations or []),
    }


def relation_record(source: str, target: str, relation_type: str, ts: str = OLD_TS) -> dict[str, Any]:
    return {
        "type": "relation",
        "uuid": f"uuid-{source}-{relation_type}-{target}",
        "createdAt": ts,
        "updatedAt": ts,
        "from": source,
        "to": target,
        "relationType": relation_type,
    }


@pytest.fixture
def memory_file(tmp_path: Path) -> Path:
    return tmp_path / "memory.jsonl"


@pytest.fixture
def manager(memory_file: Path) -> KnowledgeGraphManager:
    return KnowledgeGraphManager(memory_file)


@pytest.fixture(autouse=True)
def _reset_graph_memory_logger():
    """CLI tests configure the package logger; undo that so caplog keeps working."""
    yield
    logger = logging.getLogger("graph_memory")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
