"""Tests for the graph memory CLI."""

import json
import os

import pytest

from conftest import entity_record, read_records, relation_record, write_records
from graph_memory.cli import build_parser, main


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the CLI away from the real environment and any stray .env file."""
    monkeypatch.chdir(tmp_path)
    for var in ("MEMORY_FILE_PATH", "GRAPH_MEMORY_LOG_DIR", "LOG_LEVEL", "DEBUG_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GRAPH_MEMORY_STATE_DIR", str(tmp_path / "state"))


@pytest.fixture
def graph_file(tmp_path):
    path = tmp_path / "graph.jsonl"
    write_records(
        path,
        [
            entity_record("John", "person", ["Likes coffee"]),
            entity_record("Anthropic", "organization"),
            relation_record("John", "Anthropic", "works_at"),
        ],
    )
    return path


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_commands_are_exclusive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--stats", "--types"])


def test_stats(graph_file, capsys):
    assert main(["--file", str(graph_file), "--stats"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["stats"]["entityCount"] == 2
    assert payload["stats"]["relationCount"] == 1
    assert payload["stats"]["observationCount"] == 1
    assert payload["entityTypes"] == [
        {"type": "person", "count": 1},
        {"type": "organization", "count": 1},
    ]


def test_stats_on_empty_default_file(tmp_path, capsys):
    assert main(["--stats"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["stats"]["lastUpdated"] == "N/A"
    assert not (tmp_path / "state" / "memory.jsonl").exists()


def test_memory_file_path_env(graph_file, monkeypatch, capsys):
    monkeypatch.setenv("MEMORY_FILE_PATH", str(graph_file))
    assert main(["--types"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["relationTypes"] == [{"type": "works_at", "count": 1}]


def test_search(graph_file, capsys):
    assert main(["--file", str(graph_file), "--search", "coffee"]) == 0
    page = json.loads(capsys.readouterr().out)
    assert [e["name"] for e in page["items"]["entries"]] == ["John"]
    assert page["hasMore"] is False


def test_search_pagination(graph_file, capsys):
    assert main(["--file", str(graph_file), "--search", "o", "--limit", "1"]) == 0
    page = json.loads(capsys.readouterr().out)
    assert len(page["items"]["entries"]) == 1
    assert page["nextOffset"] == 1


def test_open(graph_file, capsys):
    assert main(["--file", str(graph_file), "--open", "John", "Nobody"]) == 0
    graph = json.loads(capsys.readouterr().out)
    assert [e["name"] for e in graph["entries"]] == ["John"]
    assert graph["relations"] == []


def test_related(graph_file, capsys):
    assert main(["--file", str(graph_file), "--related", "John", "--depth", "1"]) == 0
    graph = json.loads(capsys.readouterr().out)
    assert [e["name"] for e in graph["entries"]] == ["John", "Anthropic"]


def test_related_negative_depth_fails(graph_file, capsys):
    assert main(["--file", str(graph_file), "--related", "John", "--depth", "-1"]) == 1


def test_list_tools(tmp_path, capsys):
    assert main(["--list-tools"]) == 0
    tools = json.loads(capsys.readouterr().out)
    assert "create_entities" in [tool["name"] for tool in tools]


def test_call_creates_entities(tmp_path, capsys):
    target = tmp_path / "new.jsonl"
    args = json.dumps({"entities": [{"name": "John", "entityType": "person"}]})
    assert main(["--file", str(target), "--call", "create_entities", "--args", args]) == 0
    created = json.loads(capsys.readouterr().out)
    assert created[0]["name"] == "John"
    assert [r["name"] for r in read_records(target)] == ["John"]


def test_call_error_exit_code(graph_file, capsys):
    args = json.dumps({"observations": [{"entityName": "Ghost", "contents": ["boo"]}]})
    assert main(["--file", str(graph_file), "--call", "add_observations", "--args", args]) == 1
    assert capsys.readouterr().out.strip() == "Error: Entity with name Ghost not found"


def test_call_missing_args(graph_file, capsys):
    assert main(["--file", str(graph_file), "--call", "search_nodes"]) == 1
    assert "No arguments provided for tool: search_nodes" in capsys.readouterr().out


def test_call_invalid_json(graph_file, capsys):
    assert main(["--file", str(graph_file), "--call", "search_nodes", "--args", "{oops"]) == 1
    assert "not valid JSON" in capsys.readouterr().out


def test_call_args_must_be_object(graph_file, capsys):
    assert main(["--file", str(graph_file), "--call", "search_nodes", "--args", "[1]"]) == 1
    assert "must be a JSON object" in capsys.readouterr().out


def test_call_non_list_payload(graph_file, capsys):
    args = json.dumps({"entities": 5})
    assert main(["--file", str(graph_file), "--call", "create_entities", "--args", args]) == 1
    assert capsys.readouterr().out.startswith("Error: Invalid arguments for create_entities")


def test_directory_memory_path_fails(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("MEMORY_FILE_PATH", str(tmp_path))
    assert main(["--stats"]) == 1
    assert "is a directory" in capsys.readouterr().err


def test_env_file_is_loaded(tmp_path, graph_file, capsys):
    env_file = tmp_path / "graph.env"
    env_file.write_text(f"MEMORY_FILE_PATH={graph_file}\n")
    try:
        assert main(["--env-file", str(env_file), "--types"]) == 0
    finally:
        os.environ.pop("MEMORY_FILE_PATH", None)
    payload = json.loads(capsys.readouterr().out)
    assert payload["entityTypes"][0] == {"type": "person", "count": 1}


def test_log_dir_receives_log_file(tmp_path, graph_file, monkeypatch):
    monkeypatch.setenv("GRAPH_MEMORY_LOG_DIR", str(tmp_path / "logs"))
    assert main(["--file", str(graph_file), "--stats"]) == 0
    assert list((tmp_path / "logs").glob("graph_memory_*.log"))
