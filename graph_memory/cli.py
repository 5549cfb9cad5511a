"""CLI tool for knowledge graph inspection and tool dispatch"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import load_config, load_dotenv_file
from .dispatch import ToolDispatcher, render
from .logging_setup import setup_logging
from .schema import Pagination
from .store import SEARCH_LIMIT, KnowledgeGraphManager

logger = logging.getLogger(__name__)


def cmd_stats(manager: KnowledgeGraphManager) -> None:
    """Show graph statistics with per-type breakdowns"""
    payload = {
        "stats": manager.get_graph_stats(),
        "entityTypes": manager.get_entity_types_summary(),
        "relationTypes": manager.get_relation_types_summary(),
    }
    print(render(payload))


def cmd_search(manager: KnowledgeGraphManager, term: str, offset: int = 0, limit: int = SEARCH_LIMIT) -> None:
    """Search entities and relations by substring"""
    print(render(manager.search_nodes(term, Pagination(offset=offset, limit=limit))))


def cmd_open(manager: KnowledgeGraphManager, names: list[str]) -> None:
    print(render(manager.open_nodes(names)))


def cmd_related(manager: KnowledgeGraphManager, name: str, depth: int = 1) -> None:
    """Show the neighbourhood of an entity"""
    print(render(manager.get_related_nodes(name, depth)))


def cmd_types(manager: KnowledgeGraphManager) -> None:
    print(render({
        "entityTypes": manager.get_entity_types_summary(),
        "relationTypes": manager.get_relation_types_summary(),
    }))


def cmd_call(dispatcher: ToolDispatcher, tool: str, raw_args: Optional[str]) -> int:
    """Dispatch a named tool; returns the process exit code"""
    arguments = None
    if raw_args:
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError as e:
            print(f"Error: --args is not valid JSON: {e}")
            return 1
        if not isinstance(arguments, dict):
            print("Error: --args must be a JSON object")
            return 1

    response = dispatcher.handle(tool, arguments)
    print(response)
    return 1 if response.startswith("Error: ") else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="graph-memory",
        description="Graph memory CLI - inspect the knowledge graph and dispatch tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show statistics
  graph-memory --stats

  # Search entities and relations
  graph-memory --search "coffee"

  # Neighbourhood of an entity
  graph-memory --related "John" --depth 2

  # Dispatch a tool with JSON arguments
  graph-memory --call create_entities --args '{"entities": [{"name": "John", "entityType": "person"}]}'
  graph-memory --list-tools

Environment Variables:
  MEMORY_FILE_PATH        Backing JSONL file
  GRAPH_MEMORY_STATE_DIR  Directory holding memory.jsonl (default: ~/.local/state/graph-memory)
  GRAPH_MEMORY_LOG_DIR    Directory for rotating log files
  LOG_LEVEL               DEBUG, INFO, WARNING, ERROR
  DEBUG_CONFIG            Force DEBUG logging
        """,
    )

    commands = parser.add_mutually_exclusive_group(required=True)
    commands.add_argument("--stats", action="store_true", help="Show graph statistics")
    commands.add_argument("--search", metavar="TERM", help="Search entities and relations")
    commands.add_argument("--open", metavar="NAME", nargs="+", help="Open entities by name")
    commands.add_argument("--related", metavar="NAME", help="Show nodes related to an entity")
    commands.add_argument("--types", action="store_true", help="Show entity and relation type counts")
    commands.add_argument("--list-tools", action="store_true", help="List dispatchable tools")
    commands.add_argument("--call", metavar="TOOL", help="Dispatch a tool by name")

    parser.add_argument("--args", dest="tool_args", metavar="JSON", help="JSON object of tool arguments (for --call)")
    parser.add_argument("--depth", type=int, default=1, help="Traversal depth for --related (default: 1)")
    parser.add_argument("--offset", type=int, default=0, help="Result offset for --search (default: 0)")
    parser.add_argument("--limit", type=int, default=SEARCH_LIMIT, help=f"Result limit for --search (default: {SEARCH_LIMIT})")
    parser.add_argument("--file", type=Path, help="Override backing memory file")
    parser.add_argument("--env-file", type=Path, help="Load environment variables from this .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entrypoint"""
    args = build_parser().parse_args(argv)

    load_dotenv_file(args.env_file)
    try:
        config = load_config()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        "graph_memory",
        log_dir=config.log_dir,
        log_level="DEBUG" if args.verbose else config.log_level,
    )
    for warning in config.warnings:
        logger.warning(warning)

    manager = KnowledgeGraphManager(args.file or config.memory_file_path)
    dispatcher = ToolDispatcher(manager)

    try:
        if args.stats:
            cmd_stats(manager)
        elif args.search is not None:
            cmd_search(manager, term=args.search, offset=args.offset, limit=args.limit)
        elif args.open:
            cmd_open(manager, args.open)
        elif args.related is not None:
            cmd_related(manager, name=args.related, depth=args.depth)
        elif args.types:
            cmd_types(manager)
        elif args.list_tools:
            print(json.dumps(dispatcher.list_tools(), indent=2))
        elif args.call:
            return cmd_call(dispatcher, args.call, args.tool_args)
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=args.verbose)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
