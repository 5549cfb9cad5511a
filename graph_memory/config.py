"""Configuration resolution for graph memory entrypoints.

The backing file path is resolved once, at process start, and handed to
``KnowledgeGraphManager`` explicitly. Nothing in the store reads the
environment.

Precedence for the backing file:
- MEMORY_FILE_PATH (relative values resolve against the working directory)
- GRAPH_MEMORY_STATE_DIR / memory.jsonl
- ~/.local/state/graph-memory/memory.jsonl
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path.home() / ".local" / "state" / "graph-memory"
MEMORY_FILE_NAME = "memory.jsonl"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _expand(value: str) -> Path:
    """Expand $VARS and ~, then anchor relative paths at the working directory."""
    path = Path(os.path.expandvars(value)).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.resolve()


@dataclass
class GraphMemoryConfig:
    """Resolved configuration, with the source of the backing file path."""

    memory_file_path: Path
    memory_file_source: str  # "MEMORY_FILE_PATH" | "GRAPH_MEMORY_STATE_DIR" | "default"
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    debug: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory_file_path": str(self.memory_file_path),
            "memory_file_source": self.memory_file_source,
            "log_level": self.log_level,
            "log_dir": str(self.log_dir) if self.log_dir else None,
            "debug": self.debug,
            "warnings": self.warnings,
        }


def load_config(env: Optional[Mapping[str, str]] = None) -> GraphMemoryConfig:
    """
    Resolve configuration from environment variables.

    Args:
        env: Environment mapping (defaults to os.environ)

    Returns:
        GraphMemoryConfig with an absolute backing file path

    Raises:
        ConfigError: the resolved backing path is an existing directory
    """
    if env is None:
        env = os.environ

    warnings: list[str] = []

    memory_file_env = (env.get("MEMORY_FILE_PATH") or "").strip()
    state_dir_env = (env.get("GRAPH_MEMORY_STATE_DIR") or "").strip()

    if memory_file_env:
        memory_file_path = _expand(memory_file_env)
        memory_file_source = "MEMORY_FILE_PATH"
    elif state_dir_env:
        memory_file_path = _expand(state_dir_env) / MEMORY_FILE_NAME
        memory_file_source = "GRAPH_MEMORY_STATE_DIR"
    else:
        memory_file_path = DEFAULT_STATE_DIR / MEMORY_FILE_NAME
        memory_file_source = "default"

    if memory_file_path.is_dir():
        raise ConfigError(f"Memory file path is a directory: {memory_file_path}")

    debug = _parse_bool(env.get("DEBUG_CONFIG"))

    log_level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in VALID_LOG_LEVELS:
        warnings.append(
            f"Invalid LOG_LEVEL={env.get('LOG_LEVEL')}. "
            f"Valid values: {', '.join(VALID_LOG_LEVELS)}. Using INFO."
        )
        log_level = "INFO"
    if debug:
        log_level = "DEBUG"

    log_dir_env = (env.get("GRAPH_MEMORY_LOG_DIR") or "").strip()
    log_dir = _expand(log_dir_env) if log_dir_env else None

    config = GraphMemoryConfig(
        memory_file_path=memory_file_path,
        memory_file_source=memory_file_source,
        log_level=log_level,
        log_dir=log_dir,
        debug=debug,
        warnings=warnings,
    )
    logger.debug(f"Resolved memory file {config.memory_file_path} ({config.memory_file_source})")
    return config


def load_dotenv_file(path: Optional[Path] = None) -> bool:
    """Load a .env file into os.environ without overriding existing values.

    Returns True if a file was found and loaded.
    """
    if path is not None:
        path = Path(path).expanduser()
        if not path.exists():
            logger.warning(f"Env file not found: {path}")
            return False
        return load_dotenv(path, override=False)
    return load_dotenv(find_dotenv(usecwd=True), override=False)
