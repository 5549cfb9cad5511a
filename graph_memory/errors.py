"""Exception types raised by the graph memory store and its adapters."""

from __future__ import annotations


class GraphMemoryError(Exception):
    """Base class for graph memory errors."""

    pass


class EntityNotFoundError(GraphMemoryError, KeyError):
    """A mutation referenced an entity name that is not in the graph."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"Entity with name {entity_name} not found")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class ConfigError(GraphMemoryError, ValueError):
    """Configuration could not be resolved to a usable backing file."""

    pass


class ToolError(GraphMemoryError):
    """A dispatched request could not be executed."""

    pass


class UnknownToolError(ToolError):
    pass


class MissingArgumentError(ToolError):
    pass


class ToolArgumentError(ToolError):
    """Tool arguments were present but failed validation."""

    pass
