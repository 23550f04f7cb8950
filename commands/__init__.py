# Commands module - the closed command table
# This module does NOT execute commands, only loads and resolves them

from .registry import (
    CommandRegistry, CommandDefinition, CommandSpec,
    create_default_registry, DEFAULT_COMMAND_MAP,
)

__all__ = [
    "CommandRegistry",
    "CommandDefinition",
    "CommandSpec",
    "create_default_registry",
    "DEFAULT_COMMAND_MAP",
]
