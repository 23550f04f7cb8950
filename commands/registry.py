"""
Command Registry
----------------
The closed table of named workflows.
No process execution here. Only loading, validation and lookup.

Exit Criterion: Every command is auditable without running anything.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.errors import CommandMapError, UnknownCommandError
from infra.logging import get_logger


DEFAULT_COMMAND_MAP = Path(__file__).parent / "command_map.yaml"


class CommandSpec(BaseModel):
    """One entry of command_map.yaml, as written on disk."""
    id: str = Field(..., min_length=1, description="Short name, e.g. 'dev'")
    name: str = Field(..., min_length=1, description="Canonical name")
    description: str = ""
    tool: str = Field(..., min_length=1, description="Delegated tool binary")
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    ensure_dirs: List[str] = Field(default_factory=list)

    @field_validator("env")
    @classmethod
    def _one_selector_at_most(cls, value: Dict[str, str]) -> Dict[str, str]:
        if len(value) > 1:
            raise ValueError(
                f"a command may set at most one variable, got {sorted(value)}"
            )
        return value

    @field_validator("ensure_dirs")
    @classmethod
    def _non_empty_paths(cls, value: List[str]) -> List[str]:
        if any(not p.strip() for p in value):
            raise ValueError("ensure_dirs entries must be non-empty paths")
        return value


@dataclass(frozen=True)
class CommandDefinition:
    """A resolved command: environment, preconditions and one invocation."""
    id: str
    name: str
    tool: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    ensure_dirs: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def argv(self) -> List[str]:
        return [self.tool, *self.args]

    @classmethod
    def from_spec(cls, spec: CommandSpec) -> "CommandDefinition":
        return cls(
            id=spec.id,
            name=spec.name,
            tool=spec.tool,
            args=list(spec.args),
            env=dict(spec.env),
            ensure_dirs=list(spec.ensure_dirs),
            description=spec.description,
        )

    def __repr__(self) -> str:
        return f"CommandDefinition(id={self.id}, name={self.name})"


class CommandRegistry:
    """
    Registry of command definitions, keyed by short and canonical name.

    Responsibilities:
    - Load command definitions from YAML
    - Reject tables that break the one-invocation-per-name rule
    - Resolve a user-supplied name to exactly one command
    """

    def __init__(self, registry_path: Optional[str] = None):
        self._commands: Dict[str, CommandDefinition] = {}
        self._names: Dict[str, str] = {}  # any accepted name -> command id
        self._logger = get_logger("commands.registry")

        if registry_path:
            self.load(registry_path)

    def load(self, registry_path: str) -> int:
        """
        Load command definitions from a YAML file.
        Returns number of commands loaded.
        """
        path = Path(registry_path)

        if not path.is_file():
            raise CommandMapError(
                f"Command map not found: {registry_path}", {"path": str(path)}
            )

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CommandMapError(
                f"Invalid YAML in command map {registry_path}: {e}",
                {"path": str(path)},
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("commands"), list):
            raise CommandMapError(
                f"Command map {registry_path} must contain a 'commands' list",
                {"path": str(path)},
            )

        count = 0
        for index, entry in enumerate(data["commands"]):
            try:
                spec = CommandSpec.model_validate(entry)
            except ValidationError as e:
                raise CommandMapError(
                    f"Invalid command #{index} in {registry_path}: {e}",
                    {"path": str(path), "index": index},
                ) from e
            self.register(CommandDefinition.from_spec(spec))
            count += 1

        self._logger.debug(f"Loaded {count} commands from {path}")
        return count

    def register(self, command: CommandDefinition) -> None:
        """Register a command under its short and canonical names."""
        for key in {command.id, command.name}:
            owner = self._names.get(key)
            if owner is not None:
                raise CommandMapError(
                    f"Duplicate command name {key!r} (already used by {owner!r})",
                    {"command": key},
                )

        self._commands[command.id] = command
        self._names[command.id] = command.id
        self._names[command.name] = command.id

    def resolve(self, name: str) -> CommandDefinition:
        """
        Resolve a command name to its definition.

        Raises UnknownCommandError for anything outside the table.
        """
        key = (name or "").strip()
        command_id = self._names.get(key)

        if command_id is None:
            raise UnknownCommandError(name, known=self.names())

        return self._commands[command_id]

    def get(self, command_id: str) -> Optional[CommandDefinition]:
        """Get a command definition by short name."""
        return self._commands.get(command_id)

    def list_commands(self) -> List[CommandDefinition]:
        """List all registered commands, in table order."""
        return list(self._commands.values())

    def names(self) -> List[str]:
        """All accepted names, short and canonical."""
        return list(self._names)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return name in self._names


def create_default_registry() -> CommandRegistry:
    """Create registry from the packaged command table."""
    return CommandRegistry(str(DEFAULT_COMMAND_MAP))
