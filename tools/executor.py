"""
Task Executor
-------------
Runs one command: prepare directories, build the child environment,
spawn exactly one child process and wait for it.

Rules:
- No shell=True in subprocess
- No timeout, no retry: the child runs to natural completion
- Environment changes go to the child only, never to os.environ
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path
from typing import Dict, List, Optional
import os
import subprocess

from commands.registry import CommandDefinition
from core.errors import (
    EXIT_NOT_EXECUTABLE, EXIT_NOT_FOUND, EXIT_PRECONDITION, PreconditionError,
)
from infra.logging import get_logger


class ExecutionStatus(Enum):
    """Status of a command execution."""
    SUCCESS = auto()
    PRECONDITION_FAILED = auto()
    TOOL_FAILED = auto()
    TOOL_NOT_FOUND = auto()
    TOOL_NOT_EXECUTABLE = auto()


@dataclass
class ExecutionResult:
    """Result of running one command."""
    command_id: str
    status: ExecutionStatus
    exit_code: int
    argv: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    dry_run: bool = False
    execution_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @property
    def spawned(self) -> bool:
        """Whether a child process was started."""
        return not self.dry_run and self.status in (
            ExecutionStatus.SUCCESS, ExecutionStatus.TOOL_FAILED
        )

    def __repr__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"ExecutionResult({status} {self.command_id}: exit={self.exit_code})"


@dataclass
class ExecutionContext:
    """Context for command execution."""
    cwd: Optional[str] = None
    base_env: Optional[Dict[str, str]] = None  # None: snapshot of os.environ
    tool_overrides: Dict[str, str] = field(default_factory=dict)
    dry_run: bool = False  # If True, don't touch the filesystem or spawn


class TaskExecutor:
    """
    Executes command definitions.

    Each call to execute() spawns at most one child process.
    """

    def __init__(self, context: Optional[ExecutionContext] = None):
        self.context = context or ExecutionContext()
        self._logger = get_logger("tools.executor")

    def execute(self, command: CommandDefinition) -> ExecutionResult:
        """
        Run a command's linear sequence.

        This is the ONLY place a child process is started.
        """
        argv = self.build_argv(command)
        env = self.build_env(command)

        if self.context.dry_run:
            return ExecutionResult(
                command_id=command.id,
                status=ExecutionStatus.SUCCESS,
                exit_code=0,
                argv=argv,
                env=dict(command.env),
                dry_run=True,
            )

        try:
            self.check_working_directory()
            self.prepare_directories(command)
        except PreconditionError as failure:
            self._logger.debug(f"Precondition failed for {command.id}: {failure}")
            return ExecutionResult(
                command_id=command.id,
                status=ExecutionStatus.PRECONDITION_FAILED,
                exit_code=EXIT_PRECONDITION,
                argv=argv,
                env=dict(command.env),
                error=failure.message,
            )

        return self._spawn(command, argv, env)

    def check_working_directory(self) -> None:
        """Raise PreconditionError if the configured cwd is not a directory."""
        cwd = self.context.cwd
        if cwd is not None and not Path(cwd).is_dir():
            raise PreconditionError(str(cwd), "Not a directory", action="run in")

    def prepare_directories(self, command: CommandDefinition) -> List[Path]:
        """Create every directory the command requires. Idempotent.

        Relative entries are taken relative to the child's working directory.
        Raises PreconditionError on the first directory that cannot be made.
        """
        created = []
        for raw in command.ensure_dirs:
            path = Path(raw)
            if self.context.cwd and not path.is_absolute():
                path = Path(self.context.cwd) / path
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PreconditionError(str(e.filename or path), e.strerror or str(e)) from e
            created.append(path)
            self._logger.debug(f"Ensured directory {path}")
        return created

    def build_env(self, command: CommandDefinition) -> Dict[str, str]:
        """Child environment: the base environment plus the command's variables."""
        base = self.context.base_env
        env = dict(os.environ if base is None else base)
        env.update(command.env)
        return env

    def build_argv(self, command: CommandDefinition) -> List[str]:
        tool = self.context.tool_overrides.get(command.tool, command.tool)
        return [tool, *command.args]

    def _spawn(
        self,
        command: CommandDefinition,
        argv: List[str],
        env: Dict[str, str],
    ) -> ExecutionResult:
        """Spawn the child, block on it and classify the outcome."""
        start_time = datetime.now(timezone.utc)
        self._logger.info(
            f"Running {' '.join(argv)}",
            extra={"command_id": command.id, "argv": argv, "env_set": command.env},
        )

        try:
            completed = subprocess.run(argv, env=env, cwd=self.context.cwd)
        except FileNotFoundError:
            return ExecutionResult(
                command_id=command.id,
                status=ExecutionStatus.TOOL_NOT_FOUND,
                exit_code=EXIT_NOT_FOUND,
                argv=argv,
                env=dict(command.env),
                error=f"{argv[0]}: command not found",
            )
        except OSError as e:
            # EACCES, ENOEXEC, ENAMETOOLONG: nothing could be started
            return ExecutionResult(
                command_id=command.id,
                status=ExecutionStatus.TOOL_NOT_EXECUTABLE,
                exit_code=EXIT_NOT_EXECUTABLE,
                argv=argv,
                env=dict(command.env),
                error=f"{argv[0]}: {e.strerror or e}",
            )

        execution_time = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        exit_code = _exit_status(completed.returncode)

        if exit_code == 0:
            status = ExecutionStatus.SUCCESS
            error = None
        else:
            status = ExecutionStatus.TOOL_FAILED
            error = f"{argv[0]} exited with status {exit_code}"

        self._logger.info(
            f"{command.id} finished with status {exit_code}",
            extra={"command_id": command.id, "execution_time_ms": execution_time},
        )

        return ExecutionResult(
            command_id=command.id,
            status=status,
            exit_code=exit_code,
            argv=argv,
            env=dict(command.env),
            error=error,
            execution_time_ms=execution_time,
        )


def _exit_status(returncode: int) -> int:
    """Shell-style exit status: a child killed by signal N reports 128 + N."""
    if returncode < 0:
        return 128 - returncode
    return returncode
