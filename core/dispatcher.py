"""
Command Dispatcher
------------------
Resolves a command name to its definition, hands it to the executor
and turns the outcome into a process exit status.

Non-negotiable rule: an unknown name has no side effects.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from commands.registry import CommandDefinition, CommandRegistry, create_default_registry
from tools.executor import ExecutionContext, ExecutionResult, ExecutionStatus, TaskExecutor
from infra.logging import RunContext, get_logger, log_run_end

from .errors import DispatchError, ErrorCategory, ErrorHandler, UnknownCommandError


@dataclass
class DispatcherConfig:
    """Configuration for the dispatcher."""
    command_map: Optional[str] = None  # None: packaged command table
    dry_run: bool = False
    cwd: Optional[str] = None
    tool_overrides: dict = field(default_factory=dict)


@dataclass
class DispatchResult:
    """Result of dispatching one command name."""
    name: str
    exit_code: int
    command: Optional[CommandDefinition] = None
    execution: Optional[ExecutionResult] = None
    error: Optional[DispatchError] = None
    run_id: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def __repr__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"DispatchResult({status} {self.name}: exit={self.exit_code})"


class Dispatcher:
    """
    Maps a command name to exactly one delegated invocation.

    Responsibilities:
    - Name resolution
    - Error classification
    - Exit status propagation
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        registry: Optional[CommandRegistry] = None,
        executor: Optional[TaskExecutor] = None,
    ):
        self.config = config or DispatcherConfig()
        self._logger = get_logger("dispatcher")
        self._error_handler = ErrorHandler()

        if registry is None:
            if self.config.command_map:
                registry = CommandRegistry(self.config.command_map)
            else:
                registry = create_default_registry()
        self.registry = registry

        self.executor = executor or TaskExecutor(ExecutionContext(
            cwd=self.config.cwd,
            tool_overrides=dict(self.config.tool_overrides),
            dry_run=self.config.dry_run,
        ))

    def dispatch(self, name: str) -> DispatchResult:
        """
        Resolve and run one command.

        Failures come back in the result; nothing here raises for an
        unknown name, a failed precondition or a failed tool.
        """
        with RunContext() as run_id:
            result = self._dispatch(name)
            result.run_id = run_id
            log_run_end(
                run_id,
                command_id=result.command.id if result.command else name,
                exit_code=result.exit_code,
                error=result.error.message if result.error else None,
            )
        return result

    def run(self, name: str) -> int:
        """Dispatch a command and return the process exit status."""
        return self.dispatch(name).exit_code

    def list_commands(self) -> List[CommandDefinition]:
        return self.registry.list_commands()

    def _dispatch(self, name: str) -> DispatchResult:
        try:
            command = self.registry.resolve(name)
        except UnknownCommandError as e:
            error = DispatchError.from_exception(e)
            return DispatchResult(
                name=name,
                exit_code=self._error_handler.handle(error),
                error=error,
            )

        self._logger.debug(f"Resolved {name!r} to {command.id}")
        execution = self.executor.execute(command)

        if execution.success:
            return DispatchResult(
                name=name,
                exit_code=execution.exit_code,
                command=command,
                execution=execution,
            )

        error = self._classify(command, execution)
        return DispatchResult(
            name=name,
            exit_code=self._error_handler.handle(error),
            command=command,
            execution=execution,
            error=error,
        )

    def _classify(self, command: CommandDefinition, execution: ExecutionResult) -> DispatchError:
        """Turn a failed execution into a structured error."""
        details = {"command": command.id, "argv": execution.argv}

        if execution.status == ExecutionStatus.PRECONDITION_FAILED:
            return DispatchError(
                category=ErrorCategory.PRECONDITION_FAILURE,
                message=execution.error or "Directory preparation failed",
                details=details,
            )

        details["tool_missing"] = execution.status in (
            ExecutionStatus.TOOL_NOT_FOUND, ExecutionStatus.TOOL_NOT_EXECUTABLE
        )
        return DispatchError(
            category=ErrorCategory.DELEGATED_FAILURE,
            message=execution.error or f"{command.tool} failed",
            details=details,
            exit_code=execution.exit_code,
        )
