"""
Error Handling Module
---------------------
Typed errors with classification and exit-status policy.
Nothing here retries: every failure ends the run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import logging
import traceback


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    UNKNOWN_COMMAND = auto()       # Name not in the command table
    PRECONDITION_FAILURE = auto()  # Directory preparation failed
    DELEGATED_FAILURE = auto()     # Tool exited non-zero or could not start
    CONFIG_ERROR = auto()          # Invalid command table or config file


# Exit statuses for failures raised by this layer itself.
# Delegated failures carry the child's own status instead.
EXIT_USAGE = 2
EXIT_PRECONDITION = 3
EXIT_CONFIG = 78
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130


class KrabctlError(Exception):
    """Base class for errors raised by krabctl."""

    category: ErrorCategory = ErrorCategory.CONFIG_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnknownCommandError(KrabctlError):
    """Raised when a command name is not in the command table."""

    category = ErrorCategory.UNKNOWN_COMMAND

    def __init__(self, name: str, known: Optional[List[str]] = None):
        known = sorted(known or [])
        message = f"Unknown command: {name!r}"
        if known:
            message += f" (expected one of: {', '.join(known)})"
        super().__init__(message, {"command": name, "known": known})
        self.name = name


class PreconditionError(KrabctlError):
    """Raised when the filesystem is not ready for a command to start."""

    category = ErrorCategory.PRECONDITION_FAILURE

    def __init__(self, path: str, reason: str, action: str = "create directory"):
        super().__init__(
            f"Cannot {action} {path}: {reason}",
            {"path": path, "reason": reason},
        )
        self.path = path


class CommandMapError(KrabctlError):
    """Raised when the command table cannot be loaded."""

    category = ErrorCategory.CONFIG_ERROR


class ConfigError(KrabctlError):
    """Raised when the config file or log directory is unusable."""

    category = ErrorCategory.CONFIG_ERROR


@dataclass
class DispatchError:
    """
    Structured error with metadata.

    Used for consistent logging and exit-status mapping.
    """
    category: ErrorCategory
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    exit_code: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)
    stack_trace: Optional[str] = None

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        category: Optional[ErrorCategory] = None,
        exit_code: Optional[int] = None,
    ) -> "DispatchError":
        """Create error from an exception."""
        if category is None:
            category = getattr(exception, "category", ErrorCategory.CONFIG_ERROR)
        return cls(
            category=category,
            message=getattr(exception, "message", str(exception)),
            details=dict(getattr(exception, "details", {}) or {}),
            exit_code=exit_code,
            stack_trace=traceback.format_exc(),
        )

    def __repr__(self) -> str:
        return f"DispatchError({self.category.name}: {self.message})"


class ErrorHandler:
    """
    Central error handler: logs an error and decides the exit status.
    """

    EXIT_CODES: Dict[ErrorCategory, int] = {
        ErrorCategory.UNKNOWN_COMMAND: EXIT_USAGE,
        ErrorCategory.PRECONDITION_FAILURE: EXIT_PRECONDITION,
        ErrorCategory.CONFIG_ERROR: EXIT_CONFIG,
    }

    def __init__(self):
        # infra imports this module, so get_logger is not available here
        self._logger = logging.getLogger("krabctl.errors")

    def handle(self, error: DispatchError) -> int:
        """Log an error and return the exit status for it."""
        self._log_error(error)
        return self.exit_code_for(error)

    def exit_code_for(self, error: DispatchError) -> int:
        """
        Exit status for an error.

        An explicit exit_code wins, which is how a delegated tool's own
        status passes through untouched.
        """
        if error.exit_code is not None:
            return error.exit_code
        return self.EXIT_CODES.get(error.category, 1)

    def _log_error(self, error: DispatchError) -> None:
        """Log error with appropriate level."""
        level = logging.ERROR

        if error.category == ErrorCategory.DELEGATED_FAILURE:
            # The tool already reported its own failure.
            if not error.details.get("tool_missing"):
                level = logging.DEBUG

        self._logger.log(
            level,
            error.message,
            extra={"category": error.category.name, "details": error.details},
        )

        if error.stack_trace and self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(f"Stack trace:\n{error.stack_trace}")
