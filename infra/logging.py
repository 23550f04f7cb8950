"""
krabctl Centralized Logging
---------------------------
Structured logging with run_id propagation, one run per dispatch.

Design:
- Every dispatch gets a unique run_id
- run_id propagates through: Dispatcher -> Registry -> Executor
- Console output via Rich on stderr, optional JSON lines on disk
- Severity discipline: INFO=progress, WARNING=suspicious, ERROR=abort

Usage:
    from infra.logging import get_logger, RunContext, log_run_end

    logger = get_logger("core")

    with RunContext() as run_id:
        logger.info("Dispatching")
        log_run_end(run_id, command_id="dev", exit_code=0)
"""

import contextvars
import json
import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from core.errors import ConfigError

ROOT_LOGGER = "krabctl"
LOG_FILE_NAME = "krabctl.log"

# Context variable for run_id - thread-safe and async-safe
_run_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "run_id", default=None
)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    return f"run_{uuid.uuid4().hex[:12]}"


def get_run_id() -> Optional[str]:
    """Get the current run ID from context."""
    return _run_id_var.get()


class RunContext:
    """
    Context manager for run scoping.

    Usage:
        with RunContext() as run_id:
            # All logs within this block carry run_id
            logger.info("Processing...")
    """

    def __init__(self, run_id: Optional[str] = None):
        self._run_id = run_id or generate_run_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _run_id_var.set(self._run_id)
        return self._run_id

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _run_id_var.reset(self._token)
            self._token = None


class RunIdFilter(logging.Filter):
    """Logging filter that adds run_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "run_id", None) is None:
            record.run_id = get_run_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    EXTRA_FIELDS = (
        "command_id", "argv", "env_set", "exit_code",
        "execution_time_ms", "category", "details", "success",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


# Global configuration state
_logging_initialized = False
_log_file_path: Optional[Path] = None


def configure_logging(
    level: int = logging.WARNING,
    log_dir: Optional[str] = None,
    console: bool = True,
    force: bool = False,
) -> Optional[Path]:
    """
    Configure the krabctl logging system.

    Args:
        level: Console logging level (default WARNING)
        log_dir: Directory for the JSON log file; no file logging if None
        console: Enable console output on stderr
        force: Reconfigure even if already configured

    Returns:
        Path of the log file, if file logging is enabled

    Raises:
        ConfigError: If log_dir cannot be created or the log file opened.
            Console logging is already in place when this is raised.
    """
    global _logging_initialized, _log_file_path

    if _logging_initialized and not force:
        return _log_file_path

    root_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.propagate = False
    _log_file_path = None

    run_filter = RunIdFilter()

    if console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            show_time=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        console_handler.addFilter(run_filter)
        root_logger.addHandler(console_handler)

    # The logger passes everything its handlers might want
    root_logger.setLevel(logging.DEBUG if log_dir else level)
    _logging_initialized = True

    if log_dir:
        log_path = Path(log_dir)
        try:
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path / LOG_FILE_NAME,
                maxBytes=1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            )
        except OSError as e:
            root_logger.setLevel(level)
            raise ConfigError(
                f"Cannot write logs to {log_dir}: {e.strerror or e}",
                {"log_dir": str(log_dir)},
            ) from e
        _log_file_path = log_path / LOG_FILE_NAME

        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(run_filter)
        root_logger.addHandler(file_handler)

    return _log_file_path


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the krabctl namespace.

    Args:
        name: Logger name (will be prefixed with 'krabctl.' if not already)
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    return logging.getLogger(name)


def log_run_end(
    run_id: str,
    command_id: str,
    exit_code: int,
    error: Optional[str] = None,
) -> None:
    """
    Log the end of a dispatch with summary information.

    This is the RUN_END boundary event for post-mortems.
    """
    logger = get_logger("core.run")

    extra = {
        "run_id": run_id,
        "command_id": command_id,
        "exit_code": exit_code,
        "success": exit_code == 0,
    }

    if exit_code == 0:
        logger.info(f"RUN_END: command={command_id}, exit_code=0", extra=extra)
    else:
        # Failures were already reported by the error handler.
        logger.debug(
            f"RUN_END: command={command_id}, exit_code={exit_code}, error={error or '-'}",
            extra=extra,
        )
