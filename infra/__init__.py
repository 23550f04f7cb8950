# Infrastructure module - Logging and configuration

from .logging import (
    get_logger, configure_logging, RunContext,
    log_run_end, get_run_id, generate_run_id
)
from .config import ConfigManager, DEFAULT_CONFIG_FILE

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "RunContext",
    "log_run_end",
    "get_run_id",
    "generate_run_id",
    # Config
    "ConfigManager",
    "DEFAULT_CONFIG_FILE",
]
