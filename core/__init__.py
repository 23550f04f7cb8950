# Core module - Dispatcher and error policy
# This is the ONLY coordinator - every command goes through core.dispatcher
#
# core.dispatcher is not re-exported here: commands/ and tools/ import
# core.errors, and the dispatcher imports them.

from .errors import (
    ErrorHandler, DispatchError, ErrorCategory,
    KrabctlError, UnknownCommandError, PreconditionError,
    CommandMapError, ConfigError,
)

__all__ = [
    "ErrorHandler", "DispatchError", "ErrorCategory",
    "KrabctlError", "UnknownCommandError", "PreconditionError",
    "CommandMapError", "ConfigError",
]
