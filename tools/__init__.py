# Tools module - delegated tool execution
# One child process per command, no shell, no retries

from .executor import TaskExecutor, ExecutionResult, ExecutionContext, ExecutionStatus

__all__ = [
    "TaskExecutor",
    "ExecutionResult",
    "ExecutionContext",
    "ExecutionStatus",
]
