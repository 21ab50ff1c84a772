"""
task subpackage: per-request / per-job execution context.

- Task: trace id, log items, warnings and guarded execution for one unit of work
- ExecContext: cancellation/deadline handle carried by a task
"""

from .context import ExecContext
from .task import HTTP_TRACE_PREFIX, REQUEST_ID_KEY, Task, TaskLoggerAdapter

__all__ = [
    "ExecContext",
    "HTTP_TRACE_PREFIX",
    "REQUEST_ID_KEY",
    "Task",
    "TaskLoggerAdapter",
]
