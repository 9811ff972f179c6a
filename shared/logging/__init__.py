"""
Structured logging for searchpool.

JSON Lines logging with tracing ids, so every line written while a task
executes can be traced back to that task and worker.

Usage:
    from shared.logging import get_logger, correlation_context

    log = get_logger("coordinator", "scheduler")

    with correlation_context(correlation_id=task.id):
        log.info("coordinator.scheduler.task_enqueued",
                 task_id=task.id, priority=task.priority.value)
"""

from .logger import get_logger, PoolLogger, ProviderCall
from .context import (
    correlation_context,
    get_correlation_id,
    get_worker_id,
    get_request_id,
)

__all__ = [
    "get_logger",
    "PoolLogger",
    "ProviderCall",
    "correlation_context",
    "get_correlation_id",
    "get_worker_id",
    "get_request_id",
]
