"""
Tracing ids for log lines.

Three ContextVars follow each asyncio task on their own:

- correlation_id: the task being executed (generated lazily if unset)
- worker_id: the worker executing it
- request_id: the external provider call in progress, else the task

The coordinator enters correlation_context() around every execution, so
concurrent executions and the two halves of a hybrid search never see
each other's ids.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_worker_id: ContextVar[str] = ContextVar("worker_id", default="")
_request_id: ContextVar[str] = ContextVar("request_id", default="")


def get_correlation_id() -> str:
    cid = _correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())
        _correlation_id.set(cid)
    return cid


def get_worker_id() -> Optional[str]:
    return _worker_id.get() or None


def get_request_id() -> Optional[str]:
    return _request_id.get() or None


@contextmanager
def correlation_context(
    correlation_id: Optional[str] = None,
    worker_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[str]:
    """
    Bind tracing ids for the duration of a block.

    Ids left as None keep their current value. Every id is restored on
    exit. Yields the correlation id in effect.

    Example:
        with correlation_context(correlation_id=task.id, worker_id=worker.id):
            result = await worker.execute(task)
    """
    if not correlation_id and not _correlation_id.get():
        correlation_id = str(uuid.uuid4())

    tokens = [
        (var, var.set(value))
        for var, value in (
            (_correlation_id, correlation_id),
            (_worker_id, worker_id),
            (_request_id, request_id),
        )
        if value
    ]
    try:
        yield get_correlation_id()
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
