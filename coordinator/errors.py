"""
Error taxonomy for the coordinator.

Validation and initialization errors surface synchronously to callers.
Provider and timeout errors are captured into the failing task.
WorkerUnavailableError never leaves the dispatch loop.
"""

from typing import Optional


class CoordinatorError(Exception):
    """Base class for all coordinator errors."""


class ValidationError(CoordinatorError):
    """A task payload is malformed or missing required fields."""

    def __init__(self, message: str, field: Optional[str] = None, details: list = None):
        super().__init__(message)
        self.field = field
        self.details = details or []


class WorkerUnavailableError(CoordinatorError):
    """No idle worker currently supports the requested capability."""

    def __init__(self, task_type: str):
        super().__init__(f"No idle worker available for task type '{task_type}'")
        self.task_type = task_type


class ProviderError(CoordinatorError):
    """An external search, embedding or index call failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class InitializationError(CoordinatorError):
    """A worker failed to initialize and was not registered."""

    def __init__(self, worker_id: str, message: str):
        super().__init__(f"Worker {worker_id} failed to initialize: {message}")
        self.worker_id = worker_id


class TaskTimeoutError(CoordinatorError):
    """A worker did not finish a task within the execution timeout."""

    def __init__(self, task_id: str, timeout: float):
        super().__init__(f"Task {task_id} exceeded execution timeout of {timeout}s")
        self.task_id = task_id
        self.timeout = timeout


class InvalidTransitionError(CoordinatorError):
    """A task status change outside the allowed lifecycle."""

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(f"Task {task_id} cannot move from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target
