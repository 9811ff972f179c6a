"""
Worker abstraction.

A worker owns a capability set (the task types it can run) and a status:

    idle -> busy -> idle        normal execution
    any  -> error               initialization failure or unexpected fault

Status changes are pushed to subscribed WorkerObserver objects. The
coordinator subscribes to every registered worker.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Protocol

from shared.logging import get_logger

from .models import Task, WorkerStatus

log = get_logger("coordinator", "worker")


class WorkerObserver(Protocol):
    """Receives worker status changes."""

    def on_worker_status_changed(
        self, worker: "Worker", old: WorkerStatus, new: WorkerStatus
    ) -> None:
        ...


class Worker(ABC):
    """
    Abstract unit of execution.

    Subclasses implement initialize/execute/shutdown. The coordinator
    drives status changes around execute(); workers only set their own
    status for faults they detect themselves.
    """

    worker_type = "worker"

    def __init__(self, worker_id: str, capabilities: Iterable[str]):
        self._id = worker_id
        self._capabilities = frozenset(str(c) for c in capabilities)
        self._status = WorkerStatus.IDLE
        self._observers: list[WorkerObserver] = []

    @property
    def id(self) -> str:
        return self._id

    @property
    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    @property
    def status(self) -> WorkerStatus:
        return self._status

    @property
    def is_idle(self) -> bool:
        return self._status == WorkerStatus.IDLE

    def can_handle(self, task_type: str) -> bool:
        return task_type in self._capabilities

    def add_observer(self, observer: WorkerObserver):
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: WorkerObserver):
        if observer in self._observers:
            self._observers.remove(observer)

    def set_status(self, status: WorkerStatus):
        """Change status and notify observers."""
        old = self._status
        if old == status:
            return
        self._status = status

        for observer in list(self._observers):
            try:
                observer.on_worker_status_changed(self, old, status)
            except Exception as e:
                log.exception(e, "coordinator.worker.observer_error", {
                    "worker_id": self._id,
                    "status": status.value,
                })

    def describe(self) -> dict:
        return {
            "id": self._id,
            "type": self.worker_type,
            "capabilities": sorted(self._capabilities),
            "status": self._status.value,
        }

    @abstractmethod
    async def initialize(self):
        """
        Set up providers.

        Raising here keeps the worker out of the registry.
        """
        pass

    @abstractmethod
    async def execute(self, task: Task) -> Any:
        """
        Run a task and return its result.

        Raises a CoordinatorError subclass for expected failures.
        """
        pass

    @abstractmethod
    async def shutdown(self):
        """Release provider handles. Must be safe to call more than once."""
        pass
