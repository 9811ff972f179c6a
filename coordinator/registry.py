"""
Worker registry.

Tracks registered workers and answers "which idle worker can handle
task type X". Registration initializes the worker first; a worker whose
initialize() fails is marked as errored and never registered.
"""

from typing import Optional

from shared.logging import get_logger

from .errors import InitializationError, WorkerUnavailableError
from .models import WorkerStatus
from .worker import Worker

log = get_logger("coordinator", "registry")


class WorkerRegistry:
    """
    Registry of live workers, in registration order.
    """

    def __init__(self):
        self._workers: dict[str, Worker] = {}

    async def register(self, worker: Worker):
        """
        Initialize and register a worker.

        Raises:
            InitializationError: initialize() failed or the id is taken
        """
        if worker.id in self._workers:
            raise InitializationError(worker.id, "a worker with this id is already registered")

        try:
            await worker.initialize()
        except Exception as e:
            worker.set_status(WorkerStatus.ERROR)
            log.exception(e, "coordinator.registry.worker_init_failed", {
                "worker_id": worker.id,
                "worker_type": worker.worker_type,
            })
            raise InitializationError(worker.id, str(e)) from e

        self._workers[worker.id] = worker
        log.info("coordinator.registry.worker_registered",
                 worker_id=worker.id,
                 worker_type=worker.worker_type,
                 capabilities=sorted(worker.capabilities))

    async def unregister(self, worker_id: str) -> Optional[Worker]:
        """Remove a worker and shut it down. Returns it, or None if unknown."""
        worker = self._workers.pop(worker_id, None)
        if worker is None:
            return None

        if worker.status == WorkerStatus.BUSY:
            log.warning("coordinator.registry.unregister_busy", worker_id=worker_id)

        try:
            await worker.shutdown()
        except Exception as e:
            log.exception(e, "coordinator.registry.worker_shutdown_error",
                          {"worker_id": worker_id})

        log.info("coordinator.registry.worker_unregistered", worker_id=worker_id)
        return worker

    def get(self, worker_id: str) -> Optional[Worker]:
        return self._workers.get(worker_id)

    def get_all(self) -> list[Worker]:
        return list(self._workers.values())

    def find_idle_worker(self, task_type: str) -> Optional[Worker]:
        """First idle worker whose capabilities include task_type."""
        for worker in self._workers.values():
            if worker.is_idle and worker.can_handle(task_type):
                return worker
        return None

    def require_idle_worker(self, task_type: str) -> Worker:
        """Like find_idle_worker, but raises WorkerUnavailableError."""
        worker = self.find_idle_worker(task_type)
        if worker is None:
            raise WorkerUnavailableError(task_type)
        return worker

    def has_idle_workers(self) -> bool:
        return any(w.is_idle for w in self._workers.values())

    def count_by_status(self, status: WorkerStatus) -> int:
        return sum(1 for w in self._workers.values() if w.status == status)

    async def shutdown_all(self):
        """Shut down and forget every worker."""
        for worker_id in list(self._workers):
            await self.unregister(worker_id)

        log.info("coordinator.registry.all_workers_shutdown")

    def __len__(self) -> int:
        return len(self._workers)

    def __contains__(self, worker_id: str) -> bool:
        return worker_id in self._workers
