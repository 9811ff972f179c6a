"""
Coordinator - composition root for the retrieval worker pool.

Ties together:
- Scheduler: priority queue of pending tasks
- WorkerRegistry: registered workers and their live status
- Dispatch loop: assigns queued tasks to idle, capable workers

Task execution runs as independent asyncio tasks; the dispatch loop
never waits on them.
"""

import asyncio
import uuid
from typing import Any, Optional, Union

from shared.logging import get_logger, correlation_context

from .config import CoordinatorConfig
from .errors import (
    CoordinatorError, TaskTimeoutError, ValidationError, WorkerUnavailableError,
)
from .models import PRIORITY_RANK, Priority, Task, TaskStatus, WorkerStatus
from .payloads import SearchPayload, build_payload
from .registry import WorkerRegistry
from .scheduler import Scheduler
from .worker import Worker

log = get_logger("coordinator", "main")


def _parse_priority(value: Union[str, Priority]) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise ValidationError(
            f"Unknown priority: {value!r} (expected one of "
            f"{', '.join(p.value for p in Priority)})",
            field="priority",
        )


class Coordinator:
    """
    Accepts retrieval tasks and runs them on a pool of workers.

    Provides:
    - Task submission, lookup, listing and pre-dispatch cancellation
    - Worker registration with initialization
    - A cooperative dispatch loop (start/stop)
    - Aggregate statistics
    """

    def __init__(self, config: Optional[CoordinatorConfig] = None):
        self.config = config or CoordinatorConfig()
        self.scheduler = Scheduler()
        self.registry = WorkerRegistry()

        self._running = False
        self._dispatch_task: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()
        self._inflight: set[asyncio.Task] = set()
        self._done_events: dict[str, asyncio.Event] = {}

    @property
    def running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "Coordinator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # ==================== Lifecycle ====================

    async def start(self):
        """Start the dispatch loop."""
        if self._running:
            return

        self._running = True
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())

        log.info("coordinator.started",
                 workers=len(self.registry),
                 pending=len(self.scheduler.queue),
                 dispatch_interval=self.config.dispatch_interval,
                 execution_timeout=self.config.execution_timeout)

    async def stop(self):
        """
        Stop dispatching, let in-flight tasks finish (bounded by
        shutdown_grace) and shut down all workers.
        """
        if not self._running and not len(self.registry) and not self._inflight:
            return

        log.info("coordinator.stopping", inflight=len(self._inflight))
        self._running = False
        self._wakeup.set()

        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        if self._inflight:
            done, pending = await asyncio.wait(
                set(self._inflight), timeout=self.config.shutdown_grace
            )
            for execution in pending:
                execution.cancel()
            if pending:
                log.warning("coordinator.inflight_cancelled", count=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        await self.registry.shutdown_all()

        log.info("coordinator.stopped")

    # ==================== Workers ====================

    async def register_worker(self, worker: Worker):
        """
        Initialize and register a worker.

        Raises:
            InitializationError: the worker failed to initialize
        """
        await self.registry.register(worker)
        worker.add_observer(self)
        self._wakeup.set()

    async def unregister_worker(self, worker_id: str) -> bool:
        """Shut down and remove a worker. Returns False if unknown."""
        worker = self.registry.get(worker_id)
        if worker is None:
            return False
        worker.remove_observer(self)
        await self.registry.unregister(worker_id)
        return True

    def on_worker_status_changed(self, worker: Worker, old: WorkerStatus, new: WorkerStatus):
        log.debug("coordinator.worker_status_changed",
                  worker_id=worker.id, old=old.value, new=new.value)
        if new == WorkerStatus.IDLE:
            self._wakeup.set()
        elif new == WorkerStatus.ERROR:
            log.warning("coordinator.worker_errored", worker_id=worker.id)

    # ==================== Tasks ====================

    def submit_task(
        self,
        task_type: str,
        payload: Union[dict, SearchPayload],
        priority: Union[str, Priority, None] = None,
    ) -> str:
        """
        Validate and enqueue a task.

        Args:
            task_type: "web-search", "vector-search", "hybrid-search" or "search"
            payload: query, optional filters and max_results (and search_type
                for "search" tasks)
            priority: low, medium, high or critical

        Returns:
            The new task id

        Raises:
            ValidationError: the task was rejected and not enqueued
        """
        level = _parse_priority(priority or self.config.default_priority)
        try:
            validated = build_payload(task_type, payload)
        except ValidationError as e:
            log.warning("coordinator.task_rejected",
                        task_type=task_type, field=e.field, error=str(e))
            raise

        task = Task(
            id=f"task_{uuid.uuid4().hex[:12]}",
            task_type=task_type,
            payload=validated,
            priority=level,
        )
        self._done_events[task.id] = asyncio.Event()
        self.scheduler.submit(task)
        self._wakeup.set()

        log.info("coordinator.task_submitted",
                 task_id=task.id, task_type=task_type,
                 priority=level.value, mode=validated.mode.value)
        return task.id

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.scheduler.get_task(task_id)

    def list_tasks(
        self,
        status: Union[str, TaskStatus, None] = None,
        task_type: Optional[str] = None,
        worker_id: Optional[str] = None,
    ) -> list[Task]:
        """Tasks matching every given filter, by priority then creation time."""
        try:
            wanted = TaskStatus(status) if status is not None else None
        except ValueError:
            raise ValidationError(f"Unknown task status: {status!r}", field="status")

        tasks = [
            task for task in self.scheduler.get_all_tasks()
            if (wanted is None or task.status == wanted)
            and (task_type is None or task.task_type == task_type)
            and (worker_id is None or task.assigned_worker == worker_id)
        ]
        tasks.sort(key=lambda t: (-PRIORITY_RANK[t.priority], t.created_at, t.sequence))
        return tasks

    def cancel_task(self, task_id: str) -> bool:
        """Remove a task that is still pending. In-flight tasks cannot be cancelled."""
        task = self.scheduler.remove_pending(task_id)
        if task is None:
            return False

        event = self._done_events.pop(task_id, None)
        if event:
            event.set()
        log.info("coordinator.task_cancelled", task_id=task_id)
        return True

    async def wait_for_task(self, task_id: str, timeout: Optional[float] = None) -> Optional[Task]:
        """
        Wait until a task is terminal (or cancelled) and return it.

        Raises asyncio.TimeoutError if it does not finish in time.
        """
        event = self._done_events.get(task_id)
        if event is not None:
            await asyncio.wait_for(event.wait(), timeout)
        return self.get_task(task_id)

    # ==================== Dispatch ====================

    async def dispatch_once(self) -> bool:
        """
        Run one dispatch step.

        Pops tasks in priority order until one can be assigned. Tasks
        with no idle capable worker are demoted to low priority and
        requeued. Nothing is popped while every worker is busy.

        Returns True if a task was handed to a worker.
        """
        if not self.scheduler.has_pending() or not self.registry.has_idle_workers():
            return False

        unassigned: list[Task] = []
        assigned = False
        for _ in range(len(self.scheduler.queue)):
            task = self.scheduler.pop_next()
            if task is None:
                break
            try:
                worker = self.registry.require_idle_worker(task.task_type)
            except WorkerUnavailableError as e:
                log.info("coordinator.no_worker_available",
                         task_id=task.id, task_type=e.task_type)
                unassigned.append(task)
                continue

            self._assign(task, worker)
            assigned = True
            break

        for task in unassigned:
            self.scheduler.requeue_demoted(task)

        return assigned

    def _assign(self, task: Task, worker: Worker):
        task.mark_assigned(worker.id)
        worker.set_status(WorkerStatus.BUSY)

        log.info("coordinator.task_assigned",
                 task_id=task.id, worker_id=worker.id,
                 task_type=task.task_type, priority=task.priority.value)

        execution = asyncio.create_task(self._execute(worker, task))
        self._inflight.add(execution)
        execution.add_done_callback(self._inflight.discard)

    async def _execute(self, worker: Worker, task: Task):
        """Run a task on its worker and record the outcome."""
        with correlation_context(correlation_id=task.id, worker_id=worker.id,
                                 request_id=task.id):
            task.mark_in_progress()
            next_status = WorkerStatus.IDLE
            timeout = self.config.execution_timeout

            try:
                if timeout:
                    result = await asyncio.wait_for(worker.execute(task), timeout)
                else:
                    result = await worker.execute(task)
            except asyncio.TimeoutError:
                error = TaskTimeoutError(task.id, timeout)
                task.mark_failed(error)
                log.error("coordinator.task_timed_out",
                          task_id=task.id, worker_id=worker.id, timeout=timeout)
            except CoordinatorError as e:
                task.mark_failed(e)
                log.error("coordinator.task_failed",
                          task_id=task.id, worker_id=worker.id,
                          error_type=type(e).__name__, error=str(e))
            except asyncio.CancelledError:
                task.mark_failed(CoordinatorError("execution cancelled during shutdown"))
                log.warning("coordinator.task_cancelled_inflight", task_id=task.id)
                raise
            except Exception as e:
                # Unexpected fault: take the worker out of rotation
                task.mark_failed(e)
                next_status = WorkerStatus.ERROR
                log.exception(e, "coordinator.task_execution_error", {
                    "task_id": task.id,
                    "worker_id": worker.id,
                })
            else:
                task.mark_completed(result)
                log.info("coordinator.task_completed",
                         task_id=task.id, worker_id=worker.id,
                         duration_ms=round((task.completed_at - task.started_at) * 1000, 2))
            finally:
                worker.set_status(next_status)
                event = self._done_events.pop(task.id, None)
                if event:
                    event.set()

    async def _dispatch_loop(self):
        """Assign tasks whenever work and an idle worker are both available."""
        while self._running:
            try:
                self._wakeup.clear()
                if await self.dispatch_once():
                    await asyncio.sleep(0)
                    continue
                try:
                    await asyncio.wait_for(self._wakeup.wait(), self.config.dispatch_interval)
                except asyncio.TimeoutError:
                    pass
            except asyncio.CancelledError:
                break
            except Exception as e:
                log.exception(e, "coordinator.dispatch_error", {})
                await asyncio.sleep(self.config.dispatch_interval)

    # ==================== Stats ====================

    def stats(self) -> dict:
        """Aggregate worker and task counts."""
        tasks = self.scheduler.get_all_tasks()
        counts = {status: 0 for status in TaskStatus}
        for task in tasks:
            counts[task.status] += 1

        return {
            "total_workers": len(self.registry),
            "busy_workers": self.registry.count_by_status(WorkerStatus.BUSY),
            "total_tasks": len(tasks),
            "pending": counts[TaskStatus.PENDING],
            "in_progress": counts[TaskStatus.IN_PROGRESS],
            "completed": counts[TaskStatus.COMPLETED],
            "failed": counts[TaskStatus.FAILED],
        }

    def status(self) -> dict:
        """Full status report: stats plus queue and per-worker detail."""
        workers = {}
        for worker in self.registry.get_all():
            info: dict[str, Any] = worker.describe()
            get_stats = getattr(worker, "get_stats", None)
            if get_stats is not None:
                info["stats"] = get_stats()
            workers[worker.id] = info

        return {
            "running": self._running,
            "stats": self.stats(),
            "queue": self.scheduler.get_queue_stats(),
            "inflight": len(self._inflight),
            "workers": workers,
        }
