"""
Scheduler for the coordinator.

Holds every submitted task and the queue of pending ones:
- Priority ordering: critical > high > medium > low
- FIFO within a tier (created_at, then submission sequence)
- Demotion: a task no idle worker can take is requeued at low priority

Only the dispatch loop mutates the queue, so no locking is needed.
"""

import heapq
import itertools
from dataclasses import dataclass
from typing import Optional

from shared.logging import get_logger

from .models import Task, TaskStatus

log = get_logger("coordinator", "scheduler")


@dataclass
class ScoredTask:
    """Queue entry; the ordering key is captured when the task is pushed."""
    rank: int
    created_at: float
    sequence: int
    task: Task

    def __lt__(self, other):
        # Higher rank first, then oldest, then first submitted
        if self.rank != other.rank:
            return self.rank > other.rank
        if self.created_at != other.created_at:
            return self.created_at < other.created_at
        return self.sequence < other.sequence


class TaskQueue:
    """Binary heap of pending tasks."""

    def __init__(self):
        self._heap: list[ScoredTask] = []

    def push(self, task: Task):
        heapq.heappush(
            self._heap,
            ScoredTask(task.priority.rank, task.created_at, task.sequence, task),
        )

    def pop(self) -> Optional[Task]:
        if not self._heap:
            return None
        return heapq.heappop(self._heap).task

    def peek(self) -> Optional[Task]:
        return self._heap[0].task if self._heap else None

    def remove(self, task_id: str) -> Optional[Task]:
        """Remove a task from anywhere in the queue."""
        for i, entry in enumerate(self._heap):
            if entry.task.id == task_id:
                self._heap[i] = self._heap[-1]
                self._heap.pop()
                heapq.heapify(self._heap)
                return entry.task
        return None

    def ordered(self) -> list[Task]:
        """Tasks in dispatch order (does not modify the queue)."""
        return [entry.task for entry in sorted(self._heap)]

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, task_id: str) -> bool:
        return any(entry.task.id == task_id for entry in self._heap)


class Scheduler:
    """
    Tracks submitted tasks and orders the pending ones.
    """

    def __init__(self):
        self.queue = TaskQueue()
        self._tasks: dict[str, Task] = {}
        self._sequence = itertools.count(1)

    def submit(self, task: Task):
        """Track a new task and enqueue it."""
        task.sequence = next(self._sequence)
        self._tasks[task.id] = task
        self.queue.push(task)

        log.info("coordinator.scheduler.task_enqueued",
                 task_id=task.id, task_type=task.task_type,
                 priority=task.priority.value, queue_depth=len(self.queue))

    def pop_next(self) -> Optional[Task]:
        """Remove and return the highest priority, oldest pending task."""
        return self.queue.pop()

    def requeue_demoted(self, task: Task):
        """Put an unassignable task back at the lowest priority tier."""
        original = task.priority
        task.demote()
        self.queue.push(task)

        log.info("coordinator.scheduler.task_demoted",
                 task_id=task.id, task_type=task.task_type,
                 from_priority=original.value, to_priority=task.priority.value)

    def remove_pending(self, task_id: str) -> Optional[Task]:
        """
        Drop a task that has not been dispatched yet.

        Returns the removed task, or None if it is unknown or already
        left the queue.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status != TaskStatus.PENDING:
            return None

        self.queue.remove(task_id)
        del self._tasks[task_id]

        log.info("coordinator.scheduler.task_removed", task_id=task_id)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def get_all_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def has_pending(self) -> bool:
        return len(self.queue) > 0

    def get_queue_stats(self) -> dict:
        """Get statistics about tracked tasks."""
        by_status = {}
        by_type = {}

        for task in self._tasks.values():
            by_status[task.status.value] = by_status.get(task.status.value, 0) + 1
            by_type[task.task_type] = by_type.get(task.task_type, 0) + 1

        return {
            "total": len(self._tasks),
            "queue_depth": len(self.queue),
            "by_status": by_status,
            "by_type": by_type,
        }
