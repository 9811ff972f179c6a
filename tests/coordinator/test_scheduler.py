"""
Tests for coordinator/scheduler.py
"""

from coordinator.models import Priority, TaskStatus
from coordinator.scheduler import ScoredTask, TaskQueue


class TestScoredTask:
    """Tests for queue entry ordering."""

    def test_higher_rank_first(self, make_task):
        task = make_task()
        high = ScoredTask(rank=3, created_at=10.0, sequence=2, task=task)
        low = ScoredTask(rank=1, created_at=1.0, sequence=1, task=task)
        assert high < low

    def test_older_first_within_rank(self, make_task):
        task = make_task()
        older = ScoredTask(rank=2, created_at=1.0, sequence=5, task=task)
        newer = ScoredTask(rank=2, created_at=2.0, sequence=1, task=task)
        assert older < newer

    def test_sequence_breaks_timestamp_ties(self, make_task):
        task = make_task()
        first = ScoredTask(rank=2, created_at=1.0, sequence=1, task=task)
        second = ScoredTask(rank=2, created_at=1.0, sequence=2, task=task)
        assert first < second
        assert not second < first


class TestTaskQueue:
    def test_pop_empty(self):
        assert TaskQueue().pop() is None
        assert TaskQueue().peek() is None

    def test_remove_from_middle(self, make_task):
        queue = TaskQueue()
        tasks = [make_task(created_at=float(i)) for i in range(4)]
        for task in tasks:
            queue.push(task)

        removed = queue.remove(tasks[1].id)

        assert removed is tasks[1]
        assert tasks[1].id not in queue
        assert [t.id for t in queue.ordered()] == [tasks[0].id, tasks[2].id, tasks[3].id]

    def test_remove_unknown(self, make_task):
        queue = TaskQueue()
        queue.push(make_task())
        assert queue.remove("missing") is None
        assert len(queue) == 1


class TestScheduler:
    """Tests for Scheduler ordering and bookkeeping."""

    def test_priority_order(self, scheduler, make_task):
        """critical > high > medium > low regardless of submission order."""
        low = make_task(priority=Priority.LOW, created_at=1.0)
        high = make_task(priority=Priority.HIGH, created_at=2.0)
        critical = make_task(priority=Priority.CRITICAL, created_at=3.0)
        medium = make_task(priority=Priority.MEDIUM, created_at=4.0)

        for task in (low, high, critical, medium):
            scheduler.submit(task)

        popped = [scheduler.pop_next() for _ in range(4)]
        assert popped == [critical, high, medium, low]
        assert scheduler.pop_next() is None

    def test_fifo_within_tier(self, scheduler, make_task):
        tasks = [make_task(priority=Priority.HIGH, created_at=float(10 - i)) for i in range(3)]
        for task in tasks:
            scheduler.submit(task)

        # Oldest created_at wins, not submission order
        assert scheduler.pop_next() is tasks[2]
        assert scheduler.pop_next() is tasks[1]
        assert scheduler.pop_next() is tasks[0]

    def test_identical_timestamps_keep_submission_order(self, scheduler, make_task):
        tasks = [make_task(created_at=100.0) for _ in range(5)]
        for task in tasks:
            scheduler.submit(task)

        assert [scheduler.pop_next() for _ in range(5)] == tasks
        assert [t.sequence for t in tasks] == [1, 2, 3, 4, 5]

    def test_requeue_demoted(self, scheduler, make_task):
        critical = make_task(priority=Priority.CRITICAL, created_at=1.0)
        medium = make_task(priority=Priority.MEDIUM, created_at=2.0)
        scheduler.submit(critical)
        scheduler.submit(medium)

        popped = scheduler.pop_next()
        scheduler.requeue_demoted(popped)

        assert critical.priority == Priority.LOW
        assert scheduler.queue.ordered() == [medium, critical]

    def test_remove_pending(self, scheduler, make_task):
        task = make_task()
        scheduler.submit(task)

        assert scheduler.remove_pending(task.id) is task
        assert scheduler.get_task(task.id) is None
        assert not scheduler.has_pending()

    def test_remove_pending_ignores_dispatched(self, scheduler, make_task):
        task = make_task()
        scheduler.submit(task)
        scheduler.pop_next()
        task.mark_assigned("worker-1")

        assert scheduler.remove_pending(task.id) is None
        assert scheduler.get_task(task.id) is task

    def test_remove_pending_unknown(self, scheduler):
        assert scheduler.remove_pending("nope") is None

    def test_popped_tasks_stay_tracked(self, scheduler, make_task):
        task = make_task()
        scheduler.submit(task)
        scheduler.pop_next()

        assert scheduler.get_task(task.id) is task
        assert scheduler.get_all_tasks() == [task]

    def test_queue_stats(self, scheduler, make_task):
        scheduler.submit(make_task(task_type="web-search"))
        scheduler.submit(make_task(task_type="vector-search"))
        done = make_task(task_type="vector-search")
        scheduler.submit(done)
        scheduler.queue.remove(done.id)
        done.mark_assigned("w")

        stats = scheduler.get_queue_stats()

        assert stats["total"] == 3
        assert stats["queue_depth"] == 2
        assert stats["by_status"] == {TaskStatus.PENDING.value: 2, TaskStatus.ASSIGNED.value: 1}
        assert stats["by_type"] == {"web-search": 1, "vector-search": 2}
