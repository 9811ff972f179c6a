"""
Shared fixtures for coordinator tests.

Providers and workers here are in-process fakes; nothing touches the
network.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from coordinator.config import CoordinatorConfig, SearchConfig
from coordinator.main import Coordinator
from coordinator.models import Priority, SearchResponse, Task
from coordinator.payloads import build_payload
from coordinator.scheduler import Scheduler
from coordinator.search_worker import SearchWorker
from coordinator.worker import Worker

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeWebProvider:
    """Web provider returning canned hits (after an optional delay), or raising."""

    def __init__(
        self,
        hits: Optional[list] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.hits = hits or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    async def search(self, query: str, limit: int) -> list[dict]:
        self.calls.append((query, limit))
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.hits[:limit])

    async def close(self):
        self.closed = True


class FakeEmbedder:
    """Embedding provider returning a fixed vector, or raising."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return [1.0, 0.0, 0.0]


class FakeIndex:
    """Vector index returning canned matches, or raising."""

    def __init__(self, matches: Optional[list[dict]] = None, error: Optional[Exception] = None):
        self.matches = matches or []
        self.error = error
        self.calls: list[tuple[list[float], int, dict]] = []

    async def similarity_search(self, vector, k, filters=None):
        self.calls.append((vector, k, filters))
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return list(self.matches[:k])


class FakeWorker(Worker):
    """
    Controllable worker.

    Records the tasks it executes; can delay, fail on execute or fail
    on initialize.
    """

    worker_type = "fake-worker"

    def __init__(
        self,
        worker_id: str = "fake-1",
        capabilities: tuple = ("web-search", "vector-search", "hybrid-search", "search"),
        delay: float = 0.0,
        error: Optional[BaseException] = None,
        init_error: Optional[Exception] = None,
    ):
        super().__init__(worker_id, capabilities)
        self.delay = delay
        self.error = error
        self.init_error = init_error
        self.executed: list[Task] = []
        self.initialized = False
        self.shutdown_calls = 0

    async def initialize(self):
        if self.init_error:
            raise self.init_error
        self.initialized = True

    async def execute(self, task: Task) -> Any:
        self.executed.append(task)
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return SearchResponse(
            query=task.payload.query,
            mode=task.payload.mode,
            results=[],
            confidence_score=0.2,
            no_results=True,
        )

    async def shutdown(self):
        self.shutdown_calls += 1


def make_vector_matches(scores: list[float]) -> list[dict]:
    return [
        {
            "id": f"doc-{i}",
            "content": f"Document {i} about the Fano plane.",
            "metadata": {"title": f"Doc {i}", "url": f"https://docs.example.com/{i}"},
            "score": score,
        }
        for i, score in enumerate(scores)
    ]


@pytest.fixture
def fake_web_provider():
    return FakeWebProvider


@pytest.fixture
def fake_embedder():
    return FakeEmbedder


@pytest.fixture
def fake_index():
    return FakeIndex


@pytest.fixture
def fake_worker():
    """FakeWorker class, for building workers with custom behaviour."""
    return FakeWorker


@pytest.fixture
def vector_matches():
    """Factory for vector index matches with the given scores."""
    return make_vector_matches


@pytest.fixture
def search_config() -> SearchConfig:
    return SearchConfig()


@pytest.fixture
def make_search_worker(sample_web_hits, search_config):
    """
    Factory for SearchWorkers over fake providers.

    Defaults: three web hits, three vector matches, fixed clock.
    """
    def _create(
        web: Any = "default",
        embedder: Any = "default",
        index: Any = "default",
        worker_id: str = "search-1",
        **kwargs,
    ) -> SearchWorker:
        if web == "default":
            web = FakeWebProvider(hits=sample_web_hits)
        if embedder == "default":
            embedder = FakeEmbedder()
        if index == "default":
            index = FakeIndex(matches=make_vector_matches([0.9, 0.7, 0.4]))
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return SearchWorker(
            worker_id=worker_id,
            web_provider=web,
            embedding_provider=embedder,
            vector_index=index,
            config=search_config,
            **kwargs,
        )
    return _create


@pytest.fixture
def make_task():
    """Factory for validated tasks (bypassing the coordinator)."""
    counter = iter(range(1, 10_000))

    def _create(
        task_type: str = "web-search",
        query: str = "fano plane",
        priority: Priority = Priority.MEDIUM,
        created_at: Optional[float] = None,
        **payload,
    ) -> Task:
        n = next(counter)
        task = Task(
            id=f"task-{n:03d}",
            task_type=task_type,
            payload=build_payload(task_type, {"query": query, **payload}),
            priority=priority,
        )
        if created_at is not None:
            task.created_at = created_at
        return task
    return _create


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture
def coordinator_config() -> CoordinatorConfig:
    """Fast-ticking config for tests."""
    return CoordinatorConfig(dispatch_interval=0.01, execution_timeout=2.0, shutdown_grace=0.5)


@pytest.fixture
def coordinator(coordinator_config) -> Coordinator:
    return Coordinator(coordinator_config)
