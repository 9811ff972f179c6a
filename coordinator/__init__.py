"""
searchpool coordinator - priority task scheduling over a pool of
retrieval workers.

- Priority + FIFO task queue with demotion of unassignable tasks
- Capability-based worker registry
- Search worker with web, vector and hybrid retrieval
- Rank fusion and confidence scoring over the merged results
"""

from .models import (
    Task,
    TaskStatus,
    TaskType,
    Priority,
    SearchMode,
    SearchResult,
    SearchResponse,
    SourceType,
    WorkerStatus,
)
from .errors import (
    CoordinatorError,
    ValidationError,
    WorkerUnavailableError,
    ProviderError,
    InitializationError,
    TaskTimeoutError,
    InvalidTransitionError,
)
from .payloads import (
    SearchPayload,
    WebSearchPayload,
    VectorSearchPayload,
    HybridSearchPayload,
    build_payload,
)
from .config import CoordinatorConfig, SearchConfig, Settings, load_config
from .scheduler import Scheduler, TaskQueue
from .worker import Worker, WorkerObserver
from .registry import WorkerRegistry
from .providers import HttpWebSearchProvider, HashEmbeddingProvider, InMemoryVectorIndex
from .search_worker import SearchWorker
from .fusion import fuse_results, confidence_score, build_response
from .main import Coordinator

__all__ = [
    # Models
    "Task",
    "TaskStatus",
    "TaskType",
    "Priority",
    "SearchMode",
    "SearchResult",
    "SearchResponse",
    "SourceType",
    "WorkerStatus",
    # Errors
    "CoordinatorError",
    "ValidationError",
    "WorkerUnavailableError",
    "ProviderError",
    "InitializationError",
    "TaskTimeoutError",
    "InvalidTransitionError",
    # Payloads
    "SearchPayload",
    "WebSearchPayload",
    "VectorSearchPayload",
    "HybridSearchPayload",
    "build_payload",
    # Config
    "CoordinatorConfig",
    "SearchConfig",
    "Settings",
    "load_config",
    # Scheduling
    "Scheduler",
    "TaskQueue",
    "Worker",
    "WorkerObserver",
    "WorkerRegistry",
    # Search
    "HttpWebSearchProvider",
    "HashEmbeddingProvider",
    "InMemoryVectorIndex",
    "SearchWorker",
    "fuse_results",
    "confidence_score",
    "build_response",
    # Main
    "Coordinator",
]
