"""
Data models for the coordinator.

Tasks move through a fixed lifecycle:

    pending -> assigned -> in_progress -> completed | failed

Every transition goes through a mark_* method, which stamps the matching
timestamp once and appends to the task's status history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .errors import InvalidTransitionError

if TYPE_CHECKING:
    from .payloads import SearchPayload


class TaskStatus(str, Enum):
    """Task lifecycle states."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.ASSIGNED},
    TaskStatus.ASSIGNED: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


class Priority(str, Enum):
    """Task priority tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class TaskType(str, Enum):
    """Task types, each naming the worker capability it requires."""
    SEARCH = "search"  # mode chosen by payload search_type
    WEB_SEARCH = "web-search"
    VECTOR_SEARCH = "vector-search"
    HYBRID_SEARCH = "hybrid-search"


class SearchMode(str, Enum):
    """Retrieval modes offered by the search worker."""
    WEB = "web"
    VECTOR = "vector"
    HYBRID = "hybrid"


TASK_TYPE_MODES = {
    TaskType.WEB_SEARCH: SearchMode.WEB,
    TaskType.VECTOR_SEARCH: SearchMode.VECTOR,
    TaskType.HYBRID_SEARCH: SearchMode.HYBRID,
}


class WorkerStatus(str, Enum):
    """Worker lifecycle states."""
    IDLE = "idle"
    BUSY = "busy"
    ERROR = "error"


class SourceType(str, Enum):
    """Where a search result came from."""
    WEB = "web"
    VECTOR = "vector"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class SearchResult:
    """A single ranked hit. relevance_score is always within [0, 1]."""
    id: str
    title: str
    url: str
    snippet: str
    relevance_score: float
    source_type: SourceType
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        self.relevance_score = clamp(float(self.relevance_score), 0.0, 1.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "relevance_score": self.relevance_score,
            "source_type": self.source_type.value,
            "metadata": self.metadata,
        }


@dataclass
class SearchResponse:
    """
    Fused answer set for one search task.

    When nothing was found, results is empty, no_results is True and the
    confidence score is pinned to its floor.
    """
    query: str
    mode: SearchMode
    results: list[SearchResult]
    confidence_score: float
    no_results: bool = False
    message: Optional[str] = None
    processing_time_ms: float = 0.0

    @property
    def total_results(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "mode": self.mode.value,
            "results": [r.to_dict() for r in self.results],
            "total_results": self.total_results,
            "confidence_score": self.confidence_score,
            "no_results": self.no_results,
            "message": self.message,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class Task:
    """
    A unit of retrieval work submitted to the coordinator.

    The payload has already been validated at submission; the assigned
    worker is set once and never changes.
    """
    id: str

    # Task type, also the worker capability it needs
    task_type: str

    payload: "SearchPayload"

    priority: Priority = Priority.MEDIUM

    status: TaskStatus = TaskStatus.PENDING

    assigned_worker: Optional[str] = None

    # Timestamps
    created_at: float = field(default_factory=lambda: datetime.now().timestamp())
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    # Exactly one of these is populated once terminal
    result: Optional[SearchResponse] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    # Submission order, breaks created_at ties
    sequence: int = 0

    # Every status the task has been in, in order
    history: list[TaskStatus] = field(default_factory=lambda: [TaskStatus.PENDING])

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def _transition(self, target: TaskStatus):
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target
        self.history.append(target)

    def mark_assigned(self, worker_id: str):
        """Bind the task to a worker and stamp started_at."""
        self._transition(TaskStatus.ASSIGNED)
        self.assigned_worker = worker_id
        self.started_at = datetime.now().timestamp()

    def mark_in_progress(self):
        """Mark task as executing on its worker."""
        self._transition(TaskStatus.IN_PROGRESS)

    def mark_completed(self, result: SearchResponse):
        """Mark task as completed."""
        self._transition(TaskStatus.COMPLETED)
        self.completed_at = datetime.now().timestamp()
        self.result = result

    def mark_failed(self, error: BaseException):
        """Mark task as failed, recording the error class and message."""
        self._transition(TaskStatus.FAILED)
        self.completed_at = datetime.now().timestamp()
        self.error_type = type(error).__name__
        self.error = f"{self.error_type}: {error}"

    def demote(self):
        """Drop the task to the lowest priority tier."""
        self.priority = Priority.LOW

    def to_dict(self) -> dict:
        """Serialize task to dictionary."""
        return {
            "id": self.id,
            "task_type": self.task_type,
            "payload": self.payload.model_dump(mode="json"),
            "priority": self.priority.value,
            "status": self.status.value,
            "assigned_worker": self.assigned_worker,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "error_type": self.error_type,
            "history": [s.value for s in self.history],
        }
