"""
PoolLogger - structured event logging for searchpool.

Every event is a dotted identifier plus keyword fields. Events go to a
rotating JSON Lines file per module and, at INFO and above, to the
console.
"""

import logging
import os
import time
import traceback
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

from .context import correlation_context
from .formatters import JsonLinesFormatter, ConsoleFormatter

LOG_DIR_ENV = "SEARCHPOOL_LOG_DIR"
MAX_LOG_BYTES = 50 * 1024 * 1024
LOG_BACKUPS = 10

# module.component -> logger
_loggers: dict[str, "PoolLogger"] = {}

_log_dir: Optional[Path] = None


def _get_log_dir() -> Path:
    """Resolve the log directory once: $SEARCHPOOL_LOG_DIR, else <project>/logs."""
    global _log_dir
    if _log_dir is None:
        override = os.environ.get(LOG_DIR_ENV)
        if override:
            _log_dir = Path(override)
        else:
            # Project root is the directory holding shared/
            here = Path(__file__).resolve()
            root = next((p for p in here.parents if (p / "shared").is_dir()), None)
            _log_dir = root / "logs" if root else Path("logs")

        _log_dir.mkdir(parents=True, exist_ok=True)
    return _log_dir


def get_logger(module: str, component: str, console: bool = True) -> "PoolLogger":
    """
    Get or create the logger for a module/component pair.

    Args:
        module: Top-level area (coordinator, providers, cli); names the log file
        component: Part of that area (scheduler, registry, search_worker)
        console: Also echo INFO+ events to stderr
    """
    key = f"{module}.{component}"
    if key not in _loggers:
        _loggers[key] = PoolLogger(module, component, console)
    return _loggers[key]


@dataclass
class ProviderCall:
    """One in-flight call to an external retrieval provider."""
    provider: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    result_count: Optional[int] = None
    started: float = field(default_factory=time.perf_counter)

    @property
    def duration_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 2)


class PoolLogger:
    """
    Structured logger bound to one module/component.

    Log lines carry the correlation, worker and request ids of the
    current context (see shared.logging.context).
    """

    def __init__(self, module: str, component: str, console: bool = True):
        self.module = module
        self.component = component
        self._logger = logging.getLogger(f"searchpool.{module}.{component}")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._logger.handlers.clear()
        self._attach_handlers(console)

    def _attach_handlers(self, console: bool):
        file_handler = RotatingFileHandler(
            _get_log_dir() / f"{self.module}.jsonl",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonLinesFormatter())
        self._logger.addHandler(file_handler)

        if console:
            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(logging.INFO)
            stream_handler.setFormatter(ConsoleFormatter())
            self._logger.addHandler(stream_handler)

    def event(self, event_type: str, level: str = "INFO", **data: Any) -> None:
        """
        Log a structured event.

        Args:
            event_type: Dotted identifier, e.g. "coordinator.task_completed"
            level: DEBUG, INFO, WARNING or ERROR
            **data: Event fields
        """
        tags = {"event_type": event_type, "pool_module": self.module, "component": self.component}
        self._logger.log(
            getattr(logging, level.upper(), logging.INFO),
            event_type,
            extra={**tags, "event_data": {**tags, **data}},
        )

    def debug(self, event_type: str, **data: Any) -> None:
        self.event(event_type, level="DEBUG", **data)

    def info(self, event_type: str, **data: Any) -> None:
        self.event(event_type, level="INFO", **data)

    def warning(self, event_type: str, **data: Any) -> None:
        self.event(event_type, level="WARNING", **data)

    def error(self, event_type: str, **data: Any) -> None:
        self.event(event_type, level="ERROR", **data)

    def exception(
        self,
        error: BaseException,
        event_type: str = "error",
        context: Optional[dict] = None,
    ) -> None:
        """Log an exception with its class, message and stack trace."""
        self.event(
            event_type,
            level="ERROR",
            error_class=type(error).__name__,
            error_message=str(error),
            stack_trace="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            context=context or {},
        )

    @contextmanager
    def provider_call(self, provider: str, query: str, **fields: Any) -> Iterator[ProviderCall]:
        """
        Time and log one call to an external retrieval provider.

        Logs <module>.provider.start, then .complete (with the result count
        set on the yielded ProviderCall) or .error if the block raises.
        The call's request id is in context only for the block. Exceptions
        propagate unchanged.

        Example:
            with log.provider_call("web-search", query, limit=limit) as call:
                hits = await provider.search(query, limit)
                call.result_count = len(hits)
        """
        call = ProviderCall(provider=provider)
        with correlation_context(request_id=call.request_id):
            self.debug(f"{self.module}.provider.start",
                       provider=provider, query_length=len(query), **fields)
            try:
                yield call
            except Exception as e:
                cause = e.__cause__ or e
                self.error(f"{self.module}.provider.error",
                           provider=provider,
                           error_class=type(cause).__name__,
                           error=str(e) or type(e).__name__,
                           duration_ms=call.duration_ms,
                           **fields)
                raise
            self.debug(f"{self.module}.provider.complete",
                       provider=provider,
                       result_count=call.result_count,
                       duration_ms=call.duration_ms,
                       **fields)
