"""
Formatters for structured logging: JSON Lines for files, plain text for
the console.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .context import get_correlation_id, get_worker_id, get_request_id


class JsonLinesFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines (one JSON object per line).

    Each log entry includes:
    - timestamp: ISO 8601 with microseconds in UTC
    - level: Log level (DEBUG, INFO, WARNING, ERROR)
    - event_type: Dotted event identifier
    - module / component: Where the event was emitted
    - correlation_id: Task tracing ID
    - worker_id / request_id: When set in the current context
    - Additional event-specific fields
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "event_type": getattr(record, 'event_type', 'log'),
            "module": getattr(record, 'pool_module', record.module),
            "component": getattr(record, 'component', record.funcName),
            "correlation_id": get_correlation_id(),
        }

        worker_id = get_worker_id()
        if worker_id:
            log_entry["worker_id"] = worker_id

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if hasattr(record, 'event_data'):
            log_entry.update(record.event_data)

        if record.getMessage() and record.getMessage() != log_entry.get("event_type"):
            log_entry["message"] = record.getMessage()

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=self._json_serializer)

    def _json_serializer(self, obj: Any) -> Any:
        """Handle non-serializable objects."""
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        if hasattr(obj, '__dict__'):
            return str(obj)
        return repr(obj)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Format: timestamp [LEVEL] [module.component] event_type key=value ...
    """

    # Fields already shown in the prefix
    _SKIP = {"event_type", "pool_module", "component", "stack_trace"}

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        module = getattr(record, 'pool_module', record.module)
        component = getattr(record, 'component', '')
        event_type = getattr(record, 'event_type', '')

        prefix = f"{timestamp} [{record.levelname}]"
        if module and component:
            prefix += f" [{module}.{component}]"

        message = record.getMessage()
        if event_type and event_type != message:
            message = f"{event_type}: {message}" if message else event_type

        data = getattr(record, 'event_data', {})
        fields = " ".join(
            f"{key}={value}" for key, value in data.items() if key not in self._SKIP
        )
        if fields:
            message = f"{message} {fields}"

        return f"{prefix} {message}"
