"""
Typed task payloads.

Each task type carries a payload model tagged by its search mode. Raw
caller input is validated here, at submission, so malformed tasks never
reach the queue, a worker or a provider.
"""

import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import SearchMode, TaskType, TASK_TYPE_MODES

MAX_RESULTS_LIMIT = 100

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize_query(text: str) -> str:
    """Strip markup and script fragments from a query."""
    text = _ANGLE_BRACKETS.sub("", text)
    text = _JS_SCHEME.sub("", text)
    text = _INLINE_HANDLER.sub("", text)
    return text.strip()


class SearchPayload(BaseModel):
    """Fields shared by every search mode."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    query: str
    filters: dict[str, Any] = Field(default_factory=dict)
    max_results: Optional[int] = Field(default=None, ge=1, le=MAX_RESULTS_LIMIT)

    @field_validator("query")
    @classmethod
    def _clean_query(cls, value: str) -> str:
        cleaned = sanitize_query(value)
        if not cleaned:
            raise ValueError("query must not be empty")
        return cleaned


class WebSearchPayload(SearchPayload):
    mode: Literal[SearchMode.WEB] = SearchMode.WEB


class VectorSearchPayload(SearchPayload):
    mode: Literal[SearchMode.VECTOR] = SearchMode.VECTOR


class HybridSearchPayload(SearchPayload):
    mode: Literal[SearchMode.HYBRID] = SearchMode.HYBRID


AnySearchPayload = Annotated[
    Union[WebSearchPayload, VectorSearchPayload, HybridSearchPayload],
    Field(discriminator="mode"),
]

_payload_adapter = TypeAdapter(AnySearchPayload)


def resolve_mode(task_type: str, raw: dict) -> SearchMode:
    """Work out the search mode a task type (and payload) asks for."""
    try:
        kind = TaskType(task_type)
    except ValueError:
        raise ValidationError(f"Unknown task type: {task_type!r}", field="type")

    if kind != TaskType.SEARCH:
        return TASK_TYPE_MODES[kind]

    search_type = raw.get("search_type")
    if search_type is None:
        raise ValidationError("search tasks require a search_type", field="search_type")
    try:
        return SearchMode(search_type)
    except ValueError:
        raise ValidationError(f"Unknown search type: {search_type!r}", field="search_type")


def build_payload(task_type: str, raw: Any) -> SearchPayload:
    """
    Validate raw caller input into the payload model for task_type.

    Raises:
        ValidationError: unknown type/mode, missing or empty query, bad bounds
    """
    if isinstance(raw, SearchPayload):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        raise ValidationError("payload must be a mapping", field="payload")

    mode = resolve_mode(task_type, raw)
    data = {k: v for k, v in raw.items() if k not in ("search_type", "mode")}
    data["mode"] = mode

    try:
        return _payload_adapter.validate_python(data)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False)
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != mode.value]
        field = loc[0] if loc else None
        raise ValidationError(
            f"Invalid {task_type} payload: {first.get('msg', str(e))}",
            field=field,
            details=errors,
        ) from e
