"""
Tests for coordinator/payloads.py
"""

import pytest

from coordinator.errors import ValidationError
from coordinator.models import SearchMode
from coordinator.payloads import (
    HybridSearchPayload,
    VectorSearchPayload,
    WebSearchPayload,
    build_payload,
    sanitize_query,
)


class TestSanitizeQuery:
    """Tests for query sanitization."""

    def test_strips_angle_brackets(self):
        assert sanitize_query("<b>fano</b>") == "bfano/b"

    def test_strips_javascript_scheme(self):
        assert sanitize_query("JavaScript:alert(1)") == "alert(1)"

    def test_strips_inline_handlers(self):
        assert sanitize_query("img onerror = x") == "img  x"

    def test_trims_whitespace(self):
        assert sanitize_query("   fano plane  ") == "fano plane"


class TestBuildPayload:
    """Tests for build_payload."""

    @pytest.mark.parametrize("task_type, cls, mode", [
        ("web-search", WebSearchPayload, SearchMode.WEB),
        ("vector-search", VectorSearchPayload, SearchMode.VECTOR),
        ("hybrid-search", HybridSearchPayload, SearchMode.HYBRID),
    ])
    def test_task_type_selects_variant(self, task_type, cls, mode):
        payload = build_payload(task_type, {"query": "fano plane"})
        assert isinstance(payload, cls)
        assert payload.mode == mode

    def test_generic_search_uses_search_type(self):
        payload = build_payload("search", {"query": "fano", "search_type": "vector"})
        assert isinstance(payload, VectorSearchPayload)

    def test_generic_search_requires_search_type(self):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("search", {"query": "fano"})
        assert exc_info.value.field == "search_type"

    def test_unknown_search_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("search", {"query": "fano", "search_type": "semantic"})
        assert exc_info.value.field == "search_type"

    def test_unknown_task_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("image-search", {"query": "fano"})
        assert exc_info.value.field == "type"

    def test_missing_query_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("web-search", {"max_results": 3})
        assert exc_info.value.field == "query"

    @pytest.mark.parametrize("query", ["", "   ", "<>", "javascript:"])
    def test_empty_query_rejected(self, query):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("web-search", {"query": query})
        assert exc_info.value.field == "query"

    def test_non_string_query_rejected(self):
        with pytest.raises(ValidationError):
            build_payload("web-search", {"query": 42})

    @pytest.mark.parametrize("max_results", [0, -1, 101])
    def test_max_results_bounds(self, max_results):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("web-search", {"query": "fano", "max_results": max_results})
        assert exc_info.value.field == "max_results"
        assert exc_info.value.details

    def test_payload_must_be_mapping(self):
        with pytest.raises(ValidationError):
            build_payload("web-search", "fano")

    def test_query_is_sanitized(self):
        payload = build_payload("web-search", {"query": "  <i>fano</i> "})
        assert payload.query == "ifano/i"

    def test_filters_and_defaults(self):
        payload = build_payload("vector-search", {"query": "fano", "filters": {"category": "geometry"}})
        assert payload.filters == {"category": "geometry"}
        assert payload.max_results is None

    def test_explicit_mode_in_payload_ignored(self):
        """The task type decides the mode, not a caller-supplied field."""
        payload = build_payload("web-search", {"query": "fano", "mode": "vector"})
        assert payload.mode == SearchMode.WEB

    def test_revalidates_existing_payload(self):
        original = build_payload("web-search", {"query": "fano"})
        again = build_payload("hybrid-search", original)
        assert again.mode == SearchMode.HYBRID
        assert again.query == "fano"
