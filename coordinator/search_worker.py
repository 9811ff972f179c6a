"""
Search worker: web, vector and hybrid retrieval.

Web mode scores hits by position with small boosts for authoritative
domains and recent dates. Vector mode embeds the query and uses cosine
similarity as relevance. Hybrid mode runs both concurrently on a split
budget and survives the failure of either side; it only fails when both
do.
"""

import asyncio
import hashlib
import math
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from shared.logging import get_logger

from .config import SearchConfig
from .errors import CoordinatorError, ProviderError, ValidationError
from .fusion import build_response
from .models import (
    SearchMode, SearchResponse, SearchResult, SourceType, Task, TaskType, clamp,
)
from .payloads import SearchPayload
from .providers import EmbeddingProvider, VectorIndex, WebSearchProvider
from .worker import Worker

log = get_logger("coordinator", "search_worker")

RANK_DECAY = 0.1
AUTHORITY_BOOST = 0.1
RECENCY_BOOST = 0.05
MIN_WEB_SCORE = 0.1
MAX_WEB_SCORE = 1.0


def _parse_date(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            text = value.strip()
            # fromisoformat only accepts a trailing "Z" from 3.11 on
            if text[-1:] in ("Z", "z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SearchWorker(Worker):
    """
    Worker offering web, vector and hybrid retrieval.

    Capabilities default to the modes its providers allow: a web provider
    enables web-search, an embedding provider plus a vector index enable
    vector-search, and both together enable hybrid-search.
    """

    worker_type = "search-worker"

    def __init__(
        self,
        worker_id: str,
        web_provider: Optional[WebSearchProvider] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        vector_index: Optional[VectorIndex] = None,
        config: Optional[SearchConfig] = None,
        capabilities: Optional[list[str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.web = web_provider
        self.embedder = embedding_provider
        self.index = vector_index
        self.config = config or SearchConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        if capabilities is None:
            capabilities = self._default_capabilities()
        super().__init__(worker_id, capabilities)

        self._stats = {
            "total_searches": 0,
            "successful_searches": 0,
            "failed_searches": 0,
            "average_response_time_ms": 0.0,
        }

    def _default_capabilities(self) -> list[str]:
        caps = []
        if self.web is not None:
            caps.append(TaskType.WEB_SEARCH.value)
        if self.embedder is not None and self.index is not None:
            caps.append(TaskType.VECTOR_SEARCH.value)
        if len(caps) == 2:
            caps.append(TaskType.HYBRID_SEARCH.value)
        if caps:
            caps.append(TaskType.SEARCH.value)
        return caps

    # ==================== Lifecycle ====================

    def _providers(self) -> list:
        return [p for p in (self.web, self.embedder, self.index) if p is not None]

    async def initialize(self):
        providers = self._providers()
        if not providers:
            raise ProviderError("search-worker", "no retrieval providers configured")

        for provider in providers:
            setup = getattr(provider, "initialize", None)
            if setup is not None:
                await setup()

        log.info("coordinator.search_worker.initialized",
                 worker_id=self.id, capabilities=sorted(self.capabilities))

    async def shutdown(self):
        for provider in self._providers():
            close = getattr(provider, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                log.exception(e, "coordinator.search_worker.provider_close_error",
                              {"worker_id": self.id, "provider": type(provider).__name__})

        log.info("coordinator.search_worker.shutdown", worker_id=self.id)

    # ==================== Execution ====================

    async def execute(self, task: Task) -> SearchResponse:
        payload: SearchPayload = task.payload
        if not isinstance(payload, SearchPayload):
            raise ValidationError("task payload was not validated", field="payload")

        started = time.perf_counter()
        self._stats["total_searches"] += 1
        limit = self._result_limit(payload)

        log.info("coordinator.search_worker.search_started",
                 task_id=task.id, mode=payload.mode.value, limit=limit)

        try:
            if payload.mode == SearchMode.WEB:
                results = await self.web_search(payload.query, limit)
            elif payload.mode == SearchMode.VECTOR:
                results = await self.vector_search(payload.query, limit, payload.filters)
            elif payload.mode == SearchMode.HYBRID:
                results = await self.hybrid_search(payload.query, limit, payload.filters)
            else:
                raise ValidationError(f"Unknown search mode: {payload.mode}", field="mode")
        except (CoordinatorError, asyncio.CancelledError):
            # A timeout or shutdown cancels mid-search; count it as failed
            self._stats["failed_searches"] += 1
            raise
        finally:
            self._record_response_time((time.perf_counter() - started) * 1000)

        self._stats["successful_searches"] += 1
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response = build_response(payload.query, payload.mode, results, limit, elapsed_ms)

        log.info("coordinator.search_worker.search_completed",
                 task_id=task.id, mode=payload.mode.value,
                 results=response.total_results,
                 confidence=round(response.confidence_score, 4),
                 no_results=response.no_results)
        return response

    def _result_limit(self, payload: SearchPayload) -> int:
        if payload.max_results is not None:
            return payload.max_results
        if payload.mode == SearchMode.VECTOR:
            return self.config.default_vector_results
        return self.config.default_max_results

    # ==================== Web ====================

    async def web_search(self, query: str, limit: int) -> list[SearchResult]:
        if self.web is None:
            raise ProviderError("web-search", "no web search provider configured")

        try:
            with log.provider_call("web-search", query, limit=limit) as call:
                hits = await self.web.search(query, limit)
                call.result_count = len(hits) if isinstance(hits, list) else None
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError("web-search", str(e) or type(e).__name__) from e

        if not isinstance(hits, list):
            raise ProviderError("web-search", "invalid search results format")

        try:
            results = [self._web_result(hit, index) for index, hit in enumerate(hits)]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderError("web-search", f"invalid result format: {e}") from e

        log.debug("coordinator.search_worker.web_results", count=len(results))
        return results

    def _web_result(self, hit: dict, index: int) -> SearchResult:
        if not isinstance(hit, dict):
            raise TypeError(f"hit {index} is {type(hit).__name__}, not an object")

        url = hit.get("url") or ""
        digest = hashlib.sha1(f"{index}:{url}".encode("utf-8")).hexdigest()[:10]
        return SearchResult(
            id=f"web_{index}_{digest}",
            title=hit.get("title") or f"Web Result {index + 1}",
            url=url,
            snippet=hit.get("snippet") or "",
            relevance_score=self.web_relevance(hit, index),
            source_type=SourceType.WEB,
            metadata={
                "domain": hit.get("domain"),
                "date": hit.get("date"),
                "rank": hit.get("rank", index),
            },
        )

    def web_relevance(self, hit: dict, position: int) -> float:
        """Position-decayed score with authority and recency boosts, in [0.1, 1.0]."""
        score = 1.0 - RANK_DECAY * position

        domain = (hit.get("domain") or "").lower()
        if domain and any(a.lower() in domain for a in self.config.authority_domains):
            score += AUTHORITY_BOOST

        if self._is_recent(hit.get("date")):
            score += RECENCY_BOOST

        return clamp(score, MIN_WEB_SCORE, MAX_WEB_SCORE)

    def _is_recent(self, value) -> bool:
        date = _parse_date(value)
        if date is None:
            return False
        diff_days = math.ceil(abs((self._clock() - date).total_seconds()) / 86400)
        return diff_days <= self.config.recency_days

    # ==================== Vector ====================

    async def vector_search(
        self, query: str, limit: int, filters: Optional[dict] = None
    ) -> list[SearchResult]:
        if self.embedder is None or self.index is None:
            raise ProviderError("vector-search", "no embedding provider or vector index configured")

        try:
            with log.provider_call("embedding", query):
                embedding = await self.embedder.embed(query)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError("embedding", str(e) or type(e).__name__) from e

        try:
            with log.provider_call("vector-index", query, k=limit) as call:
                matches = await self.index.similarity_search(embedding, limit, filters or {})
                call.result_count = len(matches) if isinstance(matches, list) else None
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError("vector-index", str(e) or type(e).__name__) from e

        if not isinstance(matches, list):
            raise ProviderError("vector-index", "invalid search results format")

        try:
            results = [self._vector_result(match) for match in matches]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderError("vector-index", f"invalid result format: {e}") from e

        log.debug("coordinator.search_worker.vector_results", count=len(results))
        return results

    def _vector_result(self, match: dict) -> SearchResult:
        metadata = match.get("metadata") or {}
        content = match.get("content") or ""
        snippet = content[:self.config.snippet_length]
        if len(content) > self.config.snippet_length:
            snippet += "..."
        return SearchResult(
            id=f"vector_{match['id']}",
            title=metadata.get("title") or "Document",
            url=metadata.get("url") or "",
            snippet=snippet,
            relevance_score=match.get("score", 0.0),
            source_type=SourceType.VECTOR,
            metadata=metadata,
        )

    # ==================== Hybrid ====================

    async def hybrid_search(
        self, query: str, limit: int, filters: Optional[dict] = None
    ) -> list[SearchResult]:
        """
        Run web and vector search concurrently on a split budget.

        Web gets floor(limit/2), vector gets ceil(limit/2). A failed side
        is logged and dropped; both failing raises ProviderError.
        """
        web_budget = limit // 2
        vector_budget = limit - web_budget

        outcomes = await asyncio.gather(
            self._web_share(query, web_budget),
            self.vector_search(query, vector_budget, filters),
            return_exceptions=True,
        )

        merged: list[SearchResult] = []
        failures = []
        for mode, outcome in zip((SearchMode.WEB, SearchMode.VECTOR), outcomes):
            if isinstance(outcome, Exception):
                failures.append((mode, outcome))
                log.warning("coordinator.search_worker.hybrid_mode_failed",
                            mode=mode.value,
                            error_class=type(outcome).__name__,
                            error=str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                merged.extend(outcome)

        if len(failures) == 2:
            summary = "; ".join(f"{mode.value}: {err}" for mode, err in failures)
            raise ProviderError("hybrid-search", f"all modes failed ({summary})") from failures[-1][1]

        merged.sort(key=lambda r: r.relevance_score, reverse=True)
        return merged[:limit]

    async def _web_share(self, query: str, budget: int) -> list[SearchResult]:
        # A budget of 1 leaves nothing for web
        if budget <= 0:
            return []
        return await self.web_search(query, budget)

    # ==================== Stats ====================

    def _record_response_time(self, elapsed_ms: float):
        total = self._stats["total_searches"]
        if total <= 1:
            self._stats["average_response_time_ms"] = elapsed_ms
        else:
            previous = self._stats["average_response_time_ms"]
            self._stats["average_response_time_ms"] = (previous * (total - 1) + elapsed_ms) / total

    def get_stats(self) -> dict:
        return dict(self._stats)
