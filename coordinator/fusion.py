"""
Rank fusion and confidence scoring.

Results from one or more retrieval modes are deduplicated by id (keeping
the higher score), sorted by relevance and truncated. The confidence
score summarizes the fused set:

    confidence = 0.5 + min(0.3, count * 0.05) + avg_relevance * 0.2

clamped to [0, 0.95], and fixed at 0.2 when nothing was found.
"""

from typing import Iterable

from .models import SearchMode, SearchResponse, SearchResult, clamp

CONFIDENCE_BASE = 0.5
CONFIDENCE_PER_RESULT = 0.05
CONFIDENCE_COUNT_CAP = 0.3
CONFIDENCE_RELEVANCE_WEIGHT = 0.2
CONFIDENCE_CEILING = 0.95
NO_RESULTS_CONFIDENCE = 0.2


def fuse_results(results: Iterable[SearchResult], limit: int) -> list[SearchResult]:
    """Deduplicate by id, sort by relevance (descending) and keep the top `limit`."""
    best: dict[str, SearchResult] = {}
    for result in results:
        current = best.get(result.id)
        if current is None or result.relevance_score > current.relevance_score:
            best[result.id] = result

    # sorted() is stable, so equal scores keep first-seen order
    ranked = sorted(best.values(), key=lambda r: r.relevance_score, reverse=True)
    return ranked[:max(limit, 0)]


def confidence_score(results: list[SearchResult]) -> float:
    if not results:
        return NO_RESULTS_CONFIDENCE

    count = len(results)
    avg_relevance = sum(r.relevance_score for r in results) / count
    score = (
        CONFIDENCE_BASE
        + min(CONFIDENCE_COUNT_CAP, count * CONFIDENCE_PER_RESULT)
        + avg_relevance * CONFIDENCE_RELEVANCE_WEIGHT
    )
    return clamp(score, 0.0, CONFIDENCE_CEILING)


def build_response(
    query: str,
    mode: SearchMode,
    results: Iterable[SearchResult],
    limit: int,
    processing_time_ms: float = 0.0,
) -> SearchResponse:
    """Fuse results and wrap them with a confidence score."""
    fused = fuse_results(results, limit)
    if not fused:
        return SearchResponse(
            query=query,
            mode=mode,
            results=[],
            confidence_score=NO_RESULTS_CONFIDENCE,
            no_results=True,
            message=f"No information found for: {query}",
            processing_time_ms=processing_time_ms,
        )

    return SearchResponse(
        query=query,
        mode=mode,
        results=fused,
        confidence_score=confidence_score(fused),
        processing_time_ms=processing_time_ms,
    )
