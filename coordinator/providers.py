"""
External retrieval providers.

The search worker talks to three collaborators through small protocols:

- WebSearchProvider.search(query, limit) -> [{title, url, snippet, rank, domain, date}]
- EmbeddingProvider.embed(text) -> [float] of a fixed dimension
- VectorIndex.similarity_search(vector, k, filters) -> [{id, content, metadata, score}]

Concrete implementations here cover local runs and tests: an httpx
client for a JSON web-search endpoint, a deterministic hash embedder and
an in-memory cosine-similarity index.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx
import numpy as np

from shared.logging import get_logger

from .errors import ProviderError

log = get_logger("providers", "retrieval")


class WebSearchProvider(Protocol):
    async def search(self, query: str, limit: int) -> list[dict]:
        ...


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> list[float]:
        ...


class VectorIndex(Protocol):
    async def similarity_search(
        self, vector: list[float], k: int, filters: Optional[dict] = None
    ) -> list[dict]:
        ...


# ==================== Web search ====================

class HttpWebSearchProvider:
    """
    Web search over a JSON HTTP endpoint.

    Sends GET <endpoint>?q=<query>&num=<limit> and accepts either a bare
    list of hits or an object with a "results" list. Hit fields are
    normalized to title/url/snippet/rank/domain/date.
    """

    name = "web-search"

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def initialize(self):
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
            self._owns_client = True

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def search(self, query: str, limit: int) -> list[dict]:
        if self._client is None:
            raise ProviderError(self.name, "provider not initialized")

        try:
            response = await self._client.get(
                self.endpoint, params={"q": query, "num": limit}
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            log.warning("providers.web_search.http_status",
                        endpoint=self.endpoint, status=e.response.status_code)
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.name, "response was not valid JSON") from e

        hits = data.get("results") if isinstance(data, dict) else data
        if not isinstance(hits, list):
            raise ProviderError(self.name, "invalid search results format")

        return [self._normalize(hit, i) for i, hit in enumerate(hits[:limit])
                if isinstance(hit, dict)]

    @staticmethod
    def _normalize(hit: dict, index: int) -> dict:
        return {
            "title": hit.get("title") or hit.get("name"),
            "url": hit.get("url", ""),
            "snippet": hit.get("snippet", ""),
            "rank": hit.get("rank", index),
            "domain": hit.get("domain") or hit.get("host_name"),
            "date": hit.get("date"),
        }


# ==================== Embeddings ====================

def _string_hash(text: str) -> int:
    """31-multiplier string hash folded to a signed 32-bit int, then abs()."""
    value = 0
    for ch in text:
        value = (value * 31 + ord(ch)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


class HashEmbeddingProvider:
    """
    Deterministic embeddings derived from a text hash.

    Not semantically meaningful: identical text maps to identical vectors,
    which is enough for local runs and tests.
    """

    name = "embedding"

    def __init__(self, dimension: int = 1536):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        seed = _string_hash(text)
        values = np.sin(seed + np.arange(self.dimension, dtype=np.float64)) * 0.5 + 0.5
        return values.tolist()


# ==================== Vector index ====================

@dataclass
class VectorDocument:
    """A stored document and its embedding."""
    id: str
    content: str
    embedding: np.ndarray
    metadata: dict = field(default_factory=dict)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; 0.0 for mismatched shapes or zero vectors."""
    if a.shape != b.shape:
        return 0.0
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


class InMemoryVectorIndex:
    """
    Brute-force cosine index over documents held in memory.

    Filters match metadata keys by exact equality.
    """

    name = "vector-index"

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension
        self._documents: dict[str, VectorDocument] = {}

    def add_document(
        self,
        doc_id: str,
        content: str,
        embedding: list[float],
        metadata: Optional[dict] = None,
    ):
        vector = np.asarray(embedding, dtype=np.float64)
        if self.dimension is not None and vector.shape != (self.dimension,):
            raise ValueError(
                f"embedding has dimension {vector.shape[0]}, expected {self.dimension}"
            )

        metadata = metadata or {}
        self._documents[doc_id] = VectorDocument(
            id=doc_id,
            content=content,
            embedding=vector,
            metadata={
                "title": metadata.get("title") or "Untitled",
                "url": metadata.get("url", ""),
                "source_type": metadata.get("source_type", "document"),
                "created_at": datetime.now().isoformat(),
                **{k: v for k, v in metadata.items() if k not in ("title",)},
            },
        )

    def delete_document(self, doc_id: str) -> bool:
        return self._documents.pop(doc_id, None) is not None

    def get_document(self, doc_id: str) -> Optional[VectorDocument]:
        return self._documents.get(doc_id)

    def clear(self):
        self._documents.clear()

    def count(self) -> int:
        return len(self._documents)

    async def similarity_search(
        self,
        vector: list[float],
        k: int,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict]:
        query = np.asarray(vector, dtype=np.float64)
        scored = []

        for doc in self._documents.values():
            if filters and any(doc.metadata.get(key) != value for key, value in filters.items()):
                continue
            scored.append((cosine_similarity(query, doc.embedding), doc))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            {
                "id": doc.id,
                "content": doc.content,
                "metadata": dict(doc.metadata),
                "score": score,
            }
            for score, doc in scored[:k]
        ]
