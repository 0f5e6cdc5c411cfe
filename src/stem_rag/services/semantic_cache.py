# src/stem_rag/services/semantic_cache.py
"""
Semantic query cache for the RAG pipeline.

Recognizes when a new query is equivalent to a recently seen one, either
textually (same normalized text) or semantically (embedding similarity above a
threshold), and hands back the results retrieved for it. On a miss the caller
retrieves fresh results and reports them back with ``store``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union
import hashlib
import time

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from ..schemas import EmbeddedChunk, RetrievedChunk
from ..utils.monitoring import (
    logger,
    cache_hits,
    cache_misses,
    cache_evictions,
    cache_size,
    error_counter,
)
from ..utils.similarity import cosine_similarity

ResultRow = Union[RetrievedChunk, Mapping[str, Any]]


class EmbeddingGenerator(Protocol):
    """Anything that turns text into embedded chunks (see EmbeddingService)"""

    async def generate_embeddings(self, content: str) -> List[EmbeddedChunk]:
        ...


@dataclass(frozen=True)
class QueryCacheEntry:
    """A cached query, its embedding and the results retrieved for it"""
    query_hash: str
    embedding: np.ndarray
    results: Tuple[RetrievedChunk, ...]
    inserted_at: float


def normalize_query(query: str) -> str:
    """Case-fold, trim and collapse internal whitespace"""
    return " ".join(query.casefold().split())


def hash_query(query: str) -> str:
    return hashlib.sha256(normalize_query(query).encode("utf-8")).hexdigest()


class SemanticQueryCache:
    """
    In-memory cache of retrieval results keyed by query meaning.

    ``lookup`` first tries the SHA-256 of the normalized query (no embedding
    call), then embeds the query and compares it with every live entry. The
    first entry whose cosine similarity is strictly greater than
    ``similarity_threshold`` is a hit; entries are scanned in dict order, so
    with several qualifying entries which one wins is not specified.

    Expiry is lazy: reads sweep out entries older than ``ttl`` seconds. The
    cache never raises to its caller; embedding failures turn into misses and
    bad input to ``store`` is dropped with a warning.
    """

    def __init__(
        self,
        embedding_service: EmbeddingGenerator,
        similarity_threshold: float = 0.85,
        ttl: float = 30 * 60,
        max_size: int = 100,
        name: str = "rag_query",
        clock: Callable[[], float] = time.monotonic
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self.embedding_service = embedding_service
        self.similarity_threshold = similarity_threshold
        self.ttl = ttl
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: Dict[str, QueryCacheEntry] = {}
        self._dimension: Optional[int] = None
        self._stats = {
            "exact_hits": 0,
            "similarity_hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def dimension(self) -> Optional[int]:
        """Embedding dimension of the live entries, None while empty"""
        return self._dimension

    async def lookup(self, query: str) -> Optional[List[RetrievedChunk]]:
        """
        Return cached results for query, or None on a miss.

        Suspends on the embedding call whenever there is no exact-hash hit.
        """
        query_hash = hash_query(query)
        self._expire()

        entry = self._entries.get(query_hash)
        if entry is not None:
            self._record_hit("exact", query, similarity=1.0)
            return list(entry.results)

        if not self._entries:
            self._record_miss(query)
            return None

        query_embedding = await self._embed(normalize_query(query))
        if query_embedding is None:
            self._record_miss(query)
            return None

        # The table may have changed while the embedding call was suspended.
        now = self._clock()
        for entry in list(self._entries.values()):
            if self._is_expired(entry, now):
                continue
            similarity = cosine_similarity(query_embedding, entry.embedding)
            if similarity > self.similarity_threshold:
                self._record_hit("similarity", query, similarity=similarity)
                return list(entry.results)

        self._record_miss(query)
        return None

    def store(
        self,
        query: str,
        embedding: Sequence[float],
        results: Sequence[ResultRow]
    ) -> None:
        """
        Cache results retrieved for query.

        Overwrites any entry for the same normalized query. When a new query
        arrives at a full cache, the single oldest entry is evicted first.
        """
        self._expire()
        vector = self._coerce_embedding(query, embedding)
        if vector is None:
            return

        try:
            frozen_results = tuple(
                row if isinstance(row, RetrievedChunk) else RetrievedChunk.model_validate(row)
                for row in results
            )
        except (PydanticValidationError, TypeError) as e:
            logger.warning(
                "semantic_cache_invalid_results",
                cache=self.name,
                query=query[:50],
                error=str(e)
            )
            error_counter.labels(error_type=type(e).__name__, operation="semantic_cache_store").inc()
            return

        query_hash = hash_query(query)
        if query_hash not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[query_hash] = QueryCacheEntry(
            query_hash=query_hash,
            embedding=vector,
            results=frozen_results,
            inserted_at=self._clock(),
        )
        self._dimension = vector.shape[0]
        cache_size.labels(cache_type=self.name).set(len(self._entries))

        logger.debug(
            "semantic_cache_stored",
            cache=self.name,
            query=query[:50],
            results_count=len(frozen_results),
            size=len(self._entries)
        )

    def stats(self) -> Dict[str, Any]:
        """Size and hit/miss counters. Sweeps expired entries like lookup"""
        self._expire()
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl": self.ttl,
            "similarity_threshold": self.similarity_threshold,
            "hits": self._stats["exact_hits"] + self._stats["similarity_hits"],
            **self._stats,
        }

    def clear(self) -> None:
        """Drop every entry"""
        self._entries.clear()
        self._dimension = None
        cache_size.labels(cache_type=self.name).set(0)
        logger.info("semantic_cache_cleared", cache=self.name)

    async def _embed(self, text: str) -> Optional[np.ndarray]:
        try:
            embedded = await self.embedding_service.generate_embeddings(text)
        except Exception as e:
            # A failed embedding is reported as a miss
            logger.warning(
                "semantic_cache_embedding_failed",
                cache=self.name,
                error=str(e),
                error_type=type(e).__name__
            )
            error_counter.labels(error_type=type(e).__name__, operation="semantic_cache_lookup").inc()
            return None

        if not embedded:
            return None
        try:
            return np.asarray(embedded[0].embedding, dtype=np.float64)
        except (TypeError, ValueError):
            return None

    def _coerce_embedding(self, query: str, embedding: Sequence[float]) -> Optional[np.ndarray]:
        """Read-only 1-d float vector, or None when it can't be cached"""
        try:
            vector = np.array(embedding, dtype=np.float64)
        except (TypeError, ValueError):
            vector = None

        if vector is None or vector.ndim != 1 or vector.size == 0 or not np.all(np.isfinite(vector)):
            logger.warning("semantic_cache_invalid_embedding", cache=self.name, query=query[:50])
            return None

        if self._entries and self._dimension is not None and vector.shape[0] != self._dimension:
            logger.warning(
                "semantic_cache_dimension_mismatch",
                cache=self.name,
                expected=self._dimension,
                actual=vector.shape[0]
            )
            return None

        vector.setflags(write=False)
        return vector

    def _is_expired(self, entry: QueryCacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl

    def _expire(self) -> None:
        now = self._clock()
        expired = [h for h, entry in self._entries.items() if self._is_expired(entry, now)]
        for query_hash in expired:
            del self._entries[query_hash]

        if expired:
            self._stats["expirations"] += len(expired)
            cache_evictions.labels(cache_type=self.name, reason="expired").inc(len(expired))
            cache_size.labels(cache_type=self.name).set(len(self._entries))
            logger.debug("semantic_cache_expired", cache=self.name, count=len(expired))
        if not self._entries:
            self._dimension = None

    def _evict_oldest(self) -> None:
        if not self._entries:
            return

        oldest_hash = min(self._entries, key=lambda h: self._entries[h].inserted_at)
        del self._entries[oldest_hash]
        self._stats["evictions"] += 1
        cache_evictions.labels(cache_type=self.name, reason="capacity").inc()
        logger.debug("semantic_cache_evicted", cache=self.name, query_hash=oldest_hash[:12])

    def _record_hit(self, match_type: str, query: str, similarity: float) -> None:
        self._stats[f"{match_type}_hits"] += 1
        cache_hits.labels(cache_type=self.name, match_type=match_type).inc()
        logger.info(
            "semantic_cache_hit",
            cache=self.name,
            match_type=match_type,
            similarity=round(similarity, 3),
            query=query[:50]
        )

    def _record_miss(self, query: str) -> None:
        self._stats["misses"] += 1
        cache_misses.labels(cache_type=self.name).inc()
        logger.debug("semantic_cache_miss", cache=self.name, query=query[:50])
