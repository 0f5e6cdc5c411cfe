# src/stem_rag/services/retriever.py
from typing import List, Optional, Union
import re

from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..db.base import DocumentStore
from ..db.models import Document
from ..schemas import RetrievedChunk
from ..utils.exceptions import RetrievalError
from ..utils.monitoring import logger, query_counter, retrieval_duration
from .embeddings import EmbeddingService
from .memory_cache import CacheView, MemoryCache
from .semantic_cache import SemanticQueryCache

_SIMPLE_QUERY_PATTERNS = [
    re.compile(r"^(hi|hello|hey|thanks|thank you)"),
    re.compile(r"^(what is|define|explain)(?!.*(document|paper|research|uploaded|file))"),
    re.compile(r"^(calculate|compute|solve|find)"),
    re.compile(r"^(how to|how do|can you help)"),
]


def is_simple_query(query: str) -> bool:
    """
    Fast heuristic for queries that don't need document retrieval:
    greetings, generic definitions, calculations and how-to questions.
    Mentions of documents, papers or uploads always need retrieval.
    """
    content = query.lower().strip()
    return any(pattern.search(content) for pattern in _SIMPLE_QUERY_PATTERNS)


class RetrieverService:
    """
    Retrieves document chunks for a query, with the semantic query cache in
    front of the embedding call and the vector search.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        document_store: DocumentStore,
        query_cache: Optional[SemanticQueryCache] = None,
        document_cache: Optional[Union[MemoryCache, CacheView]] = None,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
        enabled: Optional[bool] = None
    ):
        self.embedding_service = embedding_service
        self.document_store = document_store
        self.query_cache = query_cache
        self.document_cache = document_cache
        self.top_k = top_k or settings.retrieval_top_k
        self.min_similarity = (
            settings.retrieval_min_similarity if min_similarity is None else min_similarity
        )
        self.enabled = settings.rag_enabled if enabled is None else enabled

    async def search(self, query: str, top_k: Optional[int] = None) -> List[RetrievedChunk]:
        """
        Search for chunks relevant to query.

        Cached results are returned as they were stored, so a hit may hold a
        different number of results than top_k asks for.

        Raises:
            RetrievalError: If embedding, the vector search or row validation fails
        """
        if not self.enabled:
            logger.warning("rag_disabled", operation="search")
            return []

        query_counter.inc()
        top_k = top_k or self.top_k

        if self.query_cache is not None:
            cached = await self.query_cache.lookup(query)
            if cached is not None:
                return cached

        try:
            embedded = await self.embedding_service.generate_embeddings(query)
            if not embedded:
                return []
            query_embedding = embedded[0].embedding

            with retrieval_duration.time():
                rows = await self.document_store.similarity_search(
                    embedding=query_embedding,
                    top_k=top_k,
                    min_similarity=self.min_similarity
                )

            results = [RetrievedChunk.model_validate(row) for row in rows]

        except PydanticValidationError as e:
            logger.error("retrieval_invalid_rows", query=query[:100], error=str(e))
            raise RetrievalError(f"Document store returned malformed rows: {e}") from e
        except Exception as e:
            logger.error("retrieval_error", query=query[:100], error=str(e))
            raise RetrievalError(f"Search failed: {str(e)}") from e

        if self.query_cache is not None:
            self.query_cache.store(query, query_embedding, results)

        logger.info(
            "retrieval_complete",
            query=query[:100],
            results_count=len(results),
            top_score=results[0].similarity if results else 0
        )
        return results

    async def get_document(self, document_id: int) -> Optional[Document]:
        """Fetch a document, going through the document cache when there is one"""
        key = str(document_id)
        if self.document_cache is not None:
            cached = self.document_cache.get(key)
            if cached is not None:
                return cached

        document = await self.document_store.get_document(document_id)
        if document is not None and self.document_cache is not None:
            self.document_cache.set(key, document)
        return document
