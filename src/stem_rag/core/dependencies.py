# src/stem_rag/core/dependencies.py
"""
Explicit construction of the retrieval services.

Each process (or test) builds its own container at startup and closes it at
shutdown; caches are owned by the container instead of living in module
globals.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import time

from .config import Settings, get_settings
from ..db.base import DocumentStore
from ..db.memory import InMemoryDocumentStore
from ..services.embeddings import EmbeddingService
from ..services.ingestion import DocumentIngestionService
from ..services.memory_cache import CacheView, MemoryCache
from ..services.retriever import RetrieverService
from ..services.semantic_cache import SemanticQueryCache
from ..utils.chunking import TextChunker
from ..utils.monitoring import logger


@dataclass
class ServiceContainer:
    """Everything a retrieval call site needs"""
    settings: Settings
    embedding_service: EmbeddingService
    document_store: DocumentStore
    memory_cache: MemoryCache
    rag_cache: CacheView
    visualization_cache: CacheView
    document_cache: CacheView
    query_cache: SemanticQueryCache
    retriever: RetrieverService
    ingestion: DocumentIngestionService

    def close(self):
        """Drop every cached entry"""
        self.query_cache.clear()
        self.memory_cache.clear()
        logger.info("services_closed")


def create_services(
    settings: Optional[Settings] = None,
    embedding_service: Optional[EmbeddingService] = None,
    document_store: Optional[DocumentStore] = None,
    clock: Callable[[], float] = time.monotonic
) -> ServiceContainer:
    """Build the services from settings; pass collaborators to override them"""
    settings = settings or get_settings()

    embedding_service = embedding_service or EmbeddingService(
        chunker=TextChunker(chunk_size=settings.max_chunk_size),
        batch_size=settings.embedding_batch_size,
        enabled=settings.rag_enabled
    )
    document_store = document_store or InMemoryDocumentStore()

    memory_cache = MemoryCache(
        max_size=settings.memory_cache_max_size,
        ttl=settings.memory_cache_ttl,
        max_memory_size=settings.memory_cache_max_bytes,
        name="memory",
        clock=clock
    )
    document_cache = memory_cache.namespace("doc")

    query_cache = SemanticQueryCache(
        embedding_service=embedding_service,
        similarity_threshold=settings.semantic_cache_similarity_threshold,
        ttl=settings.semantic_cache_ttl,
        max_size=settings.semantic_cache_max_size,
        name="rag_query",
        clock=clock
    )

    retriever = RetrieverService(
        embedding_service=embedding_service,
        document_store=document_store,
        query_cache=query_cache,
        document_cache=document_cache,
        top_k=settings.retrieval_top_k,
        min_similarity=settings.retrieval_min_similarity,
        enabled=settings.rag_enabled
    )
    ingestion = DocumentIngestionService(
        embedding_service=embedding_service,
        document_store=document_store,
        enabled=settings.rag_enabled
    )

    logger.info(
        "services_created",
        rag_enabled=settings.rag_enabled,
        semantic_cache_max_size=settings.semantic_cache_max_size,
        semantic_cache_ttl=settings.semantic_cache_ttl
    )

    return ServiceContainer(
        settings=settings,
        embedding_service=embedding_service,
        document_store=document_store,
        memory_cache=memory_cache,
        rag_cache=memory_cache.namespace("rag"),
        visualization_cache=memory_cache.namespace("viz"),
        document_cache=document_cache,
        query_cache=query_cache,
        retriever=retriever,
        ingestion=ingestion
    )
