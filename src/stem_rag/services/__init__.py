# src/stem_rag/services/__init__.py
"""Business logic services."""

from .embeddings import EmbeddingService, EmbeddingModel, OpenAIEmbedding, LocalEmbedding
from .ingestion import DocumentIngestionService
from .memory_cache import MemoryCache, CacheView
from .retriever import RetrieverService, is_simple_query
from .semantic_cache import SemanticQueryCache

__all__ = [
    "EmbeddingService",
    "EmbeddingModel",
    "OpenAIEmbedding",
    "LocalEmbedding",
    "DocumentIngestionService",
    "MemoryCache",
    "CacheView",
    "RetrieverService",
    "is_simple_query",
    "SemanticQueryCache",
]
