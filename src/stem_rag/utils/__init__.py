# src/stem_rag/utils/__init__.py
"""Utility functions and helpers."""

from .chunking import TextChunker, TextChunk
from .monitoring import logger, metrics
from .similarity import cosine_similarity
from .exceptions import (
    RAGException,
    EmbeddingError,
    RetrievalError,
    IngestionError,
    ValidationError,
)
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitBreakerConfig,
    CircuitState,
    create_circuit_breaker,
)

__all__ = [
    "TextChunker",
    "TextChunk",
    "logger",
    "metrics",
    "cosine_similarity",
    "RAGException",
    "EmbeddingError",
    "RetrievalError",
    "IngestionError",
    "ValidationError",
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitBreakerConfig",
    "CircuitState",
    "create_circuit_breaker",
]
