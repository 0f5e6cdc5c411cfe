# src/stem_rag/__init__.py
"""STEM RAG - retrieval core with a semantic query cache."""

__version__ = "0.1.0"

from .core.config import settings
from .core.dependencies import create_services, ServiceContainer
from .schemas import RetrievedChunk, EmbeddedChunk

__all__ = [
    "settings",
    "create_services",
    "ServiceContainer",
    "RetrievedChunk",
    "EmbeddedChunk",
    "__version__",
]
