# src/stem_rag/db/__init__.py
"""Document store contract and the in-memory implementation."""

from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .models import Document, DocumentChunk

__all__ = ["DocumentStore", "InMemoryDocumentStore", "Document", "DocumentChunk"]
