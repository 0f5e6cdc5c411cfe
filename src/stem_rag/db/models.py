# src/stem_rag/db/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List


@dataclass(frozen=True)
class Document:
    """A source document"""
    id: int
    title: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class DocumentChunk:
    """A chunk of a document with its embedding"""
    id: int
    document_id: int
    content: str
    embedding: List[float]
