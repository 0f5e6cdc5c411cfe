# src/stem_rag/db/base.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..schemas import EmbeddedChunk
from .models import Document


class DocumentStore(ABC):
    """
    Vector store holding documents and their embedded chunks.

    ``similarity_search`` returns raw rows shaped like the vector query of the
    chat application:
    ``{"id", "content", "document_id", "title", "similarity"}``, ordered by
    similarity, highest first. Callers validate rows before trusting them.
    """

    @abstractmethod
    async def add_document(self, title: str, content: str) -> int:
        pass

    @abstractmethod
    async def add_chunks(self, document_id: int, chunks: Sequence[EmbeddedChunk]) -> List[int]:
        pass

    @abstractmethod
    async def get_document(self, document_id: int) -> Optional[Document]:
        pass

    @abstractmethod
    async def similarity_search(
        self,
        embedding: Sequence[float],
        top_k: int = 5,
        min_similarity: float = 0.0
    ) -> List[Dict[str, Any]]:
        pass
