# src/stem_rag/db/memory.py
from typing import Any, Dict, List, Optional, Sequence
import itertools

import numpy as np

from ..schemas import EmbeddedChunk
from ..utils.exceptions import ValidationError
from ..utils.monitoring import logger
from .base import DocumentStore
from .models import Document, DocumentChunk


class InMemoryDocumentStore(DocumentStore):
    """Brute-force cosine search over chunks kept in process memory"""

    def __init__(self):
        self._documents: Dict[int, Document] = {}
        self._chunks: Dict[int, DocumentChunk] = {}
        self._document_ids = itertools.count(1)
        self._chunk_ids = itertools.count(1)

    async def add_document(self, title: str, content: str) -> int:
        document = Document(id=next(self._document_ids), title=title, content=content)
        self._documents[document.id] = document
        return document.id

    async def add_chunks(self, document_id: int, chunks: Sequence[EmbeddedChunk]) -> List[int]:
        if document_id not in self._documents:
            raise ValidationError(f"Unknown document id {document_id}")

        chunk_ids = []
        for chunk in chunks:
            record = DocumentChunk(
                id=next(self._chunk_ids),
                document_id=document_id,
                content=chunk.content,
                embedding=list(chunk.embedding),
            )
            self._chunks[record.id] = record
            chunk_ids.append(record.id)
        return chunk_ids

    async def get_document(self, document_id: int) -> Optional[Document]:
        return self._documents.get(document_id)

    async def delete_document(self, document_id: int) -> bool:
        """Remove a document and its chunks"""
        if self._documents.pop(document_id, None) is None:
            return False
        for chunk_id in [c.id for c in self._chunks.values() if c.document_id == document_id]:
            del self._chunks[chunk_id]
        return True

    async def similarity_search(
        self,
        embedding: Sequence[float],
        top_k: int = 5,
        min_similarity: float = 0.0
    ) -> List[Dict[str, Any]]:
        query = np.asarray(embedding, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query.ndim != 1 or query_norm == 0:
            return []

        # Chunks embedded with a different model can't be compared
        candidates = [c for c in self._chunks.values() if len(c.embedding) == query.shape[0]]
        if not candidates:
            return []
        skipped = len(self._chunks) - len(candidates)
        if skipped:
            logger.warning("similarity_search_dimension_skip", skipped=skipped, dimension=query.shape[0])

        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = matrix @ query / (norms * query_norm)
        scores = np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)

        rows = []
        for index in np.argsort(-scores, kind="stable"):
            similarity = float(scores[index])
            if similarity <= min_similarity or len(rows) >= top_k:
                break
            chunk = candidates[index]
            rows.append({
                "id": chunk.id,
                "content": chunk.content,
                "document_id": chunk.document_id,
                "title": self._documents[chunk.document_id].title,
                "similarity": similarity,
            })
        return rows
