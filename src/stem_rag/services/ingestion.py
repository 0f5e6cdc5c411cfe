# src/stem_rag/services/ingestion.py
from typing import Any, Dict, List, Mapping, Optional

from ..core.config import settings
from ..db.base import DocumentStore
from ..utils.exceptions import IngestionError
from ..utils.monitoring import logger, document_ingestion_counter
from .embeddings import EmbeddingService


class DocumentIngestionService:
    """Adds documents and their embedded chunks to the document store"""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        document_store: DocumentStore,
        enabled: Optional[bool] = None
    ):
        self.embedding_service = embedding_service
        self.document_store = document_store
        self.enabled = settings.rag_enabled if enabled is None else enabled

    async def ingest_document(self, title: str, content: str) -> Optional[int]:
        """
        Store a document, chunk it and embed all chunks in one batched request.

        Returns the new document id, or None when RAG is disabled.
        """
        if not self.enabled:
            logger.warning("rag_disabled", operation="ingest_document", title=title)
            return None

        try:
            document_id = await self.document_store.add_document(title=title, content=content)
            embedded_chunks = await self.embedding_service.generate_embeddings(content)
            await self.document_store.add_chunks(document_id, embedded_chunks)
        except Exception as e:
            logger.error("ingestion_error", title=title, error=str(e))
            raise IngestionError(f"Failed to ingest document: {str(e)}") from e

        document_ingestion_counter.inc()
        logger.info(
            "document_ingested",
            document_id=document_id,
            title=title,
            chunks=len(embedded_chunks)
        )
        return document_id

    async def ingest_documents(self, documents: List[Mapping[str, Any]]) -> List[Optional[int]]:
        """Ingest multiple ``{"title", "content"}`` documents in order"""
        document_ids = []
        for doc in documents:
            document_ids.append(
                await self.ingest_document(title=doc["title"], content=doc["content"])
            )
        return document_ids
