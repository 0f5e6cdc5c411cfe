# src/stem_rag/services/embeddings.py
from typing import List, Optional
from abc import ABC, abstractmethod
import asyncio

import openai

from ..core.config import settings
from ..schemas import EmbeddedChunk
from ..utils.chunking import TextChunker
from ..utils.circuit_breaker import CircuitBreakerError, create_circuit_breaker
from ..utils.exceptions import EmbeddingError, ValidationError
from ..utils.monitoring import logger, embedding_generation_duration


class EmbeddingModel(ABC):
    """Abstract base class for embedding models"""

    @abstractmethod
    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass


class OpenAIEmbedding(EmbeddingModel):
    """OpenAI embedding model with circuit breaker protection"""

    DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072
    }

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        client: Optional[openai.AsyncOpenAI] = None
    ):
        self.model_name = model_name
        self.client = client or openai.AsyncOpenAI(api_key=api_key or settings.openai_api_key)
        self._circuit_breaker = create_circuit_breaker(
            name=f"embeddings_{model_name}",
            failure_threshold=3,
            recovery_timeout=60,
            timeout=30.0
        )

    async def _call_openai_api(self, texts: List[str]):
        return await self.client.embeddings.create(
            model=self.model_name,
            input=texts
        )

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts in one request"""
        if not texts:
            return []

        try:
            with embedding_generation_duration.labels(model=self.model_name).time():
                response = await self._circuit_breaker.call_async(
                    self._call_openai_api,
                    texts
                )
            return [item.embedding for item in response.data]

        except CircuitBreakerError as e:
            logger.error("openai_circuit_open", model=self.model_name, error=str(e))
            raise EmbeddingError(
                "OpenAI embedding service is temporarily unavailable. Please try again later."
            ) from e
        except Exception as e:
            logger.error("openai_embedding_error", model=self.model_name, error=str(e))
            raise EmbeddingError(f"Failed to generate embeddings: {str(e)}") from e

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.model_name, 1536)

    def get_model_name(self) -> str:
        return self.model_name


class LocalEmbedding(EmbeddingModel):
    """Local sentence-transformers model (install with the ``local`` extra)"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        try:
            from sentence_transformers import SentenceTransformer

            self.model = SentenceTransformer(model_name)
            self._dimension = self.model.get_sentence_embedding_dimension()
        except Exception as e:
            logger.error(f"Failed to load local model {model_name}: {e}")
            raise EmbeddingError(f"Failed to load embedding model: {str(e)}") from e

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        try:
            with embedding_generation_duration.labels(model=self.model_name).time():
                # Run in thread pool to avoid blocking the event loop
                loop = asyncio.get_running_loop()
                embeddings = await loop.run_in_executor(
                    None,
                    lambda: self.model.encode(texts)
                )
            return embeddings.tolist()
        except Exception as e:
            logger.error(f"Local embedding error: {e}")
            raise EmbeddingError(f"Failed to generate embeddings: {str(e)}") from e

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self.model_name


def create_embedding_model(model_name: str) -> EmbeddingModel:
    """OpenAI models are named text-embedding-*; anything else is a local model"""
    if model_name.startswith("text-embedding"):
        return OpenAIEmbedding(model_name)
    return LocalEmbedding(model_name)


class EmbeddingService:
    """
    Embedding generator used by ingestion, retrieval and the query cache.

    Content is split into sentence-bounded chunks and all chunks of one
    document are embedded in batched requests.
    """

    def __init__(
        self,
        model: Optional[EmbeddingModel] = None,
        chunker: Optional[TextChunker] = None,
        batch_size: Optional[int] = None,
        enabled: Optional[bool] = None
    ):
        self._model = model
        self.chunker = chunker or TextChunker(chunk_size=settings.max_chunk_size)
        self.batch_size = batch_size or settings.embedding_batch_size
        self.enabled = settings.rag_enabled if enabled is None else enabled

    @property
    def model(self) -> EmbeddingModel:
        """The embedding model, created from settings on first use"""
        if self._model is None:
            self._model = create_embedding_model(settings.default_embedding_model)
            logger.info(
                "embedding_model_initialized",
                model=self._model.get_model_name(),
                dimension=self._model.get_dimension()
            )
        return self._model

    @property
    def current_model_name(self) -> str:
        return self.model.get_model_name()

    @property
    def dimension(self) -> int:
        return self.model.get_dimension()

    async def generate_embeddings(self, content: str) -> List[EmbeddedChunk]:
        """
        Chunk content and embed every chunk.

        Returns an empty list when RAG is disabled or the content has no text.

        Raises:
            EmbeddingError: If the provider call fails
            ValidationError: If the provider returns vectors of the wrong shape
        """
        if not self.enabled:
            logger.warning("rag_disabled", operation="generate_embeddings")
            return []

        chunks = self.chunker.split_contents(content)
        if not chunks:
            return []

        embeddings = await self.embed_texts(chunks)
        return [
            EmbeddedChunk(content=chunk, embedding=embedding)
            for chunk, embedding in zip(chunks, embeddings)
        ]

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed already-chunked texts with batching and dimension checks"""
        if not texts:
            return []

        model = self.model
        all_embeddings = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            all_embeddings.extend(await model.embed_texts(batch))

        if len(all_embeddings) != len(texts):
            raise ValidationError(
                f"Expected {len(texts)} embeddings, got {len(all_embeddings)} "
                f"from model {model.get_model_name()}"
            )

        dimension = model.get_dimension()
        for i, emb in enumerate(all_embeddings):
            if len(emb) != dimension:
                raise ValidationError(
                    f"Embedding {i} has dimension {len(emb)}, "
                    f"expected {dimension} for model {model.get_model_name()}"
                )

        return all_embeddings
