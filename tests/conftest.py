# tests/conftest.py
"""
Pytest configuration and fixtures for the STEM RAG tests.
"""

import os
from typing import Dict, List
from unittest.mock import AsyncMock

import pytest

# Set test environment before settings are loaded
os.environ["RAG_ENABLED"] = "true"
os.environ["OPENAI_API_KEY"] = "test-key"

from stem_rag.schemas import EmbeddedChunk, RetrievedChunk
from stem_rag.services.semantic_cache import normalize_query


class FakeClock:
    """Manually advanced clock for TTL tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeEmbeddingService:
    """
    Embedding generator that returns fixed vectors per normalized text.

    Unknown texts get ``default`` (a vector orthogonal to the ones used in the
    tests unless a test says otherwise).
    """

    def __init__(self, vectors: Dict[str, List[float]] = None, default: List[float] = None):
        self.vectors = {normalize_query(k): v for k, v in (vectors or {}).items()}
        self.default = default or [0.0, 0.0, 1.0]
        self.generate_embeddings = AsyncMock(side_effect=self._generate)

    def add(self, text: str, vector: List[float]):
        self.vectors[normalize_query(text)] = vector

    async def _generate(self, content: str) -> List[EmbeddedChunk]:
        vector = self.vectors.get(normalize_query(content), self.default)
        return [EmbeddedChunk(content=content, embedding=vector)]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def embedder() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def photosynthesis_results() -> List[RetrievedChunk]:
    return [
        RetrievedChunk(
            chunk_id=1,
            document_id=10,
            document_title="Plant Biology",
            content="Photosynthesis converts light energy into chemical energy.",
            similarity=0.91
        ),
        RetrievedChunk(
            chunk_id=2,
            document_id=10,
            document_title="Plant Biology",
            content="Chlorophyll absorbs mostly blue and red light.",
            similarity=0.78
        ),
    ]


@pytest.fixture
def mitosis_results() -> List[RetrievedChunk]:
    return [
        RetrievedChunk(
            chunk_id=7,
            document_id=11,
            document_title="Cell Division",
            content="Mitosis produces two genetically identical daughter cells.",
            similarity=0.88
        )
    ]
