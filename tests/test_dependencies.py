# tests/test_dependencies.py
"""
Tests for settings and service construction.
"""

import pytest

from stem_rag.core.config import Settings, get_settings
from stem_rag.core.dependencies import ServiceContainer, create_services
from stem_rag.db import InMemoryDocumentStore
from stem_rag.services.embeddings import EmbeddingService
from stem_rag.services.memory_cache import CacheView


class TestSettings:
    """Test configuration loading"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RAG_ENABLED", raising=False)
        settings = Settings(_env_file=None)

        assert settings.rag_enabled is False
        assert settings.semantic_cache_similarity_threshold == 0.85
        assert settings.semantic_cache_ttl == 1800
        assert settings.semantic_cache_max_size == 100
        assert settings.memory_cache_ttl == 300
        assert settings.memory_cache_max_size == 100
        assert settings.max_chunk_size == 512
        assert settings.retrieval_min_similarity == 0.5
        assert settings.retrieval_top_k == 5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RAG_ENABLED", "true")
        monkeypatch.setenv("SEMANTIC_CACHE_TTL", "60")
        monkeypatch.setenv("MEMORY_CACHE_MAX_BYTES", "4096")

        settings = Settings(_env_file=None)

        assert settings.rag_enabled is True
        assert settings.semantic_cache_ttl == 60
        assert settings.memory_cache_max_bytes == 4096

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


class TestCreateServices:
    """Test the service container"""

    @pytest.fixture
    def settings(self):
        return Settings(
            _env_file=None,
            rag_enabled=True,
            semantic_cache_max_size=2,
            semantic_cache_ttl=60,
            memory_cache_max_size=3
        )

    def test_builds_services_from_settings(self, settings, clock):
        services = create_services(settings=settings, clock=clock)

        assert isinstance(services, ServiceContainer)
        assert isinstance(services.embedding_service, EmbeddingService)
        assert isinstance(services.document_store, InMemoryDocumentStore)
        assert services.query_cache.max_size == 2
        assert services.query_cache.ttl == 60
        assert services.memory_cache.max_size == 3
        assert isinstance(services.document_cache, CacheView)
        assert services.retriever.query_cache is services.query_cache
        assert services.retriever.document_cache is services.document_cache

    @pytest.mark.asyncio
    async def test_rag_off_unless_enabled(self, monkeypatch, embedder, clock):
        monkeypatch.delenv("RAG_ENABLED", raising=False)
        services = create_services(settings=Settings(_env_file=None), embedding_service=embedder, clock=clock)

        assert services.retriever.enabled is False
        assert services.ingestion.enabled is False
        assert await services.retriever.search("What is entropy?") == []
        embedder.generate_embeddings.assert_not_awaited()

    def test_views_share_memory_cache(self, settings, clock):
        services = create_services(settings=settings, clock=clock)

        services.visualization_cache.set("plot", [1, 2])
        services.rag_cache.set("answer", "42")

        stats = services.memory_cache.stats()
        assert stats["namespaces"] == {"viz": 1, "rag": 1}
        assert sorted(stats["keys"]) == ["rag:answer", "viz:plot"]
        assert services.memory_cache.get("viz:plot") is None
        assert services.document_cache.get("plot") is None

    def test_containers_are_independent(self, settings, clock):
        first = create_services(settings=settings, clock=clock)
        second = create_services(settings=settings, clock=clock)

        first.memory_cache.set("k", "v")

        assert second.memory_cache.get("k") is None
        assert first.query_cache is not second.query_cache

    def test_overrides(self, settings, embedder, clock):
        store = InMemoryDocumentStore()

        services = create_services(settings=settings, embedding_service=embedder, document_store=store, clock=clock)

        assert services.retriever.embedding_service is embedder
        assert services.query_cache.embedding_service is embedder
        assert services.ingestion.document_store is store

    @pytest.mark.asyncio
    async def test_ingest_then_search(self, settings, embedder, clock):
        embedder.add("Water boils at 100 C at sea level.", [1.0, 0.0, 0.0])
        embedder.add("When does water boil?", [0.95, 0.3122499, 0.0])
        services = create_services(settings=settings, embedding_service=embedder, clock=clock)

        await services.ingestion.ingest_document(
            title="Thermodynamics",
            content="Water boils at 100 C at sea level."
        )
        results = await services.retriever.search("When does water boil?")

        assert [r.document_title for r in results] == ["Thermodynamics"]
        assert results[0].similarity == pytest.approx(0.95, abs=1e-3)

    @pytest.mark.asyncio
    async def test_close_clears_caches(self, settings, embedder, clock):
        services = create_services(settings=settings, embedding_service=embedder, clock=clock)
        services.query_cache.store("q", [1.0, 0.0], [])
        services.document_cache.set("1", "doc")

        services.close()

        assert len(services.query_cache) == 0
        assert services.document_cache.get("1") is None
