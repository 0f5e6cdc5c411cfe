# tests/test_monitoring.py
"""
Tests for monitoring utilities.
"""

from prometheus_client import Counter, Gauge, Histogram, REGISTRY

from stem_rag.services.memory_cache import MemoryCache
from stem_rag.utils.monitoring import (
    logger,
    metrics,
    query_counter,
    retrieval_duration,
    embedding_generation_duration,
    document_ingestion_counter,
    cache_hits,
    cache_misses,
    cache_evictions,
    cache_size,
    error_counter
)


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLogger:
    """Test structured logging configuration"""

    def test_logger_instance(self):
        """Test logger is properly configured"""
        assert logger is not None
        assert hasattr(logger, 'info')
        assert hasattr(logger, 'error')
        assert hasattr(logger, 'warning')
        assert hasattr(logger, 'debug')


class TestMetrics:
    """Test Prometheus metric definitions"""

    def test_metric_types(self):
        assert isinstance(query_counter, Counter)
        assert isinstance(document_ingestion_counter, Counter)
        assert isinstance(cache_hits, Counter)
        assert isinstance(cache_misses, Counter)
        assert isinstance(cache_evictions, Counter)
        assert isinstance(error_counter, Counter)
        assert isinstance(retrieval_duration, Histogram)
        assert isinstance(embedding_generation_duration, Histogram)
        assert isinstance(cache_size, Gauge)

    def test_metrics_dict(self):
        assert set(metrics) == {
            'query_counter',
            'retrieval_duration',
            'embedding_generation_duration',
            'document_ingestion_counter',
            'cache_hits',
            'cache_misses',
            'cache_evictions',
            'cache_size',
            'error_counter',
        }
        assert metrics['cache_hits'] is cache_hits

    def test_cache_metrics_recorded(self, clock):
        cache = MemoryCache(max_size=1, name="monitoring_test", clock=clock)
        hits_before = sample('rag_cache_hits_total', cache_type="monitoring_test", match_type="exact")
        misses_before = sample('rag_cache_misses_total', cache_type="monitoring_test")
        evictions_before = sample('rag_cache_evictions_total', cache_type="monitoring_test", reason="capacity")

        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")
        cache.set("b", 2)

        assert sample('rag_cache_hits_total', cache_type="monitoring_test", match_type="exact") == hits_before + 1
        assert sample('rag_cache_misses_total', cache_type="monitoring_test") == misses_before + 1
        assert sample(
            'rag_cache_evictions_total', cache_type="monitoring_test", reason="capacity"
        ) == evictions_before + 1
        assert sample('rag_cache_entries', cache_type="monitoring_test") == 1
