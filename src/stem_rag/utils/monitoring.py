# src/stem_rag/utils/monitoring.py
import structlog
from prometheus_client import Counter, Histogram, Gauge

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Retrieval
query_counter = Counter('rag_queries_total', 'Total RAG retrieval queries')
retrieval_duration = Histogram(
    'rag_retrieval_duration_seconds',
    'Vector search duration on cache misses'
)
embedding_generation_duration = Histogram(
    'rag_embedding_generation_duration_seconds',
    'Embedding generation duration',
    ['model']
)
document_ingestion_counter = Counter(
    'rag_documents_ingested_total',
    'Total documents ingested'
)

# Caches
cache_hits = Counter(
    'rag_cache_hits_total',
    'Total cache hits',
    ['cache_type', 'match_type']
)
cache_misses = Counter(
    'rag_cache_misses_total',
    'Total cache misses',
    ['cache_type']
)
cache_evictions = Counter(
    'rag_cache_evictions_total',
    'Entries removed from a cache before being read again',
    ['cache_type', 'reason']
)
cache_size = Gauge(
    'rag_cache_entries',
    'Current number of entries held by a cache',
    ['cache_type']
)

error_counter = Counter(
    'rag_errors_total',
    'Total errors',
    ['error_type', 'operation']
)

# Create logger instance
logger = structlog.get_logger()

# Export metrics dict for easy access
metrics = {
    'query_counter': query_counter,
    'retrieval_duration': retrieval_duration,
    'embedding_generation_duration': embedding_generation_duration,
    'document_ingestion_counter': document_ingestion_counter,
    'cache_hits': cache_hits,
    'cache_misses': cache_misses,
    'cache_evictions': cache_evictions,
    'cache_size': cache_size,
    'error_counter': error_counter
}
