# src/stem_rag/core/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_name: str = "STEM RAG"
    debug: bool = False
    rag_enabled: bool = False  # RAG_ENABLED=true turns retrieval on

    # Database (consumed by the external document store)
    database_url: Optional[str] = None

    # Models
    default_embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 100

    # API Keys
    openai_api_key: Optional[str] = None

    # Chunking / retrieval
    max_chunk_size: int = 512
    retrieval_top_k: int = 5
    retrieval_min_similarity: float = 0.5

    # Semantic query cache
    semantic_cache_similarity_threshold: float = 0.85
    semantic_cache_ttl: float = 30 * 60  # seconds
    semantic_cache_max_size: int = 100

    # Generic memory cache (sizes are per namespace)
    memory_cache_ttl: float = 5 * 60  # seconds
    memory_cache_max_size: int = 100
    memory_cache_max_bytes: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)"""
    return Settings()


settings = get_settings()
