from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    openai_api_key: str = ""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Shared secret for scheduler-only endpoints; empty means they reject everything
    cron_secret: str = ""

    # Embeddings
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_max_input_chars: int = 8191

    # Chunking
    max_chunk_size: int = 8000
    chunk_overlap: int = 200

    # Queue
    queue_batch_size: int = 10
    cron_batch_size: int = 20
    retry_limit: int = 3
    queue_retention_days: int = 7
    stale_processing_minutes: int = 10

    # Search
    min_similarity: float = 0.3
    context_min_similarity: float = 0.25
    context_max_chunks: int = 5

    # Content
    conversation_excerpt_lines: int = 150
    workspace_ready_threshold: int = 5

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
