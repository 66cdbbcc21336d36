"""Application configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    PROJECT_NAME: str = "agentloom"
    VERSION: str = "0.3.0"
    LOG_LEVEL: str = "INFO"

    # Database Settings
    # Plain PostgreSQL URLs are accepted; the +psycopg driver is added in database.py.
    # SQLite works for local runs and tests (no vector index, cosine computed in Python).
    DATABASE_URL: str = "sqlite:///./agentloom.db"
    MIGRATION_DATABASE_URL: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # LLM Configuration
    LLM_PROVIDER: str = "openai"  # openai | anthropic
    LLM_MODEL: str = ""           # Empty = provider default
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 4096
    LLM_TIMEOUT: float = 120.0
    LLM_MAX_RETRIES: int = 3
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""     # Any OpenAI-compatible endpoint
    ANTHROPIC_API_KEY: str = ""

    # Embeddings
    EMBEDDING_PROVIDER: str = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536

    # Graph engine
    GRAPH_RECURSION_LIMIT: int = 200
    TOOL_LOOP_MAX_STEPS: int = 25
    WORKFLOW_CACHE_SIZE: int = 8

    # Core memory
    MEMORY_BLOCK_CHAR_LIMIT: int = 20000

    # Summarizer / eviction
    SUMMARIZER_MODE: str = "static_buffer"  # static_buffer | partial_evict | none
    SUMMARIZER_BUFFER_LIMIT: int = 30
    SUMMARIZER_BUFFER_MIN: int = 10
    SUMMARIZER_EVICT_FRACTION: float = 0.3
    SUMMARY_WORKERS: int = 2
    SUMMARY_QUEUE_SIZE: int = 100
    SUMMARY_MAX_ATTEMPTS: int = 3

    # Chat history sent to the model per call (newest messages plus any marked important)
    HISTORY_MAX_LENGTH: int = 30

    # Memory extraction (debounced, after chat turns) and recall into the chat prompt
    MEMORY_EXTRACTION_ENABLED: bool = False
    MEMORY_EXTRACTION_MODEL: str = ""  # empty = default model
    MEMORY_DEBOUNCE_SECONDS: float = 3.0
    MEMORY_RECALL_TOP_K: int = 5
    MEMORY_RECALL_MIN_SCORE: float = 0.25
    MEMORY_CONTEXT_TOKEN_BUDGET: int = 2000

    # LangSmith Tracing (Optional - for debugging/monitoring)
    LANGSMITH_TRACING: bool = False
    LANGSMITH_API_KEY: str = ""
    LANGSMITH_PROJECT: str = ""
    LANGSMITH_ENDPOINT: str = ""

    def get_migration_url(self) -> str:
        """Direct connection for Alembic; falls back to DATABASE_URL."""
        return self.MIGRATION_DATABASE_URL or self.DATABASE_URL


# Global settings instance
settings = Settings()
