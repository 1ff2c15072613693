"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. A ``.env`` file in the working directory

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults apply
when neither source sets a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragline application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Embedding / LLM providers ===
    # Empty key = "not configured"; the OpenAI-backed providers then report
    # is_available() == False.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, vLLM, ...)
    ollama_base_url: str = "http://localhost:11434"
    embedding_provider: str = "openai"  # "openai" | "ollama"
    default_embedding_model: str = "text-embedding-3-small"
    llm_provider: str = "openai"  # "openai" | "ollama"
    default_llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0

    # === Catalog ===
    catalog_db_path: str = "data/catalog.db"

    # === Ingestion ===
    ingestion_concurrency: int = 4
    max_upload_bytes: int = 50 * 1024 * 1024
    cleansing_llm_batch_size: int = 5

    # === Search ===
    search_default_top_k: int = 10

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"; APP_ENV=production implies json

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have the configuration they need."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
