"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123`` (always win)
  2. A ``.env`` file in the working directory (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Empty strings
mean "not configured": the composition root in ``src/main.py`` skips
providers whose credentials are empty.

These are process-wide defaults.  Per-scope overrides come from
``config/config.yaml`` and are applied by ``src/config/loader.py``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.config import (
    ChunkingConfig,
    ChunkingStrategy,
    ExtractionConfig,
    ExtractionMethodName,
    PipelineConfig,
    RetrievalConfig,
)


class Settings(BaseSettings):
    """Document pipeline settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Extraction ===
    unstructured_api_key: str = ""
    unstructured_api_url: str = "https://api.unstructuredapp.io/general/v0/general"
    unstructured_local_url: str = "http://localhost:8000/general/v0/general"
    unstructured_strategy: str = "auto"
    # Comma-separated, in priority order.  "basic" is always appended.
    extraction_methods: str = (
        "unstructured_hosted,unstructured_local,pymupdf,pure_python,ollama_vision,basic"
    )
    extraction_timeout_seconds: float = 5.0
    ollama_base_url: str = ""  # e.g. http://localhost:11434; empty disables vision
    ollama_vision_model: str = "llava"

    # === Chunking ===
    chunking_strategy: str = "auto"
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # === Embeddings ===
    embedding_mode: str = "local"  # "local" or "remote"
    local_embedding_backend: str = "fastembed"  # "fastembed" or "sentence_transformers"
    local_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 50
    embedding_batch_delay_seconds: float = 0.1

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_host: str = ""  # set to use a chroma server instead of local files
    chromadb_port: int = 8000
    chromadb_collection: str = "document_chunks"
    vector_store_batch_size: int = 50
    vector_search_mode: str = "scan"  # "scan" or "index"

    # === Retrieval ===
    min_similarity: float = 0.2
    search_default_limit: int = 5
    max_context_chunks: int = 10

    # === Persistence ===
    registry_db_path: str = "data/documents.db"
    upload_dir: str = "data/uploads"

    # === App Config ===
    config_path: str = "config/config.yaml"
    app_env: str = "development"
    log_level: str = "INFO"

    def enabled_extraction_methods(self) -> list[ExtractionMethodName]:
        """Parse ``extraction_methods`` into enum members, skipping unknown names."""
        known = {m.value: m for m in ExtractionMethodName}
        return [
            known[name.strip()]
            for name in self.extraction_methods.split(",")
            if name.strip() in known
        ]

    def to_pipeline_config(self) -> PipelineConfig:
        """Build the process-wide PipelineConfig from these settings."""
        return PipelineConfig(
            extraction=ExtractionConfig(
                methods=self.enabled_extraction_methods(),
                timeout_seconds=self.extraction_timeout_seconds,
            ),
            chunking=ChunkingConfig(
                strategy=ChunkingStrategy(self.chunking_strategy),
                chunk_size=self.chunk_size,
                chunk_overlap=self.chunk_overlap,
            ),
            retrieval=RetrievalConfig(
                min_similarity=self.min_similarity,
                default_limit=self.search_default_limit,
                max_context_chunks=self.max_context_chunks,
                store_batch_size=self.vector_store_batch_size,
                search_mode=self.vector_search_mode,
            ),
        )
