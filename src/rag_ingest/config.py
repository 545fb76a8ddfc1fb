"""Shared configuration loaded from environment / ``.env``.

Settings are built by the entry point (see :func:`rag_ingest.runner.main`) so
an invalid environment is reported as a configuration error, not an import
failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from rag_ingest.models import SimilarityMetric


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding
    embedding_provider: Literal["huggingface", "openai"] = "huggingface"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    openai_api_key: str = Field(default="", description="OpenAI API key (openai provider only)")

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag_ingest"
    similarity_metric: SimilarityMetric = SimilarityMetric.DOT_PRODUCT

    # Sources & checkpoints
    sources_file: Path = Path("data/sources.json")
    progress_backend: Literal["json", "sqlite"] = "json"
    progress_path: Path = Path("data/progress.json")

    # Fetching
    fetch_max_attempts: int = Field(default=5, gt=0)
    fetch_base_delay: float = Field(default=10.0, ge=0, description="Seconds; doubled on every retry")
    page_interval: float = Field(default=10.0, ge=0, description="Pause between page requests (seconds)")
    page_size: int = Field(default=50, gt=0)
    request_timeout: float = Field(default=60.0, gt=0)
    user_agent: str = "rag-ingest/0.1"

    # Embed + upsert
    task_max_attempts: int = Field(default=3, gt=0)
    task_retry_delay: float = Field(default=5.0, ge=0)
    concurrency_limit: int = Field(default=5, gt=0)

    # Chunking
    chunk_size: int = Field(default=512, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_chunking(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self
