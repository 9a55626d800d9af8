"""Application settings using Pydantic."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLAIMGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Segmentation: "auto" prefers spaCy's locale-aware sentencizer when installed
    segmenter: Literal["auto", "regex", "spacy"] = "auto"
    spacy_language: str = "en"

    # Stage execution
    # None derives the timeout from the backends' retry budget
    stage_timeout_seconds: float | None = Field(default=None, gt=0)
    max_concurrency: int = Field(default=4, ge=1)

    # Term model
    max_nesting_depth: int = Field(default=2, ge=1)

    # Stance verification
    max_stance_claims: int = Field(default=100, ge=1)

    # Dedup resolver
    dedup_base_url: str | None = None
    dedup_batch_size: int = Field(default=300, ge=1)
    dedup_max_concurrency: int = Field(default=2, ge=1)
    dedup_timeout_seconds: float = Field(default=10.0, gt=0)

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
