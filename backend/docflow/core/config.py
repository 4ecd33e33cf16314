"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Every variable is read with the DOCFLOW_ prefix, e.g. DOCFLOW_CHUNK_SIZE=500.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DOCFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------
    chunk_size: int = 1000   # soft token target per chunk
    max_tokens: int = 2048   # per-chunk ceiling; larger chunks are flagged while draining

    # ------------------------------------------------------------------
    # Queue draining
    # ------------------------------------------------------------------
    drain_yield_seconds: float = 0.05   # pause between chunks
    submission_policy: Literal["replace", "reject"] = "replace"

    # ------------------------------------------------------------------
    # Upload limits
    # ------------------------------------------------------------------
    max_document_bytes: int = 50 * 1024 * 1024   # 50 MB

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_chunk_bounds(self) -> "Settings":
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.chunk_size > self.max_tokens:
            raise ValueError(
                f"chunk_size ({self.chunk_size}) must not exceed max_tokens ({self.max_tokens})"
            )
        if self.drain_yield_seconds < 0:
            raise ValueError("drain_yield_seconds must be >= 0")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
