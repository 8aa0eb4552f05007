"""Configuration for Skimdex.

`IndexConfig` is the immutable value handed to an index at creation time.
`Settings` carries process-level defaults loaded from the environment and
``.env`` (prefix ``SKIMDEX_``).
"""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from skimdex.exceptions import ConfigError


class IndexVariant(IntEnum):
    """Kind of index structure to build."""

    UNKNOWN = 0
    # Terms to documents
    INVERTED = 1
    # Documents to terms
    VECTOR = 2
    INVERTED_AND_VECTOR = 3


class IndexConfig(BaseModel):
    """Creation parameters of an index.

    Attributes
    ----------
    variant: IndexVariant
        Index structure. ``VECTOR`` variants additionally store per-document
        term vectors; ``UNKNOWN`` is built like ``INVERTED``.
    proximity_indexing: bool
        Store term positions so phrase queries can be answered.
    stop_words: frozenset[str]
        Terms that are never indexed nor matched.
    min_term_length: int
        Shortest term (in characters) that is indexed.
    """

    model_config = ConfigDict(frozen=True)

    variant: IndexVariant = IndexVariant.INVERTED
    proximity_indexing: bool = False
    stop_words: FrozenSet[str] = frozenset()
    min_term_length: int = Field(default=1, ge=1)

    @field_validator("stop_words")
    @classmethod
    def _lowercase_stop_words(cls, value: FrozenSet[str]) -> FrozenSet[str]:
        # Terms are lowercased before the stop filter runs
        return frozenset(w.strip().lower() for w in value if w.strip())

    @property
    def stores_vectors(self) -> bool:
        return self.variant in (IndexVariant.VECTOR, IndexVariant.INVERTED_AND_VECTOR)

    @classmethod
    def from_settings(cls, settings: Settings) -> IndexConfig:
        cfg = settings.index
        return cls(
            variant=cfg.variant,
            proximity_indexing=cfg.proximity_indexing,
            stop_words=frozenset(cfg.stop_words),
            min_term_length=cfg.min_term_length,
        )


class AppConfig(BaseModel):
    """Application-wide values."""

    log_level: str = "INFO"


class IndexSettings(BaseModel):
    """Defaults used when an index is created from settings."""

    variant: IndexVariant = IndexVariant.INVERTED
    proximity_indexing: bool = False
    stop_words: List[str] = []
    min_term_length: int = Field(default=1, ge=1)
    # Directory for a file-backed index; None keeps the index in memory
    storage_path: Optional[Path] = None


class SearchSettings(BaseModel):
    """Defaults for progressive search batches."""

    default_limit: int = Field(default=10, ge=1)
    default_timeout: float = Field(default=1.0, gt=0)


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="SKIMDEX_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    index: IndexSettings = IndexSettings()
    search: SearchSettings = SearchSettings()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        raise ConfigError(f"Invalid Skimdex settings: {e}") from e
