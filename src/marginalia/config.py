"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/marginalia/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Named defaults; override with ANNOTATION__MIN_SELECTION_LENGTH and
# ANNOTATION__DRIFT_WINDOW.
DEFAULT_MIN_SELECTION_LENGTH = 3
DEFAULT_DRIFT_WINDOW = 200


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class AnnotationConfig(BaseModel):
    """Selection capture and highlight rendering knobs."""

    min_selection_length: int = Field(default=DEFAULT_MIN_SELECTION_LENGTH, ge=1)
    drift_window: int = Field(default=DEFAULT_DRIFT_WINDOW, ge=0)
    trim_selection: bool = True
    highlight_tag: str = "span"
    highlight_class: str = "selection-highlight"

    @field_validator("highlight_tag")
    @classmethod
    def _tag_is_plain_name(cls, value: str) -> str:
        if not value.isascii() or not value.isalnum():
            msg = f"highlight_tag must be a plain element name, got {value!r}"
            raise ValueError(msg)
        return value.lower()


class AppConfig(BaseModel):
    """Runtime configuration for the command-line tools."""

    log_dir: Path = Path("logs")
    log_level: str = "INFO"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``ANNOTATION__DRIFT_WINDOW``, ``APP__LOG_LEVEL``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    annotation: AnnotationConfig = AnnotationConfig()
    app: AppConfig = AppConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
