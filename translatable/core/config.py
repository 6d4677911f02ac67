# File: translatable/core/config.py
"""
Configuration settings for translatable tables.

This module defines settings using Pydantic's BaseSettings, which supports
environment variable loading and validation.
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Annotated, List, Union

from pydantic import validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)


class TranslationStrategy(str, Enum):
    """How records without a translation in the active locale are resolved."""

    STRICT = "strict"
    NULLABLE = "nullable"
    FALLBACK = "fallback"


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    Localization settings that belong to the host application (the default
    locale used as fallback and the supported locales) live next to the
    translatable table options.
    """

    # Database
    DATABASE_URL: str = "sqlite:///translatable.db"

    # ================================
    # Translatable Tables
    # ================================

    # Missing translation strategy:
    # - "strict": only rows that have a translation in the current locale (INNER JOIN)
    # - "nullable": all rows, translatable columns NULL when missing (LEFT JOIN)
    # - "fallback": all rows, fallback locale used per column (LEFT JOIN + COALESCE)
    MISSING_TRANSLATION_STRATEGY: TranslationStrategy = TranslationStrategy.STRICT

    # Translatable column snapshot, relative to APP_ROOT unless absolute
    CACHE_PATH: str = "cache/translatable.json"
    APP_ROOT: str = os.getcwd()

    # Regenerate the snapshot after every successful migrate command
    AUTO_CACHE_AFTER_MIGRATE: bool = True

    # products -> product_translations
    TABLE_SUFFIX: str = "_translations"

    # Structural columns of a translation table, never treated as translatable
    SYSTEM_COLUMNS: Annotated[List[str], NoDecode] = ["id", "locale"]

    # Migration scripts used by the migrate command
    MIGRATIONS_PATH: str = "migrations"

    # ================================
    # Localization Configuration
    # ================================

    # Default locale for fallback when translations are missing
    DEFAULT_LOCALE: str = "en"

    # Locales accepted from requests, ISO 639-1 optionally with a region ("fr-CA")
    SUPPORTED_LOCALES: Annotated[List[str], NoDecode] = ["en"]

    LOG_LEVEL: str = "INFO"

    @validator("MISSING_TRANSLATION_STRATEGY", pre=True)
    def validate_strategy(cls, v: Union[str, TranslationStrategy]) -> TranslationStrategy:
        """Fall back to strict for unknown strategy names."""
        if isinstance(v, TranslationStrategy):
            return v
        try:
            return TranslationStrategy(str(v).strip().lower())
        except ValueError:
            logger.warning(f"Unknown missing translation strategy '{v}', using 'strict'")
            return TranslationStrategy.STRICT

    @validator("SYSTEM_COLUMNS", "SUPPORTED_LOCALES", pre=True)
    def split_list(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse lists given as JSON or comma-separated strings."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
            return [i.strip() for i in v.split(",") if i.strip()]
        return v or []

    @validator("TABLE_SUFFIX")
    def validate_table_suffix(cls, v: str) -> str:
        """A translation table must be distinguishable from its main table."""
        if not v:
            raise ValueError("TABLE_SUFFIX cannot be empty")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        return v.upper() if v.upper() in valid_levels else "INFO"

    def resolve_path(self, path: str) -> Path:
        """Resolve a configured path against APP_ROOT."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.APP_ROOT) / candidate

    @property
    def cache_file(self) -> Path:
        return self.resolve_path(self.CACHE_PATH)

    @property
    def migrations_dir(self) -> Path:
        return self.resolve_path(self.MIGRATIONS_PATH)

    class Config:
        """Pydantic settings configuration."""

        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


# Create settings instance
settings = Settings()
