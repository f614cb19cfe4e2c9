"""Application configuration loaded from the environment."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv(override=True)

# Placeholder spliced into generated SQL for the record currently in context.
# The default is a FileMaker calculation splice: '"&Table::Field&"'
DEFAULT_KEY_PLACEHOLDER = "'\"&{table}::{field}&\"'"


@dataclass(frozen=True)
class Settings:
    """Application settings."""
    # HTTP bridge
    cors_origins: tuple[str, ...]
    log_level: str

    # Schema files
    demo_schema_path: str
    initial_schema_path: str

    # Join-map rendering
    sql_identifier_quote: str
    sql_key_placeholder: str

    # Editor defaults
    collapse_threshold: int
    default_relation: str


def _split_origins(value: str) -> tuple[str, ...]:
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def get_settings() -> Settings:
    """Load settings from environment variables."""
    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    default_demo = os.path.join(base_dir, "schema", "demo_erd.json")

    return Settings(
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),

        demo_schema_path=os.getenv("DEMO_SCHEMA_PATH", default_demo),
        initial_schema_path=os.getenv("INITIAL_SCHEMA_PATH", ""),

        sql_identifier_quote=os.getenv("SQL_IDENTIFIER_QUOTE", '"'),
        sql_key_placeholder=os.getenv("SQL_KEY_PLACEHOLDER", DEFAULT_KEY_PLACEHOLDER),

        collapse_threshold=int(os.getenv("COLLAPSE_THRESHOLD", "5")),
        default_relation=os.getenv("DEFAULT_RELATION", "="),
    )


# Singleton for caching settings
_settings_cache: Optional[Settings] = None


def get_cached_settings() -> Settings:
    """Get cached settings (loads once)."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = get_settings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    global _settings_cache
    _settings_cache = None
