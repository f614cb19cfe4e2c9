"""Tests for settings loaded from the environment."""

from __future__ import annotations

from erdmap.core.config import (
    DEFAULT_KEY_PLACEHOLDER,
    clear_settings_cache,
    get_cached_settings,
    get_settings,
)


def test_defaults(monkeypatch):
    for name in ("SQL_IDENTIFIER_QUOTE", "SQL_KEY_PLACEHOLDER", "COLLAPSE_THRESHOLD", "DEFAULT_RELATION"):
        monkeypatch.delenv(name, raising=False)
    settings = get_settings()
    assert settings.sql_identifier_quote == '"'
    assert settings.sql_key_placeholder == DEFAULT_KEY_PLACEHOLDER
    assert settings.collapse_threshold == 5
    assert settings.default_relation == "="


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, ,http://b.test")
    monkeypatch.setenv("SQL_IDENTIFIER_QUOTE", "`")
    monkeypatch.setenv("COLLAPSE_THRESHOLD", "8")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = get_settings()
    assert settings.cors_origins == ("http://a.test", "http://b.test")
    assert settings.sql_identifier_quote == "`"
    assert settings.collapse_threshold == 8
    assert settings.log_level == "DEBUG"


def test_cached_settings_reload_after_clear(monkeypatch):
    clear_settings_cache()
    monkeypatch.setenv("DEFAULT_RELATION", "1:N")
    first = get_cached_settings()
    monkeypatch.setenv("DEFAULT_RELATION", "N:N")
    assert get_cached_settings() is first
    clear_settings_cache()
    assert get_cached_settings().default_relation == "N:N"
    clear_settings_cache()
