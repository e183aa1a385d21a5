"""
Unit tests for settings.

Tests cover:
- Defaults
- Environment overrides
- Validation of log level, log format and primitive list
"""

import pytest
from pydantic import ValidationError

from typegraph.config import Settings, get_settings


class TestSettings:
    """Tests for Settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("STRICT", "EXTRA_PRIMITIVE_TYPES", "DATABASE", "LOG_LEVEL", "LOG_FORMAT", "SCHEMA_SUFFIXES"):
            monkeypatch.delenv(f"TYPEGRAPH_{name}", raising=False)

    def test_defaults(self):
        settings = Settings()
        assert settings.strict is False
        assert settings.extra_primitive_types == []
        assert settings.database == ":memory:"
        assert settings.log_level == "INFO"
        assert settings.log_format == "text"
        assert settings.schema_suffixes == [".yaml", ".yml"]

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TYPEGRAPH_STRICT", "true")
        monkeypatch.setenv("TYPEGRAPH_DATABASE", "/tmp/schema.db")
        monkeypatch.setenv("TYPEGRAPH_LOG_LEVEL", "debug")
        monkeypatch.setenv("TYPEGRAPH_EXTRA_PRIMITIVE_TYPES", '["Money", "Percent"]')
        settings = get_settings()
        assert settings.strict is True
        assert settings.database == "/tmp/schema.db"
        assert settings.log_level == "DEBUG"
        assert settings.extra_primitive_types == ["Money", "Percent"]

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError, match="Unknown log level"):
            Settings(log_level="chatty")

    def test_repeated_primitive(self):
        with pytest.raises(ValidationError, match="must not repeat"):
            Settings(extra_primitive_types=["Money", "Money"])

    def test_log_format(self, monkeypatch):
        monkeypatch.setenv("TYPEGRAPH_LOG_FORMAT", "JSON")
        assert get_settings().log_format == "json"
        with pytest.raises(ValidationError, match="Unknown log format"):
            Settings(log_format="xml")
