"""
Configuration for typegraph.

Settings come from environment variables prefixed with TYPEGRAPH_
(for example TYPEGRAPH_STRICT=true), with defaults suitable for local use.

Invariants:
    - Defaults compile any well-formed schema without extra setup
    - Built-in primitives are always seeded; extra primitives add to them

How to change safely:
    - Add new settings with defaults that keep existing behavior
    - Keep lenient mode the default; strict mode is opt-in
"""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_FORMATS = ("text", "json")


class Settings(BaseSettings):
    """Compiler and store configuration."""

    # Reject malformed declaration shapes instead of skipping them
    strict: bool = Field(default=False)

    # Primitive types seeded after the built-in PRIMITIVE_TYPES
    extra_primitive_types: list[str] = Field(default_factory=list)

    # SQLite database for the graph store
    database: str = Field(default=":memory:")

    log_level: str = Field(default="INFO")

    # Log output format (text, json)
    log_format: str = Field(default="text")

    # File suffixes picked up when scanning directories for schema sources
    schema_suffixes: list[str] = Field(default_factory=lambda: [".yaml", ".yml"])

    model_config = {"env_prefix": "TYPEGRAPH_"}

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"Unknown log format '{value}'. Valid formats: {list(LOG_FORMATS)}")
        return fmt

    @field_validator("extra_primitive_types")
    @classmethod
    def _unique_primitives(cls, value: list[str]) -> list[str]:
        if len(value) != len(set(value)):
            raise ValueError("extra_primitive_types must not repeat a name")
        return value


def get_settings() -> Settings:
    """Load settings from the environment."""
    return Settings()
