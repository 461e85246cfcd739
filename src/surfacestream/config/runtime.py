"""Pydantic-based runtime settings for the CLI and MCP servers.

Loads from environment variables (with optional .env file).
Invalid values fail fast on first access.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class McpMode(str, Enum):
    engine = "engine"
    studio = "studio"


class StoreBackend(str, Enum):
    sqlite = "sqlite"
    memory = "memory"


class RuntimeSettings(BaseSettings):
    """All configuration for SurfaceStream, validated at startup."""

    model_config = {"env_prefix": "", "env_file": ".env", "env_file_encoding": "utf-8"}

    # --- Server mode ---
    mcp_mode: McpMode = Field(
        default=McpMode.engine,
        description="Which MCP surface to start: 'engine' (visitor-facing) or 'studio' (authoring)",
    )

    # --- Storage ---
    store_backend: StoreBackend = Field(
        default=StoreBackend.sqlite,
        description="'sqlite' for a persistent file, 'memory' for a throwaway process-local store",
    )
    db_path: str = Field(
        default="data/surfacestream.db",
        validation_alias=AliasChoices("DB_PATH", "SURFACESTREAM_DB_PATH"),
        description="SQLite path for surfaces, visitors, segments and impressions",
    )

    # --- Delivery semantics ---
    until_completed_respects_session: bool = Field(
        default=True,
        description="If True, until_completed surfaces are also hidden once shown in the current session",
    )

    # --- Auth (optional: require key for production) ---
    require_studio_key: bool = Field(default=False, description="If True, Studio requires MCP_STUDIO_KEY env")
    require_engine_key: bool = Field(default=False, description="If True, Engine requires MCP_ENGINE_KEY env")

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Root log level")

    # --- Limits ---
    segment_usage_limit: int = Field(default=50, ge=1, le=1000, description="Max surfaces listed by segments_usage")
    max_import_batch: int = Field(default=500, ge=1, le=10000, description="Max records per seed/upsert batch")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be a logging level name, got {v!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    """Return the singleton RuntimeSettings (cached after first call)."""
    return RuntimeSettings()
