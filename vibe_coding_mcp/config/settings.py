"""Centralized configuration management for the Vibe Coding MCP toolkit.

This module provides a single source of truth for storage locations, batch
engine limits, git timeouts, logging and metrics settings.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Centralized settings for the Vibe Coding MCP toolkit."""

    # === Storage Configuration ===
    storage_dir: str = Field(
        default_factory=lambda: str(Path.home() / ".vibe-coding-mcp"),
        description="Root directory for sessions and templates",
    )
    log_dir: str | None = Field(default=None, description="Directory for log files (defaults to <storage_dir>/logs)")

    # === Batch Engine Configuration ===
    batch_default_timeout_ms: int = Field(default=60_000, description="Default per-operation timeout")
    batch_max_timeout_ms: int = Field(default=600_000, description="Upper bound accepted for a per-operation timeout")
    batch_history_limit: int = Field(default=20, description="Default page size for batch history")
    batch_max_history: int = Field(default=100, description="Terminal jobs retained by the job store")
    batch_strict_dependencies: bool = Field(
        default=False, description="Reject operations that depend on unknown operation ids"
    )

    # === Git Configuration ===
    git_timeout_seconds: float = Field(default=30.0, description="Timeout for a single git command")

    # === Test Environment Detection ===
    pytest_current_test: str | None = Field(default=None, description="Test mode indicator")

    # === HTTP SSE Server Configuration ===
    sse_host: str = Field(default="localhost", description="SSE server host")
    sse_port: int = Field(default=3001, description="SSE server port")

    # === Logging Configuration ===
    log_level: str = Field(default="INFO", description="Logging level")

    # === Metrics Configuration ===
    enable_metrics: bool = Field(default=True, description="Enable metrics collection")

    model_config = {
        "env_prefix": "VIBE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def __init__(self, **kwargs):
        """Initialize settings with environment-specific adjustments."""
        super().__init__(**kwargs)
        self._adjust_for_test_environment()

    def _adjust_for_test_environment(self):
        """Adjust settings for test environment."""
        if self.is_test_environment:
            self.git_timeout_seconds = min(self.git_timeout_seconds, 10.0)
            self.enable_metrics = False

    @model_validator(mode="after")
    def validate_configuration(self):
        """Validate configuration consistency."""
        if self.batch_default_timeout_ms <= 0:
            raise ValueError("batch_default_timeout_ms must be positive")
        if self.batch_max_timeout_ms < self.batch_default_timeout_ms:
            raise ValueError("batch_max_timeout_ms must not be lower than batch_default_timeout_ms")
        if self.batch_max_history < 1:
            raise ValueError("batch_max_history must be at least 1")
        return self

    @property
    def is_test_environment(self) -> bool:
        """Check if running in test environment."""
        return "PYTEST_CURRENT_TEST" in os.environ or self.pytest_current_test is not None

    @property
    def storage_path(self) -> Path:
        """Get the storage root as a Path object, creating it if needed."""
        path = Path(self.storage_dir).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def log_path(self) -> Path:
        """Directory that receives rotating log files."""
        path = Path(self.log_dir).expanduser().resolve() if self.log_dir else self.storage_path / "logs"
        path.mkdir(parents=True, exist_ok=True)
        return path


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        load_dotenv()
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the global settings instance (primarily for testing)."""
    global _settings
    _settings = None
