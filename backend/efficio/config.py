"""
Efficio Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and exposes a `settings` object.
Who:   Read by the process entry point (efficio.main) only. Services receive
       their parameters explicitly through constructors.
When:  Loaded once at module import time; validated before the app starts.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development against a
    Redis server on localhost. Attributes are grouped by concern.
    """

    # ── Capability Store ──────────────────────────────────────────────────
    # Format: redis://[:password@]host:port/db
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL backing the capability store",
    )

    # Shared by all concurrent requests; the store is the only synchronization point
    redis_max_connections: int = Field(default=15, ge=1, le=500)

    # Client-side timeout, the only timeout applied to store operations
    redis_socket_timeout: float = Field(default=5.0, gt=0, le=60)

    # "redis" for the real server, "memory" for a process-local store (dev/tests)
    store_backend: str = Field(default="redis")

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Ensures the backend is one of the known capability store implementations."""
        valid = {"redis", "memory"}
        lower = v.lower()
        if lower not in valid:
            raise ValueError(f"Invalid store_backend '{v}'. Must be one of: {valid}")
        return lower

    # ── Connection Retry (startup ping) ───────────────────────────────────
    connect_max_attempts: int = Field(default=3, ge=1, le=10)
    connect_min_wait: int = Field(default=1, ge=0, le=30)
    connect_max_wait: int = Field(default=5, ge=1, le=120)

    # ── Identity ──────────────────────────────────────────────────────────
    # Session tokens are hex strings of this many random bytes
    session_token_bytes: int = Field(default=32, ge=16, le=64)

    # bcrypt cost factor for credential hashing (4 is the library minimum)
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:8080")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3030, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # Exposes POST /api/nuke, which wipes the whole store. Never enable in production.
    enable_flush_endpoint: bool = Field(default=False)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


settings = Settings()
