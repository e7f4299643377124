"""
Application configuration management.

Loads settings from environment variables with validation.
All secrets should be provided via environment variables, never hardcoded.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings for validation and type coercion.
    Webhook secrets and vendor keys must come from the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    environment: str = Field(default="development",
                             description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    app_name: str = Field(default="VisitFlow",
                          description="Application name")
    app_version: str = Field(
        default="1.0.0", description="Application version")
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(
        default="text", description="Log output format (text or json)")

    # ==========================================================================
    # Server Settings
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # ==========================================================================
    # Database Settings
    # ==========================================================================
    database_url: str = Field(
        default="sqlite:///./visitflow.db",
        description="SQLAlchemy connection string (PostgreSQL in production)"
    )
    db_pool_size: int = Field(
        default=10, description="Database connection pool size")
    db_max_overflow: int = Field(
        default=10, description="Max overflow connections")
    db_pool_recycle: int = Field(
        default=1800, description="Connection recycle time in seconds (30 min)")
    db_pool_timeout: int = Field(
        default=30, description="Connection checkout timeout in seconds")

    # ==========================================================================
    # Security Settings
    # ==========================================================================
    secret_key: str = Field(
        default="dev-secret-key-change-in-production",
        description="JWT signing key"
    )
    access_token_expire_minutes: int = Field(
        default=60, description="Access token lifetime in minutes")
    handoff_ttl_seconds: int = Field(
        default=300, description="Lifetime of a single-use auth handoff code")

    # ==========================================================================
    # Webhook Settings
    # ==========================================================================
    visit_webhook_secret: str = Field(
        default="",
        description="Shared secret for the visit-processed webhook"
    )
    assemblyai_webhook_secret: str = Field(
        default="",
        description="Optional shared secret for transcription callbacks"
    )

    # ==========================================================================
    # Transcription Vendor (AssemblyAI)
    # ==========================================================================
    assemblyai_api_key: str = Field(default="", description="AssemblyAI API key")
    assemblyai_base_url: str = Field(
        default="https://api.assemblyai.com/v2",
        description="AssemblyAI REST base URL"
    )
    assemblyai_timeout_seconds: float = Field(
        default=30.0, description="HTTP timeout for transcription calls")
    transcription_timeout_minutes: int = Field(
        default=60, description="Mark transcriptions failed after this long")
    transcription_poll_limit: int = Field(
        default=10, description="Visits checked per backup polling run")

    # ==========================================================================
    # Push Notifications
    # ==========================================================================
    push_gateway_url: str = Field(
        default="", description="Push gateway endpoint (empty = disabled)")
    push_gateway_token: str = Field(
        default="", description="Bearer token for the push gateway")

    # ==========================================================================
    # Persistence Policies
    # ==========================================================================
    default_page_size: int = Field(
        default=50, description="Page size when the client sends none")
    max_page_size: int = Field(default=100, description="Upper bound on page size")
    cascade_max_batch_writes: int = Field(
        default=500, description="Writes per committed cascade chunk")
    cascade_match_window_ms: int = Field(
        default=2000,
        description="Proximity window matching dependents to an owner's tombstone"
    )
    soft_delete_retention_days: int = Field(
        default=90, description="Tombstones older than this are purged")
    retention_purge_page_size: int = Field(
        default=200, description="Max rows purged per retention run")

    # ==========================================================================
    # Celery Settings
    # ==========================================================================
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1",
        description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2",
        description="Celery result backend URL"
    )
    celery_task_time_limit: int = Field(
        default=300, description="Task hard time limit in seconds")
    celery_worker_concurrency: int = Field(
        default=4, description="Worker concurrency")

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("max_page_size", "default_page_size", "cascade_max_batch_writes")
    @classmethod
    def positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to avoid reloading settings on every call.

    Returns:
        Settings instance
    """
    return Settings()


settings = get_settings()
