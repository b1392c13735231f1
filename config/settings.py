"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Every variable is prefixed with INGEST_ (e.g. INGEST_DEFAULT_CHUNK_SIZE).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Ingestion engine settings.

    All values loaded from .env file or environment variables.
    Per-run ParseOptions fall back to these defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="INGEST_",
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # STREAMING
    # ===================
    default_chunk_size: int = Field(
        default=10000,
        ge=1,
        le=1_000_000,
        description="Rows per streaming window"
    )
    default_start_row: int = Field(
        default=1,
        ge=0,
        description="First sheet row to parse (row 0 is the header)"
    )
    memory_limit_mb: int = Field(
        default=512,
        ge=16,
        le=65536,
        description="Advisory memory budget for a streaming run"
    )

    # ===================
    # COLUMN MAPPING
    # ===================
    similarity_threshold: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Minimum fuzzy similarity for an auto-detected mapping"
    )

    # ===================
    # COERCION
    # ===================
    numeric_policy: str = Field(
        default="default_zero",
        pattern="^(default_zero|skip_row|error)$",
        description="What to do with unparseable numeric cells"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=False,
        description="Verbose row-level logging"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
