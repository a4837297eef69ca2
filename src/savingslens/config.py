"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables prefixed with SV_."""

    # Database
    database_url: str = ""
    connect_timeout_seconds: int = 10
    statement_timeout_ms: int = 5000

    # Platform canonicalization
    platform_cache_ttl_seconds: float = 300.0

    # Identity resolution
    fuzzy_threshold: float = 0.7
    partial_min_length: int = 3
    enable_caching: bool = True
    enable_auto_flagging: bool = True

    # Logging
    log_level: str = "info"

    model_config = {"env_file": ".env", "env_prefix": "SV_"}


def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
