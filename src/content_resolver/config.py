import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Persistent store (tier 2 + canonical entities)
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./content_resolver.db")
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Redis (tier 1). Unset means the ephemeral tier is disabled.
    redis_url: str | None = os.getenv("REDIS_URL") or None
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Cache
    cache_ephemeral_ttl: int = int(os.getenv("CACHE_EPHEMERAL_TTL", "300"))  # 5 minutes
    cache_persistent_ttl_hours: int = int(os.getenv("CACHE_PERSISTENT_TTL_HOURS", "24"))

    # Provider guard
    provider_default: str = os.getenv("PROVIDER_DEFAULT", "hipolabs")
    provider_max_requests_per_hour: int = int(os.getenv("PROVIDER_MAX_REQUESTS_PER_HOUR", "100"))
    provider_max_retries: int = int(os.getenv("PROVIDER_MAX_RETRIES", "3"))
    provider_timeout: float = float(os.getenv("PROVIDER_TIMEOUT", "10.0"))
    hipolabs_base_url: str = os.getenv("HIPOLABS_BASE_URL", "http://universities.hipolabs.com")

    # Search pipeline
    search_max_persist: int = int(os.getenv("SEARCH_MAX_PERSIST", "50"))
    search_fallback_enabled: bool = os.getenv("SEARCH_FALLBACK_ENABLED", "false").lower() == "true"
    search_single_flight: bool = os.getenv("SEARCH_SINGLE_FLIGHT", "true").lower() == "true"

    # Normalization
    similarity_threshold: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.8"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"

    @property
    def ephemeral_tier_enabled(self) -> bool:
        """Check if a Redis URL is configured for the ephemeral tier.

        Returns:
            True if tier 1 should be created, False otherwise
        """
        return bool(self.redis_url)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 < self.similarity_threshold <= 1:
            raise ValueError("SIMILARITY_THRESHOLD must be in (0, 1]")

        if self.provider_max_requests_per_hour < 1:
            raise ValueError("PROVIDER_MAX_REQUESTS_PER_HOUR must be at least 1")

        if self.provider_max_retries < 0:
            raise ValueError("PROVIDER_MAX_RETRIES must not be negative")

        if self.cache_ephemeral_ttl <= 0 or self.cache_persistent_ttl_hours <= 0:
            raise ValueError(
                f"Cache TTLs must be positive, got CACHE_EPHEMERAL_TTL={self.cache_ephemeral_ttl} "
                f"and CACHE_PERSISTENT_TTL_HOURS={self.cache_persistent_ttl_hours}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis | None:
    """Create an async Redis client, or None when the ephemeral tier is disabled."""
    if not settings.ephemeral_tier_enabled:
        return None
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
