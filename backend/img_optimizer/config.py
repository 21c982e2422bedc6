"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "img-optimizer"
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"

    # Problem-detail links (type / moreInfo)
    error_docs_url: str = "https://github.com/fgribreau/plasmic-img-optimizer"

    # Cache
    cache_backend: Literal["disk", "memory", "redis"] = "disk"
    cache_dir: str = "./cache"
    cache_ttl_seconds: int = 86400  # 24 hours
    cache_max_size_mb: int = 1024
    cache_evict_interval_seconds: int = 300  # 0 disables the sweeper
    memory_cache_max_entries: int = 1024

    # Redis (cache_backend="redis")
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20
    redis_socket_timeout: float = 5.0

    # Source fetch
    fetch_timeout_seconds: float = 30.0
    max_source_bytes: int = 50 * 1024 * 1024  # 50MB
    user_agent: str = "Plasmic-Image-Optimizer/1.0"

    # Transform
    transform_timeout_seconds: float = 60.0
    transform_workers: int = 4
    max_image_pixels: int = 100_000_000

    # CORS
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def cache_max_size_bytes(self) -> int:
        return self.cache_max_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
