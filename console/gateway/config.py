"""
Configuration for the ChainDB registry service.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Registry service configuration loaded from environment."""

    # Storage
    db_path: str = Field(default="./registry-data/registry.db", description="SQLite registry file")
    busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout")

    # Write authorization; unset means every write is rejected
    owner_key: str | None = Field(default=None, description="Key accepted for pointer writes")

    # Service settings
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8090, description="Bind port")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # History listing
    default_history_limit: int = Field(default=50, description="Default history entries")
    max_history_limit: int = Field(default=500, description="Maximum history entries")

    model_config = {"env_prefix": "REGISTRY_"}
