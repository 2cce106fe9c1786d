"""
Configuration management system using Pydantic Settings.
Supports environment-based configuration for different deployment environments.
"""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any, List
from enum import Enum
from pathlib import Path


class Environment(str, Enum):
    """Supported deployment environments"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Supported log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheBackend(str, Enum):
    """Local trip snapshot storage backends"""
    FILE = "file"
    REDIS = "redis"


class SupabaseSettings(BaseSettings):
    """Remote trip store (Supabase REST) configuration"""

    url: Optional[str] = Field(default=None, description="Supabase project URL")
    anon_key: Optional[str] = Field(default=None, description="Supabase anon/service key")
    trips_table: str = Field(default="trips")
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    model_config = {
        "env_prefix": "SUPABASE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


class PexelsSettings(BaseSettings):
    """Pexels API configuration"""

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("PEXELS_API_KEY", "PIXELS_API_KEY"),
        description="Pexels API key (Authorization header)"
    )
    api_url: str = Field(default="https://api.pexels.com/v1")
    per_page: int = Field(default=15, ge=1, le=80)
    max_page: int = Field(default=10, ge=1, le=80)
    timeout_seconds: float = Field(default=15.0, gt=0, le=120)
    validate_images: bool = Field(default=True)

    model_config = {
        "env_prefix": "PEXELS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


class EnrichmentSettings(BaseSettings):
    """Background artifact enrichment configuration"""

    batch_size: int = Field(default=3, ge=1, le=20)
    inter_batch_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    categorization_refresh_seconds: float = Field(default=60.0, gt=0, le=86400)

    model_config = {"env_prefix": "ENRICHMENT_"}


class LocalCacheSettings(BaseSettings):
    """Local fallback snapshot configuration"""

    backend: CacheBackend = Field(default=CacheBackend.FILE)
    directory: str = Field(default="data/trips")
    key_prefix: str = Field(default="SavedTrips_")

    model_config = {"env_prefix": "LOCAL_CACHE_"}


class RedisSettings(BaseSettings):
    """Redis cache configuration"""

    host: str = Field(default="redis")  # Default to docker service name
    port: int = Field(default=6379, ge=1, le=65535)
    password: Optional[str] = Field(default=None)
    db: int = Field(default=0, ge=0, le=15)
    max_connections: int = Field(default=20, ge=1, le=100)
    socket_timeout: int = Field(default=5, ge=1, le=30)

    @property
    def url(self) -> str:
        """Generate Redis URL from configuration"""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_"}


class Settings(BaseSettings):
    """Main application settings"""

    # Application Configuration
    app_name: str = Field(default="Trip Sync Coordinator")
    app_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    # One process only: coordinators and the enrichment guard live in memory.
    reload: bool = Field(default=False)

    # Logging Configuration
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    log_file: Optional[str] = Field(default=None)

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Nested Settings
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    pexels: PexelsSettings = Field(default_factory=PexelsSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    local_cache: LocalCacheSettings = Field(default_factory=LocalCacheSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v):
        """Validate and normalize environment setting"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from environment variable or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v or ["*"]

    def get_local_cache_path(self) -> Path:
        """Get absolute path for file-backed trip snapshots"""
        return Path(self.local_cache.directory).resolve()

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment == Environment.DEVELOPMENT

    def get_cors_config(self) -> Dict[str, Any]:
        """Get CORS configuration for FastAPI"""
        return {
            "allow_origins": self.cors_origins,
            "allow_credentials": True,
            "allow_methods": ["GET", "POST", "PUT", "DELETE"],
            "allow_headers": ["*"],
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance"""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment and files"""
    global settings
    settings = Settings()
    return settings
