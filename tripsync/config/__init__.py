"""
Configuration package for the Trip Sync Coordinator.
"""

from .settings import (
    Settings,
    Environment,
    LogLevel,
    CacheBackend,
    SupabaseSettings,
    PexelsSettings,
    EnrichmentSettings,
    LocalCacheSettings,
    RedisSettings,
    settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "CacheBackend",
    "SupabaseSettings",
    "PexelsSettings",
    "EnrichmentSettings",
    "LocalCacheSettings",
    "RedisSettings",
    "settings",
    "get_settings",
    "reload_settings",
]
