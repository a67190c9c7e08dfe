"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from nested_set.core.settings.loader import get_hierarchy_settings

    settings = get_hierarchy_settings()  # First call: loads and validates
    settings = get_hierarchy_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .hierarchy import HierarchySettings
from .logs import LoggingSettings


@lru_cache(maxsize=1)
def get_hierarchy_settings() -> HierarchySettings:
    """Get cached nested set settings.

    Returns:
        Validated and frozen HierarchySettings instance.
    """
    return HierarchySettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    """
    get_hierarchy_settings.cache_clear()
    get_logging_settings.cache_clear()
