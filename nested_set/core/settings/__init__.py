"""Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from nested_set.core.settings import get_hierarchy_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file (development only)
"""

from __future__ import annotations

from .hierarchy import HierarchySettings
from .loader import clear_all_caches, get_hierarchy_settings, get_logging_settings
from .logs import LoggingSettings

__all__ = [
    "HierarchySettings",
    "LoggingSettings",
    "clear_all_caches",
    "get_hierarchy_settings",
    "get_logging_settings",
]
