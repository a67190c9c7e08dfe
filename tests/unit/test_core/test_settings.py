"""Unit tests for modular Pydantic Settings v2."""
from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from nested_set.core.settings.hierarchy import HierarchySettings
from nested_set.core.settings.loader import (
    clear_all_caches,
    get_hierarchy_settings,
    get_logging_settings,
)
from nested_set.core.settings.logs import LoggingSettings


@pytest.mark.unit
class TestHierarchySettings:
    """Test suite for HierarchySettings."""

    def test_hierarchy_settings_defaults(self):
        """Test HierarchySettings default values."""
        settings = HierarchySettings()

        assert settings.lock_rows is True
        assert settings.serialize_mutations is True
        assert settings.log_statements is False

    def test_hierarchy_settings_frozen(self):
        """Test that HierarchySettings instances are frozen (immutable)."""
        settings = HierarchySettings()

        with pytest.raises(ValidationError):
            settings.lock_rows = False

    def test_hierarchy_settings_from_env(self, monkeypatch):
        """Test NESTED_SET_ environment variables."""
        monkeypatch.setenv("NESTED_SET_LOCK_ROWS", "false")
        monkeypatch.setenv("NESTED_SET_LOG_STATEMENTS", "true")

        settings = HierarchySettings()

        assert settings.lock_rows is False
        assert settings.log_statements is True

    def test_hierarchy_settings_invalid_bool(self, monkeypatch):
        monkeypatch.setenv("NESTED_SET_SERIALIZE_MUTATIONS", "sometimes")

        with pytest.raises(ValidationError):
            HierarchySettings()


@pytest.mark.unit
class TestLoggingSettings:
    """Test suite for LoggingSettings."""

    def test_logging_settings_defaults(self):
        """Test LoggingSettings default values."""
        settings = LoggingSettings()

        assert settings.service_name == "nested-set"
        assert settings.level == "INFO"
        assert settings.json_logs is True
        assert settings.console_enabled is True
        assert settings.include_context is True

    def test_logging_level_normalized(self):
        """Test that log level is normalized to uppercase."""
        settings = LoggingSettings(level="debug")

        assert settings.level == "DEBUG"
        assert settings.level_int == logging.DEBUG

    def test_logging_level_invalid(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="verbose")

    def test_logging_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("LOG_JSON_LOGS", "false")

        settings = LoggingSettings()

        assert settings.level == "WARNING"
        assert settings.json_logs is False

    def test_to_logging_kwargs(self):
        """Test conversion to configure_logging kwargs."""
        kwargs = LoggingSettings(level="ERROR", service_name="trees").to_logging_kwargs()

        assert kwargs["log_level"] == "ERROR"
        assert kwargs["service_name"] == "trees"
        assert kwargs["json_logs"] is True
        assert set(kwargs) == {
            "service_name",
            "log_level",
            "json_logs",
            "console_enabled",
            "include_context",
            "capture_warnings",
            "include_function_name",
        }


@pytest.mark.unit
class TestSettingsLoader:
    """Test suite for cached settings loaders."""

    def test_loaders_cache_instances(self):
        """Test that loaders return the same instance until cleared."""
        assert get_hierarchy_settings() is get_hierarchy_settings()
        assert get_logging_settings() is get_logging_settings()

    def test_clear_all_caches_reloads(self, monkeypatch):
        """Test that clearing caches picks up new environment values."""
        first = get_hierarchy_settings()
        monkeypatch.setenv("NESTED_SET_LOG_STATEMENTS", "true")

        assert get_hierarchy_settings() is first

        clear_all_caches()
        second = get_hierarchy_settings()

        assert second is not first
        assert second.log_statements is True
