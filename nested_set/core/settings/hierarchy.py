"""Nested set runtime settings.

These settings tune how structural mutations are serialized and how much
the query layer logs. Column names are not settings: each model carries its
own explicit ``NestedSetConfig``.

Environment variables use NESTED_SET_ prefix.
Example: NESTED_SET_LOCK_ROWS=false, NESTED_SET_LOG_STATEMENTS=true
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HierarchySettings(BaseSettings):
    """Nested set mutation and diagnostics configuration.

    Attributes:
        lock_rows: Read boundaries with SELECT ... FOR UPDATE during mutations.
        serialize_mutations: Serialize mutations per scope partition in-process.
        log_statements: Log every built tree query at DEBUG level.
    """

    lock_rows: bool = Field(
        default=True,
        description="Lock partition rows with SELECT ... FOR UPDATE while renumbering",
    )
    serialize_mutations: bool = Field(
        default=True,
        description="Hold a per-partition asyncio lock for the duration of each mutation",
    )
    log_statements: bool = Field(
        default=False,
        description="Log generated tree queries at DEBUG level",
    )

    model_config = SettingsConfigDict(
        env_prefix="NESTED_SET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
