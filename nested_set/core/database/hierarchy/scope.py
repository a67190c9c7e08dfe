"""Scope partitioning for nested set queries.

Scope columns split one table into independent forests. Boundary numbers are
only comparable between rows whose scope values all match, so every
instance-level query is restricted with ``scope_predicate`` before any
boundary comparison is applied.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, true

from nested_set.core.database.exceptions import ConfigurationError, IncompleteNodeError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.sql.elements import ColumnElement

    from nested_set.core.database.hierarchy.config import NestedSetColumns


def scope_values(columns: NestedSetColumns, node: Any) -> tuple[Any, ...]:
    """Return the node's scope values in configured order.

    Raises:
        IncompleteNodeError: If any scope value is unset
    """
    values = tuple(getattr(node, attr.key) for attr in columns.scope)
    missing = [attr.key for attr, value in zip(columns.scope, values, strict=True) if value is None]
    if missing:
        raise IncompleteNodeError(columns.model_name, missing)
    return values


def scope_predicate(columns: NestedSetColumns, node: Any) -> ColumnElement[bool]:
    """Build the predicate restricting a query to the node's partition.

    Returns ``true()`` when no scope columns are configured, otherwise an
    equality conjunction over every scope column. Partial scope matching is
    not supported.

    Args:
        columns: Resolved nested set columns
        node: Instance whose current scope values are used

    Raises:
        IncompleteNodeError: If any scope value is unset
    """
    if not columns.scope:
        return true()
    values = scope_values(columns, node)
    return and_(*(attr == value for attr, value in zip(columns.scope, values, strict=True)))


def scope_filter(columns: NestedSetColumns, values: Mapping[str, Any]) -> ColumnElement[bool]:
    """Build a partition predicate from explicit scope values.

    Used by collection-level queries (roots, leaves). An empty mapping means
    no restriction; otherwise every configured scope column must be given.

    Raises:
        ConfigurationError: If values name unknown columns or omit configured ones
    """
    if not values:
        return true()
    keys = columns.scope_keys
    unknown = sorted(set(values) - set(keys))
    if unknown:
        raise ConfigurationError(
            f"{columns.model_name} has no scope column(s): {', '.join(unknown)}",
            columns.model_name,
            scope=unknown,
        )
    omitted = [key for key in keys if key not in values]
    if omitted:
        raise ConfigurationError(
            f"Scope filter for {columns.model_name} is missing: {', '.join(omitted)}",
            columns.model_name,
            missing=omitted,
        )
    return and_(*(attr == values[attr.key] for attr in columns.scope))


def same_scope(columns: NestedSetColumns, node: Any, other: Any) -> bool:
    """Check in memory whether two nodes belong to the same partition."""
    return all(getattr(node, attr.key) == getattr(other, attr.key) for attr in columns.scope)


def partition_key(columns: NestedSetColumns, node: Any) -> tuple[Any, ...]:
    """Identify the node's partition: table name plus scope values."""
    return (columns.table_name, *scope_values(columns, node))


__all__ = [
    "partition_key",
    "same_scope",
    "scope_filter",
    "scope_predicate",
    "scope_values",
]
