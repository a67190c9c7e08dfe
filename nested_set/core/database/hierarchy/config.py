"""Column configuration for nested set models.

A ``NestedSetConfig`` names the columns that play each structural role
(left boundary, right boundary, parent reference, depth cache, primary key)
plus zero or more scope columns. It is an immutable value; resolving it
against a mapped class produces ``NestedSetColumns``, which holds the
concrete instrumented attributes every query and guard works with.

Example:
    >>> config = NestedSetConfig(scope="tree")
    >>> config.scope
    ('tree',)
    >>> columns = resolve_columns(Category, config)
    >>> columns.left
    <sqlalchemy.orm.attributes.InstrumentedAttribute object ...>
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from nested_set.core.database.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy.orm import InstrumentedAttribute, Mapper

LeafStrategy = Literal["arithmetic", "exists"]

# Suffix appended to a bare reference name to reach its foreign key column
FOREIGN_KEY_SUFFIX = "_id"

LEAF_STRATEGIES: frozenset[str] = frozenset({"arithmetic", "exists"})


@dataclass(frozen=True, slots=True)
class NestedSetConfig:
    """Structural column names for one tree-shaped model.

    Attributes:
        left_column: Left boundary column (default "lft")
        right_column: Right boundary column (default "rgt")
        parent_column: Parent reference column (default "parent_id")
        depth_column: Depth cache column, or None when the model has none
        primary_key: Identifier attribute; None uses the mapper's primary key
        scope: Ordered scope column names; a single string is accepted
        leaf_strategy: "arithmetic" (right - left == 1) or "exists"
            (no row references the node as parent)

    Raises:
        ConfigurationError: If two roles share a column name or the leaf
            strategy is unknown
    """

    left_column: str = "lft"
    right_column: str = "rgt"
    parent_column: str = "parent_id"
    depth_column: str | None = "depth"
    primary_key: str | None = None
    scope: tuple[str, ...] = ()
    leaf_strategy: LeafStrategy = "arithmetic"

    def __post_init__(self) -> None:
        scope: Any = self.scope
        if scope is None:
            scope = ()
        elif isinstance(scope, str):
            scope = (scope,)
        else:
            scope = tuple(scope)
        object.__setattr__(self, "scope", scope)

        if self.leaf_strategy not in LEAF_STRATEGIES:
            raise ConfigurationError(
                f"Unknown leaf strategy {self.leaf_strategy!r}",
                leaf_strategy=self.leaf_strategy,
            )
        _check_distinct(self.role_names())

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> NestedSetConfig:
        """Build a config from an options mapping.

        Recognized keys are the field names of this class. Missing keys
        keep their defaults.

        Raises:
            ConfigurationError: If the mapping contains an unknown key
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown nested set option(s): {', '.join(unknown)}",
                options=unknown,
            )
        return cls(**dict(options))

    def role_names(self) -> list[tuple[str, str]]:
        """List (role, column name) pairs for every configured role."""
        roles = [
            ("left", self.left_column),
            ("right", self.right_column),
            ("parent", self.parent_column),
        ]
        if self.depth_column is not None:
            roles.append(("depth", self.depth_column))
        if self.primary_key is not None:
            roles.append(("primary_key", self.primary_key))
        roles.extend(("scope", name) for name in self.scope)
        return roles


@dataclass(frozen=True, slots=True)
class NestedSetColumns:
    """A config resolved against a mapped class.

    Every attribute is the model's ``InstrumentedAttribute`` for that role,
    looked up once when the model is configured.
    """

    model: type[Any]
    config: NestedSetConfig
    left: InstrumentedAttribute[Any]
    right: InstrumentedAttribute[Any]
    parent: InstrumentedAttribute[Any]
    depth: InstrumentedAttribute[Any] | None
    primary_key: InstrumentedAttribute[Any]
    scope: tuple[InstrumentedAttribute[Any], ...]

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @property
    def table_name(self) -> str:
        return str(self.model.__table__.name)

    @property
    def scope_keys(self) -> tuple[str, ...]:
        return tuple(attr.key for attr in self.scope)

    def left_of(self, node: Any) -> Any:
        return getattr(node, self.left.key)

    def right_of(self, node: Any) -> Any:
        return getattr(node, self.right.key)

    def parent_of(self, node: Any) -> Any:
        return getattr(node, self.parent.key)

    def depth_of(self, node: Any) -> Any:
        if self.depth is None:
            return None
        return getattr(node, self.depth.key)

    def id_of(self, node: Any) -> Any:
        return getattr(node, self.primary_key.key)


def resolve_columns(model: type[Any], config: NestedSetConfig) -> NestedSetColumns:
    """Resolve column names in ``config`` to attributes of ``model``.

    A scope name that is not itself a column is treated as a reference name
    and normalized to its foreign key form by appending ``_id``.

    Args:
        model: Mapped SQLAlchemy model class
        config: Column configuration

    Returns:
        Resolved columns for the model

    Raises:
        ConfigurationError: If the model is not mapped, a configured column
            does not exist, the primary key is composite, or two roles
            resolve to the same column
    """
    try:
        mapper: Mapper[Any] = sa_inspect(model)
    except NoInspectionAvailable as exc:
        raise ConfigurationError(
            f"{model.__name__} is not a mapped class",
            model_name=model.__name__,
        ) from exc

    model_name = model.__name__

    def require(role: str, name: str) -> str:
        if name not in mapper.columns:
            raise ConfigurationError(
                f"{role} column {name!r} does not exist",
                model_name=model_name,
                column=name,
            )
        return name

    left = require("Left boundary", config.left_column)
    right = require("Right boundary", config.right_column)
    parent = require("Parent", config.parent_column)
    depth = (
        require("Depth", config.depth_column) if config.depth_column is not None else None
    )

    if config.primary_key is not None:
        primary_key = require("Primary key", config.primary_key)
    else:
        pk_columns = mapper.primary_key
        if len(pk_columns) != 1:
            raise ConfigurationError(
                "Composite primary keys need an explicit primary_key option",
                model_name=model_name,
            )
        primary_key = mapper.get_property_by_column(pk_columns[0]).key

    scope = tuple(_normalize_scope_name(mapper, name, model_name) for name in config.scope)

    roles = [("left", left), ("right", right), ("parent", parent), ("primary_key", primary_key)]
    if depth is not None:
        roles.append(("depth", depth))
    roles.extend(("scope", name) for name in scope)
    _check_distinct(roles, model_name=model_name)

    return NestedSetColumns(
        model=model,
        config=config,
        left=getattr(model, left),
        right=getattr(model, right),
        parent=getattr(model, parent),
        depth=getattr(model, depth) if depth is not None else None,
        primary_key=getattr(model, primary_key),
        scope=tuple(getattr(model, name) for name in scope),
    )


def _normalize_scope_name(mapper: Mapper[Any], name: str, model_name: str) -> str:
    if name in mapper.columns:
        return name
    if not name.endswith(FOREIGN_KEY_SUFFIX):
        candidate = f"{name}{FOREIGN_KEY_SUFFIX}"
        if candidate in mapper.columns:
            return candidate
    raise ConfigurationError(
        f"Scope column {name!r} does not exist",
        model_name=model_name,
        scope=name,
    )


def _check_distinct(roles: Iterable[tuple[str, str]], model_name: str | None = None) -> None:
    seen: dict[str, str] = {}
    for role, name in roles:
        if name in seen:
            raise ConfigurationError(
                f"Column {name!r} is used for both {seen[name]} and {role}",
                model_name=model_name,
                column=name,
            )
        seen[name] = role


__all__ = [
    "FOREIGN_KEY_SUFFIX",
    "LEAF_STRATEGIES",
    "LeafStrategy",
    "NestedSetColumns",
    "NestedSetConfig",
    "resolve_columns",
]
