"""Attaching nested set behavior to a model class.

``configure_nested_set`` resolves a ``NestedSetConfig`` against a mapped
class once, installs the boundary write guard, and stores the resulting
``NestedSet`` query module on the class as ``__nested_set__``. Calling it
again replaces the previous configuration.

Example:
    >>> class Category(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
    ...     __tablename__ = "categories"
    ...     catalog: Mapped[str] = mapped_column(String(50))
    >>>
    >>> configure_nested_set(Category, scope="catalog")

    Or as a decorator:
    >>> @nested_set(scope="catalog")
    ... class Category(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
    ...     ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from nested_set.core.database.exceptions import ConfigurationError
from nested_set.core.database.hierarchy.config import NestedSetConfig, resolve_columns
from nested_set.core.database.hierarchy.guard import BoundaryWriteGuard
from nested_set.core.database.hierarchy.queries import NestedSet
from nested_set.core.settings import get_hierarchy_settings

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=type)


def configure_nested_set(
    model: ModelT,
    config: NestedSetConfig | None = None,
    /,
    **options: Any,
) -> ModelT:
    """Configure ``model`` as a nested set.

    Args:
        model: Mapped SQLAlchemy model class
        config: Explicit configuration; mutually exclusive with options
        **options: NestedSetConfig fields (left_column, right_column,
            parent_column, depth_column, primary_key, scope, leaf_strategy)

    Returns:
        The model class, so the call can be used as a decorator

    Raises:
        ConfigurationError: If the configuration is invalid for the model
    """
    if config is not None and options:
        raise ConfigurationError(
            "Pass either a NestedSetConfig or keyword options, not both",
            model_name=model.__name__,
        )
    if config is None:
        config = NestedSetConfig.from_options(options)

    columns = resolve_columns(model, config)

    previous = model.__dict__.get("__nested_set__")
    if isinstance(previous, NestedSet) and previous.guard is not None:
        previous.guard.uninstall()

    settings = get_hierarchy_settings()
    tree = NestedSet(columns, log_statements=settings.log_statements)
    tree.guard = BoundaryWriteGuard(columns)
    tree.guard.install()
    model.__nested_set__ = tree

    logger.debug(
        "Configured nested set",
        extra={
            "model": model.__name__,
            "left": columns.left.key,
            "right": columns.right.key,
            "parent": columns.parent.key,
            "depth": columns.depth.key if columns.depth is not None else None,
            "scope": list(columns.scope_keys),
            "reconfigured": previous is not None,
        },
    )
    return model


def nested_set(**options: Any) -> Callable[[ModelT], ModelT]:
    """Class decorator form of ``configure_nested_set``."""

    def decorator(model: ModelT) -> ModelT:
        return configure_nested_set(model, **options)

    return decorator


def get_nested_set(model_or_node: Any) -> NestedSet:
    """Return the query module attached to a model class or instance.

    Raises:
        ConfigurationError: If the model was never configured
    """
    cls = model_or_node if isinstance(model_or_node, type) else type(model_or_node)
    tree = getattr(cls, "__nested_set__", None)
    if not isinstance(tree, NestedSet):
        raise ConfigurationError(
            f"{cls.__name__} is not configured as a nested set; call configure_nested_set()",
            model_name=cls.__name__,
        )
    return tree


__all__ = [
    "configure_nested_set",
    "get_nested_set",
    "nested_set",
]
