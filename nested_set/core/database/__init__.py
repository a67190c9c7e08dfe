"""Core database package: declarative base, primary key mixins and nested sets.

Base Classes and Mixins:
    - Base: Declarative base with constraint naming and auto table naming
    - IntegerPKMixin, UUIDPKMixin: Primary key strategies
    - NestedSetColumnsMixin: Default nested set columns
    - NestedSetMixin: Tree navigation and mutation methods

Exceptions:
    - NestedSetError: Base for every hierarchy error
    - ConfigurationError, UnauthorizedMutationError, IncompleteNodeError,
      InvalidMoveError, TreeIntegrityError

Example:
    from nested_set.core.database import Base, IntegerPKMixin, NestedSetMixin
"""

from nested_set.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    UUIDPKMixin,
)
from nested_set.core.database.exceptions import (
    ConfigurationError,
    IncompleteNodeError,
    InvalidMoveError,
    NestedSetError,
    TreeIntegrityError,
    UnauthorizedMutationError,
)
from nested_set.core.database.hierarchy import (
    NestedSetColumnsMixin,
    NestedSetConfig,
    NestedSetMixin,
    configure_nested_set,
    nested_set,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "ConfigurationError",
    "IncompleteNodeError",
    "IntegerPKMixin",
    "InvalidMoveError",
    "NestedSetColumnsMixin",
    "NestedSetConfig",
    "NestedSetError",
    "NestedSetMixin",
    "TreeIntegrityError",
    "UUIDPKMixin",
    "UnauthorizedMutationError",
    "configure_nested_set",
    "nested_set",
]
