"""Hierarchical data support using the nested set model.

Every node stores a left and right boundary such that a node's interval
strictly contains the intervals of all its descendants. Structural reads
become single range comparisons; writes renumber the boundaries of the
affected scope partition.

Components:
    - NestedSetConfig: Column names for each structural role plus scope
    - configure_nested_set / nested_set: Attach tree behavior to a model
    - NestedSet: Statement builders for tree queries
    - NestedSetMixin: Tree navigation and mutation methods
    - NestedSetColumnsMixin: Default lft/rgt/depth/parent_id columns
    - BoundaryWriteGuard: Rejects direct assignment to boundaries
    - check_tree / rebuild_tree: Consistency check and recovery

Example:
    >>> from nested_set.core.database import Base, IntegerPKMixin
    >>> from nested_set.core.database.hierarchy import (
    ...     NestedSetColumnsMixin,
    ...     NestedSetMixin,
    ...     nested_set,
    ... )
    >>>
    >>> @nested_set(scope="catalog")
    ... class Category(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
    ...     __tablename__ = "categories"
    ...     name: Mapped[str] = mapped_column(String(255))
    ...     catalog: Mapped[str] = mapped_column(String(50))
    >>>
    >>> root = await Category.add_root(session, Category(name="All", catalog="shop"))
    >>> await root.add_child(session, Category(name="Books"))
    >>> descendants = await root.get_descendants(session)

Note:
    - Boundaries are only comparable within one scope partition
    - All methods are async and require a session parameter
    - Mutations run in the caller's transaction; commit is up to the caller
"""

from nested_set.core.database.hierarchy.attach import (
    configure_nested_set,
    get_nested_set,
    nested_set,
)
from nested_set.core.database.hierarchy.config import (
    LeafStrategy,
    NestedSetColumns,
    NestedSetConfig,
    resolve_columns,
)
from nested_set.core.database.hierarchy.guard import BoundaryWriteGuard
from nested_set.core.database.hierarchy.integrity import (
    TreeCheckResult,
    check_tree,
    rebuild_tree,
)
from nested_set.core.database.hierarchy.locking import PartitionLocks, partition_locks
from nested_set.core.database.hierarchy.mixins import (
    NestedSetColumnsMixin,
    NestedSetMixin,
)
from nested_set.core.database.hierarchy.queries import NestedSet
from nested_set.core.database.hierarchy.renumber import (
    MOVE_POSITIONS,
    MovePosition,
    delete_node,
    insert_node,
    move_node,
)
from nested_set.core.database.hierarchy.scope import (
    partition_key,
    same_scope,
    scope_filter,
    scope_predicate,
)

__all__ = [
    "MOVE_POSITIONS",
    "BoundaryWriteGuard",
    "LeafStrategy",
    "MovePosition",
    "NestedSet",
    "NestedSetColumns",
    "NestedSetColumnsMixin",
    "NestedSetConfig",
    "NestedSetMixin",
    "PartitionLocks",
    "TreeCheckResult",
    "check_tree",
    "configure_nested_set",
    "delete_node",
    "get_nested_set",
    "insert_node",
    "move_node",
    "nested_set",
    "partition_key",
    "partition_locks",
    "rebuild_tree",
    "resolve_columns",
    "same_scope",
    "scope_filter",
    "scope_predicate",
]
