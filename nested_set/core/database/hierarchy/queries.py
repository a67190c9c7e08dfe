"""Query algebra for nested set models.

Every structural read is a boundary comparison restricted to one scope
partition. ``NestedSet`` builds those statements for a configured model; it
never executes anything and never walks parent references beyond a single
equality match. ``NestedSetMixin`` executes the statements with an explicit
session.

Containment rule (same partition):
    B is a descendant-or-self of A  <=>  A.left <= B.left and B.right <= A.right

All statements are ordered by the left boundary, then by primary key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import aliased

from nested_set.core.database.exceptions import ConfigurationError, IncompleteNodeError
from nested_set.core.database.hierarchy.scope import (
    same_scope,
    scope_filter,
    scope_predicate,
)
from nested_set.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.sql.elements import ColumnElement

    from nested_set.core.database.hierarchy.config import NestedSetColumns, NestedSetConfig
    from nested_set.core.database.hierarchy.guard import BoundaryWriteGuard


class NestedSet:
    """Statement builders for one nested set model.

    Attached to a model class as ``__nested_set__`` by
    ``configure_nested_set``. Instance-level builders read the node's current
    boundary, identity and scope values; a node that lacks any value a query
    needs raises ``IncompleteNodeError`` instead of producing an empty or
    unbounded result.

    Example:
        >>> tree = Category.__nested_set__
        >>> stmt = tree.descendants(electronics)
        >>> result = await session.execute(stmt)
    """

    __slots__ = ("_lazy", "columns", "guard", "log_statements")

    def __init__(self, columns: NestedSetColumns, *, log_statements: bool = False) -> None:
        self.columns = columns
        self.log_statements = log_statements
        self.guard: BoundaryWriteGuard | None = None
        self._lazy = get_lazy_logger(f"nested_set.queries.{columns.model_name}")

    def __repr__(self) -> str:
        return f"NestedSet(model={self.columns.model_name!r}, config={self.columns.config!r})"

    @property
    def model(self) -> type[Any]:
        return self.columns.model

    @property
    def config(self) -> NestedSetConfig:
        return self.columns.config

    # ──────────────────────────────────────────────────────────────
    # Node values
    # ──────────────────────────────────────────────────────────────

    def boundaries(self, node: Any) -> tuple[Any, Any]:
        """Return ``(left, right)`` of a node.

        Raises:
            IncompleteNodeError: If either boundary is unset
        """
        c = self.columns
        left, right = c.left_of(node), c.right_of(node)
        missing = [
            key for key, value in ((c.left.key, left), (c.right.key, right)) if value is None
        ]
        if missing:
            raise IncompleteNodeError(c.model_name, missing)
        return left, right

    def identity(self, node: Any) -> Any:
        """Return the node's primary identifier.

        Raises:
            IncompleteNodeError: If the identifier is unset
        """
        value = self.columns.id_of(node)
        if value is None:
            raise IncompleteNodeError(self.columns.model_name, [self.columns.primary_key.key])
        return value

    def scope_predicate(self, node: Any) -> ColumnElement[bool]:
        return scope_predicate(self.columns, node)

    # ──────────────────────────────────────────────────────────────
    # Collection-level queries
    # ──────────────────────────────────────────────────────────────

    def roots(self, **scope: Any) -> Select[Any]:
        """Nodes without a parent, optionally limited to one partition."""
        c = self.columns
        return self._select("roots", c.parent.is_(None), scope_filter(c, scope))

    def first_root(self, **scope: Any) -> Select[Any]:
        """The first root by left boundary."""
        return self.roots(**scope).limit(1)

    def leaves(self, **scope: Any) -> Select[Any]:
        """Nodes without children.

        With the "arithmetic" leaf strategy a leaf is ``right - left == 1``,
        valid for unit-step numbering. The "exists" strategy checks that no
        row references the node as its parent.
        """
        c = self.columns
        if c.config.leaf_strategy == "exists":
            child = aliased(c.model)
            no_children = ~exists().where(getattr(child, c.parent.key) == c.primary_key)
            return self._select("leaves", no_children, scope_filter(c, scope))
        return self._select("leaves", c.right - c.left == 1, scope_filter(c, scope))

    # ──────────────────────────────────────────────────────────────
    # Instance-level queries
    # ──────────────────────────────────────────────────────────────

    def self_and_ancestors(self, node: Any) -> Select[Any]:
        """The node and every node whose interval contains it."""
        return self._select("self_and_ancestors", *self._ancestor_criteria(node))

    def ancestors(self, node: Any) -> Select[Any]:
        return self._select(
            "ancestors",
            *self._ancestor_criteria(node),
            self.columns.primary_key != self.identity(node),
        )

    def self_and_descendants(self, node: Any) -> Select[Any]:
        """The node and every node inside its interval."""
        return self._select("self_and_descendants", *self._descendant_criteria(node))

    def descendants(self, node: Any, *, max_depth: int | None = None) -> Select[Any]:
        """Every node inside the interval except the node itself.

        Args:
            node: Subtree root
            max_depth: Limit to this many levels below the node; requires a
                depth column

        Raises:
            ConfigurationError: If max_depth is given without a depth column
        """
        c = self.columns
        criteria = [*self._descendant_criteria(node), c.primary_key != self.identity(node)]
        if max_depth is not None:
            if c.depth is None:
                raise ConfigurationError(
                    "max_depth requires a depth column",
                    model_name=c.model_name,
                )
            depth = c.depth_of(node)
            if depth is None:
                raise IncompleteNodeError(c.model_name, [c.depth.key])
            criteria.append(c.depth <= depth + max_depth)
        return self._select("descendants", *criteria)

    def self_and_children(self, node: Any) -> Select[Any]:
        c = self.columns
        self.boundaries(node)
        node_id = self.identity(node)
        return self._select(
            "self_and_children",
            self.scope_predicate(node),
            or_(c.parent == node_id, c.primary_key == node_id),
        )

    def children(self, node: Any) -> Select[Any]:
        c = self.columns
        self.boundaries(node)
        return self._select("children", self.scope_predicate(node), c.parent == self.identity(node))

    def self_and_siblings(self, node: Any) -> Select[Any]:
        """Nodes sharing the node's parent (roots share the absent parent)."""
        return self._select("self_and_siblings", *self._sibling_criteria(node))

    def siblings(self, node: Any) -> Select[Any]:
        return self._select(
            "siblings",
            *self._sibling_criteria(node),
            self.columns.primary_key != self.identity(node),
        )

    def parent(self, node: Any) -> Select[Any] | None:
        """The node's direct parent, or None for a root."""
        c = self.columns
        self.boundaries(node)
        parent_id = c.parent_of(node)
        if parent_id is None:
            return None
        return self._select("parent", c.primary_key == parent_id)

    def descendant_count(self, node: Any) -> Select[Any]:
        c = self.columns
        return (
            select(func.count())
            .select_from(c.model)
            .where(*self._descendant_criteria(node), c.primary_key != self.identity(node))
        )

    def ancestor_count(self, node: Any) -> Select[Any]:
        c = self.columns
        return (
            select(func.count())
            .select_from(c.model)
            .where(*self._ancestor_criteria(node), c.primary_key != self.identity(node))
        )

    def has_children(self, node: Any) -> Select[Any]:
        c = self.columns
        self.boundaries(node)
        return select(exists().where(c.parent == self.identity(node)))

    # ──────────────────────────────────────────────────────────────
    # In-memory relationship checks
    # ──────────────────────────────────────────────────────────────

    def is_or_is_ancestor_of(self, node: Any, other: Any) -> bool:
        if not same_scope(self.columns, node, other):
            return False
        left, right = self.boundaries(node)
        other_left, other_right = self.boundaries(other)
        return bool(left <= other_left and other_right <= right)

    def is_ancestor_of(self, node: Any, other: Any) -> bool:
        return self.is_or_is_ancestor_of(node, other) and not self._is_same(node, other)

    def is_or_is_descendant_of(self, node: Any, other: Any) -> bool:
        return self.is_or_is_ancestor_of(other, node)

    def is_descendant_of(self, node: Any, other: Any) -> bool:
        return self.is_ancestor_of(other, node)

    # ──────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────

    def _ancestor_criteria(self, node: Any) -> list[ColumnElement[bool]]:
        c = self.columns
        left, right = self.boundaries(node)
        return [self.scope_predicate(node), c.left <= left, c.right >= right]

    def _descendant_criteria(self, node: Any) -> list[ColumnElement[bool]]:
        c = self.columns
        left, right = self.boundaries(node)
        return [self.scope_predicate(node), c.left >= left, c.right <= right]

    def _sibling_criteria(self, node: Any) -> list[ColumnElement[bool]]:
        c = self.columns
        self.boundaries(node)
        parent_id = c.parent_of(node)
        same_parent = c.parent.is_(None) if parent_id is None else c.parent == parent_id
        return [self.scope_predicate(node), same_parent]

    def _is_same(self, node: Any, other: Any) -> bool:
        if node is other:
            return True
        node_id = self.columns.id_of(node)
        return node_id is not None and node_id == self.columns.id_of(other)

    def _select(self, name: str, *criteria: ColumnElement[bool]) -> Select[Any]:
        c = self.columns
        stmt = select(c.model).where(*criteria).order_by(c.left, c.primary_key)
        if self.log_statements:
            self._lazy.debug(lambda: f"{c.model_name}.{name}: {stmt}")
        return stmt


__all__ = [
    "NestedSet",
]
