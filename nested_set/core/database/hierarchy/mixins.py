"""Mixins for nested set models.

``NestedSetColumnsMixin`` declares the default structural columns.
``NestedSetMixin`` adds tree navigation and mutation methods that execute the
statements built by the model's ``NestedSet`` with an explicit async
session. The model still has to be configured with ``configure_nested_set``
(or the ``@nested_set`` decorator) before any of these methods are used.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from nested_set.core.database.hierarchy.attach import get_nested_set
from nested_set.core.database.hierarchy.integrity import check_tree, rebuild_tree
from nested_set.core.database.hierarchy.renumber import delete_node, insert_node, move_node
from nested_set.core.database.hierarchy.scope import same_scope

if TYPE_CHECKING:
    from typing import Self

    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_set.core.database.hierarchy.integrity import TreeCheckResult
    from nested_set.core.database.hierarchy.queries import NestedSet


class NestedSetColumnsMixin:
    """Default nested set columns: ``lft``, ``rgt``, ``depth``, ``parent_id``.

    The parent reference points at the model's own integer ``id`` column,
    so combine it with ``IntegerPKMixin`` and set ``__tablename__``
    explicitly. Models with other key types declare their own columns.

    Provides:
        lft: Left boundary (indexed)
        rgt: Right boundary (indexed)
        depth: Depth cache, 0 for roots
        parent_id: Parent reference, NULL for roots
    """

    __allow_unmapped__ = True

    lft: Mapped[int] = mapped_column(index=True, comment="Nested set left boundary")
    rgt: Mapped[int] = mapped_column(index=True, comment="Nested set right boundary")
    depth: Mapped[int] = mapped_column(default=0, comment="Distance from the root")

    @declared_attr
    def parent_id(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey(f"{cls.__tablename__}.id"),
            nullable=True,
            index=True,
            comment="Parent node, NULL for roots",
        )


class NestedSetMixin:
    """Tree navigation and mutation methods for nested set models.

    Reads are single boundary-comparison queries; nothing walks the parent
    chain. Mutations renumber the affected partition inside the session's
    transaction and leave committing to the caller.

    Example:
        >>> @nested_set(scope="catalog")
        ... class Category(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
        ...     __tablename__ = "categories"
        ...     name: Mapped[str] = mapped_column(String(255))
        ...     catalog: Mapped[str] = mapped_column(String(50))
        >>>
        >>> electronics = await Category.add_root(session, Category(name="Electronics", catalog="shop"))
        >>> laptops = await electronics.add_child(session, Category(name="Laptops"))
        >>> await session.commit()
        >>>
        >>> ancestors = await laptops.get_ancestors(session)
        >>> roots = await Category.get_roots(session, catalog="shop")

    Note:
        - All query methods are async and require a session parameter
        - Boundary attributes cannot be assigned directly; use move_to_*
    """

    __allow_unmapped__ = True

    @classmethod
    def nested_set(cls) -> NestedSet:
        """Return the model's configured query module."""
        return get_nested_set(cls)

    # ──────────────────────────────────────────────────────────────
    # In-memory predicates
    # ──────────────────────────────────────────────────────────────

    @property
    def is_root(self) -> bool:
        """True if the node has no parent.

        This property does NOT query the database.
        """
        return self.nested_set().columns.parent_of(self) is None

    @property
    def is_child(self) -> bool:
        """True if the node has a parent.

        This property does NOT query the database.
        """
        return not self.is_root

    @property
    def is_leaf(self) -> bool:
        """True if the node is persisted and its interval holds no other node.

        This property does NOT query the database.
        """
        c = self.nested_set().columns
        if sa_inspect(self).identity is None:
            return False
        left, right = c.left_of(self), c.right_of(self)
        return left is not None and right is not None and right - left == 1

    def is_ancestor_of(self, other: Any) -> bool:
        return self.nested_set().is_ancestor_of(self, other)

    def is_or_is_ancestor_of(self, other: Any) -> bool:
        return self.nested_set().is_or_is_ancestor_of(self, other)

    def is_descendant_of(self, other: Any) -> bool:
        return self.nested_set().is_descendant_of(self, other)

    def is_or_is_descendant_of(self, other: Any) -> bool:
        return self.nested_set().is_or_is_descendant_of(self, other)

    def in_same_scope(self, other: Any) -> bool:
        return same_scope(self.nested_set().columns, self, other)

    # ──────────────────────────────────────────────────────────────
    # Class-level queries
    # ──────────────────────────────────────────────────────────────

    @classmethod
    async def get_roots(cls, session: AsyncSession, **scope: Any) -> list[Self]:
        """Get all root nodes, optionally within one scope partition.

        Args:
            session: Async database session
            **scope: Values for every scope column, or none at all

        Returns:
            Root instances ordered by left boundary
        """
        result = await session.execute(cls.nested_set().roots(**scope))
        return list(result.scalars().all())

    @classmethod
    async def get_first_root(cls, session: AsyncSession, **scope: Any) -> Self | None:
        result = await session.execute(cls.nested_set().first_root(**scope))
        return result.scalar_one_or_none()

    @classmethod
    async def get_leaves(cls, session: AsyncSession, **scope: Any) -> list[Self]:
        result = await session.execute(cls.nested_set().leaves(**scope))
        return list(result.scalars().all())

    # ──────────────────────────────────────────────────────────────
    # Instance-level queries
    # ──────────────────────────────────────────────────────────────

    async def get_root(self, session: AsyncSession) -> Self:
        """Get the root of this node's tree (the node itself for a root)."""
        result = await session.execute(self.nested_set().self_and_ancestors(self).limit(1))
        return result.scalar_one()

    async def get_self_and_ancestors(self, session: AsyncSession) -> list[Self]:
        """Get the ancestors from the root down, followed by the node itself."""
        result = await session.execute(self.nested_set().self_and_ancestors(self))
        return list(result.scalars().all())

    async def get_ancestors(self, session: AsyncSession) -> list[Self]:
        """Get all ancestors, ordered from the root to the parent.

        Args:
            session: Async database session

        Returns:
            Ancestor instances; empty for a root
        """
        result = await session.execute(self.nested_set().ancestors(self))
        return list(result.scalars().all())

    async def get_self_and_descendants(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.nested_set().self_and_descendants(self))
        return list(result.scalars().all())

    async def get_descendants(
        self,
        session: AsyncSession,
        *,
        max_depth: int | None = None,
    ) -> list[Self]:
        """Get every node in this node's subtree except the node itself.

        Args:
            session: Async database session
            max_depth: Maximum depth of descendants relative to this node
                      (None for unlimited; requires a depth column)

        Returns:
            Descendant instances in preorder
        """
        stmt = self.nested_set().descendants(self, max_depth=max_depth)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_self_and_children(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.nested_set().self_and_children(self))
        return list(result.scalars().all())

    async def get_children(self, session: AsyncSession) -> list[Self]:
        """Get immediate children ordered by left boundary."""
        result = await session.execute(self.nested_set().children(self))
        return list(result.scalars().all())

    async def get_self_and_siblings(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.nested_set().self_and_siblings(self))
        return list(result.scalars().all())

    async def get_siblings(self, session: AsyncSession) -> list[Self]:
        """Get nodes sharing this node's parent; other roots for a root."""
        result = await session.execute(self.nested_set().siblings(self))
        return list(result.scalars().all())

    async def get_parent(self, session: AsyncSession) -> Self | None:
        """Get parent node.

        Args:
            session: Async database session

        Returns:
            Parent instance or None if this is a root node
        """
        stmt = self.nested_set().parent(self)
        if stmt is None:
            return None
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def descendant_count(self, session: AsyncSession) -> int:
        result = await session.execute(self.nested_set().descendant_count(self))
        return int(result.scalar_one())

    async def has_children(self, session: AsyncSession) -> bool:
        result = await session.execute(self.nested_set().has_children(self))
        return bool(result.scalar_one())

    async def get_level(self, session: AsyncSession) -> int:
        """Get the node's depth, 0 for roots.

        Reads the depth column when one is configured and set, otherwise
        counts ancestors.
        """
        tree = self.nested_set()
        depth = tree.columns.depth_of(self)
        if depth is not None:
            return int(depth)
        result = await session.execute(tree.ancestor_count(self))
        return int(result.scalar_one())

    # ──────────────────────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────────────────────

    @classmethod
    async def add_root(cls, session: AsyncSession, node: Self) -> Self:
        """Insert ``node`` as the last root of its scope partition."""
        return await insert_node(session, node)

    async def add_child(self, session: AsyncSession, child: Self) -> Self:
        """Insert ``child`` as the last child of this node.

        Unset scope values on the child are copied from this node.
        """
        return await insert_node(session, child, parent=self)

    async def move_to_child_of(self, session: AsyncSession, target: Self) -> Self:
        """Move this subtree to become the last child of ``target``."""
        return await move_node(session, self, target, "child")

    async def move_to_left_of(self, session: AsyncSession, target: Self) -> Self:
        """Move this subtree to become the previous sibling of ``target``."""
        return await move_node(session, self, target, "left")

    async def move_to_right_of(self, session: AsyncSession, target: Self) -> Self:
        """Move this subtree to become the next sibling of ``target``."""
        return await move_node(session, self, target, "right")

    async def move_to_root(self, session: AsyncSession) -> Self:
        """Detach this subtree and make it the last root of its partition."""
        return await move_node(session, self, None, "root")

    async def delete_subtree(self, session: AsyncSession) -> int:
        """Delete this node and all its descendants.

        Returns:
            Number of deleted rows
        """
        return await delete_node(session, self)

    # ──────────────────────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────────────────────

    @classmethod
    async def check_tree(cls, session: AsyncSession) -> TreeCheckResult:
        return await check_tree(session, cls)

    @classmethod
    async def rebuild_tree(cls, session: AsyncSession) -> int:
        return await rebuild_tree(session, cls)


__all__ = [
    "NestedSetColumnsMixin",
    "NestedSetMixin",
]
