"""Test models and helpers for nested set tests.

Usage:
    from tests.utils import Category, seed, shape

    nodes = await seed(db_session, Category, SCENARIO_ROWS)
    assert await shape(db_session, Category) == {"Root": (1, 10, 0), ...}

Models:
    - Category: default columns, no scope
    - ScopedNode: default columns, scoped by ``tree`` (normalized to tree_id)
    - Folder: UUID key, custom column names, no depth column, scoped by
      owner, "exists" leaf strategy
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, String, insert, select
from sqlalchemy.orm import Mapped, mapped_column

from nested_set.core.database.base import Base, IntegerPKMixin, UUIDPKMixin
from nested_set.core.database.hierarchy import (
    NestedSetColumnsMixin,
    NestedSetMixin,
    configure_nested_set,
    get_nested_set,
    nested_set,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


class Category(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
    """Single-forest tree with the default columns."""

    __tablename__ = "test_categories"

    name: Mapped[str] = mapped_column(String(100))

    def __repr__(self) -> str:
        return f"Category({self.name!r})"


configure_nested_set(Category)


@nested_set(scope="tree")
class ScopedNode(Base, IntegerPKMixin, NestedSetColumnsMixin, NestedSetMixin):
    """Tree partitioned by ``tree_id``."""

    __tablename__ = "test_scoped_nodes"

    name: Mapped[str] = mapped_column(String(100))
    tree_id: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"ScopedNode({self.tree_id!r}, {self.name!r})"


class Folder(Base, UUIDPKMixin, NestedSetMixin):
    """Tree declaring its own column names."""

    __tablename__ = "test_folders"

    name: Mapped[str] = mapped_column(String(100))
    owner: Mapped[str] = mapped_column(String(50))
    parent_ref: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("test_folders.id"), nullable=True)
    lo: Mapped[int | None] = mapped_column(nullable=True)
    hi: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"Folder({self.owner!r}, {self.name!r})"


configure_nested_set(
    Folder,
    left_column="lo",
    right_column="hi",
    parent_column="parent_ref",
    depth_column=None,
    scope="owner",
    leaf_strategy="exists",
)


# Root(1,10) -> Child1(2,5) -> Grandchild(3,4); Child2(6,9)
SCENARIO_ROWS: list[dict[str, Any]] = [
    {"id": 1, "name": "Root", "lft": 1, "rgt": 10, "depth": 0, "parent_id": None},
    {"id": 2, "name": "Child1", "lft": 2, "rgt": 5, "depth": 1, "parent_id": 1},
    {"id": 3, "name": "Grandchild", "lft": 3, "rgt": 4, "depth": 2, "parent_id": 2},
    {"id": 4, "name": "Child2", "lft": 6, "rgt": 9, "depth": 1, "parent_id": 1},
]


async def seed(
    session: AsyncSession,
    model: type[Any],
    rows: Iterable[dict[str, Any]],
) -> dict[str, Any]:
    """Insert rows with fixed boundaries and return loaded instances by name.

    Uses an ORM bulk INSERT, which writes boundaries without going through
    instance attributes.
    """
    await session.execute(insert(model), list(rows))
    result = await session.execute(select(model))
    return {node.name: node for node in result.scalars().all()}


async def build_sample_tree(session: AsyncSession) -> dict[str, Category]:
    """Build Root[A[A1, A2], B[B1]] through the mutation API.

    Resulting boundaries:
        Root(1,12) A(2,7) A1(3,4) A2(5,6) B(8,11) B1(9,10)
    """
    root = await Category.add_root(session, Category(name="Root"))
    a = await root.add_child(session, Category(name="A"))
    a1 = await a.add_child(session, Category(name="A1"))
    a2 = await a.add_child(session, Category(name="A2"))
    b = await root.add_child(session, Category(name="B"))
    b1 = await b.add_child(session, Category(name="B1"))
    return {"Root": root, "A": a, "A1": a1, "A2": a2, "B": b, "B1": b1}


async def shape(session: AsyncSession, model: type[Any], **scope: Any) -> dict[str, tuple[Any, ...]]:
    """Read stored ``(left, right[, depth])`` per node name straight from the table."""
    c = get_nested_set(model).columns
    columns = [model.name, c.left, c.right]
    if c.depth is not None:
        columns.append(c.depth)
    stmt = select(*columns).order_by(c.left)
    for key, value in scope.items():
        stmt = stmt.where(getattr(model, key) == value)
    result = await session.execute(stmt)
    return {row[0]: tuple(row[1:]) for row in result.all()}


def names(nodes: Iterable[Any]) -> list[str]:
    return [node.name for node in nodes]
