"""Boundary renumbering for inserts, moves and deletes.

Classic shift-and-renumber with a unit step (Celko, "Trees and Hierarchies
in SQL"): every node occupies ``right - left + 1 == 2 * subtree_size``
numbers and numbering inside a partition is gap-free.

- insert: open a gap of 2 at the insertion point, place the node in it.
- move: swap the node's interval with the adjacent range between it and the
  target position in a single UPDATE.
- delete: drop the subtree, then close the gap it leaves.

All statements run in the caller's transaction; callers commit. Each
operation flushes pending changes first, holds the partition lock while it
reads and rewrites boundaries, and finally reloads the boundary columns of
instances already present in the session.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm.attributes import set_committed_value

from nested_set.core.database.exceptions import InvalidMoveError
from nested_set.core.database.hierarchy.attach import get_nested_set
from nested_set.core.database.hierarchy.locking import partition_locks
from nested_set.core.database.hierarchy.scope import partition_key, same_scope, scope_predicate
from nested_set.core.settings import get_hierarchy_settings
from nested_set.infra.logging import log_context

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_set.core.database.hierarchy.queries import NestedSet

logger = logging.getLogger(__name__)

MovePosition = Literal["child", "left", "right", "root"]
MOVE_POSITIONS: frozenset[str] = frozenset({"child", "left", "right", "root"})

# Upper bound on identifiers per IN (...) when reloading session instances
_RELOAD_CHUNK = 500


@dataclass(frozen=True, slots=True)
class _Position:
    left: int
    right: int
    parent: Any
    depth: int | None


async def insert_node(session: AsyncSession, node: Any, parent: Any | None = None) -> Any:
    """Place a new node in its tree and persist it.

    Without a parent the node becomes the last root of its partition;
    otherwise it becomes the last child of ``parent``. Scope values left
    unset on the node are copied from the parent.

    Args:
        session: Async database session
        node: Transient instance to insert
        parent: Persisted parent node, or None for a new root

    Returns:
        The inserted node, flushed and with boundaries assigned

    Raises:
        InvalidMoveError: If the node is already persisted or its scope
            differs from the parent's
    """
    tree = get_nested_set(node)
    c = tree.columns

    if sa_inspect(node).identity is not None:
        raise InvalidMoveError(
            f"{c.model_name} node is already in a tree; use the move_to_* methods",
            details={"id": c.id_of(node)},
        )

    await session.flush()

    if parent is not None:
        await _ensure_loaded(session, parent)
        for attr in c.scope:
            parent_value = getattr(parent, attr.key)
            value = getattr(node, attr.key)
            if value is None:
                setattr(node, attr.key, parent_value)
            elif value != parent_value:
                logger.warning(
                    "Rejected insert across scopes",
                    extra={"model": c.model_name, "scope": attr.key},
                )
                raise InvalidMoveError(
                    f"Cannot insert a {c.model_name} node under a parent in another scope",
                    details={attr.key: value, f"parent_{attr.key}": parent_value},
                )

    async with _mutation(tree, node):
        if parent is None:
            max_right = await session.scalar(
                select(func.max(c.right)).where(scope_predicate(c, node))
            )
            left = (max_right or 0) + 1
            parent_id = None
            depth = 0
        else:
            target = await _read_position(session, tree, parent)
            await session.execute(_open_gap(tree, node, target.right, 2))
            left = target.right
            parent_id = tree.identity(parent)
            depth = target.depth + 1 if target.depth is not None else None

        set_committed_value(node, c.left.key, left)
        set_committed_value(node, c.right.key, left + 1)
        set_committed_value(node, c.parent.key, parent_id)
        if c.depth is not None:
            set_committed_value(node, c.depth.key, depth)

        session.add(node)
        await session.flush()
        await reload_loaded_nodes(session, tree)

        logger.info(
            "Inserted node",
            extra={"model": c.model_name, "node_id": c.id_of(node), "parent_id": parent_id, "left": left},
        )
    return node


async def move_node(
    session: AsyncSession,
    node: Any,
    target: Any | None,
    position: MovePosition,
) -> Any:
    """Move a node and its subtree relative to ``target``.

    Positions:
        child: last child of target
        left: previous sibling of target
        right: next sibling of target
        root: last root of the node's partition (target ignored)

    Args:
        session: Async database session
        node: Persisted node to move
        target: Reference node (None only for "root")
        position: One of MOVE_POSITIONS

    Returns:
        The moved node with reloaded boundaries

    Raises:
        ValueError: If the position is unknown or target is missing
        InvalidMoveError: If the node is not persisted, the target is the
            node itself or one of its descendants, or lies in another scope
    """
    if position not in MOVE_POSITIONS:
        raise ValueError(f"Unknown move position {position!r}; expected one of {sorted(MOVE_POSITIONS)}")
    if position != "root" and target is None:
        raise ValueError(f"Moving to {position!r} requires a target node")

    tree = get_nested_set(node)
    c = tree.columns

    if sa_inspect(node).identity is None:
        raise InvalidMoveError(f"{c.model_name} node must be inserted before it can be moved")

    await session.flush()
    await _ensure_loaded(session, node)
    if target is not None and position != "root":
        await _ensure_loaded(session, target)
        if not same_scope(c, node, target):
            _reject_move(tree, node, "Cannot move a node into another scope")
    else:
        target = None

    async with _mutation(tree, node):
        current = await _read_position(session, tree, node)
        node_id = tree.identity(node)

        if target is not None:
            target_pos = await _read_position(session, tree, target)
            if current.left <= target_pos.left and target_pos.right <= current.right:
                _reject_move(tree, node, "Cannot move a node into itself or its descendants")

        if position == "child":
            bound = target_pos.right
            new_parent = tree.identity(target)
            new_depth = target_pos.depth + 1 if target_pos.depth is not None else None
        elif position == "left":
            bound = target_pos.left
            new_parent = target_pos.parent
            new_depth = target_pos.depth
        elif position == "right":
            bound = target_pos.right + 1
            new_parent = target_pos.parent
            new_depth = target_pos.depth
        else:
            max_right = await session.scalar(
                select(func.max(c.right)).where(scope_predicate(c, node))
            )
            bound = (max_right or current.right) + 1
            new_parent = None
            new_depth = 0

        if bound > current.right:
            bound -= 1
            other_bound = current.right + 1
        else:
            other_bound = current.left - 1

        if bound in (current.left, current.right):
            logger.debug(
                "Move is a no-op",
                extra={"model": c.model_name, "node_id": node_id, "position": position},
            )
            return node

        a, b, c_low, d = sorted((current.left, current.right, bound, other_bound))
        await session.execute(_swap_ranges(tree, node, a, b, c_low, d))
        await session.execute(
            update(c.model)
            .where(c.primary_key == node_id)
            .values({c.parent: new_parent})
            .execution_options(synchronize_session=False)
        )

        shift = d - b if current.left == a else a - c_low
        if c.depth is not None and new_depth is not None and current.depth is not None:
            depth_delta = new_depth - current.depth
            if depth_delta:
                await session.execute(
                    update(c.model)
                    .where(
                        scope_predicate(c, node),
                        c.left >= current.left + shift,
                        c.right <= current.right + shift,
                    )
                    .values({c.depth: c.depth + depth_delta})
                    .execution_options(synchronize_session=False)
                )

        await reload_loaded_nodes(session, tree)

        logger.info(
            "Moved node",
            extra={
                "model": c.model_name,
                "node_id": node_id,
                "position": position,
                "target_id": c.id_of(target) if target is not None else None,
                "shift": shift,
            },
        )
    return node


async def delete_node(session: AsyncSession, node: Any) -> int:
    """Delete a node with all its descendants and close the gap.

    Args:
        session: Async database session
        node: Persisted node to delete

    Returns:
        Number of deleted rows

    Raises:
        InvalidMoveError: If the node is not persisted
    """
    tree = get_nested_set(node)
    c = tree.columns

    if sa_inspect(node).identity is None:
        raise InvalidMoveError(f"{c.model_name} node is not in a tree")

    await session.flush()
    await _ensure_loaded(session, node)
    node_id = tree.identity(node)

    async with _mutation(tree, node):
        current = await _read_position(session, tree, node)
        width = current.right - current.left + 1
        in_partition = scope_predicate(c, node)
        in_subtree = (in_partition, c.left >= current.left, c.right <= current.right)

        deleted = await session.scalar(select(func.count(c.primary_key)).where(*in_subtree))
        await session.execute(
            delete(c.model)
            .where(*in_subtree)
            .execution_options(synchronize_session="fetch")
        )
        await session.execute(
            update(c.model)
            .where(
                in_partition,
                or_(c.left > current.right, c.right > current.right),
            )
            .values(
                {
                    c.left: case((c.left > current.right, c.left - width), else_=c.left),
                    c.right: case((c.right > current.right, c.right - width), else_=c.right),
                }
            )
            .execution_options(synchronize_session=False)
        )
        await reload_loaded_nodes(session, tree)

        logger.info(
            "Deleted subtree",
            extra={"model": c.model_name, "node_id": node_id, "rows": deleted, "gap": width},
        )
    return deleted


# ──────────────────────────────────────────────────────────────
# Statements
# ──────────────────────────────────────────────────────────────


def _open_gap(tree: NestedSet, node: Any, at: int, width: int) -> Any:
    """Shift every boundary >= ``at`` right by ``width`` within the partition."""
    c = tree.columns
    return (
        update(c.model)
        .where(scope_predicate(c, node), c.right >= at)
        .values(
            {
                c.left: case((c.left >= at, c.left + width), else_=c.left),
                c.right: case((c.right >= at, c.right + width), else_=c.right),
            }
        )
        .execution_options(synchronize_session=False)
    )


def _swap_ranges(tree: NestedSet, node: Any, a: int, b: int, c_low: int, d: int) -> Any:
    """Exchange the adjacent boundary ranges [a, b] and [c_low, d]."""
    c = tree.columns

    def swapped(col: Any) -> Any:
        return case(
            (col.between(a, b), col + (d - b)),
            (col.between(c_low, d), col + (a - c_low)),
            else_=col,
        )

    return (
        update(c.model)
        .where(
            scope_predicate(c, node),
            or_(c.left.between(a, d), c.right.between(a, d)),
        )
        .values({c.left: swapped(c.left), c.right: swapped(c.right)})
        .execution_options(synchronize_session=False)
    )


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────


@contextlib.asynccontextmanager
async def _mutation(tree: NestedSet, node: Any) -> AsyncIterator[None]:
    key = partition_key(tree.columns, node)
    with log_context(tree=tree.columns.model_name, partition=key):
        if get_hierarchy_settings().serialize_mutations:
            async with partition_locks.hold(key):
                yield
        else:
            yield


async def _ensure_loaded(session: AsyncSession, node: Any) -> None:
    """Refresh expired attributes so values can be read without lazy loads."""
    state = sa_inspect(node)
    if state.identity is not None and state.expired_attributes:
        await session.refresh(node)


async def _read_position(session: AsyncSession, tree: NestedSet, node: Any) -> _Position:
    """Read the node's committed boundaries, locking the row when configured."""
    c = tree.columns
    columns = [c.left, c.right, c.parent]
    if c.depth is not None:
        columns.append(c.depth)
    stmt = select(*columns).where(c.primary_key == tree.identity(node))
    if get_hierarchy_settings().lock_rows:
        stmt = stmt.with_for_update()
    row = (await session.execute(stmt)).one_or_none()
    if row is None:
        raise InvalidMoveError(
            f"{c.model_name} node no longer exists",
            details={"id": tree.identity(node)},
        )
    return _Position(
        left=row[0],
        right=row[1],
        parent=row[2],
        depth=row[3] if c.depth is not None else None,
    )


async def reload_loaded_nodes(session: AsyncSession, tree: NestedSet) -> None:
    """Overwrite in-session instances of the model with their stored rows."""
    c = tree.columns
    ids = [
        c.id_of(obj)
        for obj in list(session.identity_map.values())
        if isinstance(obj, c.model) and obj not in session.deleted
    ]
    for start in range(0, len(ids), _RELOAD_CHUNK):
        chunk = ids[start : start + _RELOAD_CHUNK]
        await session.execute(
            select(c.model)
            .where(c.primary_key.in_(chunk))
            .execution_options(populate_existing=True)
        )


def _reject_move(tree: NestedSet, node: Any, message: str) -> None:
    c = tree.columns
    logger.warning(message, extra={"model": c.model_name, "node_id": c.id_of(node)})
    raise InvalidMoveError(message, details={"model": c.model_name, "id": c.id_of(node)})


__all__ = [
    "MOVE_POSITIONS",
    "MovePosition",
    "delete_node",
    "insert_node",
    "move_node",
    "reload_loaded_nodes",
]
