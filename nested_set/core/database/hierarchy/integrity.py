"""Consistency checks and rebuild for stored nested set rows.

``check_tree`` reports every structural violation it can find without
changing anything. ``rebuild_tree`` discards the stored boundaries and
renumbers each partition from the parent references, which is the recovery
path after rows were written outside the renumbering procedure.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from itertools import pairwise
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from nested_set.core.database.exceptions import TreeIntegrityError
from nested_set.core.database.hierarchy.attach import get_nested_set
from nested_set.core.database.hierarchy.renumber import reload_loaded_nodes

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from nested_set.core.database.hierarchy.config import NestedSetColumns

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Row:
    id: Any
    parent: Any
    left: Any
    right: Any
    depth: Any
    scope: tuple[Any, ...]


@dataclass(slots=True)
class TreeCheckResult:
    """Outcome of ``check_tree``.

    Attributes:
        model_name: Checked model
        partitions: Number of scope partitions inspected
        rows: Number of rows inspected
        errors: Human readable violations, empty when the tree is valid
    """

    model_name: str
    partitions: int = 0
    rows: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


async def check_tree(session: AsyncSession, model: type[Any]) -> TreeCheckResult:
    """Verify the stored boundaries of every partition of ``model``.

    Checks, per partition:
        - both boundaries set and ``left < right``
        - no boundary value used twice
        - boundary values form the gap-free range 1..2n
        - every child lies strictly inside its parent, in the same partition
        - siblings (and roots) do not overlap
        - the depth cache matches the parent chain

    Args:
        session: Async database session
        model: Configured nested set model

    Returns:
        TreeCheckResult listing every violation found
    """
    tree = get_nested_set(model)
    c = tree.columns
    rows = await _load_rows(session, c)
    result = TreeCheckResult(model_name=c.model_name, rows=len(rows))

    by_id = {row.id: row for row in rows}
    partitions = _group_by_scope(rows)
    result.partitions = len(partitions)

    for scope, members in partitions.items():
        label = _partition_label(c, scope)
        errors = result.errors

        bounded = []
        for row in members:
            if row.left is None or row.right is None:
                errors.append(f"{label}: node {row.id!r} has no boundaries")
            elif row.left >= row.right:
                errors.append(
                    f"{label}: node {row.id!r} has left {row.left} >= right {row.right}"
                )
            else:
                bounded.append(row)

        values = [v for row in bounded for v in (row.left, row.right)]
        duplicates = sorted(v for v, n in Counter(values).items() if n > 1)
        if duplicates:
            errors.append(f"{label}: boundary values used more than once: {duplicates}")
        elif len(bounded) == len(members) and sorted(values) != list(range(1, len(values) + 1)):
            errors.append(f"{label}: boundary values are not numbered 1..{len(values)}")

        siblings: dict[Any, list[_Row]] = defaultdict(list)
        for row in bounded:
            siblings[row.parent].append(row)

            if row.parent is None:
                if c.depth is not None and row.depth != 0:
                    errors.append(f"{label}: root {row.id!r} has depth {row.depth!r}, expected 0")
                continue

            parent = by_id.get(row.parent)
            if parent is None:
                errors.append(f"{label}: node {row.id!r} references missing parent {row.parent!r}")
                continue
            if parent.scope != row.scope:
                errors.append(f"{label}: node {row.id!r} has parent {parent.id!r} in another scope")
                continue
            if parent.left is None or parent.right is None:
                continue
            if not (parent.left < row.left and row.right < parent.right):
                errors.append(
                    f"{label}: node {row.id!r} [{row.left}, {row.right}] is not inside "
                    f"parent {parent.id!r} [{parent.left}, {parent.right}]"
                )
            if c.depth is not None and parent.depth is not None and row.depth != parent.depth + 1:
                errors.append(
                    f"{label}: node {row.id!r} has depth {row.depth!r}, expected {parent.depth + 1}"
                )

        for parent_id, group in siblings.items():
            group.sort(key=lambda r: r.left)
            for previous, current in pairwise(group):
                if current.left <= previous.right:
                    kind = "roots" if parent_id is None else "siblings"
                    errors.append(
                        f"{label}: {kind} {previous.id!r} and {current.id!r} overlap"
                    )

    if result.valid:
        logger.debug(
            "Tree check passed",
            extra={"model": c.model_name, "rows": result.rows, "partitions": result.partitions},
        )
    else:
        logger.warning(
            "Tree check found violations",
            extra={"model": c.model_name, "errors": len(result.errors)},
        )
    return result


async def rebuild_tree(session: AsyncSession, model: type[Any]) -> int:
    """Recompute boundaries and depth from parent references.

    Each partition is renumbered depth first starting at 1. Siblings keep
    their current order by left boundary, then primary key; rows without
    boundaries sort last.

    Args:
        session: Async database session
        model: Configured nested set model

    Returns:
        Number of rows renumbered

    Raises:
        TreeIntegrityError: If some rows cannot be reached from a root
            (a parent cycle, a dangling parent reference, or a parent in
            another partition)
    """
    tree = get_nested_set(model)
    c = tree.columns

    await session.flush()
    rows = await _load_rows(session, c)

    params: list[dict[str, Any]] = []
    for scope, members in _group_by_scope(rows).items():
        numbered = _number_partition(members)
        if len(numbered) != len(members):
            unreachable = sorted(
                (row.id for row in members if row.id not in numbered), key=repr
            )
            logger.warning(
                "Rebuild found unreachable rows",
                extra={"model": c.model_name, "scope": list(scope), "rows": unreachable},
            )
            raise TreeIntegrityError(
                f"{c.model_name} rows are unreachable from any root",
                details={"scope": _partition_label(c, scope), "ids": unreachable},
            )
        for node_id, (left, right, depth) in numbered.items():
            values = {c.primary_key.key: node_id, c.left.key: left, c.right.key: right}
            if c.depth is not None:
                values[c.depth.key] = depth
            params.append(values)

    if params:
        await session.execute(update(c.model), params)
        await reload_loaded_nodes(session, tree)

    logger.info("Rebuilt tree", extra={"model": c.model_name, "rows": len(params)})
    return len(params)


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────


async def _load_rows(session: AsyncSession, c: NestedSetColumns) -> list[_Row]:
    columns = [c.primary_key, c.parent, c.left, c.right, *c.scope]
    if c.depth is not None:
        columns.append(c.depth)
    result = await session.execute(select(*columns).order_by(c.primary_key))

    scope_count = len(c.scope)
    loaded = []
    for row in result.all():
        scope = tuple(row[4 : 4 + scope_count])
        loaded.append(
            _Row(
                id=row[0],
                parent=row[1],
                left=row[2],
                right=row[3],
                depth=row[4 + scope_count] if c.depth is not None else None,
                scope=scope,
            )
        )
    return loaded


def _group_by_scope(rows: list[_Row]) -> dict[tuple[Any, ...], list[_Row]]:
    partitions: dict[tuple[Any, ...], list[_Row]] = defaultdict(list)
    for row in rows:
        partitions[row.scope].append(row)
    return partitions


def _number_partition(rows: list[_Row]) -> dict[Any, tuple[int, int, int]]:
    """Assign (left, right, depth) depth first; unreachable rows are left out."""
    ids = {row.id for row in rows}
    children: dict[Any, list[_Row]] = defaultdict(list)
    roots = []
    for row in rows:
        if row.parent is None:
            roots.append(row)
        elif row.parent in ids:
            children[row.parent].append(row)

    def order(row: _Row) -> tuple[bool, Any, Any]:
        return (row.left is None, row.left if row.left is not None else 0, row.id)

    numbered: dict[Any, tuple[int, int, int]] = {}
    counter = 0
    # Explicit stack of (row, depth, entered) so deep trees do not hit the recursion limit
    stack = [(row, 0, False) for row in sorted(roots, key=order, reverse=True)]
    lefts: dict[Any, int] = {}
    while stack:
        row, depth, entered = stack.pop()
        counter += 1
        if entered:
            numbered[row.id] = (lefts.pop(row.id), counter, depth)
            continue
        lefts[row.id] = counter
        stack.append((row, depth, True))
        stack.extend(
            (child, depth + 1, False)
            for child in sorted(children[row.id], key=order, reverse=True)
        )
    return numbered


def _partition_label(c: NestedSetColumns, scope: tuple[Any, ...]) -> str:
    if not scope:
        return c.model_name
    pairs = ", ".join(f"{key}={value!r}" for key, value in zip(c.scope_keys, scope, strict=True))
    return f"{c.model_name}({pairs})"


__all__ = [
    "TreeCheckResult",
    "check_tree",
    "rebuild_tree",
]
