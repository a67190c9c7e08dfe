"""Tests for inserts, moves and deletes.

Every test starts from Root[A[A1, A2], B[B1]]:

    Root(1,12) A(2,7) A1(3,4) A2(5,6) B(8,11) B1(9,10)
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from sqlalchemy import event

from nested_set.core.database.exceptions import InvalidMoveError
from nested_set.core.database.hierarchy import (
    check_tree,
    delete_node,
    insert_node,
    move_node,
    partition_locks,
)
from nested_set.infra.logging import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from tests.utils import Category, ScopedNode, build_sample_tree, names, shape

RENUMBER_LOGGER = "nested_set.core.database.hierarchy.renumber"


@pytest.fixture
async def tree(db_session):
    return await build_sample_tree(db_session)


@pytest.mark.unit
@pytest.mark.asyncio
class TestInsert:
    """Placing new nodes."""

    async def test_sample_tree_numbering(self, db_session, tree):
        assert await shape(db_session, Category) == {
            "Root": (1, 12, 0),
            "A": (2, 7, 1),
            "A1": (3, 4, 2),
            "A2": (5, 6, 2),
            "B": (8, 11, 1),
            "B1": (9, 10, 2),
        }

    async def test_loaded_instances_follow_renumbering(self, tree):
        assert (tree["Root"].lft, tree["Root"].rgt) == (1, 12)
        assert (tree["A"].lft, tree["A"].rgt) == (2, 7)
        assert tree["B1"].parent_id == tree["B"].id

    async def test_second_root_goes_last(self, db_session, tree):
        other = await Category.add_root(db_session, Category(name="Other"))

        assert (other.lft, other.rgt, other.depth) == (13, 14, 0)
        assert names(await Category.get_roots(db_session)) == ["Root", "Other"]

    async def test_child_appended_after_existing_children(self, db_session, tree):
        a3 = await tree["A"].add_child(db_session, Category(name="A3"))

        assert (a3.lft, a3.rgt, a3.depth) == (7, 8, 2)
        assert names(await tree["A"].get_children(db_session)) == ["A1", "A2", "A3"]
        assert (tree["B"].lft, tree["B"].rgt) == (10, 13)
        assert tree["Root"].rgt == 14

    async def test_persisted_node_cannot_be_inserted_again(self, db_session, tree):
        with pytest.raises(InvalidMoveError):
            await insert_node(db_session, tree["A1"], parent=tree["B"])

    async def test_tree_stays_valid_after_inserts(self, db_session, tree):
        await tree["B1"].add_child(db_session, Category(name="B1a"))

        result = await check_tree(db_session, Category)

        assert result.valid, result.errors


@pytest.mark.unit
@pytest.mark.asyncio
class TestMove:
    """Moving subtrees."""

    async def test_move_to_child_of(self, db_session, tree):
        await tree["A1"].move_to_child_of(db_session, tree["B"])

        assert await shape(db_session, Category) == {
            "Root": (1, 12, 0),
            "A": (2, 5, 1),
            "A2": (3, 4, 2),
            "B": (6, 11, 1),
            "B1": (7, 8, 2),
            "A1": (9, 10, 2),
        }
        assert tree["A1"].parent_id == tree["B"].id
        assert (tree["A1"].lft, tree["A1"].rgt) == (9, 10)

    async def test_move_to_left_of(self, db_session, tree):
        await tree["B"].move_to_left_of(db_session, tree["A"])

        assert await shape(db_session, Category) == {
            "Root": (1, 12, 0),
            "B": (2, 5, 1),
            "B1": (3, 4, 2),
            "A": (6, 11, 1),
            "A1": (7, 8, 2),
            "A2": (9, 10, 2),
        }

    async def test_move_to_right_of(self, db_session, tree):
        await tree["A1"].move_to_right_of(db_session, tree["A2"])

        assert names(await tree["A"].get_children(db_session)) == ["A2", "A1"]
        assert (tree["A1"].lft, tree["A1"].rgt) == (5, 6)

    async def test_move_to_root(self, db_session, tree):
        await tree["A"].move_to_root(db_session)

        assert await shape(db_session, Category) == {
            "Root": (1, 6, 0),
            "B": (2, 5, 1),
            "B1": (3, 4, 2),
            "A": (7, 12, 0),
            "A1": (8, 9, 1),
            "A2": (10, 11, 1),
        }
        assert tree["A"].parent_id is None
        assert tree["A"].is_root

    async def test_move_changes_depth_of_whole_subtree(self, db_session, tree):
        await tree["B"].move_to_child_of(db_session, tree["A2"])

        assert await shape(db_session, Category) == {
            "Root": (1, 12, 0),
            "A": (2, 11, 1),
            "A1": (3, 4, 2),
            "A2": (5, 10, 2),
            "B": (6, 9, 3),
            "B1": (7, 8, 4),
        }

    async def test_move_to_current_position_is_noop(self, db_session, tree):
        before = await shape(db_session, Category)

        await tree["A2"].move_to_right_of(db_session, tree["A1"])
        await tree["A2"].move_to_child_of(db_session, tree["A"])

        assert await shape(db_session, Category) == before

    async def test_move_into_self_rejected(self, db_session, tree):
        with pytest.raises(InvalidMoveError):
            await tree["A"].move_to_child_of(db_session, tree["A"])

    async def test_move_into_descendant_rejected(self, db_session, tree):
        before = await shape(db_session, Category)

        with pytest.raises(InvalidMoveError):
            await tree["Root"].move_to_child_of(db_session, tree["A1"])

        assert await shape(db_session, Category) == before

    async def test_unknown_position_rejected(self, db_session, tree):
        with pytest.raises(ValueError):
            await move_node(db_session, tree["A1"], tree["B"], "inside")  # type: ignore[arg-type]

    async def test_target_required(self, db_session, tree):
        with pytest.raises(ValueError):
            await move_node(db_session, tree["A1"], None, "child")

    async def test_transient_node_cannot_move(self, db_session, tree):
        with pytest.raises(InvalidMoveError):
            await Category(name="new").move_to_child_of(db_session, tree["A"])

    async def test_tree_stays_valid_after_moves(self, db_session, tree):
        await tree["A1"].move_to_child_of(db_session, tree["B1"])
        await tree["B"].move_to_left_of(db_session, tree["A"])
        await tree["A2"].move_to_root(db_session)

        result = await check_tree(db_session, Category)

        assert result.valid, result.errors


@pytest.mark.unit
@pytest.mark.asyncio
class TestDelete:
    """Deleting subtrees."""

    async def test_delete_subtree_closes_gap(self, db_session, tree):
        deleted = await tree["A"].delete_subtree(db_session)

        assert deleted == 3
        assert await shape(db_session, Category) == {
            "Root": (1, 6, 0),
            "B": (2, 5, 1),
            "B1": (3, 4, 2),
        }
        assert (tree["B"].lft, tree["B"].rgt) == (2, 5)

    async def test_delete_leaf(self, db_session, tree):
        assert await delete_node(db_session, tree["B1"]) == 1

        assert tree["B"].is_leaf
        assert (await check_tree(db_session, Category)).valid

    async def test_subtree_deleted_by_boundary_range(self, db_session, db_engine, tree):
        statements: list[str] = []

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(db_engine.sync_engine, "before_cursor_execute", capture)
        try:
            deleted = await tree["Root"].delete_subtree(db_session)
        finally:
            event.remove(db_engine.sync_engine, "before_cursor_execute", capture)

        deletes = [s for s in statements if s.lstrip().upper().startswith("DELETE")]
        assert deleted == 6
        assert len(deletes) == 1
        assert " IN " not in deletes[0].upper()
        assert await shape(db_session, Category) == {}

    async def test_transient_node_cannot_be_deleted(self, db_session):
        with pytest.raises(InvalidMoveError):
            await delete_node(db_session, Category(name="nope"))


@pytest.mark.unit
@pytest.mark.asyncio
class TestScopedMutations:
    """Mutations stay inside one partition."""

    async def test_child_inherits_scope(self, db_session):
        root = await ScopedNode.add_root(db_session, ScopedNode(name="root", tree_id=7))
        child = await root.add_child(db_session, ScopedNode(name="child"))

        assert child.tree_id == 7
        assert (child.lft, child.rgt) == (2, 3)

    async def test_partitions_numbered_independently(self, db_session):
        a = await ScopedNode.add_root(db_session, ScopedNode(name="a", tree_id=1))
        b = await ScopedNode.add_root(db_session, ScopedNode(name="b", tree_id=2))
        await a.add_child(db_session, ScopedNode(name="a-child"))

        assert (b.lft, b.rgt) == (1, 2)
        assert await shape(db_session, ScopedNode, tree_id=1) == {"a": (1, 4, 0), "a-child": (2, 3, 1)}

    async def test_insert_under_parent_in_other_scope_rejected(self, db_session):
        root = await ScopedNode.add_root(db_session, ScopedNode(name="root", tree_id=1))

        with pytest.raises(InvalidMoveError):
            await root.add_child(db_session, ScopedNode(name="stray", tree_id=2))

    async def test_move_across_scopes_rejected(self, db_session):
        a = await ScopedNode.add_root(db_session, ScopedNode(name="a", tree_id=1))
        b = await ScopedNode.add_root(db_session, ScopedNode(name="b", tree_id=2))

        with pytest.raises(InvalidMoveError):
            await a.move_to_child_of(db_session, b)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSerialization:
    """Mutations in one partition wait for each other."""

    async def test_mutation_waits_for_partition_lock(self, db_session, tree):
        key = ("test_categories",)
        finished = asyncio.Event()

        async def add() -> None:
            await tree["B"].add_child(db_session, Category(name="B2"))
            finished.set()

        async with partition_locks.hold(key):
            task = asyncio.create_task(add())
            await asyncio.sleep(0.01)
            assert partition_locks.is_locked(key)
            assert not finished.is_set()

        await task
        assert finished.is_set()
        assert names(await tree["B"].get_children(db_session)) == ["B1", "B2"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestMutationLogging:
    """Mutation records carry the tree and partition they touched."""

    async def test_records_tagged_with_partition(self, db_session, caplog):
        caplog.handler.addFilter(ContextInjectingFilter())

        with caplog.at_level(logging.INFO, logger=RENUMBER_LOGGER):
            root = await ScopedNode.add_root(db_session, ScopedNode(name="root", tree_id=4))
            await root.add_child(db_session, ScopedNode(name="child"))

        inserted = [r for r in caplog.records if r.getMessage() == "Inserted node"]
        assert len(inserted) == 2
        assert all(r.tree == "ScopedNode" for r in inserted)
        assert all(r.partition == ("test_scoped_nodes", 4) for r in inserted)

    async def test_context_restored_after_mutation(self, db_session, tree):
        set_log_context(request_id="abc")
        try:
            before = get_log_context()
            await tree["A1"].move_to_right_of(db_session, tree["B"])

            assert get_log_context() == before
            assert before["request_id"] == "abc"
        finally:
            clear_log_context()

    async def test_context_restored_after_rejected_move(self, db_session, tree):
        before = get_log_context()

        with pytest.raises(InvalidMoveError):
            await tree["A"].move_to_child_of(db_session, tree["A1"])

        assert get_log_context() == before
        assert "partition" not in before
