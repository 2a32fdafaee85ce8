"""Tests for the bounded undo/redo history."""

import pytest

from page_editor.models import ComponentOperation, HistoryPhase, OperationType
from page_editor.services.history_manager import HistoryManager
from tests.helpers.factories import make_node, make_page


def op(component_id: str) -> ComponentOperation:
    return ComponentOperation(type=OperationType.UPDATE, component_id=component_id)


def page_with(*node_ids: str):
    return make_page(*(make_node(node_id) for node_id in node_ids))


@pytest.fixture
def history() -> HistoryManager:
    manager = HistoryManager(max_states=10)
    manager.add_state(op("s0"), page_with())
    manager.add_state(op("s1"), page_with("a"))
    manager.add_state(op("s2"), page_with("a", "b"))
    return manager


class TestCommits:
    """Idle commits append snapshots and advance the cursor."""

    def test_cursor_tracks_latest_commit(self, history):
        assert len(history) == 3
        assert history.current_index == 2
        assert history.current_state().operation.component_id == "s2"
        assert history.phase == HistoryPhase.IDLE

    def test_snapshots_are_deep_copies(self):
        manager = HistoryManager(max_states=5)
        page = page_with("a")
        snapshot = manager.add_state(op("s0"), page)
        assert snapshot.page_schema == page
        assert snapshot.page_schema is not page
        assert snapshot.page_schema.components[0] is not page.components[0]
        assert [c.id for c in snapshot.components] == ["a"]

    def test_oldest_states_are_evicted(self):
        manager = HistoryManager(max_states=3)
        for i in range(5):
            manager.add_state(op(f"s{i}"), page_with())
        assert len(manager) == 3
        assert manager.current_index == 2
        assert [s.operation.component_id for s in manager.all_states()] == ["s2", "s3", "s4"]

    def test_invalid_bound(self):
        with pytest.raises(ValueError):
            HistoryManager(max_states=0)


class TestUndoRedo:
    """Cursor moves and the APPLYING phase."""

    def test_undo_returns_previous_snapshot(self, history):
        snapshot = history.undo()
        assert snapshot.operation.component_id == "s1"
        assert history.current_index == 1
        assert history.phase == HistoryPhase.APPLYING

    def test_replay_commit_is_swallowed(self, history):
        snapshot = history.undo()
        assert history.add_state(snapshot.operation, snapshot.page_schema) is None
        assert history.phase == HistoryPhase.IDLE
        assert len(history) == 3
        assert history.can_redo()

    def test_redo_after_undo(self, history):
        history.undo()
        history.add_state(op("replay"), page_with("a"))
        snapshot = history.redo()
        assert snapshot.operation.component_id == "s2"
        assert history.current_index == 2

    def test_commit_after_undo_discards_redo_branch(self, history):
        snapshot = history.undo()
        history.add_state(snapshot.operation, snapshot.page_schema)
        history.add_state(op("new"), page_with("z"))

        assert [s.operation.component_id for s in history.all_states()] == ["s0", "s1", "new"]
        assert not history.can_redo()
        assert history.redo() is None

    def test_misuse_is_a_no_op(self):
        manager = HistoryManager(max_states=5)
        assert manager.undo() is None
        assert manager.redo() is None
        manager.add_state(op("s0"), page_with())
        assert not manager.can_undo()
        assert manager.undo() is None
        assert manager.phase == HistoryPhase.IDLE


class TestIntrospection:
    """history_info, clear and defaults."""

    def test_history_info(self, history):
        history.undo()
        info = history.history_info()
        assert info.current_index == 1
        assert info.max_states == 10
        assert info.can_undo and info.can_redo
        assert len(info.states) == 3
        dumped = info.model_dump(by_alias=True)
        assert {"states", "currentIndex", "maxStates", "canUndo", "canRedo"} <= set(dumped)

    def test_clear(self, history):
        history.clear()
        assert len(history) == 0
        assert history.current_state() is None
        assert history.current_index == -1

    def test_default_bound_comes_from_settings(self):
        assert HistoryManager().max_states == 50
