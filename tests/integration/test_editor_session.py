"""
End-to-end editing scenarios through the EditorSession pipeline.

Each test drives the session the way the canvas would: mutations, then
undo/redo, patch draining and observer callbacks.
"""

import pytest

from page_editor.models import Breakpoint, Direction, HistoryPhase, Language, OperationType, ReasonCode
from page_editor.services.document_model import DocumentModel
from page_editor.services.editor_session import EditorSession
from page_editor.services.patch_engine import apply_to_page
from page_editor.services.property_resolver import resolve_layout
from tests.helpers.factories import make_node, make_page


def positions(page):
    return {c.id: (c.layout.default.x, c.layout.default.y) for c in page.components}


class TestGroupUndoRedo:
    """Group two headings, undo, redo."""

    def test_group_undo_redo(self, session):
        session.add_node("heading", component_id="h1", position=(40, 100))
        session.add_node("heading", component_id="h2", position=(120, 30))
        before_group = session.page

        result = session.group_nodes(["h1", "h2"])
        assert result.ok
        group_id = result.group_id
        h1, h2 = session.page.get_component("h1"), session.page.get_component("h2")
        assert h1.group_id == h2.group_id == group_id
        assert positions(session.page) == {"h1": (0, 70), "h2": (80, 0)}
        grouped = session.page

        undone = session.undo()
        assert undone.to_dict() == before_group.to_dict()
        assert all(c.group_id is None for c in session.page.components)
        assert positions(session.page) == {"h1": (40, 100), "h2": (120, 30)}

        redone = session.redo()
        assert redone.to_dict() == grouped.to_dict()
        assert session.history.phase == HistoryPhase.IDLE

    def test_ungroup_restores_absolute_positions(self, session):
        session.add_node("heading", component_id="h1", position=(40, 100))
        session.add_node("heading", component_id="h2", position=(120, 30))
        group_id = session.group_nodes(["h1", "h2"]).group_id

        session.ungroup_nodes(group_id)
        assert positions(session.page) == {"h1": (40, 100), "h2": (120, 30)}
        assert session.page.groups == {}


class TestHistoryBehaviour:
    """History bounds and branch discard through the session."""

    def test_first_edit_is_undoable(self, session):
        session.add_node("text", component_id="a")
        assert session.can_undo()
        assert session.undo().components == []
        assert not session.can_undo()
        assert session.undo() is None

    def test_history_is_bounded(self, document, empty_page):
        session = EditorSession(empty_page, max_states=5, document=document)
        for i in range(10):
            session.add_node("text", component_id=f"n{i}")

        info = session.history_info()
        assert len(info.states) == 5
        assert info.current_index == 4
        for _ in range(4):
            assert session.undo() is not None
        assert session.undo() is None
        assert [c.id for c in session.page.components] == [f"n{i}" for i in range(6)]

    def test_undo_then_commit_discards_redo(self, session):
        session.add_node("text", component_id="a")
        session.add_node("text", component_id="b")
        session.undo()
        assert session.can_redo()

        session.add_node("text", component_id="c")
        assert not session.can_redo()
        assert session.redo() is None
        assert [c.id for c in session.page.components] == ["a", "c"]

    def test_rejected_mutation_changes_nothing(self, session):
        session.add_node("text", component_id="a")
        states = len(session.history_info().states)
        result = session.remove_node("missing")

        assert result.reason == ReasonCode.NODE_NOT_FOUND
        assert len(session.history_info().states) == states
        assert [c.id for c in session.page.components] == ["a"]


class TestDragAndCheckpoint:
    """Transient drag frames are recorded once at the end."""

    def test_drag_frames_are_not_recorded(self, session):
        session.add_node("text", component_id="a")
        states = len(session.history_info().states)

        for x in (10, 20, 30):
            session.set_position("a", x, x, record=False)
        assert len(session.history_info().states) == states

        assert session.checkpoint() is not None
        assert session.checkpoint() is None
        assert len(session.history_info().states) == states + 1

        session.undo()
        assert positions(session.page)["a"] == (0, 0)

    def test_drag_patches_collapse(self, session):
        session.add_node("text", component_id="a")
        session.drain_patches()
        for x in (10, 20, 30):
            session.set_position("a", x, 0, record=False)

        patches = session.drain_patches()
        assert len(patches) == 1
        assert patches[0].value["layout"]["default"]["x"] == 30
        assert session.drain_patches() == []


class TestPatchStream:
    """Drained patches replay the session onto the starting page."""

    def test_replaying_patches_reproduces_page(self, session):
        start = session.page
        session.add_node("heading", component_id="h1", position=(10, 10))
        session.add_node("button", component_id="b1", position=(300, 40))
        session.duplicate_node("h1", new_id="h1-copy")
        session.move_node("b1", 0)
        session.group_nodes(["h1", "b1"])
        session.update_styles("h1-copy", {"color": "teal"})
        session.remove_node("b1")
        session.undo()

        replayed = apply_to_page(start, session.drain_patches())
        assert replayed.to_dict() == session.page.to_dict()

    def test_callbacks(self, document, empty_page):
        changes, patch_batches = [], []
        session = EditorSession(
            empty_page,
            document=document,
            on_state_change=lambda page, operation: changes.append(operation.type),
            on_patch_created=patch_batches.append,
        )
        session.add_node("text", component_id="a")
        session.toggle_lock("a")
        session.undo()

        # Undo reports the operation of the restored snapshot
        assert changes == [OperationType.ADD, OperationType.UPDATE, OperationType.ADD]
        assert len(patch_batches) == 3

    def test_patch_buffer_limit(self, document, empty_page):
        session = EditorSession(empty_page, document=document, patch_buffer_limit=2)
        for i in range(4):
            session.add_node("text", component_id=f"n{i}")
        assert len(session.pending_patches) == 2


class TestResponsiveEditing:
    """Edits land on the active breakpoint."""

    def test_edits_at_tablet_leave_default_alone(self, session):
        session.add_node("text", component_id="a", position=(10, 10))
        session.set_device("tablet")
        assert session.breakpoint == Breakpoint.TABLET

        session.set_position("a", 50, 10)
        node = session.page.get_component("a")
        assert node.layout.tablet == {"x": 50}
        assert node.layout.default.x == 10
        layout, _ = session.resolve("a")
        assert layout.x == 50

    def test_viewport_width_selects_breakpoint(self, session):
        assert session.set_viewport_width(375) == Breakpoint.MOBILE
        assert session.set_viewport_width(1440) == Breakpoint.DEFAULT

    def test_copy_and_reset_breakpoint(self, session):
        session.add_node("text", component_id="a", position=(10, 10))
        session.update_layout("a", {"x": 70}, breakpoint="tablet")
        session.copy_breakpoint("tablet", "mobile")
        assert resolve_layout(session.page.get_component("a"), "mobile").x == 70

        session.reset_breakpoint("mobile")
        assert session.page.get_component("a").layout.mobile is None
        session.undo()
        assert session.page.get_component("a").layout.mobile == {"x": 70}


class TestDirection:
    """RTL switching as a single undoable commit."""

    def test_padding_left_mirrors_to_right(self, document):
        page = make_page(make_node("a", styles={"paddingLeft": 16}))
        session = EditorSession(page, document=document)

        session.set_direction("rtl")
        node = session.page.get_component("a")
        assert node.styles.default == {"paddingRight": 16}
        assert "paddingLeft" not in node.styles.default
        assert session.page.settings.direction == Direction.RTL
        assert session.page.settings.language == Language.URDU

        session.set_direction("rtl")
        assert session.page.get_component("a").styles.default == {"paddingRight": 16}

        session.set_direction("ltr")
        assert session.page.get_component("a").styles.default == {"paddingLeft": 16}

    def test_node_added_on_rtl_page_follows_direction_switches(self, session):
        session.set_direction("rtl")
        session.add_node("heading", component_id="h1")
        node = session.page.get_component("h1")
        assert node.styles.default["textAlign"] == "right"
        assert node.direction == Direction.RTL

        session.set_direction("ltr")
        node = session.page.get_component("h1")
        assert node.styles.default["textAlign"] == "left"
        assert node.direction == Direction.LTR
        assert node.language == Language.ENGLISH

    def test_unknown_direction_is_rejected(self, session):
        session.add_node("text", component_id="a")
        page = session.page
        result = session.set_direction("sideways")
        assert result.reason == ReasonCode.INVALID_NODE
        assert session.page is page

    def test_direction_change_is_undoable(self, document):
        page = make_page(make_node("a", styles={"textAlign": "left"}))
        session = EditorSession(page, document=document)
        session.set_direction("rtl")
        session.undo()
        assert session.page.get_component("a").styles.default == {"textAlign": "left"}
        assert session.page.settings.direction == Direction.LTR


class TestLoadPage:
    """Wholesale replacement restarts history."""

    def test_load_resets_history(self, session):
        session.add_node("text", component_id="a")
        page = make_page(make_node("z"), responsive={"defaultDevice": "mobile"})

        session.load_page(page)
        assert session.page is page
        assert session.breakpoint == Breakpoint.MOBILE
        assert not session.can_undo()
        assert session.drain_patches() == []

    def test_default_session(self):
        session = EditorSession(document=DocumentModel(snap_to_grid=False))
        assert session.page.components == []
        assert len(session.history_info().states) == 1

    @pytest.mark.parametrize("bad", ["", "   "])
    def test_blank_type_is_rejected(self, session, bad):
        assert session.add_node(bad).reason == ReasonCode.INVALID_NODE
