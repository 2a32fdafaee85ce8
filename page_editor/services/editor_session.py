"""
Editor Session - Single Committed-Operation Entry Point
=======================================================

Owns one page, its history and the active breakpoint. Every edit flows
through the same pipeline:

    DocumentModel operation -> patch (operation-derived or generic diff)
        -> pending patch buffer -> history commit -> observers

Undo/redo install a recorded snapshot and finish the replay by feeding it
back through the history commit path, which swallows it and returns the
history to IDLE.

Single-threaded: callers in multi-threaded hosts serialize access.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from page_editor.config import settings
from page_editor.core.logger import get_logger
from page_editor.models.history import HistoryInfo, HistoryState
from page_editor.models.page_schema import (
    Breakpoint,
    ComponentNode,
    ComponentOperation,
    DeviceMode,
    Direction,
    LayoutBox,
    OperationType,
    PageSchema,
    ReasonCode,
)
from page_editor.models.patch import PatchOperation
from page_editor.services.document_model import DocumentModel, MutationResult
from page_editor.services.history_manager import HistoryManager
from page_editor.services.patch_engine import create_operation_patch, diff_pages, optimize_patches
from page_editor.services.property_resolver import (
    BreakpointLike,
    breakpoint_for_device,
    breakpoint_for_width,
    resolve_node,
)
from page_editor.services.rtl_transformer import apply_to_tree, language_for_direction


StateChangeCallback = Callable[[PageSchema, ComponentOperation], None]
PatchCallback = Callable[[List[PatchOperation]], None]


class EditorSession:
    """
    Editing session for a single page.

    Usage:
        session = EditorSession(PageSchema.create_new(name="Home"))
        result = session.add_node("heading")
        session.undo()
    """

    def __init__(
        self,
        page: Optional[PageSchema] = None,
        max_states: Optional[int] = None,
        document: Optional[DocumentModel] = None,
        on_state_change: Optional[StateChangeCallback] = None,
        on_patch_created: Optional[PatchCallback] = None,
        patch_buffer_limit: Optional[int] = None,
    ):
        self.document = document or DocumentModel()
        self.history = HistoryManager(max_states)
        self.on_state_change = on_state_change
        self.on_patch_created = on_patch_created
        self.patch_buffer_limit = (
            patch_buffer_limit if patch_buffer_limit is not None else settings.patch_buffer_limit
        )
        self._page = page or PageSchema.create_new()
        self._log = get_logger("editor_session", page_id=self._page.id)
        self._breakpoint = breakpoint_for_device(self._page.responsive.default_device)
        self._pending: List[PatchOperation] = []
        self._seed_history()

    @property
    def page(self) -> PageSchema:
        return self._page

    @property
    def breakpoint(self) -> Breakpoint:
        return self._breakpoint

    # ========================================================================
    # PIPELINE
    # ========================================================================

    def _seed_history(self) -> None:
        self.history.clear()
        self.history.add_state(
            ComponentOperation(type=OperationType.LOAD, component_id=self._page.id),
            self._page,
        )

    def _commit(self, result: MutationResult, record: bool = True) -> MutationResult:
        if not result.ok or result.operation is None:
            return result

        before, after = self._page, result.page
        patches = create_operation_patch(result.operation, before, after)
        self._page = after
        self._buffer(patches)
        if record:
            self.history.add_state(result.operation, after)
        self._notify(after, result.operation, patches)
        return result

    def _buffer(self, patches: List[PatchOperation]) -> None:
        if not patches:
            return
        self._pending = optimize_patches([*self._pending, *patches])
        overflow = len(self._pending) - self.patch_buffer_limit
        if overflow > 0:
            del self._pending[:overflow]
            self._log.warning(f"Patch buffer full, dropped {overflow} oldest entries")

    def _notify(self, page: PageSchema, operation: ComponentOperation,
                patches: List[PatchOperation]) -> None:
        if patches and self.on_patch_created is not None:
            self.on_patch_created(list(patches))
        if self.on_state_change is not None:
            self.on_state_change(page, operation)

    def drain_patches(self) -> List[PatchOperation]:
        """Return and clear the pending (optimized) patch buffer."""
        drained, self._pending = self._pending, []
        return drained

    @property
    def pending_patches(self) -> List[PatchOperation]:
        return list(self._pending)

    # ========================================================================
    # DOCUMENT OPERATIONS
    # ========================================================================

    def add_node(self, component_type: str, component_id: Optional[str] = None,
                 position: Optional[Tuple[float, float]] = None,
                 size: Optional[Tuple[float, float]] = None,
                 props: Optional[Dict[str, Any]] = None,
                 styles: Optional[Dict[str, Any]] = None) -> MutationResult:
        return self._commit(self.document.add_node(
            self._page, component_type, component_id=component_id,
            position=position, size=size, props=props, styles=styles,
        ))

    def remove_node(self, component_id: str) -> MutationResult:
        return self._commit(self.document.remove_node(self._page, component_id))

    def update_node(self, component_id: str,
                    patch_fn: Callable[[ComponentNode], ComponentNode]) -> MutationResult:
        return self._commit(self.document.update_node(self._page, component_id, patch_fn))

    def move_node(self, component_id: str, to_index: int) -> MutationResult:
        return self._commit(self.document.move_node(self._page, component_id, to_index))

    def duplicate_node(self, component_id: str, new_id: Optional[str] = None) -> MutationResult:
        return self._commit(self.document.duplicate_node(self._page, component_id, new_id))

    def group_nodes(self, component_ids: Sequence[str], group_id: Optional[str] = None) -> MutationResult:
        """Group at the active breakpoint."""
        return self._commit(self.document.group_nodes(
            self._page, component_ids, self._breakpoint, group_id=group_id,
        ))

    def ungroup_nodes(self, group_id: str) -> MutationResult:
        return self._commit(self.document.ungroup_nodes(self._page, group_id))

    def set_position(self, component_id: str, x: float, y: float,
                     record: bool = True, snap: Optional[bool] = None) -> MutationResult:
        """
        Move a node on the canvas at the active breakpoint.

        Pass record=False for intermediate drag frames and call checkpoint()
        when the drag ends.
        """
        return self._commit(
            self.document.set_position(self._page, component_id, x, y, self._breakpoint, snap),
            record=record,
        )

    def resize_node(self, component_id: str, width: float, height: float,
                    record: bool = True, snap: Optional[bool] = None) -> MutationResult:
        return self._commit(
            self.document.resize_node(self._page, component_id, width, height, self._breakpoint, snap),
            record=record,
        )

    def update_layout(self, component_id: str, changes: Mapping[str, Any],
                      breakpoint: Optional[BreakpointLike] = None) -> MutationResult:
        bp = self._breakpoint if breakpoint is None else breakpoint
        return self._commit(self.document.update_layout(self._page, component_id, changes, bp))

    def update_styles(self, component_id: str, changes: Mapping[str, Any],
                      breakpoint: Optional[BreakpointLike] = None) -> MutationResult:
        bp = self._breakpoint if breakpoint is None else breakpoint
        return self._commit(self.document.update_styles(self._page, component_id, changes, bp))

    def toggle_lock(self, component_id: str) -> MutationResult:
        return self._commit(self.document.toggle_lock(self._page, component_id))

    def toggle_visibility(self, component_id: str) -> MutationResult:
        return self._commit(self.document.toggle_visibility(self._page, component_id))

    def copy_breakpoint(self, source: BreakpointLike, target: BreakpointLike) -> MutationResult:
        return self._commit(self.document.copy_breakpoint(self._page, source, target))

    def reset_breakpoint(self, breakpoint: BreakpointLike) -> MutationResult:
        return self._commit(self.document.reset_breakpoint(self._page, breakpoint))

    def set_direction(self, direction: Union[Direction, str]) -> MutationResult:
        """Mirror the page to a text direction as one undoable commit."""
        try:
            target = Direction(direction)
        except ValueError:
            self._log.warning(f"Rejected set_direction: unknown direction {direction!r}")
            return MutationResult(
                page=self._page,
                reason=ReasonCode.INVALID_NODE,
                message=f"Unknown direction: {direction!r}",
            )
        nodes = apply_to_tree(self._page.components, target, self._page.settings.direction)
        page_settings = self._page.settings.model_copy(update={
            "direction": target,
            "language": language_for_direction(target),
        })
        result = self._commit(self.document.replace_components(
            self._page, nodes, page_settings=page_settings, action="set_direction",
        ))
        if result.ok:
            self._log.info(f"Page direction set to {target.value}")
        return result

    # ========================================================================
    # BREAKPOINT
    # ========================================================================

    def set_breakpoint(self, breakpoint: BreakpointLike) -> Breakpoint:
        self._breakpoint = Breakpoint(breakpoint)
        self._log.debug(f"Active breakpoint: {self._breakpoint.value}")
        return self._breakpoint

    def set_device(self, device: Union[DeviceMode, str]) -> Breakpoint:
        return self.set_breakpoint(breakpoint_for_device(device))

    def set_viewport_width(self, width: float) -> Breakpoint:
        return self.set_breakpoint(breakpoint_for_width(width, self._page.responsive.breakpoints))

    def resolve(self, component_id: str) -> Optional[Tuple[LayoutBox, Dict[str, Any]]]:
        """Effective (layout, styles) of a node at the active breakpoint."""
        node = self._page.get_component(component_id)
        if node is None:
            return None
        return resolve_node(node, self._breakpoint)

    # ========================================================================
    # HISTORY
    # ========================================================================

    def checkpoint(self) -> Optional[HistoryState]:
        """Record the current page if it differs from the history cursor."""
        current = self.history.current_state()
        if current is not None and current.page_schema == self._page:
            return None
        return self.history.add_state(
            ComponentOperation(type=OperationType.BULK, component_id="*", data={"action": "checkpoint"}),
            self._page,
        )

    def undo(self) -> Optional[PageSchema]:
        snapshot = self.history.undo()
        if snapshot is None:
            self._log.debug("Nothing to undo")
            return None
        return self._install(snapshot)

    def redo(self) -> Optional[PageSchema]:
        snapshot = self.history.redo()
        if snapshot is None:
            self._log.debug("Nothing to redo")
            return None
        return self._install(snapshot)

    def _install(self, snapshot: HistoryState) -> PageSchema:
        before = self._page
        restored = snapshot.page_schema.model_copy(deep=True)
        self._page = restored
        patches = diff_pages(before, restored)
        self._buffer(patches)
        # Replay commit: swallowed by the history, which returns to IDLE
        self.history.add_state(snapshot.operation, restored)
        self._notify(restored, snapshot.operation, patches)
        return restored

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def history_info(self) -> HistoryInfo:
        return self.history.history_info()

    def load_page(self, page: PageSchema) -> PageSchema:
        """Replace the page wholesale and restart history from it."""
        self._page = page
        self._log = get_logger("editor_session", page_id=page.id)
        self._breakpoint = breakpoint_for_device(page.responsive.default_device)
        self._pending = []
        self._seed_history()
        operation = ComponentOperation(type=OperationType.LOAD, component_id=page.id)
        self._notify(page, operation, [])
        self._log.info(f"Loaded page {page.id} into session")
        return page
