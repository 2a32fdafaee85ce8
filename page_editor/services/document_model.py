"""
Document Model - Copy-on-Write Mutation Engine
==============================================

All structural and value edits to a PageSchema go through this module.

Responsibilities:
1. Enforce structural invariants on every mutation
2. Produce a new immutable PageSchema (never mutate in place)
3. Describe each change with a ComponentOperation
4. Reject invalid mutations with a reason code, leaving the page unchanged

Design Principles:
- Fail fast internally, never crash the host: public operations catch
  invariant violations and hand back the original page
- Structural sharing: untouched nodes are reused between page versions
- Geometry edits act on the active breakpoint only
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import uuid

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from page_editor.config import settings
from page_editor.models.component_catalog import (
    get_component_default_dimensions,
    get_component_default_properties,
    get_component_default_styles,
    normalize_component_type,
)
from page_editor.models.page_schema import (
    LAYOUT_KEYS,
    OVERRIDE_BREAKPOINTS,
    Breakpoint,
    ComponentNode,
    ComponentOperation,
    GroupFrame,
    LayoutBox,
    OperationType,
    PageSchema,
    PageSettings,
    ReasonCode,
    ResponsiveLayout,
    ResponsiveStyles,
    find_invariant_violation,
)
from page_editor.services.property_resolver import (
    BreakpointLike,
    bounding_box,
    overlay,
    prune_override,
    resolve_layout,
    resolve_styles,
    write_override,
)
from page_editor.services.rtl_transformer import orient_seed_style


# Python field name -> wire name for layout keys (z_index -> zIndex)
_LAYOUT_FIELD_ALIASES: Dict[str, str] = {
    name: (field.alias or name) for name, field in LayoutBox.model_fields.items()
}

GEOMETRY_KEYS = frozenset({"x", "y", "width", "height"})


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DocumentError(Exception):
    """Base exception for document model errors"""
    pass


class InvariantViolationError(DocumentError):
    """Raised internally when a proposed mutation would break an invariant"""

    def __init__(self, reason: ReasonCode, message: str):
        super().__init__(message)
        self.reason = reason


# ============================================================================
# RESULT
# ============================================================================

class MutationResult(BaseModel):
    """
    Outcome of a document operation.

    On success `page` is the new schema and `operation` describes the change.
    On rejection `page` is the original schema, `operation` is None and
    `reason` says why.
    """
    model_config = ConfigDict(frozen=True)

    page: PageSchema
    operation: Optional[ComponentOperation] = None
    reason: Optional[ReasonCode] = None
    message: Optional[str] = None
    group_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


# ============================================================================
# DOCUMENT MODEL
# ============================================================================

class DocumentModel:
    """
    Applies atomic operations to a PageSchema.

    Stateless with respect to the page: the caller (one editor session)
    owns the current page and passes it in explicitly.
    """

    def __init__(
        self,
        grid_size: Optional[int] = None,
        snap_to_grid: Optional[bool] = None,
        min_size: Optional[int] = None,
        duplicate_offset: Optional[int] = None,
    ):
        self.grid_size = grid_size if grid_size is not None else settings.canvas_grid_size
        self.snap_to_grid = snap_to_grid if snap_to_grid is not None else settings.canvas_snap_to_grid
        self.min_size = min_size if min_size is not None else settings.min_component_size
        self.duplicate_offset = (
            duplicate_offset if duplicate_offset is not None else settings.duplicate_offset
        )

    # ========================================================================
    # STRUCTURAL OPERATIONS
    # ========================================================================

    def add_node(
        self,
        page: PageSchema,
        component_type: str,
        component_id: Optional[str] = None,
        position: Optional[Tuple[float, float]] = None,
        size: Optional[Tuple[float, float]] = None,
        props: Optional[Dict[str, Any]] = None,
        styles: Optional[Dict[str, Any]] = None,
    ) -> MutationResult:
        """Append a new node seeded from the component catalog."""
        try:
            canonical = normalize_component_type(component_type)
            if not canonical:
                raise InvariantViolationError(ReasonCode.INVALID_NODE, "Component type is required")

            node_id = component_id or self._new_id(page, canonical)
            if page.find_index(node_id) >= 0:
                raise InvariantViolationError(
                    ReasonCode.DUPLICATE_ID, f"Component id already exists: {node_id}"
                )

            width, height = size or get_component_default_dimensions(canonical)
            x, y = position or (0, 0)
            seeded_props = get_component_default_properties(canonical)
            seeded_props.update(props or {})
            direction = page.settings.direction
            seeded_styles = orient_seed_style(get_component_default_styles(canonical), direction)
            seeded_styles.update(styles or {})

            node = self._build_node({
                "id": node_id,
                "type": canonical,
                "props": seeded_props,
                "layout": {
                    "default": {
                        "x": x,
                        "y": y,
                        "width": width,
                        "height": height,
                        "zIndex": len(page.components),
                    },
                },
                "styles": {"default": seeded_styles},
                "direction": direction,
            })

            components = [*page.components, node]
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.ADD,
                component_id=node_id,
                data={"componentType": canonical},
                target_index=len(components) - 1,
            )
        except InvariantViolationError as e:
            return self._reject(page, "add_node", e)

        logger.debug(f"Added component {node_id} ({canonical})")
        return MutationResult(page=new_page, operation=operation)

    def remove_node(self, page: PageSchema, component_id: str) -> MutationResult:
        """Remove a node; a group left with one member is dissolved."""
        try:
            index, node = self._require(page, component_id)
            components = [c for c in page.components if c.id != component_id]
            groups = dict(page.groups)
            data: Dict[str, Any] = {"index": index}

            if node.group_id is not None:
                survivors = [c for c in components if c.group_id == node.group_id]
                if len(survivors) < 2:
                    frame = groups.pop(node.group_id)
                    for survivor in survivors:
                        at = next(i for i, c in enumerate(components) if c.id == survivor.id)
                        components[at] = self._to_absolute(survivor, frame)
                    data["dissolvedGroup"] = node.group_id
                    data["survivorIds"] = [s.id for s in survivors]

            new_page = self._commit_page(page, components, groups)
            operation = ComponentOperation(
                type=OperationType.REMOVE,
                component_id=component_id,
                data=data,
            )
        except InvariantViolationError as e:
            return self._reject(page, "remove_node", e)

        logger.debug(f"Removed component {component_id} from index {index}")
        return MutationResult(page=new_page, operation=operation)

    def update_node(
        self,
        page: PageSchema,
        component_id: str,
        patch_fn: Callable[[ComponentNode], ComponentNode],
    ) -> MutationResult:
        """
        Replace a node with the result of `patch_fn(node)`.

        The id is immutable, group membership is managed by group/ungroup,
        and locked nodes keep their position and size.
        """
        try:
            index, node = self._require(page, component_id)
            try:
                candidate = patch_fn(node)
            except Exception as e:
                raise InvariantViolationError(
                    ReasonCode.INVALID_NODE, f"Update for {component_id} failed: {e}"
                ) from e
            if not isinstance(candidate, ComponentNode):
                raise InvariantViolationError(
                    ReasonCode.INVALID_NODE,
                    f"Update for {component_id} returned {type(candidate).__name__}",
                )
            updated = self._build_node(candidate.model_dump(by_alias=True))

            if updated.id != node.id:
                raise InvariantViolationError(
                    ReasonCode.ID_IMMUTABLE, f"Component id cannot change: {node.id} -> {updated.id}"
                )
            if updated.group_id != node.group_id:
                raise InvariantViolationError(
                    ReasonCode.GROUP_MANAGED,
                    f"Group membership of {node.id} changes through group/ungroup only",
                )
            if self._geometry_locked(node) and self._geometry_changed(node, updated):
                raise InvariantViolationError(
                    ReasonCode.NODE_LOCKED, f"Component {node.id} is locked"
                )

            components = self._replace_at(page.components, index, updated)
            new_page = self._commit_page(page, components)
            changed = [
                name for name in ComponentNode.model_fields
                if getattr(node, name) != getattr(updated, name)
            ]
            operation = ComponentOperation(
                type=OperationType.UPDATE,
                component_id=component_id,
                data={"fields": changed},
            )
        except InvariantViolationError as e:
            return self._reject(page, "update_node", e)

        logger.debug(f"Updated component {component_id}: {changed}")
        return MutationResult(page=new_page, operation=operation)

    def move_node(self, page: PageSchema, component_id: str, to_index: int) -> MutationResult:
        """Reorder a node in paint order (structural move, not x/y)."""
        try:
            from_index, node = self._require(page, component_id)
            if not 0 <= to_index < len(page.components):
                raise InvariantViolationError(
                    ReasonCode.INVALID_INDEX,
                    f"Target index {to_index} outside 0..{len(page.components) - 1}",
                )
            components = list(page.components)
            components.pop(from_index)
            components.insert(to_index, node)
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.MOVE,
                component_id=component_id,
                data={"fromIndex": from_index},
                target_index=to_index,
            )
        except InvariantViolationError as e:
            return self._reject(page, "move_node", e)

        logger.debug(f"Moved component {component_id}: {from_index} -> {to_index}")
        return MutationResult(page=new_page, operation=operation)

    def duplicate_node(
        self,
        page: PageSchema,
        component_id: str,
        new_id: Optional[str] = None,
    ) -> MutationResult:
        """Insert an offset copy of a node immediately after it."""
        try:
            index, node = self._require(page, component_id)
            duplicate_id = new_id or self._new_id(page, node.type)
            if page.find_index(duplicate_id) >= 0:
                raise InvariantViolationError(
                    ReasonCode.DUPLICATE_ID, f"Component id already exists: {duplicate_id}"
                )

            wire = node.model_dump(by_alias=True)
            default = wire["layout"]["default"]
            default["x"] = default["x"] + self.duplicate_offset
            default["y"] = default["y"] + self.duplicate_offset
            default["zIndex"] = len(page.components) + 1
            wire["id"] = duplicate_id
            duplicate = self._build_node(wire)

            components = list(page.components)
            components.insert(index + 1, duplicate)
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.DUPLICATE,
                component_id=component_id,
                data={"duplicateId": duplicate_id},
                target_index=index + 1,
            )
        except InvariantViolationError as e:
            return self._reject(page, "duplicate_node", e)

        logger.debug(f"Duplicated component {component_id} as {duplicate_id}")
        return MutationResult(page=new_page, operation=operation)

    # ========================================================================
    # GROUPING
    # ========================================================================

    def group_nodes(
        self,
        page: PageSchema,
        component_ids: Sequence[str],
        breakpoint: BreakpointLike = Breakpoint.DEFAULT,
        group_id: Optional[str] = None,
    ) -> MutationResult:
        """
        Group nodes under a fresh group id.

        The bounding box is computed from each member's resolved layout at
        `breakpoint`; member coordinates at that breakpoint become relative
        to the box origin.
        """
        try:
            bp = self._tier(breakpoint)
            ids = list(dict.fromkeys(component_ids))
            if len(ids) < 2:
                raise InvariantViolationError(
                    ReasonCode.GROUP_TOO_SMALL, "A group needs at least two components"
                )
            members = [self._require(page, cid)[1] for cid in ids]
            grouped = [m.id for m in members if m.group_id is not None]
            if grouped:
                raise InvariantViolationError(
                    ReasonCode.ALREADY_GROUPED, f"Components already grouped: {grouped}"
                )

            gid = group_id or self._new_group_id(page)
            if gid in page.groups:
                raise InvariantViolationError(
                    ReasonCode.DUPLICATE_ID, f"Group id already exists: {gid}"
                )

            x, y, width, height = bounding_box(resolve_layout(m, bp) for m in members)
            frame = GroupFrame(x=x, y=y, width=width, height=height, breakpoint=bp)

            member_ids = set(ids)
            components = [
                self._to_relative(c, frame, gid) if c.id in member_ids else c
                for c in page.components
            ]
            groups = {**page.groups, gid: frame}
            new_page = self._commit_page(page, components, groups)
            operation = ComponentOperation(
                type=OperationType.GROUP,
                component_id=gid,
                data={
                    "groupId": gid,
                    "memberIds": ids,
                    "breakpoint": bp.value,
                    "frame": frame.model_dump(mode='json', by_alias=True),
                },
            )
        except InvariantViolationError as e:
            return self._reject(page, "group_nodes", e)

        logger.debug(f"Grouped {ids} as {gid} at {bp.value} origin=({x}, {y})")
        return MutationResult(page=new_page, operation=operation, group_id=gid)

    def ungroup_nodes(self, page: PageSchema, group_id: str) -> MutationResult:
        """Dissolve a group, restoring absolute coordinates."""
        try:
            frame = page.groups.get(group_id)
            if frame is None:
                raise InvariantViolationError(
                    ReasonCode.GROUP_NOT_FOUND, f"Group not found: {group_id}"
                )
            member_ids = [c.id for c in page.components if c.group_id == group_id]
            components = [
                self._to_absolute(c, frame) if c.group_id == group_id else c
                for c in page.components
            ]
            groups = {k: v for k, v in page.groups.items() if k != group_id}
            new_page = self._commit_page(page, components, groups)
            operation = ComponentOperation(
                type=OperationType.UNGROUP,
                component_id=group_id,
                data={"groupId": group_id, "memberIds": member_ids},
            )
        except InvariantViolationError as e:
            return self._reject(page, "ungroup_nodes", e)

        logger.debug(f"Ungrouped {group_id}: {member_ids}")
        return MutationResult(page=new_page, operation=operation)

    # ========================================================================
    # CANVAS EDITS (position, size, flags, overrides)
    # ========================================================================

    def set_position(
        self,
        page: PageSchema,
        component_id: str,
        x: float,
        y: float,
        breakpoint: BreakpointLike = Breakpoint.DEFAULT,
        snap: Optional[bool] = None,
    ) -> MutationResult:
        """Place a node at (x, y) on the active breakpoint."""
        snap = self.snap_to_grid if snap is None else snap
        changes = {
            "x": max(0, self._snap(x) if snap else x),
            "y": max(0, self._snap(y) if snap else y),
        }
        return self._edit_layout(page, component_id, changes, breakpoint, "set_position")

    def resize_node(
        self,
        page: PageSchema,
        component_id: str,
        width: float,
        height: float,
        breakpoint: BreakpointLike = Breakpoint.DEFAULT,
        snap: Optional[bool] = None,
    ) -> MutationResult:
        """Resize a node on the active breakpoint, clamped to the minimum size."""
        snap = self.snap_to_grid if snap is None else snap
        changes = {
            "width": max(self.min_size, self._snap(width) if snap else width),
            "height": max(self.min_size, self._snap(height) if snap else height),
        }
        return self._edit_layout(page, component_id, changes, breakpoint, "resize_node")

    def update_layout(
        self,
        page: PageSchema,
        component_id: str,
        changes: Mapping[str, Any],
        breakpoint: BreakpointLike = Breakpoint.DEFAULT,
    ) -> MutationResult:
        """Write a partial layout delta at a breakpoint."""
        return self._edit_layout(page, component_id, dict(changes), breakpoint, "update_layout")

    def update_styles(
        self,
        page: PageSchema,
        component_id: str,
        changes: Mapping[str, Any],
        breakpoint: BreakpointLike = Breakpoint.DEFAULT,
    ) -> MutationResult:
        """
        Write a partial style delta at a breakpoint.

        A value of None removes the key from that tier.
        """
        try:
            bp = self._tier(breakpoint)
            index, node = self._require(page, component_id)
            updated = node.model_copy(update={"styles": self._write_styles(node.styles, bp, changes)})
            components = self._replace_at(page.components, index, updated)
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.UPDATE,
                component_id=component_id,
                data={"styles": dict(changes), "breakpoint": bp.value},
            )
        except InvariantViolationError as e:
            return self._reject(page, "update_styles", e)

        logger.debug(f"Updated styles of {component_id} at {bp.value}")
        return MutationResult(page=new_page, operation=operation)

    def toggle_lock(self, page: PageSchema, component_id: str) -> MutationResult:
        return self._toggle_flag(page, component_id, "locked")

    def toggle_visibility(self, page: PageSchema, component_id: str) -> MutationResult:
        return self._toggle_flag(page, component_id, "visible")

    # ========================================================================
    # BULK OPERATIONS
    # ========================================================================

    def copy_breakpoint(
        self,
        page: PageSchema,
        source: BreakpointLike,
        target: BreakpointLike,
    ) -> MutationResult:
        """
        Make every node at `target` look as it does at `source`.

        Only the deltas against the default are stored on the target tier.
        """
        try:
            src, dst = self._tier(source), self._tier(target)
            if dst not in OVERRIDE_BREAKPOINTS or src == dst:
                raise InvariantViolationError(
                    ReasonCode.INVALID_OVERRIDE, f"Cannot copy {src.value} onto {dst.value}"
                )
            components = []
            for node in page.components:
                layout_override = prune_override(
                    node.layout.default.to_wire(), resolve_layout(node, src).to_wire()
                )
                style_override = prune_override(node.styles.default, resolve_styles(node, src))
                components.append(node.model_copy(update={
                    "layout": node.layout.model_copy(update={dst.value: layout_override}),
                    "styles": node.styles.model_copy(update={dst.value: style_override}),
                }))
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.BULK,
                component_id="*",
                data={"action": "copy_breakpoint", "source": src.value, "target": dst.value},
            )
        except InvariantViolationError as e:
            return self._reject(page, "copy_breakpoint", e)

        logger.debug(f"Copied {src.value} onto {dst.value} for {len(components)} components")
        return MutationResult(page=new_page, operation=operation)

    def reset_breakpoint(self, page: PageSchema, breakpoint: BreakpointLike) -> MutationResult:
        """Drop every override at a tier so it falls back to the default."""
        try:
            bp = self._tier(breakpoint)
            if bp not in OVERRIDE_BREAKPOINTS:
                raise InvariantViolationError(
                    ReasonCode.INVALID_OVERRIDE, "The default tier has no overrides to reset"
                )
            components = [
                node.model_copy(update={
                    "layout": node.layout.model_copy(update={bp.value: None}),
                    "styles": node.styles.model_copy(update={bp.value: None}),
                })
                for node in page.components
            ]
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.BULK,
                component_id="*",
                data={"action": "reset_breakpoint", "breakpoint": bp.value},
            )
        except InvariantViolationError as e:
            return self._reject(page, "reset_breakpoint", e)

        logger.debug(f"Reset {bp.value} overrides")
        return MutationResult(page=new_page, operation=operation)

    def replace_components(
        self,
        page: PageSchema,
        components: Iterable[ComponentNode],
        page_settings: Optional[PageSettings] = None,
        action: str = "replace_components",
    ) -> MutationResult:
        """Install a whole new node list (and optionally page settings) as one commit."""
        try:
            nodes = [self._build_node(n.model_dump(by_alias=True)) for n in components]
            new_page = self._commit_page(page, nodes)
            if page_settings is not None:
                new_page = new_page.model_copy(update={"settings": page_settings})
            operation = ComponentOperation(
                type=OperationType.BULK,
                component_id="*",
                data={"action": action},
            )
        except InvariantViolationError as e:
            return self._reject(page, action, e)

        logger.debug(f"{action}: installed {len(nodes)} components")
        return MutationResult(page=new_page, operation=operation)

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def check_invariants(self, page: PageSchema) -> None:
        """Raise InvariantViolationError if the page breaks a structural invariant"""
        violation = find_invariant_violation(page.components, page.groups)
        if violation:
            raise InvariantViolationError(*violation)

    def _commit_page(
        self,
        page: PageSchema,
        components: List[ComponentNode],
        groups: Optional[Dict[str, GroupFrame]] = None,
    ) -> PageSchema:
        update: Dict[str, Any] = {"components": components}
        if groups is not None:
            update["groups"] = groups
        new_page = page.model_copy(update=update)
        # model_copy skips validation, so invariants are checked explicitly
        self.check_invariants(new_page)
        return new_page

    def _build_node(self, data: Dict[str, Any]) -> ComponentNode:
        try:
            return ComponentNode.model_validate(data)
        except ValidationError as e:
            reason = ReasonCode.INVALID_OVERRIDE if "override" in str(e) else ReasonCode.INVALID_NODE
            raise InvariantViolationError(reason, f"Invalid component: {e}") from e

    def _reject(self, page: PageSchema, action: str, error: InvariantViolationError) -> MutationResult:
        logger.warning(f"Rejected {action}: {error.reason.value} - {error}")
        return MutationResult(page=page, reason=error.reason, message=str(error))

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _require(self, page: PageSchema, component_id: str) -> Tuple[int, ComponentNode]:
        index = page.find_index(component_id)
        if index < 0:
            raise InvariantViolationError(
                ReasonCode.NODE_NOT_FOUND, f"Component not found: {component_id}"
            )
        return index, page.components[index]

    @staticmethod
    def _tier(breakpoint: BreakpointLike) -> Breakpoint:
        try:
            return Breakpoint(breakpoint)
        except ValueError as e:
            raise InvariantViolationError(
                ReasonCode.INVALID_OVERRIDE, f"Unknown breakpoint: {breakpoint!r}"
            ) from e

    @staticmethod
    def _replace_at(
        components: Sequence[ComponentNode], index: int, node: ComponentNode
    ) -> List[ComponentNode]:
        updated = list(components)
        updated[index] = node
        return updated

    @staticmethod
    def _new_id(page: PageSchema, prefix: str) -> str:
        while True:
            candidate = f"{prefix}_{uuid.uuid4().hex[:8]}"
            if page.find_index(candidate) < 0:
                return candidate

    @staticmethod
    def _new_group_id(page: PageSchema) -> str:
        while True:
            candidate = f"group_{uuid.uuid4().hex[:8]}"
            if candidate not in page.groups:
                return candidate

    def _snap(self, value: float) -> float:
        return round(value / self.grid_size) * self.grid_size

    @staticmethod
    def _geometry_locked(node: ComponentNode, breakpoint: Breakpoint = Breakpoint.DEFAULT) -> bool:
        return node.locked or resolve_layout(node, breakpoint).locked

    @staticmethod
    def _geometry_changed(before: ComponentNode, after: ComponentNode) -> bool:
        for bp in Breakpoint:
            old, new = resolve_layout(before, bp), resolve_layout(after, bp)
            if (old.x, old.y, old.width, old.height) != (new.x, new.y, new.width, new.height):
                return True
        return False

    def _edit_layout(
        self,
        page: PageSchema,
        component_id: str,
        changes: Dict[str, Any],
        breakpoint: BreakpointLike,
        action: str,
    ) -> MutationResult:
        try:
            bp = self._tier(breakpoint)
            index, node = self._require(page, component_id)
            wire_changes = self._wire_layout_keys(changes)
            if GEOMETRY_KEYS & set(wire_changes) and self._geometry_locked(node, bp):
                raise InvariantViolationError(
                    ReasonCode.NODE_LOCKED, f"Component {component_id} is locked"
                )
            updated = node.model_copy(update={"layout": self._write_layout(node.layout, bp, wire_changes)})
            components = self._replace_at(page.components, index, updated)
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.UPDATE,
                component_id=component_id,
                data={"layout": wire_changes, "breakpoint": bp.value},
            )
        except InvariantViolationError as e:
            return self._reject(page, action, e)

        logger.debug(f"{action}: {component_id} at {bp.value} -> {wire_changes}")
        return MutationResult(page=new_page, operation=operation)

    def _toggle_flag(self, page: PageSchema, component_id: str, flag: str) -> MutationResult:
        try:
            index, node = self._require(page, component_id)
            value = not getattr(node, flag)
            components = self._replace_at(page.components, index, node.model_copy(update={flag: value}))
            new_page = self._commit_page(page, components)
            operation = ComponentOperation(
                type=OperationType.UPDATE,
                component_id=component_id,
                data={flag: value},
            )
        except InvariantViolationError as e:
            return self._reject(page, f"toggle_{flag}", e)

        logger.debug(f"Set {flag}={value} on {component_id}")
        return MutationResult(page=new_page, operation=operation)

    @staticmethod
    def _wire_layout_keys(changes: Mapping[str, Any]) -> Dict[str, Any]:
        wire = {_LAYOUT_FIELD_ALIASES.get(key, key): value for key, value in changes.items()}
        unknown = set(wire) - LAYOUT_KEYS
        if unknown:
            raise InvariantViolationError(
                ReasonCode.INVALID_OVERRIDE, f"Unknown layout keys: {sorted(unknown)}"
            )
        return wire

    def _write_layout(
        self,
        layout: ResponsiveLayout,
        breakpoint: Breakpoint,
        changes: Dict[str, Any],
    ) -> ResponsiveLayout:
        """
        Apply layout deltas at one tier.

        A default edit leaves the tablet/mobile tiers alone; an override edit
        stores only the written keys that differ from the default.
        """
        try:
            if breakpoint == Breakpoint.DEFAULT:
                default = LayoutBox.model_validate(overlay(layout.default.to_wire(), changes))
                return layout.model_copy(update={"default": default})
            base = layout.default.to_wire()
            override = write_override(base, layout.override(breakpoint), changes)
            # The resolved value must still be a valid layout
            LayoutBox.model_validate(overlay(base, override))
            return layout.model_copy(update={breakpoint.value: override})
        except ValidationError as e:
            raise InvariantViolationError(ReasonCode.INVALID_OVERRIDE, f"Invalid layout: {e}") from e

    @staticmethod
    def _write_styles(
        styles: ResponsiveStyles,
        breakpoint: Breakpoint,
        changes: Mapping[str, Any],
    ) -> ResponsiveStyles:
        """Apply style deltas at one tier; None removes a key from that tier."""
        if breakpoint == Breakpoint.DEFAULT:
            default = dict(styles.default)
            for key, value in changes.items():
                if value is None:
                    default.pop(key, None)
                else:
                    default[key] = value
            return styles.model_copy(update={"default": default})
        override = write_override(styles.default, styles.override(breakpoint), changes)
        return styles.model_copy(update={breakpoint.value: override})

    def _shift(self, node: ComponentNode, frame: GroupFrame, sign: int, group_id: Optional[str]) -> ComponentNode:
        resolved = resolve_layout(node, frame.breakpoint)
        layout = self._write_layout(node.layout, frame.breakpoint, {
            "x": resolved.x + sign * frame.x,
            "y": resolved.y + sign * frame.y,
        })
        return node.model_copy(update={"layout": layout, "group_id": group_id})

    def _to_relative(self, node: ComponentNode, frame: GroupFrame, group_id: str) -> ComponentNode:
        return self._shift(node, frame, -1, group_id)

    def _to_absolute(self, node: ComponentNode, frame: GroupFrame) -> ComponentNode:
        return self._shift(node, frame, 1, None)

