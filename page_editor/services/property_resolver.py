"""
Property Resolver - Breakpoint Cascade
======================================

Resolves the effective layout and style of a node at a breakpoint.

Cascade rule: start from `default`; for `tablet`/`mobile`, overlay that
tier's partial override key by key. Two levels only: `mobile` never
inherits from `tablet`. Absence is detected by key presence, so falsy
override values (0, False, "") are honored.

Every function here is pure. The canvas calls them on every render and the
document model calls them before geometry-dependent edits (e.g. group bounds).
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from page_editor.models.page_schema import (
    Breakpoint,
    Breakpoints,
    ComponentNode,
    DeviceMode,
    Direction,
    Language,
    LayoutBox,
    PageSettings,
)


BreakpointLike = Union[Breakpoint, str]

DEVICE_TO_BREAKPOINT: Dict[DeviceMode, Breakpoint] = {
    DeviceMode.DESKTOP: Breakpoint.DEFAULT,
    DeviceMode.TABLET: Breakpoint.TABLET,
    DeviceMode.MOBILE: Breakpoint.MOBILE,
}


def overlay(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Shallow-merge a partial override on top of a base mapping."""
    merged = dict(base)
    if override:
        for key, value in override.items():
            merged[key] = value
    return merged


def resolve_layout(node: ComponentNode, breakpoint: BreakpointLike = Breakpoint.DEFAULT) -> LayoutBox:
    """Effective layout of a node at a breakpoint."""
    override = node.layout.override(Breakpoint(breakpoint))
    if not override:
        return node.layout.default
    return LayoutBox.model_validate(overlay(node.layout.default.to_wire(), override))


def resolve_styles(node: ComponentNode, breakpoint: BreakpointLike = Breakpoint.DEFAULT) -> Dict[str, Any]:
    """Effective style mapping of a node at a breakpoint."""
    return overlay(node.styles.default, node.styles.override(Breakpoint(breakpoint)))


def resolve_node(
    node: ComponentNode,
    breakpoint: BreakpointLike = Breakpoint.DEFAULT,
) -> Tuple[LayoutBox, Dict[str, Any]]:
    """Effective (layout, styles) of a node at a breakpoint."""
    return resolve_layout(node, breakpoint), resolve_styles(node, breakpoint)


def prune_override(
    base: Mapping[str, Any],
    override: Optional[Mapping[str, Any]],
) -> Optional[Dict[str, Any]]:
    """
    Reduce an override to its genuine deltas against `base`.

    Returns None when nothing differs, so a tier never stores a copy of
    the default.
    """
    if not override:
        return None
    deltas = {
        key: value
        for key, value in override.items()
        if key not in base or not _same_value(base[key], value)
    }
    return deltas or None


def write_override(
    base: Mapping[str, Any],
    override: Optional[Mapping[str, Any]],
    changes: Mapping[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Write `changes` into an override tier.

    Only the written keys are compared with `base`: a key equal to the base
    value (or set to None) is dropped from the tier, every other key already
    stored there is kept as is.
    """
    updated = dict(override or {})
    for key, value in changes.items():
        if value is None or (key in base and _same_value(base[key], value)):
            updated.pop(key, None)
        else:
            updated[key] = value
    return updated or None


def _same_value(a: Any, b: Any) -> bool:
    # True == 1 in Python; keep booleans distinct from numbers
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def breakpoint_for_width(width: float, breakpoints: Optional[Breakpoints] = None) -> Breakpoint:
    """Viewport width to tier, using the page thresholds."""
    bp = breakpoints or Breakpoints()
    if width <= bp.mobile:
        return Breakpoint.MOBILE
    if width <= bp.tablet:
        return Breakpoint.TABLET
    return Breakpoint.DEFAULT


def breakpoint_for_device(device: Union[DeviceMode, str]) -> Breakpoint:
    return DEVICE_TO_BREAKPOINT[DeviceMode(device)]


def has_override(node: ComponentNode, breakpoint: BreakpointLike) -> bool:
    bp = Breakpoint(breakpoint)
    return bool(node.layout.override(bp)) or bool(node.styles.override(bp))


def override_count(nodes: Iterable[ComponentNode], breakpoint: BreakpointLike) -> int:
    """Number of nodes carrying layout or style overrides at a tier."""
    return sum(1 for node in nodes if has_override(node, breakpoint))


def effective_direction(node: ComponentNode, settings: PageSettings) -> Direction:
    return node.direction or settings.direction


def effective_language(node: ComponentNode, settings: PageSettings) -> Language:
    return node.language or settings.language


def bounding_box(layouts: Iterable[LayoutBox]) -> Tuple[float, float, float, float]:
    """
    Smallest box enclosing all layouts.

    Returns:
        (x, y, width, height) with (x, y) the top-left origin
    """
    boxes = list(layouts)
    if not boxes:
        raise ValueError("Cannot compute the bounding box of an empty selection")
    left = min(box.x for box in boxes)
    top = min(box.y for box in boxes)
    right = max(box.x + box.width for box in boxes)
    bottom = max(box.y + box.height for box in boxes)
    return left, top, right - left, bottom - top
