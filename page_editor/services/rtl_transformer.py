"""
RTL Transformer - Left-to-Right / Right-to-Left Mirroring
=========================================================

Mirrors typography and flex layout for right-to-left locales (Urdu) without
touching coordinates. Mirroring is an involution: applying it twice gives
back the original mapping, so switching direction back and forth never
corrupts data.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import re

from page_editor.models.page_schema import (
    ComponentNode,
    Direction,
    Language,
    ResponsiveStyles,
)


# Arabic, Arabic Supplement, Arabic Extended-A, Presentation Forms A and B
RTL_CHARACTERS = re.compile(
    "[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"
)

# Keys swapped as pairs
MIRRORED_KEY_PAIRS = (
    ("paddingLeft", "paddingRight"),
    ("marginLeft", "marginRight"),
)

MIRRORED_STYLE_VALUES: Dict[str, Dict[str, str]] = {
    "textAlign": {"left": "right", "right": "left"},
    "justifyContent": {"flex-start": "flex-end", "flex-end": "flex-start"},
}

MIRRORED_LAYOUT_VALUES: Dict[str, Dict[str, str]] = {
    "flexDirection": {"row": "row-reverse", "row-reverse": "row"},
}


def detect_direction(text: str) -> Direction:
    """RTL if the text contains any Arabic-script character."""
    if text and RTL_CHARACTERS.search(text):
        return Direction.RTL
    return Direction.LTR


def _swap_values(mapping: Dict[str, Any], table: Mapping[str, Mapping[str, str]]) -> None:
    for key, swaps in table.items():
        value = mapping.get(key)
        if isinstance(value, str) and value in swaps:
            mapping[key] = swaps[value]


def mirror_style(style: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Mirror a style mapping.

    Left/right padding and margin are swapped as a pair (a lone key moves to
    the other side); textAlign and justifyContent flip. Unknown keys are
    left untouched. None passes through for absent overrides.
    """
    if style is None:
        return None
    mirrored = dict(style)
    for left, right in MIRRORED_KEY_PAIRS:
        has_left, has_right = left in style, right in style
        mirrored.pop(left, None)
        mirrored.pop(right, None)
        if has_left:
            mirrored[right] = style[left]
        if has_right:
            mirrored[left] = style[right]
    _swap_values(mirrored, MIRRORED_STYLE_VALUES)
    return mirrored


def mirror_layout(layout: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Flip flexDirection; coordinates are never touched."""
    if layout is None:
        return None
    mirrored = dict(layout)
    _swap_values(mirrored, MIRRORED_LAYOUT_VALUES)
    return mirrored


def _mirror_mapping(mapping: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    return mirror_layout(mirror_style(mapping))


def mirror_node(node: ComponentNode) -> ComponentNode:
    """Mirror every style tier of a node."""
    styles = ResponsiveStyles(
        default=_mirror_mapping(node.styles.default),
        tablet=_mirror_mapping(node.styles.tablet),
        mobile=_mirror_mapping(node.styles.mobile),
    )
    return node.model_copy(update={"styles": styles})


def orient_seed_style(style: Mapping[str, Any], direction: Union[Direction, str]) -> Dict[str, Any]:
    """Catalog seed styles are authored left-to-right; mirror them for an RTL page."""
    if Direction(direction) == Direction.RTL:
        return _mirror_mapping(style)
    return dict(style)


def apply_to_tree(
    nodes: Iterable[ComponentNode],
    direction: Union[Direction, str],
    page_direction: Union[Direction, str] = Direction.LTR,
) -> List[ComponentNode]:
    """
    Bring every node to `direction`.

    A node is mirrored only when its tracked direction (its own tag, else the
    page direction) differs from the target, so repeated application is
    stable. Every node is stamped with the target direction and its language.
    """
    target = Direction(direction)
    fallback = Direction(page_direction)
    language = language_for_direction(target)
    result = []
    for node in nodes:
        tracked = node.direction or fallback
        updated = mirror_node(node) if tracked != target else node
        if updated.direction != target or updated.language != language:
            updated = updated.model_copy(update={"direction": target, "language": language})
        result.append(updated)
    return result


def _strings(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _strings(item)


def _node_text_direction(node: ComponentNode) -> Optional[Direction]:
    texts = [t for t in _strings(node.props) if t.strip()]
    if not texts:
        return None
    if any(detect_direction(t) == Direction.RTL for t in texts):
        return Direction.RTL
    return Direction.LTR


def detect_node_direction(node: ComponentNode) -> Direction:
    """Direction suggested by a node's string props."""
    return _node_text_direction(node) or Direction.LTR


def detect_page_direction(nodes: Iterable[ComponentNode]) -> Direction:
    """RTL when more text-bearing nodes read right-to-left than left-to-right."""
    rtl = ltr = 0
    for node in nodes:
        detected = _node_text_direction(node)
        if detected == Direction.RTL:
            rtl += 1
        elif detected == Direction.LTR:
            ltr += 1
    return Direction.RTL if rtl > ltr else Direction.LTR


def language_for_direction(direction: Union[Direction, str]) -> Language:
    return Language.URDU if Direction(direction) == Direction.RTL else Language.ENGLISH
