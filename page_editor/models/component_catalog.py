"""Seed component registry.

The palette/catalog UI lives outside the editor core. This module only holds
the seed values the core needs at node-creation time: default size, default
props and default styles per component type, plus type aliases.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple, TypedDict


class ComponentDefinition(TypedDict, total=False):
    """Seed definition for a page component."""

    id: str
    name: str
    category: str
    aliases: List[str]
    default_size: Tuple[int, int]
    default_props: Dict[str, Any]
    default_styles: Dict[str, Any]


COMPONENT_DEFINITIONS: Dict[str, ComponentDefinition] = {
    "heading": {
        "id": "text.heading",
        "name": "Heading",
        "category": "text",
        "aliases": ["title", "h1", "h2"],
        "default_size": (400, 60),
        "default_props": {"text": "Heading", "level": 2},
        "default_styles": {"fontSize": 32, "fontWeight": "bold", "textAlign": "left"},
    },
    "text": {
        "id": "text.paragraph",
        "name": "Text",
        "category": "text",
        "aliases": ["paragraph", "p"],
        "default_size": (400, 100),
        "default_props": {"text": "Text"},
        "default_styles": {"fontSize": 16, "textAlign": "left"},
    },
    "button": {
        "id": "action.button",
        "name": "Button",
        "category": "action",
        "aliases": ["cta"],
        "default_size": (160, 48),
        "default_props": {"label": "Button", "href": "#", "variant": "primary"},
        "default_styles": {"paddingLeft": 16, "paddingRight": 16, "borderRadius": 6},
    },
    "image": {
        "id": "media.image",
        "name": "Image",
        "category": "media",
        "aliases": ["img", "picture"],
        "default_size": (300, 200),
        "default_props": {"src": "", "alt": ""},
        "default_styles": {"objectFit": "cover"},
    },
    "video": {
        "id": "media.video",
        "name": "Video",
        "category": "media",
        "default_size": (480, 270),
        "default_props": {"src": "", "autoplay": False},
        "default_styles": {},
    },
    "container": {
        "id": "layout.container",
        "name": "Container",
        "category": "layout",
        "aliases": ["box", "div"],
        "default_size": (600, 300),
        "default_props": {},
        "default_styles": {"display": "flex", "flexDirection": "row", "justifyContent": "flex-start"},
    },
    "section": {
        "id": "layout.section",
        "name": "Section",
        "category": "layout",
        "default_size": (1200, 400),
        "default_props": {},
        "default_styles": {"paddingTop": 40, "paddingBottom": 40},
    },
    "spacer": {
        "id": "layout.spacer",
        "name": "Spacer",
        "category": "layout",
        "default_size": (1200, 40),
        "default_props": {},
        "default_styles": {},
    },
    "divider": {
        "id": "layout.divider",
        "name": "Divider",
        "category": "layout",
        "aliases": ["hr"],
        "default_size": (600, 2),
        "default_props": {},
        "default_styles": {"backgroundColor": "#e5e7eb"},
    },
    "form": {
        "id": "input.form",
        "name": "Form",
        "category": "input",
        "aliases": ["contact-form"],
        "default_size": (400, 360),
        "default_props": {"fields": [], "submitLabel": "Submit"},
        "default_styles": {},
    },
    "navbar": {
        "id": "navigation.navbar",
        "name": "Navbar",
        "category": "navigation",
        "aliases": ["header", "nav"],
        "default_size": (1200, 64),
        "default_props": {"links": []},
        "default_styles": {"display": "flex", "justifyContent": "flex-start"},
    },
    "footer": {
        "id": "navigation.footer",
        "name": "Footer",
        "category": "navigation",
        "default_size": (1200, 120),
        "default_props": {"text": ""},
        "default_styles": {"textAlign": "left"},
    },
}

# Fallback size for types the catalog does not know about
DEFAULT_DIMENSIONS: Tuple[int, int] = (200, 100)


def _build_alias_index() -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for canonical, definition in COMPONENT_DEFINITIONS.items():
        aliases[canonical.lower()] = canonical
        for alias in definition.get("aliases", []):
            aliases[alias.lower()] = canonical
    return aliases


_COMPONENT_ALIAS_INDEX = _build_alias_index()


def normalize_component_type(component_type: str, fallback: Optional[str] = None) -> str:
    """Map an alias to its canonical type; unknown types pass through unless a fallback is given."""
    if not component_type or not component_type.strip():
        return fallback or ""
    normalized = component_type.strip()
    canonical = _COMPONENT_ALIAS_INDEX.get(normalized.lower())
    if canonical:
        return canonical
    return fallback if fallback is not None else normalized


def get_component_definition(component_type: str) -> Optional[ComponentDefinition]:
    canonical = normalize_component_type(component_type)
    return COMPONENT_DEFINITIONS.get(canonical)


def get_available_components() -> List[str]:
    return sorted(COMPONENT_DEFINITIONS.keys())


def get_component_default_dimensions(component_type: str) -> Tuple[int, int]:
    definition = get_component_definition(component_type)
    if not definition:
        return DEFAULT_DIMENSIONS
    return definition.get("default_size", DEFAULT_DIMENSIONS)


def get_component_default_properties(component_type: str) -> Dict[str, Any]:
    definition = get_component_definition(component_type)
    return deepcopy(definition.get("default_props", {})) if definition else {}


def get_component_default_styles(component_type: str) -> Dict[str, Any]:
    definition = get_component_definition(component_type)
    return deepcopy(definition.get("default_styles", {})) if definition else {}
