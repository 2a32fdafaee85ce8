"""
Page Schema Data Model - Single Source of Truth
===============================================

This module defines the authoritative schema for an editable page: the
ordered list of positioned, styled component nodes plus page-level settings.
Everything the canvas renders is derived from this data.

Design Principles:
- Strongly typed with Pydantic, camelCase on the wire
- Serializable to/from JSON with no loss (no object pointers, no cycles)
- Schema versioned so persisted documents can be migrated
- Frozen models: mutations produce new trees (copy-on-write)
"""

from typing import Any, Dict, List, Optional, Tuple, Literal
from datetime import datetime, timezone
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from page_editor.config import settings as editor_settings


# ============================================================================
# ENUMS & CONSTANTS
# ============================================================================

class Breakpoint(str, Enum):
    """Viewport tiers with independent layout/style overrides"""
    DEFAULT = "default"
    TABLET = "tablet"
    MOBILE = "mobile"


class DeviceMode(str, Enum):
    """Device selector used by the canvas"""
    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


class Direction(str, Enum):
    LTR = "ltr"
    RTL = "rtl"


class Language(str, Enum):
    ENGLISH = "ENGLISH"
    URDU = "URDU"


class OperationType(str, Enum):
    """Kinds of committed document operations"""
    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"
    MOVE = "move"
    DUPLICATE = "duplicate"
    GROUP = "group"
    UNGROUP = "ungroup"
    BULK = "bulk"
    LOAD = "load"


class ReasonCode(str, Enum):
    """Why a mutation was rejected at the document boundary"""
    NODE_NOT_FOUND = "node_not_found"
    DUPLICATE_ID = "duplicate_id"
    INVALID_INDEX = "invalid_index"
    NODE_LOCKED = "node_locked"
    GROUP_TOO_SMALL = "group_too_small"
    ALREADY_GROUPED = "already_grouped"
    GROUP_NOT_FOUND = "group_not_found"
    ORPHANED_GROUP = "orphaned_group"
    ID_IMMUTABLE = "id_immutable"
    GROUP_MANAGED = "group_managed"
    INVALID_OVERRIDE = "invalid_override"
    INVALID_NODE = "invalid_node"


OVERRIDE_BREAKPOINTS: Tuple[Breakpoint, ...] = (Breakpoint.TABLET, Breakpoint.MOBILE)

# Wire names of every layout field; overrides may only use these keys
LAYOUT_KEYS = frozenset({
    "x", "y", "width", "height", "zIndex", "rotation", "scale", "locked", "visible",
})

# Language aliases accepted on load
LANGUAGE_ALIASES: Dict[str, str] = {
    "اردو": Language.URDU.value,
    "english": Language.ENGLISH.value,
    "urdu": Language.URDU.value,
}

# Current schema version - increment on breaking changes and add a migration
CURRENT_SCHEMA_VERSION = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# LAYOUT & STYLE MODELS
# ============================================================================

class LayoutBox(CamelModel):
    """Fully populated layout at the default tier"""
    model_config = ConfigDict(frozen=True)

    x: float = Field(description="X coordinate in canvas pixels")
    y: float = Field(description="Y coordinate in canvas pixels")
    width: float = Field(ge=0, description="Width in canvas pixels")
    height: float = Field(ge=0, description="Height in canvas pixels")
    z_index: int = Field(default=0, description="Stacking order")
    rotation: float = Field(default=0.0, description="Rotation in degrees")
    scale: float = Field(default=1.0, description="Uniform scale factor")
    locked: bool = False
    visible: bool = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def _check_override_keys(value: Optional[Dict[str, Any]], allowed: frozenset, tier: str) -> None:
    if value is None:
        return
    unknown = set(value) - allowed
    if unknown:
        raise ValueError(f"Malformed {tier} override, unknown keys: {sorted(unknown)}")


class ResponsiveLayout(CamelModel):
    """Default layout plus partial per-breakpoint deltas"""
    model_config = ConfigDict(frozen=True)

    default: LayoutBox
    tablet: Optional[Dict[str, Any]] = None
    mobile: Optional[Dict[str, Any]] = None

    @model_validator(mode='after')
    def validate_overrides(self) -> 'ResponsiveLayout':
        """Overrides are partial maps over known layout keys"""
        _check_override_keys(self.tablet, LAYOUT_KEYS, "tablet")
        _check_override_keys(self.mobile, LAYOUT_KEYS, "mobile")
        return self

    def override(self, breakpoint: Breakpoint) -> Optional[Dict[str, Any]]:
        if breakpoint == Breakpoint.DEFAULT:
            return None
        return getattr(self, breakpoint.value)


class ResponsiveStyles(CamelModel):
    """Default style mapping plus partial per-breakpoint deltas"""
    model_config = ConfigDict(frozen=True)

    default: Dict[str, Any] = Field(default_factory=dict)
    tablet: Optional[Dict[str, Any]] = None
    mobile: Optional[Dict[str, Any]] = None

    def override(self, breakpoint: Breakpoint) -> Optional[Dict[str, Any]]:
        if breakpoint == Breakpoint.DEFAULT:
            return None
        return getattr(self, breakpoint.value)


def _normalize_language(v: Any) -> Any:
    if isinstance(v, str):
        return LANGUAGE_ALIASES.get(v, LANGUAGE_ALIASES.get(v.lower(), v))
    return v


# ============================================================================
# COMPONENT NODE
# ============================================================================

class ComponentNode(CamelModel):
    """A single placed element on the page"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique, stable component identifier")
    type: str = Field(min_length=1, description="Component type tag (opaque to the core)")
    props: Dict[str, Any] = Field(default_factory=dict, description="Component-specific content")
    layout: ResponsiveLayout
    styles: ResponsiveStyles = Field(default_factory=ResponsiveStyles)
    group_id: Optional[str] = Field(default=None, description="Logical group back-reference")
    locked: bool = False
    visible: bool = True
    language: Optional[Language] = Field(default=None, description="Inherits page language when unset")
    direction: Optional[Direction] = Field(default=None, description="Inherits page direction when unset")
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('language', mode='before')
    @classmethod
    def validate_language(cls, v: Any) -> Any:
        return _normalize_language(v)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)


# ============================================================================
# PAGE-LEVEL MODELS
# ============================================================================

class PageSettings(CamelModel):
    """Page-level locale, theme and meta settings"""
    model_config = ConfigDict(frozen=True)

    language: Language = Language.ENGLISH
    direction: Direction = Direction.LTR
    theme: Optional[Literal["light", "dark", "auto"]] = None
    custom_css: Optional[str] = Field(default=None, alias="customCSS")
    custom_js: Optional[str] = Field(default=None, alias="customJS")
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[List[str]] = None
    og_image: Optional[str] = None
    favicon: Optional[str] = None

    @field_validator('language', mode='before')
    @classmethod
    def validate_language(cls, v: Any) -> Any:
        return _normalize_language(v)


class Breakpoints(CamelModel):
    """Pixel widths at which the tablet and mobile tiers start"""
    model_config = ConfigDict(frozen=True)

    tablet: int = Field(default_factory=lambda: editor_settings.breakpoint_tablet, gt=0)
    mobile: int = Field(default_factory=lambda: editor_settings.breakpoint_mobile, gt=0)

    @model_validator(mode='after')
    def validate_order(self) -> 'Breakpoints':
        if self.mobile >= self.tablet:
            raise ValueError(
                f"Mobile breakpoint ({self.mobile}) must be below tablet breakpoint ({self.tablet})"
            )
        return self


class ResponsiveConfig(CamelModel):
    model_config = ConfigDict(frozen=True)

    breakpoints: Breakpoints = Field(default_factory=Breakpoints)
    default_device: DeviceMode = DeviceMode.DESKTOP


class PageMetadata(CamelModel):
    """Author/version/timestamps; carried through unchanged by the core"""
    model_config = ConfigDict(frozen=True, extra="allow")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    author: str = ""
    version: int = 1
    last_modified_by: Optional[str] = None


class GroupFrame(CamelModel):
    """Bounding box captured when a group was formed"""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    breakpoint: Breakpoint = Breakpoint.DEFAULT


# ============================================================================
# OPERATION DESCRIPTOR
# ============================================================================

class ComponentOperation(CamelModel):
    """
    Structured description of what a committed mutation changed.
    Emitted after every mutating call for patching, history and observers.
    """
    model_config = ConfigDict(frozen=True)

    type: OperationType
    component_id: str = Field(description="Affected component (or group id / '*' for bulk)")
    data: Optional[Dict[str, Any]] = None
    target_index: Optional[int] = None

    def __str__(self) -> str:
        suffix = f" -> {self.target_index}" if self.target_index is not None else ""
        return f"{self.type.value} {self.component_id}{suffix}"


# ============================================================================
# INVARIANTS
# ============================================================================

def find_invariant_violation(
    components: List[ComponentNode],
    groups: Dict[str, GroupFrame],
) -> Optional[Tuple[ReasonCode, str]]:
    """
    Check structural invariants across a component list.

    Returns the first violation as (reason, message), or None when valid.
    """
    seen: set = set()
    members: Dict[str, int] = {}
    for node in components:
        if node.id in seen:
            return ReasonCode.DUPLICATE_ID, f"Duplicate component id: {node.id}"
        seen.add(node.id)
        if node.group_id is not None:
            members[node.group_id] = members.get(node.group_id, 0) + 1

    for group_id, count in members.items():
        if group_id not in groups:
            return ReasonCode.ORPHANED_GROUP, f"Group {group_id} has no recorded frame"
        if count < 2:
            return ReasonCode.ORPHANED_GROUP, f"Group {group_id} has a single member"

    for group_id in groups:
        if group_id not in members:
            return ReasonCode.ORPHANED_GROUP, f"Group frame {group_id} has no members"

    return None


# ============================================================================
# PAGE SCHEMA (ROOT MODEL)
# ============================================================================

class PageSchema(CamelModel):
    """
    The document root. Insertion order of `components` is the default
    paint order; zIndex may reorder visually but not structurally.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Untitled page"
    slug: str = ""
    schema_version: int = CURRENT_SCHEMA_VERSION
    components: List[ComponentNode] = Field(default_factory=list)
    settings: PageSettings = Field(default_factory=PageSettings)
    responsive: ResponsiveConfig = Field(default_factory=ResponsiveConfig)
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    groups: Dict[str, GroupFrame] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_structure(self) -> 'PageSchema':
        """Ensure ids are unique and group references are consistent"""
        violation = find_invariant_violation(self.components, self.groups)
        if violation:
            raise ValueError(violation[1])
        return self

    def find_index(self, component_id: str) -> int:
        """Index of a component in paint order, -1 if absent"""
        for index, node in enumerate(self.components):
            if node.id == component_id:
                return index
        return -1

    def get_component(self, component_id: str) -> Optional[ComponentNode]:
        index = self.find_index(component_id)
        return self.components[index] if index >= 0 else None

    def group_members(self, group_id: str) -> List[ComponentNode]:
        return [c for c in self.components if c.group_id == group_id]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary (for JSON export)"""
        return self.model_dump(mode='json', by_alias=True)

    def to_json(self) -> str:
        """Serialize to JSON string"""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageSchema":
        """Deserialize from dictionary with validation"""
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, json_str: str) -> "PageSchema":
        """Deserialize from JSON string with validation"""
        return cls.model_validate_json(json_str)

    @classmethod
    def create_new(cls, name: str = "Untitled page", author: str = "", slug: str = "") -> "PageSchema":
        """Factory method to create a new, empty page."""
        return cls(
            name=name,
            slug=slug,
            metadata=PageMetadata(author=author, last_modified_by=author or None),
        )

    def __str__(self) -> str:
        return (
            f"PageSchema(id={self.id}, name={self.name}, "
            f"schema_version={self.schema_version}, "
            f"components={len(self.components)}, groups={len(self.groups)})"
        )
