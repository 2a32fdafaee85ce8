"""
Models package - page schema, patches and history snapshots.
"""

from .page_schema import (
    Breakpoint,
    DeviceMode,
    Direction,
    Language,
    OperationType,
    ReasonCode,
    LayoutBox,
    ResponsiveLayout,
    ResponsiveStyles,
    ComponentNode,
    PageSettings,
    Breakpoints,
    ResponsiveConfig,
    PageMetadata,
    GroupFrame,
    ComponentOperation,
    PageSchema,
    CURRENT_SCHEMA_VERSION,
    LAYOUT_KEYS,
    OVERRIDE_BREAKPOINTS,
)

from .patch import (
    PatchOp,
    PatchOperation,
)

from .history import (
    HistoryPhase,
    HistoryState,
    HistoryInfo,
)

__all__ = [
    'Breakpoint',
    'DeviceMode',
    'Direction',
    'Language',
    'OperationType',
    'ReasonCode',
    'LayoutBox',
    'ResponsiveLayout',
    'ResponsiveStyles',
    'ComponentNode',
    'PageSettings',
    'Breakpoints',
    'ResponsiveConfig',
    'PageMetadata',
    'GroupFrame',
    'ComponentOperation',
    'PageSchema',
    'CURRENT_SCHEMA_VERSION',
    'LAYOUT_KEYS',
    'OVERRIDE_BREAKPOINTS',
    'PatchOp',
    'PatchOperation',
    'HistoryPhase',
    'HistoryState',
    'HistoryInfo',
]
