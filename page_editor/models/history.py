"""History models - snapshots recorded by the history manager."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import List

from pydantic import ConfigDict, Field

from page_editor.models.page_schema import CamelModel, ComponentNode, ComponentOperation, PageSchema, utc_now


def timestamp_ms() -> int:
    return int(utc_now().timestamp() * 1000)


class HistoryPhase(str, Enum):
    """Idle: normal editing. Applying: an undo/redo replay is in progress."""
    IDLE = "idle"
    APPLYING = "applying"


class HistoryState(CamelModel):
    """One committed snapshot: the operation plus a deep copy of the page after it."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = Field(default_factory=timestamp_ms)
    operation: ComponentOperation
    components: List[ComponentNode]
    page_schema: PageSchema


class HistoryInfo(CamelModel):
    """Introspection payload for undo/redo buttons and history lists"""
    model_config = ConfigDict(frozen=True)

    states: List[HistoryState]
    current_index: int
    max_states: int
    can_undo: bool
    can_redo: bool
