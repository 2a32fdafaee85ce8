"""
History Manager - Bounded Undo/Redo
===================================

Keeps a linear ring of deep-copied page snapshots and a cursor.

State machine:
- IDLE: commits truncate the redo branch, append a snapshot and advance
- APPLYING: entered by undo/redo; the next commit is the replay of the
  restored snapshot, so it is swallowed and the manager returns to IDLE

Misuse (undo with nothing to undo, redo at the tip) is a no-op returning
None, never an error.
"""

from typing import List, Optional

from loguru import logger

from page_editor.config import settings
from page_editor.models.history import HistoryInfo, HistoryPhase, HistoryState
from page_editor.models.page_schema import ComponentOperation, PageSchema


class HistoryManager:
    """One instance per editor session."""

    def __init__(self, max_states: Optional[int] = None):
        self.max_states = max_states if max_states is not None else settings.history_max_states
        if self.max_states < 1:
            raise ValueError(f"max_states must be at least 1, got {self.max_states}")
        self._states: List[HistoryState] = []
        self._index = -1
        self._phase = HistoryPhase.IDLE

    @property
    def phase(self) -> HistoryPhase:
        return self._phase

    @property
    def is_applying(self) -> bool:
        return self._phase == HistoryPhase.APPLYING

    @property
    def current_index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._states)

    # ========================================================================
    # COMMITS
    # ========================================================================

    def add_state(self, operation: ComponentOperation, page: PageSchema) -> Optional[HistoryState]:
        """
        Record a committed operation and the page after it.

        Returns:
            The new snapshot, or None when the commit was a swallowed replay
        """
        if self._phase == HistoryPhase.APPLYING:
            self._phase = HistoryPhase.IDLE
            logger.debug(f"Swallowed replay commit: {operation}")
            return None

        discarded = len(self._states) - (self._index + 1)
        if discarded:
            del self._states[self._index + 1:]
            logger.debug(f"Discarded {discarded} redo state(s)")

        page_copy = page.model_copy(deep=True)
        snapshot = HistoryState(
            operation=operation,
            components=list(page_copy.components),
            page_schema=page_copy,
        )
        self._states.append(snapshot)
        self._index = len(self._states) - 1

        while len(self._states) > self.max_states:
            self._states.pop(0)
            self._index -= 1

        logger.info(f"History commit: {operation} ({self._index + 1}/{len(self._states)})")
        return snapshot

    # ========================================================================
    # UNDO / REDO
    # ========================================================================

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._states) - 1

    def undo(self) -> Optional[HistoryState]:
        """Step the cursor back; returns the snapshot to install, or None."""
        if not self.can_undo():
            return None
        self._index -= 1
        self._phase = HistoryPhase.APPLYING
        logger.info(f"Undo to state {self._index}")
        return self._states[self._index]

    def redo(self) -> Optional[HistoryState]:
        """Step the cursor forward; returns the snapshot to install, or None."""
        if not self.can_redo():
            return None
        self._index += 1
        self._phase = HistoryPhase.APPLYING
        logger.info(f"Redo to state {self._index}")
        return self._states[self._index]

    # ========================================================================
    # INTROSPECTION
    # ========================================================================

    def current_state(self) -> Optional[HistoryState]:
        if self._index < 0:
            return None
        return self._states[self._index]

    def all_states(self) -> List[HistoryState]:
        return list(self._states)

    def clear(self) -> None:
        self._states.clear()
        self._index = -1
        self._phase = HistoryPhase.IDLE
        logger.debug("History cleared")

    def history_info(self) -> HistoryInfo:
        return HistoryInfo(
            states=self.all_states(),
            current_index=self._index,
            max_states=self.max_states,
            can_undo=self.can_undo(),
            can_redo=self.can_redo(),
        )
