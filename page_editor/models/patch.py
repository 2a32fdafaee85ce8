"""Patch models - minimal, replayable descriptions of document changes.

A patch is an ordered list of PatchOperation entries in JSON Patch form
(RFC 6902), addressed with JSON Pointers (RFC 6901).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from page_editor.models.page_schema import CamelModel


class PatchOp(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    COPY = "copy"
    TEST = "test"


# Ops that must carry a value / a source path
VALUE_OPS = frozenset({PatchOp.ADD, PatchOp.REPLACE, PatchOp.TEST})
SOURCE_OPS = frozenset({PatchOp.MOVE, PatchOp.COPY})


class PatchOperation(CamelModel):
    """A single patch entry."""
    model_config = ConfigDict(frozen=True)

    op: PatchOp
    path: str
    value: Any = None
    from_: Optional[str] = Field(default=None, alias="from")

    @property
    def has_value(self) -> bool:
        # null is a legal value, so presence is tracked by the fields set
        return "value" in self.model_fields_set

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_unset=True)

    def __str__(self) -> str:
        if self.from_ is not None:
            return f"{self.op.value} {self.from_} -> {self.path}"
        return f"{self.op.value} {self.path}"
