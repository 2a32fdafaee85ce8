"""
Patch Engine - Minimal, Replayable Document Changes
===================================================

Produces and applies JSON Patch (RFC 6902) lists over the camelCase JSON form
of a PageSchema. Paths are JSON Pointers (RFC 6901).

Two ways to produce a patch:
1. Operation-derived: a committed ComponentOperation maps straight to a few
   entries (cheap, used for every known operation type)
2. Generic diff: structural comparison of two arbitrary JSON trees (used for
   bulk commits and loads)

Application always works on a deep copy; the input document is never
partially modified.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import copy

from loguru import logger
from pydantic import BaseModel, ValidationError

from page_editor.models.page_schema import ComponentOperation, OperationType, PageSchema
from page_editor.models.patch import SOURCE_OPS, VALUE_OPS, PatchOp, PatchOperation


PatchLike = Union[PatchOperation, Dict[str, Any]]

COMPONENTS_PATH = "/components"
GROUPS_PATH = "/groups"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class PatchError(Exception):
    """Base exception for patch errors"""
    pass


class PatchValidationError(PatchError):
    """Raised when a patch entry is malformed; nothing has been applied"""

    def __init__(self, index: int, message: str):
        super().__init__(f"Invalid patch entry {index}: {message}")
        self.index = index


class PatchApplicationError(PatchError):
    """Raised when a patch entry cannot be applied; the input is untouched"""

    def __init__(self, message: str, index: Optional[int] = None,
                 operation: Optional[PatchOperation] = None):
        prefix = f"Patch entry {index} ({operation}) failed" if index is not None else "Patch failed"
        super().__init__(f"{prefix}: {message}")
        self.index = index
        self.operation = operation


class _PointerError(Exception):
    pass


# ============================================================================
# JSON POINTER
# ============================================================================

def escape_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def build_pointer(*tokens: Union[str, int]) -> str:
    return "".join(f"/{escape_token(str(t))}" for t in tokens)


def parse_pointer(pointer: str) -> List[str]:
    if not pointer.startswith("/"):
        raise _PointerError(f"Pointer must start with '/': {pointer!r}")
    return [unescape_token(t) for t in pointer[1:].split("/")]


def _array_index(container: List[Any], token: str, allow_end: bool) -> int:
    if token == "-" and allow_end:
        return len(container)
    if not token.isdigit() or (len(token) > 1 and token[0] == "0"):
        raise _PointerError(f"Invalid array index: {token!r}")
    index = int(token)
    limit = len(container) if allow_end else len(container) - 1
    if index > limit:
        raise _PointerError(f"Array index {index} out of range (size {len(container)})")
    return index


def _child(container: Any, token: str) -> Any:
    if isinstance(container, list):
        return container[_array_index(container, token, allow_end=False)]
    if isinstance(container, dict):
        if token not in container:
            raise _PointerError(f"Key not found: {token!r}")
        return container[token]
    raise _PointerError(f"Cannot descend into {type(container).__name__} with {token!r}")


def _get(document: Any, pointer: str) -> Any:
    node = document
    for token in parse_pointer(pointer):
        node = _child(node, token)
    return node


def _parent(document: Any, pointer: str) -> Tuple[Any, str]:
    tokens = parse_pointer(pointer)
    node = document
    for token in tokens[:-1]:
        node = _child(node, token)
    return node, tokens[-1]


# ============================================================================
# VALIDATION
# ============================================================================

def validate_patch(patches: Iterable[PatchLike]) -> List[PatchOperation]:
    """
    Check every entry before anything is applied.

    Returns:
        The entries as PatchOperation models

    Raises:
        PatchValidationError: On the first malformed entry
    """
    validated: List[PatchOperation] = []
    for index, entry in enumerate(patches):
        if isinstance(entry, PatchOperation):
            operation = entry
        else:
            try:
                operation = PatchOperation.model_validate(entry)
            except ValidationError as e:
                raise PatchValidationError(index, str(e)) from e

        if not operation.path or not operation.path.startswith("/"):
            raise PatchValidationError(index, f"path must be a non-empty pointer, got {operation.path!r}")
        if operation.op in VALUE_OPS and not operation.has_value:
            raise PatchValidationError(index, f"'{operation.op.value}' requires a value")
        if operation.op in SOURCE_OPS:
            if not operation.from_ or not operation.from_.startswith("/"):
                raise PatchValidationError(index, f"'{operation.op.value}' requires a 'from' pointer")
        validated.append(operation)
    return validated


def is_valid_patch(patches: Iterable[PatchLike]) -> bool:
    try:
        validate_patch(patches)
    except PatchValidationError:
        return False
    return True


# ============================================================================
# APPLICATION
# ============================================================================

def _add(document: Any, pointer: str, value: Any) -> None:
    parent, token = _parent(document, pointer)
    if isinstance(parent, list):
        parent.insert(_array_index(parent, token, allow_end=True), value)
    elif isinstance(parent, dict):
        parent[token] = value
    else:
        raise _PointerError(f"Cannot add into {type(parent).__name__}")


def _remove(document: Any, pointer: str) -> Any:
    parent, token = _parent(document, pointer)
    if isinstance(parent, list):
        return parent.pop(_array_index(parent, token, allow_end=False))
    if isinstance(parent, dict):
        if token not in parent:
            raise _PointerError(f"Key not found: {token!r}")
        return parent.pop(token)
    raise _PointerError(f"Cannot remove from {type(parent).__name__}")


def _replace(document: Any, pointer: str, value: Any) -> None:
    parent, token = _parent(document, pointer)
    if isinstance(parent, list):
        parent[_array_index(parent, token, allow_end=False)] = value
    elif isinstance(parent, dict):
        if token not in parent:
            raise _PointerError(f"Key not found: {token!r}")
        parent[token] = value
    else:
        raise _PointerError(f"Cannot replace in {type(parent).__name__}")


def _apply_operation(document: Any, operation: PatchOperation) -> None:
    op, path = operation.op, operation.path

    if op == PatchOp.ADD:
        _add(document, path, copy.deepcopy(operation.value))
    elif op == PatchOp.REMOVE:
        _remove(document, path)
    elif op == PatchOp.REPLACE:
        _replace(document, path, copy.deepcopy(operation.value))
    elif op == PatchOp.MOVE:
        if path == operation.from_:
            _get(document, path)
            return
        if path.startswith(operation.from_ + "/"):
            raise _PointerError("Cannot move a value into one of its own children")
        _add(document, path, _remove(document, operation.from_))
    elif op == PatchOp.COPY:
        _add(document, path, copy.deepcopy(_get(document, operation.from_)))
    elif op == PatchOp.TEST:
        actual = _get(document, path)
        if not json_equal(actual, operation.value):
            raise _PointerError(f"Test failed: {actual!r} != {operation.value!r}")


def apply_patch(document: Any, patches: Iterable[PatchLike]) -> Any:
    """
    Apply a patch to a JSON document, in order.

    Returns:
        A new document; `document` itself is not modified

    Raises:
        PatchValidationError: If any entry is malformed (nothing applied)
        PatchApplicationError: With the index of the first failing entry
    """
    operations = validate_patch(patches)
    result = copy.deepcopy(document)
    for index, operation in enumerate(operations):
        try:
            _apply_operation(result, operation)
        except _PointerError as e:
            raise PatchApplicationError(str(e), index=index, operation=operation) from e
    return result


def apply_to_page(page: PageSchema, patches: Iterable[PatchLike]) -> PageSchema:
    """Apply a patch to a page and validate the result as a PageSchema."""
    data = apply_patch(page.to_dict(), patches)
    try:
        return PageSchema.from_dict(data)
    except ValidationError as e:
        raise PatchApplicationError(f"Patched document is not a valid page: {e}") from e


# ============================================================================
# OPERATION-DERIVED PATCHES
# ============================================================================

def _component_path(index: Union[int, str]) -> str:
    return f"{COMPONENTS_PATH}/{index}"


def _group_path(group_id: str) -> str:
    return f"{GROUPS_PATH}/{escape_token(group_id)}"


def _replace_node(page: PageSchema, component_id: str) -> PatchOperation:
    index = page.find_index(component_id)
    return PatchOperation(
        op=PatchOp.REPLACE,
        path=_component_path(index),
        value=page.components[index].to_wire(),
    )


def _group_entries(operation: ComponentOperation, after: PageSchema) -> List[PatchOperation]:
    group_id = operation.component_id
    member_ids = (operation.data or {}).get("memberIds", [])
    patches = [_replace_node(after, cid) for cid in member_ids]
    if operation.type == OperationType.GROUP:
        frame = after.groups[group_id]
        patches.append(PatchOperation(
            op=PatchOp.ADD,
            path=_group_path(group_id),
            value=frame.model_dump(mode='json', by_alias=True),
        ))
    else:
        patches.append(PatchOperation(op=PatchOp.REMOVE, path=_group_path(group_id)))
    return patches


def create_operation_patch(
    operation: ComponentOperation,
    before: PageSchema,
    after: PageSchema,
) -> List[PatchOperation]:
    """
    Patch for a single committed operation.

    Applying the result to `before` yields `after`. Bulk and load operations
    (and anything the mapping does not know) fall back to the generic diff.
    """
    op_type = operation.type
    data = operation.data or {}

    if op_type == OperationType.ADD:
        node = after.get_component(operation.component_id)
        if node is not None:
            return [PatchOperation(op=PatchOp.ADD, path=_component_path("-"), value=node.to_wire())]

    elif op_type == OperationType.REMOVE:
        index = before.find_index(operation.component_id)
        if index >= 0:
            patches = [PatchOperation(op=PatchOp.REMOVE, path=_component_path(index))]
            dissolved = data.get("dissolvedGroup")
            if dissolved:
                patches.extend(_replace_node(after, sid) for sid in data.get("survivorIds", []))
                patches.append(PatchOperation(op=PatchOp.REMOVE, path=_group_path(dissolved)))
            return patches

    elif op_type == OperationType.UPDATE:
        if after.find_index(operation.component_id) >= 0:
            return [_replace_node(after, operation.component_id)]

    elif op_type == OperationType.MOVE:
        from_index = data.get("fromIndex", before.find_index(operation.component_id))
        if from_index >= 0 and operation.target_index is not None:
            return [PatchOperation(
                op=PatchOp.MOVE,
                from_=_component_path(from_index),
                path=_component_path(operation.target_index),
            )]

    elif op_type == OperationType.DUPLICATE:
        index = before.find_index(operation.component_id)
        if index >= 0:
            return [PatchOperation(
                op=PatchOp.ADD,
                path=_component_path(index + 1),
                value=after.components[index + 1].to_wire(),
            )]

    elif op_type in (OperationType.GROUP, OperationType.UNGROUP):
        return _group_entries(operation, after)

    return diff_pages(before, after)


# ============================================================================
# GENERIC DIFF
# ============================================================================

def json_equal(a: Any, b: Any) -> bool:
    """JSON equality: 1 == 1.0, but True is not 1."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


def _is_keyed(items: Sequence[Any]) -> bool:
    ids = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            return False
        ids.append(item["id"])
    return len(ids) == len(set(ids))


def _diff(before: Any, after: Any, path: str, out: List[PatchOperation]) -> None:
    if isinstance(before, dict) and isinstance(after, dict):
        for key in before:
            if key not in after:
                out.append(PatchOperation(op=PatchOp.REMOVE, path=f"{path}/{escape_token(key)}"))
        for key, value in after.items():
            child = f"{path}/{escape_token(key)}"
            if key not in before:
                out.append(PatchOperation(op=PatchOp.ADD, path=child, value=copy.deepcopy(value)))
            else:
                _diff(before[key], value, child, out)
    elif isinstance(before, list) and isinstance(after, list):
        if _is_keyed(before) and _is_keyed(after):
            _diff_keyed_list(before, after, path, out)
        else:
            _diff_list(before, after, path, out)
    elif not json_equal(before, after):
        out.append(PatchOperation(op=PatchOp.REPLACE, path=path, value=copy.deepcopy(after)))


def _diff_keyed_list(before: List[Dict[str, Any]], after: List[Dict[str, Any]],
                     path: str, out: List[PatchOperation]) -> None:
    """Diff lists of `id`-keyed objects: removes, then moves/adds in target order."""
    after_ids = {item["id"] for item in after}
    by_id = {item["id"]: item for item in before}
    working = [item["id"] for item in before]

    for index in range(len(before) - 1, -1, -1):
        if working[index] not in after_ids:
            out.append(PatchOperation(op=PatchOp.REMOVE, path=f"{path}/{index}"))
            working.pop(index)

    for target, item in enumerate(after):
        item_id = item["id"]
        if item_id in by_id:
            current = working.index(item_id)
            if current != target:
                out.append(PatchOperation(op=PatchOp.MOVE, from_=f"{path}/{current}", path=f"{path}/{target}"))
                working.insert(target, working.pop(current))
            _diff(by_id[item_id], item, f"{path}/{target}", out)
        else:
            out.append(PatchOperation(op=PatchOp.ADD, path=f"{path}/{target}", value=copy.deepcopy(item)))
            working.insert(target, item_id)


def _diff_list(before: List[Any], after: List[Any], path: str, out: List[PatchOperation]) -> None:
    """LCS edit script: remove what is not kept (descending), then add (ascending)."""
    n, m = len(before), len(after)
    lengths = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if json_equal(before[i], after[j]):
                lengths[i][j] = lengths[i + 1][j + 1] + 1
            else:
                lengths[i][j] = max(lengths[i + 1][j], lengths[i][j + 1])

    kept_before, kept_after = set(), set()
    i = j = 0
    while i < n and j < m:
        if json_equal(before[i], after[j]):
            kept_before.add(i)
            kept_after.add(j)
            i += 1
            j += 1
        elif lengths[i + 1][j] >= lengths[i][j + 1]:
            i += 1
        else:
            j += 1

    for index in range(n - 1, -1, -1):
        if index not in kept_before:
            out.append(PatchOperation(op=PatchOp.REMOVE, path=f"{path}/{index}"))
    for index in range(m):
        if index not in kept_after:
            out.append(PatchOperation(op=PatchOp.ADD, path=f"{path}/{index}", value=copy.deepcopy(after[index])))


def create_patch(before: Any, after: Any) -> List[PatchOperation]:
    """
    Structural diff between two JSON trees (or pydantic models).

    Applying the result to `before` yields a document equal to `after`.
    """
    if isinstance(before, BaseModel):
        before = before.model_dump(mode='json', by_alias=True)
    if isinstance(after, BaseModel):
        after = after.model_dump(mode='json', by_alias=True)
    if not isinstance(before, (dict, list)) or not isinstance(after, (dict, list)):
        raise PatchError("Generic diff needs an object or array at the document root")
    if type(before) is not type(after):
        raise PatchError("Cannot diff an object against an array at the document root")

    patches: List[PatchOperation] = []
    _diff(before, after, "", patches)
    return patches


def diff_pages(before: PageSchema, after: PageSchema) -> List[PatchOperation]:
    return create_patch(before.to_dict(), after.to_dict())


# ============================================================================
# OPTIMIZATION
# ============================================================================

def optimize_patches(patches: Iterable[PatchLike]) -> List[PatchOperation]:
    """Collapse runs of consecutive replaces on the same path to the last one."""
    entries = validate_patch(patches)
    optimized: List[PatchOperation] = []
    for operation in entries:
        previous = optimized[-1] if optimized else None
        if (
            previous is not None
            and operation.op == PatchOp.REPLACE
            and previous.op == PatchOp.REPLACE
            and previous.path == operation.path
        ):
            optimized[-1] = operation
        else:
            optimized.append(operation)

    if len(optimized) < len(entries):
        logger.debug(f"Optimized patch from {len(entries)} to {len(optimized)} entries")
    return optimized
