"""
Page Schema Migrations & Loading
================================

Every persisted document carries `schemaVersion`. Loading runs the
version-keyed migrations in sequence until the document reaches
CURRENT_SCHEMA_VERSION, then validates it as a PageSchema.

Migrations:
- v1 -> v2: flat `layout` / `styles` become `{default: ...}`
- v2 -> v3: adds the `groups` registry, normalizes language aliases,
  dissolves groups of one

Design Principles:
- Migrations work on plain JSON dicts (never on models)
- Fail fast: a version gap or a future version is a hard failure
- A group of one is dissolved on every load, whatever the version
- The input document is never modified
"""

from typing import Any, Callable, Dict, List
import copy
import json

from loguru import logger
from pydantic import ValidationError

from page_editor.models.page_schema import (
    CURRENT_SCHEMA_VERSION,
    LANGUAGE_ALIASES,
    Breakpoint,
    PageSchema,
)


Migration = Callable[[Dict[str, Any]], Dict[str, Any]]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SchemaError(Exception):
    """Base exception for loading persisted pages"""
    pass


class MigrationError(SchemaError):
    """Raised when a document cannot be brought to the current version"""
    pass


class PageCorruptedError(SchemaError):
    """Raised when a (migrated) document fails validation"""
    pass


# ============================================================================
# MIGRATIONS
# ============================================================================

def _wrap_default(value: Any) -> Any:
    if isinstance(value, dict) and "default" not in value:
        return {"default": value}
    return value


def migrate_v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap flat layout/styles into responsive mappings."""
    for component in data.get("components", []):
        if "layout" in component:
            component["layout"] = _wrap_default(component["layout"])
        component["styles"] = _wrap_default(component.get("styles") or {})
    return data


def _normalize_language(holder: Dict[str, Any]) -> None:
    value = holder.get("language")
    if isinstance(value, str):
        holder["language"] = LANGUAGE_ALIASES.get(value, LANGUAGE_ALIASES.get(value.lower(), value))


def _group_members(components: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    members: Dict[str, List[Dict[str, Any]]] = {}
    for component in components:
        group_id = component.get("groupId")
        if group_id:
            members.setdefault(group_id, []).append(component)
        elif "groupId" in component:
            component["groupId"] = None
    return members


def _restore_absolute(component: Dict[str, Any], frame: Dict[str, Any]) -> None:
    layout = component.get("layout")
    if not isinstance(layout, dict) or not isinstance(layout.get("default"), dict):
        return
    default = layout["default"]
    breakpoint = frame.get("breakpoint", Breakpoint.DEFAULT.value)
    if breakpoint == Breakpoint.DEFAULT.value:
        target = default
    else:
        target = dict(layout.get(breakpoint) or {})
        layout[breakpoint] = target
    for axis in ("x", "y"):
        target[axis] = target.get(axis, default.get(axis, 0)) + frame.get(axis, 0)


def dissolve_single_groups(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Treat a group of one as ungrouped.

    The lone member loses its groupId and, when a frame was recorded, gets
    its absolute coordinates back at the frame's breakpoint.
    """
    groups = data.get("groups")
    frames = groups if isinstance(groups, dict) else {}
    for group_id, grouped in _group_members(data.get("components") or []).items():
        if len(grouped) > 1:
            continue
        member = grouped[0]
        member["groupId"] = None
        frame = frames.pop(group_id, None)
        if isinstance(frame, dict):
            _restore_absolute(member, frame)
        logger.debug(f"Dissolved single-member group {group_id}")
    return data


def migrate_v2_to_v3(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Add the group registry.

    v2 stored grouped members in absolute coordinates without a frame. Each
    group of two or more gets a frame from its members' default layouts and
    the members become relative to it; a group of one is dissolved.
    """
    components: List[Dict[str, Any]] = data.get("components", [])

    if isinstance(data.get("settings"), dict):
        _normalize_language(data["settings"])
    for component in components:
        _normalize_language(component)

    dissolve_single_groups(data)
    groups = dict(data.get("groups") or {})
    for group_id, grouped in _group_members(components).items():
        if group_id in groups:
            continue
        boxes = [c["layout"]["default"] for c in grouped]
        left = min(b["x"] for b in boxes)
        top = min(b["y"] for b in boxes)
        right = max(b["x"] + b["width"] for b in boxes)
        bottom = max(b["y"] + b["height"] for b in boxes)
        groups[group_id] = {
            "x": left,
            "y": top,
            "width": right - left,
            "height": bottom - top,
            "breakpoint": Breakpoint.DEFAULT.value,
        }
        for box in boxes:
            box["x"] -= left
            box["y"] -= top

    data["groups"] = groups
    return data


# Keyed by the version a migration upgrades FROM
MIGRATIONS: Dict[int, Migration] = {
    1: migrate_v1_to_v2,
    2: migrate_v2_to_v3,
}


def migrate(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring a raw document to CURRENT_SCHEMA_VERSION.

    Returns:
        A migrated copy; `data` is not modified

    Raises:
        MigrationError: Unknown future version or missing migration step
    """
    version = data.get("schemaVersion", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise MigrationError(f"Invalid schemaVersion: {version!r}")
    if version > CURRENT_SCHEMA_VERSION:
        raise MigrationError(
            f"Document schemaVersion {version} is newer than supported version {CURRENT_SCHEMA_VERSION}"
        )

    migrated = copy.deepcopy(data)
    start = version
    while version < CURRENT_SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise MigrationError(f"No migration registered from schemaVersion {version}")
        try:
            migrated = step(migrated)
        except (KeyError, TypeError, ValueError) as e:
            raise MigrationError(f"Migration from schemaVersion {version} failed: {e}") from e
        version += 1
        migrated["schemaVersion"] = version

    if start != version:
        logger.info(f"Migrated page schema v{start} -> v{version}")
    return migrated


# ============================================================================
# LOAD / DUMP
# ============================================================================

def load_page(data: Dict[str, Any]) -> PageSchema:
    """
    Migrate and validate a persisted page.

    Raises:
        MigrationError: Document cannot be migrated
        PageCorruptedError: Migrated document fails validation
    """
    migrated = dissolve_single_groups(migrate(data))
    try:
        page = PageSchema.from_dict(migrated)
    except ValidationError as e:
        logger.error(f"Page failed validation after migration: {e}")
        raise PageCorruptedError(f"Page validation failed: {e}") from e

    logger.info(f"✅ Loaded page {page.id} ({len(page.components)} components)")
    return page


def load_page_json(text: str) -> PageSchema:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PageCorruptedError(f"Page is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PageCorruptedError("Page JSON must be an object")
    return load_page(data)


def dump_page(page: PageSchema) -> str:
    """Serialize a page at the current schema version."""
    return page.to_json()
