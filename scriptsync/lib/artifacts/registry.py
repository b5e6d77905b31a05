"""Artifact type registry -- row <-> path mapping rules for every artifact kind.

The mapping is a strict inverse: for any identity built from a row,
``derive_identity_from_path(build_path(identity))`` returns the same identity.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from scriptsync.config import DEFAULT_EXTENSION, FoldersConfig
from scriptsync.errors import UnsafePathError
from scriptsync.lib.artifacts.events import EventMap
from scriptsync.lib.artifacts.models import (
    Artifact,
    ArtifactKind,
    ArtifactType,
    Identity,
    PathSegment,
    ScopeFilter,
    SegmentSource,
)

GLOBAL_APP = "Global"
BUTTON_PREFIX = "btn"

_INTEGER_COLUMNS = {"COMPANYNO", "EVENT"}

MACRO = ArtifactType(
    kind=ArtifactKind.MACRO,
    label="macros",
    noun="Macro",
    table="MACROS",
    scope="app",
    identity_columns=("APPNAME", "USERNAME", "MACRONAME"),
    path_template=(
        PathSegment(SegmentSource.LITERAL, "macros"),
        PathSegment(SegmentSource.DERIVED, "APPNAME", codec="global"),
    ),
    filename=PathSegment(SegmentSource.COLUMN, "MACRONAME"),
    content_column="MACRO",
    group_column="APPNAME",
    scope_columns=(("USERNAME", "username"),),
    insert_defaults=(
        ("CATEGORYNAME", ""),
        ("SHORTCUT", ""),
        ("TIMERENABLED", 0),
        ("TIMERINTERVAL", 0),
        ("STARTUP", 0),
        ("DESCRIPTION", ""),
    ),
)

TABLE_EVENT_SCRIPT = ArtifactType(
    kind=ArtifactKind.TABLE_EVENT_SCRIPT,
    label="script",
    noun="Script",
    table="SECSCR",
    scope="sec",
    identity_columns=("COMPANYNO", "USERNAME", "APPNAME", "TABLENAME", "EVENT"),
    path_template=(
        PathSegment(SegmentSource.LITERAL, "script"),
        PathSegment(SegmentSource.COLUMN, "APPNAME"),
        PathSegment(SegmentSource.COLUMN, "TABLENAME"),
    ),
    filename=PathSegment(SegmentSource.DERIVED, "EVENT", codec="event"),
    content_column="SCRIPT",
    group_column="APPNAME",
    scope_columns=(("COMPANYNO", "companyno"), ("USERNAME", "username")),
    needs_events=True,
)

LIBRARY_UNIT = ArtifactType(
    kind=ArtifactKind.LIBRARY_UNIT,
    label="library",
    noun="Library unit",
    table="ACTSCR",
    scope="sec",
    identity_columns=("USERNAME", "UNITNAME"),
    path_template=(
        PathSegment(SegmentSource.LITERAL, "library"),
        PathSegment(SegmentSource.COLUMN, "USERNAME"),
    ),
    filename=PathSegment(SegmentSource.COLUMN, "UNITNAME"),
    content_column="SCRIPT",
    group_column="USERNAME",
)

SEARCH_SCRIPT = ArtifactType(
    kind=ArtifactKind.SEARCH_SCRIPT,
    label="search script",
    noun="Search script",
    table="FLDDEF",
    scope="app",
    identity_columns=("TABLOAD", "ALANAD"),
    path_template=(
        PathSegment(SegmentSource.LITERAL, "search_script"),
        PathSegment(SegmentSource.COLUMN, "TABLOAD"),
    ),
    filename=PathSegment(SegmentSource.COLUMN, "ALANAD"),
    content_column="ARAMASCRIPT",
    group_column="TABLOAD",
    insertable=False,
    skip_empty_content=True,
)

ARTIFACT_TYPES: dict[ArtifactKind, ArtifactType] = {
    t.kind: t for t in (MACRO, LIBRARY_UNIT, SEARCH_SCRIPT, TABLE_EVENT_SCRIPT)
}

# Shallow types first: a table event script sits one level deeper than the rest.
_CLASSIFY_ORDER = sorted(ARTIFACT_TYPES.values(), key=lambda t: t.depth)


def get_type(kind: ArtifactKind | str) -> ArtifactType:
    """Look up the rule set for an artifact kind."""
    return ARTIFACT_TYPES[ArtifactKind(kind)]


def resolve_path_template(kind: ArtifactKind | str) -> tuple[PathSegment, ...]:
    """Ordered path segments below the workspace root, filename last."""
    atype = get_type(kind)
    return (*atype.path_template, atype.filename)


def folder_name(kind: ArtifactKind | str, folders: FoldersConfig) -> str:
    """The configured top-level folder for an artifact kind."""
    return getattr(folders, get_type(kind).folder_key)


def group_label(kind: ArtifactKind | str, value: Any) -> str:
    """Directory name of a scope element, e.g. "Global" for the empty app."""
    atype = get_type(kind)
    return _encode(atype.path_template[1], _normalize(atype.group_column, value), None)


# ---------------------------------------------------------------------------
# Segment codecs
# ---------------------------------------------------------------------------


def _encode(segment: PathSegment, value: Any, events: EventMap | None) -> str:
    if segment.codec == "global":
        return value or GLOBAL_APP
    if segment.codec == "event":
        if events is None:
            raise ValueError("An event map is required to name table event scripts")
        return events.name_for(value)
    return str(value)


def _decode(segment: PathSegment, text: str, events: EventMap | None) -> Any:
    if segment.codec == "global":
        return "" if text == GLOBAL_APP else text
    if segment.codec == "event":
        if events is None:
            raise ValueError("An event map is required to resolve table event scripts")
        return events.code_for(text)
    return text


def _normalize(column: str, value: Any) -> Any:
    if value is None:
        return None if column in _INTEGER_COLUMNS else ""
    if column in _INTEGER_COLUMNS:
        return int(value)
    return value


# ---------------------------------------------------------------------------
# Identity construction
# ---------------------------------------------------------------------------


def make_identity(kind: ArtifactKind | str, values: Mapping[str, Any]) -> Identity:
    """Order ``values`` by the type's identity columns.

    Raises:
        ValueError: If an identity column is missing.
    """
    atype = get_type(kind)
    missing = [c for c in atype.identity_columns if c not in values]
    if missing:
        raise ValueError(f"Identity for {atype.kind.value} is missing {', '.join(missing)}")
    return Identity(
        kind=atype.kind,
        values=tuple((c, _normalize(c, values[c])) for c in atype.identity_columns),
    )


def derive_identity_from_row(
    kind: ArtifactKind | str, row: Mapping[str, Any], scope: ScopeFilter
) -> Identity:
    """Build an identity from a result row, filling scope-bound columns from ``scope``."""
    atype = get_type(kind)
    scope_columns = dict(atype.scope_columns)
    values: dict[str, Any] = {}
    for column in atype.identity_columns:
        if column in row:
            values[column] = row[column]
        elif column in scope_columns:
            values[column] = getattr(scope, scope_columns[column])
    return make_identity(atype.kind, values)


def derive_identity_from_path(
    kind: ArtifactKind | str,
    file_path: Path | str,
    scope: ScopeFilter,
    *,
    extension: str = DEFAULT_EXTENSION,
    events: EventMap | None = None,
) -> Identity:
    """Reconstruct the identity a file stands for.

    Raises:
        ValueError: If the path is too shallow for the type.
        EventNotFoundError: If a table event script's filename is not a known event.
    """
    atype = get_type(kind)
    path = Path(file_path)
    directories = atype.path_template[1:]
    if len(path.parents) <= len(directories):
        raise ValueError(f"Path is too short for a {atype.label} artifact: {path}")

    values: dict[str, Any] = {}
    for offset, segment in enumerate(directories):
        text = path.parents[len(directories) - 1 - offset].name
        values[segment.value] = _decode(segment, text, events)

    name = path.name
    stem = name[: -len(extension)] if extension and name.endswith(extension) else path.stem
    values[atype.filename.value] = _decode(atype.filename, stem, events)

    for column, attribute in atype.scope_columns:
        values[column] = getattr(scope, attribute)

    return make_identity(atype.kind, values)


def _safe_segment(text: str, column: str) -> str:
    if text in ("", ".", "..") or "\0" in text:
        raise UnsafePathError(f"{column} value {text!r} cannot be used as a path segment")
    for separator in ("/", "\\", os.sep, os.altsep):
        if separator and separator in text:
            raise UnsafePathError(f"{column} value {text!r} contains a path separator")
    return text


def build_path(
    base: Path | str,
    identity: Identity,
    *,
    extension: str = DEFAULT_EXTENSION,
    events: EventMap | None = None,
) -> Path:
    """File path for ``identity`` under its type folder ``base``.

    Raises:
        EventNotFoundError: If a table event script's event code is not mapped.
        UnsafePathError: If a segment is empty, ``.``/``..``, or holds a separator.
    """
    atype = get_type(identity.kind)
    path = Path(base)
    for segment in atype.path_template[1:]:
        text = _encode(segment, identity.get(segment.value), events)
        path = path / _safe_segment(text, segment.value)
    filename = _encode(atype.filename, identity.get(atype.filename.value), events)
    return path / f"{_safe_segment(filename, atype.filename.value)}{extension}"


def classify(
    file_path: Path | str, folders: FoldersConfig, root: Path | None = None
) -> ArtifactKind | None:
    """Artifact kind of a saved file, or None when it sits outside every type folder.

    With ``root`` the first folder below the workspace root decides the kind and
    the file must sit at exactly that type's depth. Without it, ancestors are
    matched by name, shallow types first, so a table event script whose APPNAME
    equals another type's folder name (``Script/Library/ORDERS/OnLoad.js``) is
    taken for that shallower type.
    """
    path = Path(file_path)
    if root is not None:
        try:
            parts = path.resolve().relative_to(Path(root).resolve()).parts
        except ValueError:
            return None
        if not parts:
            return None
        for atype in ARTIFACT_TYPES.values():
            if parts[0] == folder_name(atype.kind, folders) and len(parts) == atype.depth + 1:
                return atype.kind
        return None

    parents = path.parents
    for atype in _CLASSIFY_ORDER:
        level = atype.depth - 1
        if level < len(parents) and parents[level].name == folder_name(atype.kind, folders):
            return atype.kind
    return None


# ---------------------------------------------------------------------------
# Insert-only columns
# ---------------------------------------------------------------------------


def _macro_button(identity: Identity) -> dict[str, Any]:
    name = identity.get("MACRONAME")
    if name.startswith(BUTTON_PREFIX):
        return {"CREATEBUTTON": 1, "CAPTION": name}
    return {"CREATEBUTTON": 0, "CAPTION": ""}


def _change_date(identity: Identity) -> dict[str, Any]:
    return {"CHANGEDATE": datetime.now()}


_DERIVED_INSERT_COLUMNS = {
    ArtifactKind.MACRO: _macro_button,
    ArtifactKind.LIBRARY_UNIT: _change_date,
}


def build_artifact(identity: Identity, content: str) -> Artifact:
    """Attach the type's insert defaults and derived columns to an identity."""
    atype = get_type(identity.kind)
    extra = dict(atype.insert_defaults)
    derive = _DERIVED_INSERT_COLUMNS.get(atype.kind)
    if derive is not None:
        extra.update(derive(identity))
    return Artifact(identity=identity, content=content, extra=extra)
