"""Data models for the artifact sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ArtifactKind(str, Enum):
    """The four kinds of scripted artifacts CPM stores."""

    MACRO = "macro"
    LIBRARY_UNIT = "library"
    TABLE_EVENT_SCRIPT = "script"
    SEARCH_SCRIPT = "search-script"


class SegmentSource(str, Enum):
    """Where a path segment's text comes from."""

    LITERAL = "literal"  # config folder name, looked up by key
    COLUMN = "column"  # identity column value, verbatim
    DERIVED = "derived"  # identity column value passed through a codec


@dataclass(frozen=True)
class PathSegment:
    """One element of an artifact type's path template."""

    source: SegmentSource
    value: str
    codec: str | None = None


@dataclass(frozen=True)
class ArtifactType:
    """Full rule set for one artifact kind.

    ``path_template`` lists the directory segments below the workspace root,
    the type's folder first; ``filename`` is the segment that names the file.
    ``scope_columns`` maps identity columns that never appear in the path to
    the ScopeFilter attribute supplying them.
    """

    kind: ArtifactKind
    label: str
    noun: str
    table: str
    scope: str
    identity_columns: tuple[str, ...]
    path_template: tuple[PathSegment, ...]
    filename: PathSegment
    content_column: str
    group_column: str
    scope_columns: tuple[tuple[str, str], ...] = ()
    insert_defaults: tuple[tuple[str, Any], ...] = ()
    insertable: bool = True
    skip_empty_content: bool = False
    needs_events: bool = False

    @property
    def folder_key(self) -> str:
        return self.path_template[0].value

    @property
    def depth(self) -> int:
        """Ancestor levels between a file and its type's root folder."""
        return len(self.path_template)


@dataclass(frozen=True)
class Identity:
    """Composite key selecting exactly one row of an artifact type."""

    kind: ArtifactKind
    values: tuple[tuple[str, Any], ...]

    def get(self, column: str) -> Any:
        for name, value in self.values:
            if name == column:
                return value
        raise KeyError(column)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.values)


@dataclass
class Artifact:
    """An identity, its script text, and columns needed only on insert."""

    identity: Identity
    content: str
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScopeFilter:
    """External parameters bounding a pull, push or report."""

    companyno: int | None = None
    username: str = ""
    appnames: list[str] = field(default_factory=list)
    tablename: str | None = None


@dataclass
class GroupOutcome:
    """Result of pulling one scope element."""

    label: str
    found: bool = True
    written: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class PullReport:
    """Per-group outcomes of one pull."""

    kind: ArtifactKind
    groups: list[GroupOutcome] = field(default_factory=list)

    @property
    def written_groups(self) -> list[GroupOutcome]:
        return [g for g in self.groups if g.found]

    @property
    def not_found(self) -> list[GroupOutcome]:
        return [g for g in self.groups if not g.found]

    @property
    def files_written(self) -> int:
        return sum(len(g.written) for g in self.groups)


@dataclass
class PushOutcome:
    """What a push did with one saved file."""

    action: str  # inserted, updated, not_found, ignored
    path: Path
    kind: ArtifactKind | None = None
    identity: Identity | None = None
    message: str = ""
