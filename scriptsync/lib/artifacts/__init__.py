"""Artifact sync engine -- maps CPM script rows to workspace files and back.

Pull writes rows to files, push writes a saved file back to its row. Both
directions use the same rules from the type registry.
"""

from scriptsync.lib.artifacts.models import (
    Artifact,
    ArtifactKind,
    ArtifactType,
    GroupOutcome,
    Identity,
    PathSegment,
    PullReport,
    PushOutcome,
    ScopeFilter,
)
from scriptsync.lib.artifacts.events import EventMap
from scriptsync.lib.artifacts.registry import (
    build_artifact,
    build_path,
    classify,
    derive_identity_from_path,
    derive_identity_from_row,
    get_type,
    resolve_path_template,
)
from scriptsync.lib.artifacts.workspace import Workspace, find_workspace_root
from scriptsync.lib.artifacts.pull import discover_groups, pull, pull_groups
from scriptsync.lib.artifacts.push import push, upsert

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactType",
    "GroupOutcome",
    "Identity",
    "PathSegment",
    "PullReport",
    "PushOutcome",
    "ScopeFilter",
    "EventMap",
    "build_artifact",
    "build_path",
    "classify",
    "derive_identity_from_path",
    "derive_identity_from_row",
    "get_type",
    "resolve_path_template",
    "Workspace",
    "find_workspace_root",
    "discover_groups",
    "pull",
    "pull_groups",
    "push",
    "upsert",
]
