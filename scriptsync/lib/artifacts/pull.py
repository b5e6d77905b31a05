"""Pull engine -- materialize database rows as files under the workspace.

Scope elements are processed one at a time. An element with no rows is
reported as not found and the pull moves on; filesystem errors stop the pull
with whatever files were already written left in place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from scriptsync.errors import ConfigError, EventNotFoundError, PathConflictError, UnsafePathError
from scriptsync.lib.artifacts import queries
from scriptsync.lib.artifacts.events import EventMap
from scriptsync.lib.artifacts.models import (
    ArtifactKind,
    ArtifactType,
    GroupOutcome,
    Identity,
    PullReport,
    ScopeFilter,
)
from scriptsync.lib.artifacts.registry import (
    build_path,
    derive_identity_from_row,
    get_type,
    group_label,
)
from scriptsync.lib.artifacts.workspace import Workspace
from scriptsync.lib.store import QueryExecutor

logger = logging.getLogger("lib.artifacts.pull")


def _scope_params(atype: ArtifactType, scope: ScopeFilter) -> dict[str, Any]:
    return {column: getattr(scope, attribute) for column, attribute in atype.scope_columns}


def discover_groups(
    executor: QueryExecutor, kind: ArtifactKind, scope: ScopeFilter
) -> list[str]:
    """Every distinct scope element of a type, ordered by name."""
    atype = get_type(kind)
    rows = executor.query(queries.discover_groups(atype), _scope_params(atype, scope))
    groups = []
    for row in rows:
        value = row[atype.group_column]
        groups.append("" if value is None else value)
    logger.debug("Discovered %d %s groups", len(groups), atype.label)
    return groups


def _pull_group(
    executor: QueryExecutor,
    atype: ArtifactType,
    scope: ScopeFilter,
    group: str,
    *,
    base: Path,
    extension: str,
    events: EventMap | None,
    written: dict[Path, Identity],
) -> GroupOutcome:
    params = _scope_params(atype, scope)
    params[queries.GROUP_PARAM] = group
    rows = executor.query(queries.select_group(atype), params)

    if not rows:
        label = group_label(atype.kind, group)
        logger.warning("No %s found for %s: %s", atype.label, atype.group_column, label)
        return GroupOutcome(label=label, found=False)

    # Directory names follow the store's spelling, not the caller's.
    outcome = GroupOutcome(label=group_label(atype.kind, rows[0][atype.group_column]))

    for row in rows:
        identity = derive_identity_from_row(atype.kind, row, scope)
        if identity.get(atype.filename.value) in ("", None):
            outcome.skipped.append(f"row without {atype.filename.value}")
            continue

        try:
            path = build_path(base, identity, extension=extension, events=events)
        except EventNotFoundError as exc:
            logger.warning(
                "Skipping %s/%s: event %s not found",
                outcome.label, identity.get("TABLENAME"), exc.event,
            )
            outcome.skipped.append(f"{identity.get('TABLENAME')}: event {exc.event} not found")
            continue
        except UnsafePathError as exc:
            logger.warning("Skipping %s row in %s: %s", atype.label, outcome.label, exc)
            outcome.skipped.append(str(exc))
            continue

        previous = written.get(path)
        if previous is not None and previous != identity:
            raise PathConflictError(
                f"{previous.as_dict()} and {identity.as_dict()} both map to {path}"
            )

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(row[atype.content_column] or "", encoding="utf-8", newline="")
        written[path] = identity
        outcome.written.append(path)

    logger.info("%s for %s have been saved.", atype.label.capitalize(), outcome.label)
    return outcome


def pull_groups(
    executor: QueryExecutor,
    kind: ArtifactKind,
    scope: ScopeFilter,
    groups: Iterable[str] | None,
    *,
    base: Path,
    extension: str,
    events: EventMap | None = None,
) -> PullReport:
    """Write every row of each scope element below ``base``.

    Args:
        executor: Open connection to the type's database.
        kind: Artifact kind to pull.
        scope: Company/user values bounding the rows.
        groups: App, user or table names; None runs the discovery query first.
        base: The type's folder inside the workspace.
        extension: Suffix for every written file.
        events: Event map, required for table event scripts.

    Returns:
        PullReport with one GroupOutcome per scope element.

    Raises:
        PathConflictError: If two rows resolve to the same file.
        OSError: If a directory or file cannot be written.
    """
    atype = get_type(kind)
    if atype.needs_events and events is None:
        raise ValueError(f"Pulling {atype.label} requires an event map")

    if groups is None:
        groups = discover_groups(executor, kind, scope)

    report = PullReport(kind=atype.kind)
    written: dict[Path, Identity] = {}
    for group in groups:
        report.groups.append(
            _pull_group(
                executor, atype, scope, group,
                base=Path(base), extension=extension, events=events, written=written,
            )
        )

    logger.info(
        "Pulled %d %s files in %d groups (%d not found)",
        report.files_written, atype.label, len(report.written_groups), len(report.not_found),
    )
    return report


def pull(
    workspace: Workspace,
    kind: ArtifactKind,
    names: Iterable[str] | None = None,
    *,
    discover: bool = False,
) -> PullReport:
    """Pull one artifact kind into the workspace.

    Without ``names``, macros and table event scripts use the app names listed
    in config.json; ``discover=True`` (and every other kind) asks the store for
    the full set instead.

    Raises:
        ConfigError: If no app names are configured for an app-scoped pull.
        WorkspaceError: If the events file is missing.
        StoreConnectionError: If the database cannot be reached.
    """
    atype = get_type(kind)
    scope = workspace.scope(atype.scope)
    events = workspace.load_events() if atype.needs_events else None

    groups: list[str] | None = list(names) if names is not None else None
    if groups is None and not discover and atype.group_column == "APPNAME":
        if not scope.appnames:
            raise ConfigError("No APPNAMEs specified in config.json.")
        groups = scope.appnames

    with workspace.database(atype.scope).connect() as executor:
        return pull_groups(
            executor, atype.kind, scope, groups,
            base=workspace.type_root(atype.kind),
            extension=workspace.extension,
            events=events,
        )
