"""Push engine -- write a saved file back to its row, inserting when missing."""

from __future__ import annotations

import logging
from pathlib import Path

from scriptsync.errors import ScriptReadError
from scriptsync.lib.artifacts import queries
from scriptsync.lib.artifacts.models import Artifact, ArtifactType, Identity, PushOutcome
from scriptsync.lib.artifacts.registry import (
    build_artifact,
    classify,
    derive_identity_from_path,
    get_type,
)
from scriptsync.lib.artifacts.workspace import Workspace
from scriptsync.lib.store import QueryExecutor

logger = logging.getLogger("lib.artifacts.push")

INSERTED = "inserted"
UPDATED = "updated"
NOT_FOUND = "not_found"
IGNORED = "ignored"


def upsert(executor: QueryExecutor, artifact: Artifact) -> str:
    """Update the artifact's row if it exists, otherwise insert it.

    Returns:
        "updated", "inserted", or "not_found" for types that never insert.
    """
    atype = get_type(artifact.identity.kind)
    keys = artifact.identity.as_dict()

    count = executor.scalar(queries.count_identity(atype), keys)
    if count and count > 0:
        executor.execute(
            queries.update_content(atype),
            {**keys, atype.content_column: artifact.content},
        )
        return UPDATED

    if not atype.insertable:
        return NOT_FOUND

    columns = {**keys, atype.content_column: artifact.content, **artifact.extra}
    executor.execute(queries.insert_artifact(atype, columns), columns)
    return INSERTED


def _describe(atype: ArtifactType, path: Path, extension: str, action: str) -> str:
    # "<table>/<event>" for table event scripts, the file stem otherwise
    names = [p.name for p in reversed(path.parents[: atype.depth - 2])] + [path.name]
    if extension and names[-1].endswith(extension):
        names[-1] = names[-1][: -len(extension)]
    subject = "/".join(names)
    group = path.parents[atype.depth - 2].name
    if action == NOT_FOUND:
        return f"{atype.noun} {subject} for {group} not found."
    return f"{atype.noun} {subject} for {group} has been {action}."


def read_script(path: Path) -> str:
    """Full UTF-8 text of a saved script.

    Raises:
        ScriptReadError: If the file is gone, unreadable, or not UTF-8.
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ScriptReadError(f"{path} is not UTF-8 text: {e}") from e
    except OSError as e:
        raise ScriptReadError(f"Cannot read {path}: {e}") from e


def _inside(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def push(workspace: Workspace, file_path: Path | str, content: str | None = None) -> PushOutcome:
    """Upsert the row a saved file stands for.

    Files outside the workspace, with another extension, or outside every
    artifact folder are ignored without touching the store.

    Args:
        workspace: The open workspace.
        file_path: Absolute path of the saved file.
        content: Full text of the file; read from disk when None.

    Raises:
        EventNotFoundError: If a table event script's name has no event code.
            Raised before any connection is opened.
        ScriptReadError: If the file cannot be read as UTF-8 text.
        StoreConnectionError: If the database cannot be reached.
    """
    path = Path(file_path)
    if not path.name.endswith(workspace.extension) or not _inside(path, workspace.root):
        logger.debug("Ignoring save outside the workspace scripts: %s", path)
        return PushOutcome(action=IGNORED, path=path)

    kind = classify(path, workspace.config.folders, workspace.root)
    if kind is None:
        logger.debug("Ignoring save outside recognized folders: %s", path)
        return PushOutcome(action=IGNORED, path=path)

    atype = get_type(kind)
    events = workspace.load_events() if atype.needs_events else None
    identity: Identity = derive_identity_from_path(
        kind, path, workspace.scope(atype.scope),
        extension=workspace.extension, events=events,
    )

    if content is None:
        content = read_script(path)
    artifact = build_artifact(identity, content)

    with workspace.database(atype.scope).connect() as executor:
        action = upsert(executor, artifact)

    message = _describe(atype, path, workspace.extension, action)
    if action == NOT_FOUND:
        logger.warning(message)
    else:
        logger.info(message)
    return PushOutcome(action=action, path=path, kind=kind, identity=identity, message=message)
