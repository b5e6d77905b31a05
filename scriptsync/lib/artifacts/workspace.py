"""Workspace root detection and per-operation access to its configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from scriptsync.config import CONFIG_FILE, WorkspaceConfig, load_config
from scriptsync.errors import WorkspaceError
from scriptsync.lib.artifacts.events import EventMap
from scriptsync.lib.artifacts.models import ArtifactKind, ScopeFilter
from scriptsync.lib.artifacts.registry import folder_name
from scriptsync.lib.store import Database

MAX_PARENT_SEARCH = 10


def find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) until a config.json is found.

    Raises:
        WorkspaceError: If no config.json exists within MAX_PARENT_SEARCH levels.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent

    for _ in range(MAX_PARENT_SEARCH):
        if (current / CONFIG_FILE).is_file():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    raise WorkspaceError(
        f"No workspace is open: {CONFIG_FILE} not found within "
        f"{MAX_PARENT_SEARCH} parent directories of {start or Path.cwd()}"
    )


@dataclass
class Workspace:
    """A workspace root plus its loaded config.json."""

    root: Path
    config: WorkspaceConfig

    @classmethod
    def open(cls, start: Path | None = None) -> Workspace:
        root = find_workspace_root(start)
        return cls(root=root, config=load_config(root))

    @property
    def extension(self) -> str:
        return self.config.extension

    @property
    def output_dir(self) -> Path:
        return self.root / self.config.folders.output

    @property
    def events_path(self) -> Path:
        path = Path(self.config.events_file)
        return path if path.is_absolute() else self.root / path

    def type_root(self, kind: ArtifactKind) -> Path:
        """Directory holding every file of one artifact kind."""
        return self.root / folder_name(kind, self.config.folders)

    def load_events(self) -> EventMap:
        return EventMap.load(self.events_path)

    def scope(self, name: str) -> ScopeFilter:
        """ScopeFilter for the "app" or "sec" database scope."""
        block = self.config.scope(name)
        return ScopeFilter(
            companyno=block.companyno,
            username=block.cpmuser,
            appnames=list(block.appnames),
        )

    def database(self, name: str) -> Database:
        return Database.from_config(self.config.server, self.config.scope(name).database)
