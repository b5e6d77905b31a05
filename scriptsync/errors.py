"""Exception hierarchy shared by the sync engine and the CLI.

Environment and connectivity errors are fatal to the running command.
``NotFoundError`` and its subclasses are recoverable: a pull keeps going with
the next scope element, a push aborts only the one save.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for every error the CLI reports as a plain message."""


class WorkspaceError(SyncError):
    """No workspace, or a file the workspace needs is missing."""


class ConfigError(WorkspaceError):
    """config.json is missing required keys or is not valid JSON."""


class EventMapError(ConfigError):
    """The events document cannot be turned into a two-way lookup."""


class StoreConnectionError(SyncError):
    """The database could not be reached."""


class QueryError(SyncError):
    """A statement failed after the connection was established."""


class PathConflictError(SyncError):
    """Two different identities resolved to the same file in one pull."""


class UnsafePathError(SyncError):
    """A row value cannot be used as a directory or file name."""


class ScriptReadError(SyncError):
    """A saved file could not be read as UTF-8 text."""


class NotFoundError(SyncError, LookupError):
    """A scope element or an artifact could not be located."""


class EventNotFoundError(NotFoundError):
    """An event name or code has no counterpart in the event map."""

    def __init__(self, event: str | int) -> None:
        self.event = event
        super().__init__(f"{event} not found!")
