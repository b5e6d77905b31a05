"""Two-way lookup between table event codes and their display names."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from scriptsync.errors import EventMapError, EventNotFoundError, WorkspaceError

logger = logging.getLogger("lib.artifacts.events")


class EventMap:
    """Event code <-> event name, unique in both directions."""

    def __init__(self, names: Mapping[int, str]) -> None:
        self._names: dict[int, str] = dict(names)
        self._codes: dict[str, int] = {}
        for code, name in self._names.items():
            if name in self._codes:
                raise EventMapError(
                    f"Event name '{name}' is used by both {self._codes[name]} and {code}"
                )
            self._codes[name] = code

    @classmethod
    def from_document(cls, document: Mapping[str, str]) -> EventMap:
        """Build from the events.json object (string codes -> names)."""
        names: dict[int, str] = {}
        for key, name in document.items():
            try:
                code = int(key)
            except (TypeError, ValueError):
                raise EventMapError(f"Event code '{key}' is not an integer") from None
            if not isinstance(name, str) or not name:
                raise EventMapError(f"Event {key} has no name")
            names[code] = name
        return cls(names)

    @classmethod
    def load(cls, path: Path) -> EventMap:
        """Read and validate an events document.

        Raises:
            WorkspaceError: If the file does not exist.
            EventMapError: If the content is not a valid two-way map.
        """
        path = Path(path)
        if not path.is_file():
            raise WorkspaceError(f"events.json file not found in {path}.")
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise EventMapError(f"{path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise EventMapError(f"{path} must contain a JSON object")

        events = cls.from_document(document)
        logger.debug("Loaded %d events from %s", len(events), path)
        return events

    def name_for(self, code: int) -> str:
        try:
            return self._names[int(code)]
        except (KeyError, TypeError, ValueError):
            raise EventNotFoundError(code) from None

    def code_for(self, name: str) -> int:
        try:
            return self._codes[name]
        except KeyError:
            raise EventNotFoundError(name) from None

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._codes
