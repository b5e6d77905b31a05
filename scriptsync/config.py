"""Workspace configuration -- config.json parsed into pydantic models.

Credentials may be overridden from the environment (``CPM_DB_USER``,
``CPM_DB_PASSWORD``); a ``.env`` file next to config.json is loaded first so
passwords can stay out of the shared config document.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scriptsync.errors import ConfigError

logger = logging.getLogger("scriptsync.config")

CONFIG_FILE = "config.json"
ENV_FILE = ".env"
DEFAULT_EXTENSION = ".js"


class ServerConfig(BaseModel):
    """Connection parameters shared by both CPM databases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    user: str = ""
    password: str = Field("", alias="pass")
    options: dict[str, Any] = Field(default_factory=dict)
    # Full SQLAlchemy URL; "{database}" is replaced with the scope's database.
    url: str | None = None


class ScopeConfig(BaseModel):
    """Identity values for one database scope ("app" or "sec")."""

    model_config = ConfigDict(extra="ignore")

    database: str
    cpmuser: str = ""
    companyno: int | None = None
    appnames: list[str] = Field(default_factory=list)


class FoldersConfig(BaseModel):
    """Top-level folder names inside the workspace, one per artifact type."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    macros: str = "Macros"
    script: str = "Script"
    library: str = "Library"
    search_script: str = Field("SearchScript", alias="searchScript")
    output: str = "Output"


class WorkspaceConfig(BaseModel):
    """The whole config.json document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    server: ServerConfig
    app: ScopeConfig
    sec: ScopeConfig
    folders: FoldersConfig = Field(default_factory=FoldersConfig)
    events_file: str = Field("events.json", alias="eventsFile")
    extension: str = DEFAULT_EXTENSION

    def scope(self, name: str) -> ScopeConfig:
        """Return the "app" or "sec" scope block."""
        if name == "app":
            return self.app
        if name == "sec":
            return self.sec
        raise ValueError(f"Unknown database scope '{name}'. Must be 'app' or 'sec'.")


def load_config(root: Path) -> WorkspaceConfig:
    """Read ``<root>/config.json`` and apply environment overrides.

    Args:
        root: Workspace root directory.

    Returns:
        The validated WorkspaceConfig.

    Raises:
        ConfigError: If the file is missing, is not JSON, or fails validation.
    """
    config_path = Path(root) / CONFIG_FILE
    if not config_path.is_file():
        raise ConfigError(f"{CONFIG_FILE} not found in the workspace ({root}).")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{CONFIG_FILE} is not valid JSON: {e}") from e

    try:
        config = WorkspaceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{CONFIG_FILE} is malformed:\n{e}") from e

    env_file = Path(root) / ENV_FILE
    if env_file.is_file():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment overrides from %s", env_file)

    user = os.environ.get("CPM_DB_USER")
    if user:
        config.server.user = user
    password = os.environ.get("CPM_DB_PASSWORD")
    if password:
        config.server.password = password

    if not config.extension.startswith("."):
        config.extension = f".{config.extension}"

    return config
