"""Shared fixtures: a workspace on disk backed by two SQLite databases."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine, text

from scriptsync.lib.artifacts import Workspace

APP_DB = "CPMAPP"
SEC_DB = "CPMSEC"

EVENTS = {"1": "OnLoad", "2": "BeforePost", "3": "AfterPost"}

SCHEMA = {
    APP_DB: [
        """CREATE TABLE MACROS (
            APPNAME TEXT, USERNAME TEXT, MACRONAME TEXT, MACRO TEXT,
            CATEGORYNAME TEXT, SHORTCUT TEXT, TIMERENABLED INTEGER,
            TIMERINTERVAL INTEGER, STARTUP INTEGER, DESCRIPTION TEXT,
            CREATEBUTTON INTEGER, CAPTION TEXT
        )""",
        "CREATE TABLE FLDDEF (TABLOAD TEXT, ALANAD TEXT, ARAMASCRIPT TEXT)",
        "CREATE TABLE REFKRT (TABLOAD TEXT, ALANAD TEXT, KOD INTEGER, ACIKLAMA TEXT)",
    ],
    SEC_DB: [
        """CREATE TABLE SECSCR (
            COMPANYNO INTEGER, USERNAME TEXT, APPNAME TEXT,
            TABLENAME TEXT, EVENT INTEGER, SCRIPT TEXT
        )""",
        "CREATE TABLE ACTSCR (USERNAME TEXT, UNITNAME TEXT, SCRIPT TEXT, CHANGEDATE DATETIME)",
        """CREATE TABLE SECCMP (
            COMPANYNO INTEGER, COMPANYNAME TEXT, SERVERNAME TEXT, DATABASENAME TEXT
        )""",
    ],
}


class SqliteStore:
    """Direct access to the test databases, bypassing the code under test."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def url(self, database: str) -> str:
        return f"sqlite:///{self.directory / database}.db"

    def _run(self, database: str, sql: str, params: dict[str, Any] | None = None):
        engine = create_engine(self.url(database))
        try:
            with engine.begin() as conn:
                result = conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings()] if result.returns_rows else None
        finally:
            engine.dispose()

    def create(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        for database, statements in SCHEMA.items():
            for statement in statements:
                self._run(database, statement)

    def insert(self, database: str, table: str, **row: Any) -> None:
        columns = ", ".join(row)
        values = ", ".join(f":{c}" for c in row)
        self._run(database, f"INSERT INTO {table} ({columns}) VALUES ({values})", row)

    def rows(self, database: str, sql: str, **params: Any) -> list[dict[str, Any]]:
        return self._run(database, sql, params)


def write_config(root: Path, store: SqliteStore, **overrides: Any) -> dict[str, Any]:
    config: dict[str, Any] = {
        "server": {"name": "localhost", "user": "sa", "pass": "secret",
                   "url": f"sqlite:///{store.directory}/{{database}}.db"},
        "app": {"database": APP_DB, "cpmuser": "ADMIN", "appnames": ["Sales", ""]},
        "sec": {"database": SEC_DB, "cpmuser": "ADMIN", "companyno": 1},
        "folders": {
            "macros": "Macros",
            "script": "Script",
            "library": "Library",
            "searchScript": "SearchScript",
            "output": "Output",
        },
        "eventsFile": "events.json",
        "extension": ".js",
    }
    config.update(overrides)
    (root / "config.json").write_text(json.dumps(config), encoding="utf-8")
    return config


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    db = SqliteStore(tmp_path / "db")
    db.create()
    return db


@pytest.fixture
def workspace_dir(tmp_path: Path, store: SqliteStore) -> Path:
    root = tmp_path / "ws"
    root.mkdir()
    write_config(root, store)
    (root / "events.json").write_text(json.dumps(EVENTS), encoding="utf-8")
    return root


@pytest.fixture
def workspace(workspace_dir: Path) -> Workspace:
    return Workspace.open(workspace_dir)
