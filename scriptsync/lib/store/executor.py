"""Connection-scoped query execution against the CPM databases.

Every command opens its own engine, runs inside one transaction on one
connection, and disposes the engine on the way out -- nothing is pooled or
shared between operations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, bindparam, create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import TextClause

from scriptsync.config import ServerConfig
from scriptsync.errors import QueryError, StoreConnectionError

logger = logging.getLogger("lib.store.executor")

DRIVER = "mssql+pymssql"

# config.json "options" keys forwarded to pymssql.connect()
_PYMSSQL_OPTIONS = ("timeout", "login_timeout", "charset", "tds_version", "appname")

Row = dict[str, Any]


class QueryExecutor:
    """Runs parameterized statements on a single open connection."""

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    def _run(self, statement: str | TextClause, params: dict[str, Any] | None):
        params = params or {}
        clause = text(statement) if isinstance(statement, str) else statement
        timestamps = [name for name, value in params.items() if isinstance(value, datetime)]
        if timestamps:
            clause = clause.bindparams(*(bindparam(name, type_=DateTime()) for name in timestamps))
        try:
            return self._conn.execute(clause, params)
        except SQLAlchemyError as e:
            raise QueryError(f"Query failed: {e}") from e

    def query(self, statement: str | TextClause, params: dict[str, Any] | None = None) -> list[Row]:
        """Run a SELECT and return its rows as plain dicts keyed by column name."""
        result = self._run(statement, params)
        return [dict(row) for row in result.mappings()]

    def scalar(self, statement: str | TextClause, params: dict[str, Any] | None = None) -> Any:
        """Run a SELECT and return the first column of the first row."""
        return self._run(statement, params).scalar()

    def execute(self, statement: str | TextClause, params: dict[str, Any] | None = None) -> int:
        """Run an INSERT/UPDATE and return the affected row count."""
        return self._run(statement, params).rowcount


class Database:
    """Factory for per-operation connections to one CPM database."""

    def __init__(
        self,
        url: str | URL,
        *,
        name: str = "",
        connect_args: dict[str, Any] | None = None,
    ) -> None:
        self.url = url
        self.name = name
        self.connect_args = connect_args or {}

    @classmethod
    def from_config(cls, server: ServerConfig, database: str) -> Database:
        """Build the URL for ``database`` from the server block of config.json.

        ``server.url`` wins when set, otherwise an ``mssql+pymssql`` URL is
        assembled from name/user/pass and ``options.port``.
        """
        if server.url:
            return cls(server.url.replace("{database}", database), name=database)

        options = dict(server.options)
        port = options.pop("port", None)
        connect_args = {key: options.pop(key) for key in _PYMSSQL_OPTIONS if key in options}
        if options:
            logger.debug("Ignoring unsupported connection options: %s", ", ".join(sorted(options)))

        url = URL.create(
            DRIVER,
            username=server.user or None,
            password=server.password or None,
            host=server.name,
            port=int(port) if port is not None else None,
            database=database,
        )
        return cls(url, name=database, connect_args=connect_args)

    @contextmanager
    def connect(self) -> Iterator[QueryExecutor]:
        """Open a connection, yield an executor, commit and always close.

        Raises:
            StoreConnectionError: If the engine or connection cannot be created.
        """
        try:
            engine = create_engine(self.url, poolclass=NullPool, connect_args=self.connect_args)
        except (ArgumentError, NoSuchModuleError) as e:
            raise StoreConnectionError(f"Error connecting to ({self.name}): {e}") from e

        try:
            try:
                connection = engine.connect()
            except SQLAlchemyError as e:
                raise StoreConnectionError(f"Error connecting to ({self.name}): {e}") from e

            logger.debug("Connected to %s", self.name or self.url)
            try:
                with connection.begin():
                    yield QueryExecutor(connection)
            finally:
                connection.close()
        finally:
            engine.dispose()
            logger.debug("Closed connection to %s", self.name or self.url)
