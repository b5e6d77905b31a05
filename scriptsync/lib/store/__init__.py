"""Store access -- the only place SQLAlchemy is touched."""

from scriptsync.lib.store.executor import Database, QueryExecutor, Row

__all__ = [
    "Database",
    "QueryExecutor",
    "Row",
]
