"""SQL statements generated from an artifact type's rule set.

Table and column names come from the registry, never from user input; every
value is passed as a bind parameter named after its column.
"""

from __future__ import annotations

from collections.abc import Iterable

from scriptsync.lib.artifacts.models import ArtifactType

GROUP_PARAM = "GROUP_VALUE"


def _conditions(columns: Iterable[str]) -> list[str]:
    return [f"{column} = :{column}" for column in columns]


def _scope_conditions(atype: ArtifactType) -> list[str]:
    conditions = _conditions(column for column, _ in atype.scope_columns)
    if atype.skip_empty_content:
        conditions.append(f"{atype.content_column} <> ''")
    return conditions


def _where(conditions: list[str]) -> str:
    return f" WHERE {' AND '.join(conditions)}" if conditions else ""


def select_group(atype: ArtifactType) -> str:
    """Rows of one scope element (one app, user or table)."""
    scope_bound = {column for column, _ in atype.scope_columns}
    columns = [c for c in atype.identity_columns if c not in scope_bound]
    columns.append(atype.content_column)
    conditions = _scope_conditions(atype) + [f"{atype.group_column} = :{GROUP_PARAM}"]
    return f"SELECT {', '.join(columns)} FROM {atype.table}{_where(conditions)}"


def discover_groups(atype: ArtifactType) -> str:
    """Distinct scope elements, in a stable order."""
    return (
        f"SELECT DISTINCT {atype.group_column} FROM {atype.table}"
        f"{_where(_scope_conditions(atype))} ORDER BY {atype.group_column}"
    )


def count_identity(atype: ArtifactType) -> str:
    return (
        f"SELECT COUNT(*) AS CNT FROM {atype.table}"
        f"{_where(_conditions(atype.identity_columns))}"
    )


def update_content(atype: ArtifactType) -> str:
    return (
        f"UPDATE {atype.table} SET {atype.content_column} = :{atype.content_column}"
        f"{_where(_conditions(atype.identity_columns))}"
    )


def insert_artifact(atype: ArtifactType, columns: Iterable[str]) -> str:
    columns = list(columns)
    return (
        f"INSERT INTO {atype.table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(f':{c}' for c in columns)})"
    )
