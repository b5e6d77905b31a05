"""Ad hoc reference lookups rendered into the workspace output folder."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from scriptsync.lib.artifacts.workspace import Workspace
from scriptsync.lib.reports.table import write_report
from scriptsync.lib.store import QueryExecutor, Row

logger = logging.getLogger("lib.reports.lookups")

DOCUMENT_TYPES_REPORT = "evraktip.md"
COMPANIES_REPORT = "companies.md"

_DOCUMENT_TYPES_SQL = (
    "SELECT KOD, ACIKLAMA FROM REFKRT "
    "WHERE TABLOAD = :table AND ALANAD = :field"
)
_DOCUMENT_TYPE_BY_CODE_SQL = _DOCUMENT_TYPES_SQL + " AND KOD = :code"
_COMPANIES_SQL = "SELECT COMPANYNO, COMPANYNAME, SERVERNAME, DATABASENAME FROM SECCMP"

_DOCUMENT_TYPE_KEYS = {"table": "EVRBAS", "field": "EVRAKTIP"}
_CODE_PATTERN = re.compile(r"-?[0-9]+\Z")


def parse_code(term: str) -> int | None:
    """The term as an integer code, or None for a free-text search."""
    term = term.strip()
    if not _CODE_PATTERN.match(term):
        return None
    return int(term)


def document_types(executor: QueryExecutor, term: str) -> list[Row]:
    """Document type reference codes matching a numeric code or a description fragment.

    A numeric term matches KOD exactly. Any other term is a case-sensitive
    substring match on ACIKLAMA.
    """
    code = parse_code(term)
    if code is not None:
        return executor.query(_DOCUMENT_TYPE_BY_CODE_SQL, {**_DOCUMENT_TYPE_KEYS, "code": code})

    rows = executor.query(_DOCUMENT_TYPES_SQL, _DOCUMENT_TYPE_KEYS)
    return [row for row in rows if term in (row.get("ACIKLAMA") or "")]


def companies(executor: QueryExecutor) -> list[Row]:
    """Every company record known to the security database."""
    return executor.query(_COMPANIES_SQL)


def document_types_report(workspace: Workspace, term: str) -> Path | None:
    with workspace.database("app").connect() as executor:
        rows = document_types(executor, term)
    logger.debug("Document type lookup '%s' matched %d rows", term, len(rows))
    return write_report(rows, workspace.output_dir, DOCUMENT_TYPES_REPORT)


def companies_report(workspace: Workspace) -> Path | None:
    with workspace.database("sec").connect() as executor:
        rows = companies(executor)
    return write_report(rows, workspace.output_dir, COMPANIES_REPORT)
