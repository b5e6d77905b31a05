"""Report generator -- lookup results as fixed-width text tables."""

from scriptsync.lib.reports.table import column_widths, render_table, write_report
from scriptsync.lib.reports.lookups import (
    companies,
    companies_report,
    document_types,
    document_types_report,
)

__all__ = [
    "column_widths",
    "render_table",
    "write_report",
    "companies",
    "companies_report",
    "document_types",
    "document_types_report",
]
