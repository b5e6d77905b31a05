"""Fixed-width pipe table rendering for lookup results."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

logger = logging.getLogger("lib.reports.table")


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def column_widths(rows: Sequence[Mapping[str, Any]]) -> dict[str, int]:
    """Width of each column: the longest of its header and every cell."""
    columns = list(rows[0].keys())
    return {
        column: max([len(column)] + [len(_cell(row.get(column))) for row in rows])
        for column in columns
    }


def render_table(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as a header line, a dash separator and one line per row.

    Column order follows the first row. Returns an empty string for no rows.
    """
    if not rows:
        return ""

    widths = column_widths(rows)

    def line(cells: list[str]) -> str:
        return f"| {' | '.join(cells)} |\n"

    lines = [
        line([column.ljust(width) for column, width in widths.items()]),
        line(["-" * width for width in widths.values()]),
    ]
    for row in rows:
        lines.append(line([_cell(row.get(column)).ljust(width) for column, width in widths.items()]))
    return "".join(lines)


def write_report(
    rows: Sequence[Mapping[str, Any]], output_dir: Path, filename: str
) -> Path | None:
    """Write the rendered table to ``output_dir/filename``, replacing any old file.

    Returns:
        The written path, or None when there were no rows (nothing is written).
    """
    if not rows:
        logger.debug("No rows for %s; nothing written", filename)
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    path.write_text(render_table(rows), encoding="utf-8", newline="")
    logger.info("Output: %s", path)
    return path
