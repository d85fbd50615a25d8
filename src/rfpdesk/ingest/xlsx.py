"""Spreadsheet extractor via openpyxl."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from rfpdesk.ingest.base import BaseExtractor


def _cell_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _render_sheet(name: str, rows: list[list[str]]) -> str:
    """Render one sheet as an aligned table followed by a CSV block."""
    width = max(len(r) for r in rows)
    padded = [r + [""] * (width - len(r)) for r in rows]
    col_widths = [max(len(r[i]) for r in padded) for i in range(width)]

    lines = [f"=== Sheet: {name} ==="]
    for index, row in enumerate(padded):
        lines.append(" | ".join(cell.ljust(col_widths[i]) for i, cell in enumerate(row)).rstrip())
        if index == 0 and len(padded) > 1:
            lines.append("-+-".join("-" * w for w in col_widths))

    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerows(padded)
    lines.append("")
    lines.append("CSV Format:")
    lines.append(buf.getvalue().rstrip("\n"))
    return "\n".join(lines)


class SpreadsheetExtractor(BaseExtractor):
    """Render every non-empty worksheet as text.

    Each sheet becomes a ``=== Sheet: <name> ===`` block holding a padded
    table (header row separated by ``-+-``) and the same rows as CSV, so
    both humans and the key-information heuristics can read it.
    """

    extensions = (".xlsx", ".xlsm")
    file_type = "xlsx"

    def _extract_text(self, path: Path) -> tuple[str, dict[str, Any]]:
        workbook = load_workbook(filename=str(path), read_only=True, data_only=True)
        try:
            blocks: list[str] = []
            for sheet in workbook.worksheets:
                rows = [
                    [_cell_text(v) for v in row]
                    for row in sheet.iter_rows(values_only=True)
                ]
                rows = [r for r in rows if any(r)]
                if rows:
                    blocks.append(_render_sheet(sheet.title, rows))
            sheet_names = [s.title for s in workbook.worksheets]
        finally:
            workbook.close()
        return "\n\n".join(blocks), {
            "sheet_count": len(sheet_names),
            "sheet_names": sheet_names,
        }
