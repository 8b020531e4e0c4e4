# SPDX-License-Identifier: AGPL-3.0-only

"""
Spreadsheet serialization for grid rows (CSV text and XLSX workbooks).
"""

import csv
import io
from typing import Any, Dict, List, Optional

import pandas as pd

CSV_MIMETYPE = "text/csv;charset=utf-8"
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DEFAULT_CSV_NAME = "invoices.csv"
DEFAULT_XLSX_NAME = "invoices.xlsx"

ROWS_SHEET = "Invoices"
LINE_ITEMS_SHEET = "Line Items"


class EmptyExportError(ValueError):
    """Raised when there are no rows to export."""

    def __init__(self):
        super().__init__("No data to export.")


def cell_text(value: Any) -> str:
    """Cell value as text; null is empty and whole floats drop the '.0'."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    # Column order follows the first row's keys
    columns = list(rows[0].keys())
    data = [[cell_text(row.get(column)) for column in columns] for row in rows]
    return pd.DataFrame(data, columns=columns, dtype=object)


def _as_text_cells(worksheet) -> None:
    """Store every string cell as text so values such as '=1+1' never become formulas."""
    for row in worksheet.iter_rows():
        for cell in row:
            if isinstance(cell.value, str):
                cell.data_type = "s"


def to_csv_text(rows: List[Dict[str, str]]) -> str:
    """
    Serialize rows to CSV text.

    The header line is the bare column names joined by commas. Every data
    cell is quoted with embedded quotes doubled; lines are separated by a
    bare newline with none after the last row.
    """
    if not rows:
        raise EmptyExportError()
    frame = _frame(rows)
    body = frame.to_csv(index=False, header=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return ",".join(frame.columns) + "\n" + body.rstrip("\n")


def to_xlsx_bytes(rows: List[Dict[str, str]], line_items: Optional[List[Dict[str, str]]] = None) -> bytes:
    """
    Serialize rows to an XLSX workbook.

    The rows go to the "Invoices" sheet; a "Line Items" sheet is added when
    any line items are given.
    """
    if not rows:
        raise EmptyExportError()
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _frame(rows).to_excel(writer, sheet_name=ROWS_SHEET, index=False)
        if line_items:
            _frame(line_items).to_excel(writer, sheet_name=LINE_ITEMS_SHEET, index=False)
        for worksheet in writer.sheets.values():
            _as_text_cells(worksheet)
    return buffer.getvalue()


def download_name(requested: Optional[str], default: str) -> str:
    """Client-supplied download name, forced to the default's extension."""
    name = (requested or "").strip().replace("/", "_").replace("\\", "_")
    if not name:
        return default
    ext = default[default.rfind("."):]
    return name if name.lower().endswith(ext) else f"{name}{ext}"
