# SPDX-License-Identifier: AGPL-3.0-only

"""
Editable spreadsheet grid for extracted documents.

A Sheet holds one flat row per document (the columns in ROW_FIELDS) plus each
document's line items. SheetStore keeps sheets in memory between requests.
"""

import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from extraction.models import ExtractedDocument

ROW_FIELDS = (
    "filename", "documentType", "vendor", "invoiceNumber", "poNumber",
    "date", "dueDate", "total", "currency", "billTo", "notes",
)

LINE_ITEM_FIELDS = ("description", "quantity", "unitPrice", "amount")


class SheetError(Exception):
    """Raised for an invalid grid operation (bad row index or column)."""


def empty_row() -> Dict[str, str]:
    return {field: "" for field in ROW_FIELDS}


def normalize_row(document: ExtractedDocument) -> Dict[str, str]:
    """Flatten a document into a grid row; failures show up in notes."""
    data = document.to_dict()
    row = {field: str(data.get(field) or "") for field in ROW_FIELDS if field != "notes"}
    row["notes"] = f"Error: {document.error}" if document.error else document.raw_text_preview
    return row


def coerce_row(raw: Dict[str, Any]) -> Dict[str, str]:
    """Keep only grid columns; missing or null cells become ''."""
    return {field: "" if raw.get(field) is None else str(raw.get(field)) for field in ROW_FIELDS}


def _coerce_line_item(raw: Any) -> Dict[str, str]:
    raw = raw if isinstance(raw, dict) else {}
    return {field: "" if raw.get(field) is None else str(raw.get(field)) for field in LINE_ITEM_FIELDS}


class Sheet:
    """In-memory grid of document rows."""

    def __init__(self, rows: Optional[List[Dict[str, str]]] = None,
                 line_items: Optional[List[List[Dict[str, str]]]] = None):
        self.id = str(uuid.uuid4())
        self.rows: List[Dict[str, str]] = [coerce_row(r) for r in (rows or [])]
        items = list(line_items or [])
        # One line-item list per row, kept index-aligned with rows
        self.line_items: List[List[Dict[str, str]]] = [
            [_coerce_line_item(i) for i in (items[n] if n < len(items) and items[n] else [])]
            for n in range(len(self.rows))
        ]
        self._lock = threading.RLock()
        self.updated_at = time.time()

    @classmethod
    def from_documents(cls, documents: Iterable[ExtractedDocument]) -> "Sheet":
        documents = list(documents)
        return cls(
            rows=[normalize_row(d) for d in documents],
            line_items=[[item.to_dict() for item in d.line_items] for d in documents],
        )

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "Sheet":
        """Build from client rows; a row may carry its own 'lineItems' list."""
        rows = [r for r in rows if isinstance(r, dict)]
        return cls(rows=rows, line_items=[r.get("lineItems") or [] for r in rows])

    def _touch(self) -> None:
        self.updated_at = time.time()

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.rows):
            raise SheetError(f"Row {index} does not exist")

    def update_cell(self, index: int, field: str, value: Any) -> Dict[str, str]:
        """Set one cell and return the updated row."""
        if field not in ROW_FIELDS:
            raise SheetError(f"Unknown column: {field}")
        with self._lock:
            self._check_index(index)
            self.rows[index] = {**self.rows[index], field: "" if value is None else str(value)}
            self._touch()
            return dict(self.rows[index])

    def add_row(self) -> Tuple[int, Dict[str, str]]:
        """Append an empty row; returns its index and the row."""
        row = empty_row()
        with self._lock:
            self.rows.append(row)
            self.line_items.append([])
            self._touch()
            return len(self.rows) - 1, dict(row)

    def remove_row(self, index: int) -> Dict[str, str]:
        with self._lock:
            self._check_index(index)
            self.line_items.pop(index)
            row = self.rows.pop(index)
            self._touch()
            return row

    def to_rows(self) -> List[Dict[str, str]]:
        with self._lock:
            return [dict(r) for r in self.rows]

    def line_item_rows(self) -> List[Dict[str, str]]:
        """Flattened line items, each tagged with its document's filename and invoice number."""
        out = []
        with self._lock:
            for row, items in zip(self.rows, self.line_items):
                for item in items:
                    out.append({
                        "filename": row["filename"],
                        "invoiceNumber": row["invoiceNumber"],
                        **item,
                    })
        return out

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "sheet_id": self.id,
                "columns": list(ROW_FIELDS),
                "rows": self.to_rows(),
                "line_items": self.line_item_rows(),
            }


class SheetStore:
    """Thread-safe in-memory sheet storage with idle expiry."""

    def __init__(self, ttl_seconds: int = 6 * 3600):
        self.ttl_seconds = ttl_seconds
        self._sheets: Dict[str, Sheet] = {}
        self._lock = threading.Lock()

    def add(self, sheet: Sheet) -> Sheet:
        self.purge_expired()
        with self._lock:
            self._sheets[sheet.id] = sheet
        return sheet

    def get(self, sheet_id: str) -> Optional[Sheet]:
        """Live sheet by id; an expired one is dropped and reported missing."""
        with self._lock:
            sheet = self._sheets.get(sheet_id)
            if sheet is not None and self._expired(sheet, time.time()):
                del self._sheets[sheet_id]
                return None
            return sheet

    def delete(self, sheet_id: str) -> bool:
        with self._lock:
            return self._sheets.pop(sheet_id, None) is not None

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop sheets idle longer than the TTL; returns how many were removed."""
        now = now if now is not None else time.time()
        with self._lock:
            expired = [sid for sid, s in self._sheets.items() if self._expired(s, now)]
            for sid in expired:
                del self._sheets[sid]
        return len(expired)

    def _expired(self, sheet: Sheet, now: float) -> bool:
        return sheet.updated_at < now - self.ttl_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._sheets)
