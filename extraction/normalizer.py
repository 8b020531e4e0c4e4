# SPDX-License-Identifier: AGPL-3.0-only

"""
Response normalization for extracted invoice payloads.

Turns the LLM's JSON payload into an ExtractedDocument: missing fields become
empty strings, line items are cleaned, and the free-text document type guess
is classified into DocumentType.
"""

import re
import uuid
from typing import Any, Dict, List, Optional

from .models import DocumentType, ExtractedDocument, LineItem

# Checked in order; the first match wins.
_TYPE_PATTERNS = [
    (DocumentType.CREDIT_NOTE, re.compile(r"\bcredit (note|memo)s?\b")),
    (DocumentType.QUOTE, re.compile(r"\b(quotes?|quotations?|estimates?|proforma|pro forma)\b")),
    (DocumentType.PURCHASE_ORDER, re.compile(r"\bpurchase orders?\b|^p\.? ?o\.?$")),
    (DocumentType.RECEIPT, re.compile(r"\breceipts?\b")),
    (DocumentType.INVOICE, re.compile(r"\b(invoices?|bills?)\b")),
]

# Wire key -> ExtractedDocument field
_SCALAR_FIELDS = {
    "vendor": "vendor",
    "invoiceNumber": "invoice_number",
    "poNumber": "po_number",
    "date": "date",
    "dueDate": "due_date",
    "total": "total",
    "currency": "currency",
    "billTo": "bill_to",
}


def classify_document_type(guess: Optional[str]) -> DocumentType:
    """
    Classify a free-text document type guess.

    Matching is case-insensitive and treats '_' and '-' as spaces, so both
    "Purchase-Order" and "purchase_order" classify as PURCHASE_ORDER.
    Blank or unrecognized guesses are OTHER.
    """
    text = re.sub(r"[_\-\s]+", " ", str(guess or "")).strip().lower()
    if not text:
        return DocumentType.OTHER
    for doc_type, pattern in _TYPE_PATTERNS:
        if pattern.search(text):
            return doc_type
    return DocumentType.OTHER


def as_text(value: Any) -> str:
    """Missing values become '', scalars are stringified and trimmed."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def normalize_line_items(value: Any) -> List[LineItem]:
    """Clean the LLM line items, dropping entries with no content."""
    if not isinstance(value, list):
        return []
    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        item = LineItem(
            description=as_text(raw.get("description")),
            quantity=as_text(raw.get("quantity")),
            unit_price=as_text(raw.get("unitPrice", raw.get("unit_price"))),
            amount=as_text(raw.get("amount")),
        )
        if not item.is_blank():
            items.append(item)
    return items


def to_document(payload: Optional[Dict[str, Any]], filename: str, error: Optional[str] = None) -> ExtractedDocument:
    """
    Build an ExtractedDocument from an LLM payload.

    Args:
        payload: Parsed LLM JSON (may be None or partial)
        filename: Upload name for the document
        error: Failure message; when set the payload is ignored

    Returns:
        A document where every field is a string (never None)
    """
    data = payload if isinstance(payload, dict) and not error else {}
    fields = {attr: as_text(data.get(key)) for key, attr in _SCALAR_FIELDS.items()}
    return ExtractedDocument(
        id=str(uuid.uuid4()),
        filename=filename or "",
        document_type=classify_document_type(data.get("documentType")),
        line_items=normalize_line_items(data.get("lineItems")),
        raw_text_preview=as_text(data.get("rawTextSummary")),
        error=error or None,
        **fields,
    )


def failed_document(filename: str, error: str) -> ExtractedDocument:
    """Document carrying only a filename and a failure message."""
    return to_document(None, filename, error=error)
