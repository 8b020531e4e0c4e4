# SPDX-License-Identifier: AGPL-3.0-only

"""
Pydantic models for the invoice extraction system.

This module defines the core data structures passed between the extraction
adapter, the normalizer, the persistence layer and the HTTP endpoints.
Field names are snake_case in Python and camelCase on the wire.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DocumentType(str, Enum):
    """Document kinds a free-text type guess is classified into."""
    INVOICE = "invoice"
    QUOTE = "quote"
    PURCHASE_ORDER = "purchase_order"
    RECEIPT = "receipt"
    CREDIT_NOTE = "credit_note"
    OTHER = "other"


class ExtractionSource(str, Enum):
    """Where the document text came from."""
    PDF = "pdf"
    TEXT = "text"


class WireModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json", by_alias=True)


class LineItem(WireModel):
    """A single billed line of a document."""
    description: str = Field("", description="Line description")
    quantity: str = Field("", description="Quantity as printed")
    unit_price: str = Field("", description="Unit price as printed")
    amount: str = Field("", description="Line total as printed")

    def is_blank(self) -> bool:
        return not any(v.strip() for v in (self.description, self.quantity, self.unit_price, self.amount))


class ExtractedDocument(WireModel):
    """Normalized extraction result for one uploaded file or pasted text."""
    id: str = Field(description="Random identifier of this extraction")
    filename: str = Field("", description="Upload name, or 'pasted-text'")
    document_type: DocumentType = Field(DocumentType.OTHER, description="Classified document type")
    vendor: str = ""
    invoice_number: str = ""
    po_number: str = ""
    date: str = ""
    due_date: str = ""
    total: str = ""
    currency: str = ""
    bill_to: str = ""
    line_items: List[LineItem] = Field(default_factory=list)
    raw_text_preview: str = Field("", description="Short LLM summary of the source text")
    error: Optional[str] = Field(None, description="Failure message, when extraction failed")

    @property
    def failed(self) -> bool:
        return bool(self.error)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if data.get("error") is None:
            data.pop("error", None)
        return data


class HistoryStatus(BaseModel):
    """Outcome of writing history records for a parse request."""
    saved: bool = False
    error: Optional[str] = None


class ParseResponse(BaseModel):
    """Response body of the parse endpoint."""
    documents: List[ExtractedDocument] = Field(default_factory=list)
    sheet_id: Optional[str] = None
    history: Optional[HistoryStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "documents": [d.to_dict() for d in self.documents],
            "sheet_id": self.sheet_id,
        }
        if self.history is not None:
            data["history"] = self.history.model_dump()
        return data


class InvoiceResultSummary(BaseModel):
    """Invoice result columns embedded in a history item."""
    id: str = ""
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    total: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("id", "vendor", "invoice_number", "total", "currency", mode="before")
    @classmethod
    def coerce_str(cls, v, info):
        """Store columns may arrive as numbers; a missing id becomes ''."""
        if v is None:
            return "" if info.field_name == "id" else None
        return str(v)


class HistoryItem(BaseModel):
    """One stored scan with its extracted results."""
    id: str
    filename: Optional[str] = None
    created_at: str
    invoice_results: Optional[List[InvoiceResultSummary]] = None

    @field_validator("id", "created_at", mode="before")
    @classmethod
    def coerce_str(cls, v):
        """Store ids and timestamps may arrive as non-strings."""
        return "" if v is None else str(v)

    @field_validator("invoice_results", mode="before")
    @classmethod
    def wrap_single_result(cls, v):
        """A one-to-one embed arrives as a single object."""
        return [v] if isinstance(v, dict) else v


class UserProfile(WireModel):
    """Account details shown next to the history list."""
    full_name: str
    company: str
    email: str = ""

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "UserProfile":
        """Build a profile from an auth user record, with display fallbacks."""
        metadata = user.get("user_metadata") or {}
        email = user.get("email") or ""
        return cls(
            full_name=metadata.get("full_name") or email or "Account",
            company=metadata.get("company") or "Your company",
            email=email,
        )
