# SPDX-License-Identifier: AGPL-3.0-only

import pytest
from pydantic import ValidationError

from extraction.models import (
    DocumentType, ExtractedDocument, HistoryItem, HistoryStatus,
    LineItem, ParseResponse, UserProfile
)


class TestLineItem:
    """Test LineItem model."""

    def test_wire_keys_are_camel_case(self):
        item = LineItem(description="Widget", quantity="2", unit_price="5.00", amount="10.00")
        assert item.to_dict() == {
            "description": "Widget",
            "quantity": "2",
            "unitPrice": "5.00",
            "amount": "10.00",
        }

    def test_accepts_camel_case_input(self):
        item = LineItem.model_validate({"unitPrice": "5.00"})
        assert item.unit_price == "5.00"

    def test_is_blank(self):
        assert LineItem().is_blank()
        assert LineItem(description="  ").is_blank()
        assert not LineItem(amount="1").is_blank()


class TestExtractedDocument:
    """Test ExtractedDocument model."""

    def test_to_dict_omits_missing_error(self, sample_document):
        data = sample_document.to_dict()
        assert "error" not in data
        assert data["documentType"] == "invoice"
        assert data["invoiceNumber"] == "INV-2024-001"
        assert data["lineItems"][0]["unitPrice"] == "50.00"
        assert data["rawTextPreview"] == "Invoice from Acme Corp for widgets."

    def test_to_dict_keeps_error(self):
        doc = ExtractedDocument(id="x", filename="a.pdf", error="boom")
        assert doc.failed
        assert doc.to_dict()["error"] == "boom"

    def test_defaults(self):
        doc = ExtractedDocument(id="x")
        assert doc.document_type == DocumentType.OTHER
        assert doc.vendor == ""
        assert doc.line_items == []
        assert not doc.failed

    def test_round_trips_wire_form(self, sample_document):
        restored = ExtractedDocument.model_validate(sample_document.to_dict())
        assert restored == sample_document

    def test_rejects_unknown_document_type(self):
        with pytest.raises(ValidationError):
            ExtractedDocument(id="x", document_type="letter")


class TestParseResponse:
    """Test ParseResponse model."""

    def test_history_omitted_for_anonymous(self, sample_document):
        data = ParseResponse(documents=[sample_document], sheet_id="s1").to_dict()
        assert "history" not in data
        assert data["sheet_id"] == "s1"
        assert data["documents"][0]["id"] == "doc-1"

    def test_history_included(self, sample_document):
        response = ParseResponse(
            documents=[sample_document],
            history=HistoryStatus(saved=False, error="insert failed"),
        )
        assert response.to_dict()["history"] == {"saved": False, "error": "insert failed"}


class TestHistoryItem:
    """Test HistoryItem model."""

    def test_coerces_numeric_id(self):
        item = HistoryItem.model_validate({
            "id": 42,
            "filename": "a.pdf",
            "created_at": "2024-01-15T10:00:00+00:00",
            "invoice_results": [{"id": "r1", "vendor": "Acme", "total": "10"}],
        })
        assert item.id == "42"
        assert item.invoice_results[0].vendor == "Acme"
        assert item.invoice_results[0].currency is None

    def test_coerces_numeric_result_columns(self):
        item = HistoryItem.model_validate({
            "id": "s1",
            "created_at": "2024-01-15",
            "invoice_results": [{"id": 12, "total": 330.5, "invoice_number": 1001, "vendor": None}],
        })
        result = item.invoice_results[0]
        assert result.id == "12"
        assert result.total == "330.5"
        assert result.invoice_number == "1001"
        assert result.vendor is None

    def test_single_embedded_result(self):
        item = HistoryItem.model_validate({
            "id": "s1",
            "created_at": "2024-01-15",
            "invoice_results": {"id": "r1", "vendor": "Acme"},
        })
        assert len(item.invoice_results) == 1
        assert item.invoice_results[0].vendor == "Acme"

    def test_invoice_results_optional(self):
        item = HistoryItem.model_validate({"id": "1", "created_at": "2024-01-15"})
        assert item.invoice_results is None
        assert item.filename is None


class TestUserProfile:
    """Test UserProfile fallbacks."""

    def test_uses_metadata(self):
        profile = UserProfile.from_user({
            "id": "u1",
            "email": "jane@example.com",
            "user_metadata": {"full_name": "Jane Doe", "company": "Acme"},
        })
        assert profile.to_dict() == {
            "fullName": "Jane Doe",
            "company": "Acme",
            "email": "jane@example.com",
        }

    def test_falls_back_to_email(self):
        profile = UserProfile.from_user({"id": "u1", "email": "jane@example.com"})
        assert profile.full_name == "jane@example.com"
        assert profile.company == "Your company"

    def test_falls_back_to_account(self):
        profile = UserProfile.from_user({"id": "u1", "user_metadata": None})
        assert profile.full_name == "Account"
        assert profile.email == ""
