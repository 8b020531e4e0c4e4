# SPDX-License-Identifier: AGPL-3.0-only

"""
Pytest configuration and fixtures.

This module provides shared fixtures and configuration for all tests.
"""

import io
import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from extraction.ai_service import AIExtractionService
from extraction.config import reset_config
from extraction.models import DocumentType, ExtractedDocument, LineItem
from extraction.text_service import TextExtractionService
from sheet.rows import SheetStore
from storage.supabase_service import SupabaseService


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Deterministic configuration for every test."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    monkeypatch.delenv("MAX_TEXT_LENGTH", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_text():
    """Sample invoice text."""
    return (
        "INVOICE\r\n"
        "Invoice Number:   INV-2024-001\r\n"
        "Date: 2024-01-15\t\tDue Date: 2024-02-15\r\n"
        "Vendor: Acme Corp\r\n"
        "Bill To: Customer Inc, 456 Oak Ave\r\n"
        "PO: PO-7788\r\n"
        "Widget A   2 x 50.00   100.00\r\n"
        "Total: 330.00 USD\r\n"
    )


@pytest.fixture
def sample_payload():
    """LLM payload in the shape of the invoice schema."""
    return {
        "vendor": "Acme Corp",
        "invoiceNumber": "INV-2024-001",
        "poNumber": "PO-7788",
        "date": "2024-01-15",
        "dueDate": "2024-02-15",
        "total": "330.00",
        "currency": "USD",
        "billTo": "Customer Inc, 456 Oak Ave",
        "documentType": "Tax Invoice",
        "lineItems": [
            {"description": "Widget A", "quantity": "2", "unitPrice": "50.00", "amount": "100.00"},
            {"description": "", "quantity": "", "unitPrice": "", "amount": ""},
        ],
        "rawTextSummary": "Invoice from Acme Corp for widgets.",
    }


@pytest.fixture
def sample_document():
    """A normalized document."""
    return ExtractedDocument(
        id="doc-1",
        filename="acme.pdf",
        document_type=DocumentType.INVOICE,
        vendor="Acme Corp",
        invoice_number="INV-2024-001",
        po_number="PO-7788",
        date="2024-01-15",
        due_date="2024-02-15",
        total="330.00",
        currency="USD",
        bill_to="Customer Inc",
        line_items=[LineItem(description="Widget A", quantity="2", unit_price="50.00", amount="100.00")],
        raw_text_preview="Invoice from Acme Corp for widgets.",
    )


def make_completion(content, refusal=None):
    """Object shaped like an OpenAI chat completion."""
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def openai_client(sample_payload):
    """Mock OpenAI client returning the sample payload."""
    client = Mock()
    client.chat.completions.create.return_value = make_completion(json.dumps(sample_payload))
    return client


@pytest.fixture
def mock_ai_service(sample_payload):
    """Mock AI service."""
    service = Mock(spec=AIExtractionService)
    service.model = "gpt-4o-mini"
    service.is_configured.return_value = True
    service.extract_fields.return_value = sample_payload
    return service


@pytest.fixture
def mock_text_service():
    """Mock text service."""
    service = Mock(spec=TextExtractionService)
    service.extract_text_from_pdf.return_value = ("Invoice INV-2024-001\nTotal 330.00", ["Invoice INV-2024-001\nTotal 330.00"])
    service.get_text_statistics.return_value = {"total_pages": 1}
    return service


@pytest.fixture
def mock_storage():
    """Mock Supabase service with no signed-in user."""
    storage = Mock(spec=SupabaseService)
    storage.configured = True
    storage.resolve_user_id.return_value = None
    storage.get_user.return_value = None
    storage.save_history.return_value = (True, None)
    storage.list_history.return_value = []
    return storage


@pytest.fixture
def sheet_store():
    return SheetStore(ttl_seconds=3600)


@pytest.fixture
def flask_app(mock_ai_service, mock_storage, mock_text_service, sheet_store):
    """Application wired to mocked services."""
    from app import create_app

    app = create_app(
        ai_service=mock_ai_service,
        storage=mock_storage,
        text_service=mock_text_service,
        sheets=sheet_store,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(flask_app):
    """Create test client"""
    return flask_app.test_client()


@pytest.fixture
def pdf_upload():
    """Factory for multipart file tuples."""
    def _make(name="invoice.pdf", content=b"%PDF-1.4 fake", mimetype="application/pdf"):
        return (io.BytesIO(content), name, mimetype)
    return _make


@pytest.fixture
def text_pdf_bytes():
    """A real one-page PDF containing invoice text."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.drawString(72, 760, "INVOICE INV-2024-001")
    pdf.drawString(72, 740, "Total: 330.00 USD")
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()

