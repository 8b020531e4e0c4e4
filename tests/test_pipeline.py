# SPDX-License-Identifier: AGPL-3.0-only

import pytest

from extraction.ai_service import ExtractionError
from extraction.models import DocumentType, ExtractionSource
from extraction.pipeline import (
    NO_TEXT_MESSAGE, PASTED_TEXT_FILENAME, UNSUPPORTED_FILE_MESSAGE,
    ExtractionPipeline, UploadedFile, is_pdf
)
from extraction.text_service import PdfTextError


def pdf(name="invoice.pdf", content_type="application/pdf", data=b"%PDF-1.4"):
    return UploadedFile(filename=name, content_type=content_type, data=data)


class TestIsPdf:
    """Test the lenient PDF check."""

    @pytest.mark.parametrize("upload,expected", [
        (pdf(), True),
        (pdf(name="INVOICE.PDF", content_type="application/octet-stream"), True),
        (pdf(name="scan", content_type="application/pdf"), True),
        (pdf(name="notes.txt", content_type="text/plain"), False),
        (pdf(name="", content_type=""), False),
    ])
    def test_is_pdf(self, upload, expected):
        assert is_pdf(upload) is expected


class TestExtractionPipeline:
    """Test suite for ExtractionPipeline orchestration."""

    @pytest.fixture
    def pipeline(self, mock_ai_service, mock_text_service, mock_storage):
        return ExtractionPipeline(
            ai_service=mock_ai_service,
            text_service=mock_text_service,
            storage=mock_storage,
        )

    def test_parse_text_anonymous(self, pipeline, mock_ai_service, mock_storage, sample_text):
        result = pipeline.parse_text(sample_text)

        assert len(result.documents) == 1
        doc = result.documents[0]
        assert doc.filename == PASTED_TEXT_FILENAME
        assert doc.vendor == "Acme Corp"
        assert doc.document_type == DocumentType.INVOICE
        assert result.history is None
        mock_storage.save_history.assert_not_called()

        text, filename = mock_ai_service.extract_fields.call_args.args
        assert filename == PASTED_TEXT_FILENAME
        assert "\r" not in text
        assert "Invoice Number: INV-2024-001" in text

    def test_parse_text_persists_for_user(self, pipeline, mock_storage, sample_text):
        result = pipeline.parse_text(sample_text, user_id="user-1")

        assert result.history.saved is True
        assert result.history.error is None
        user_id, document, source = mock_storage.save_history.call_args.args
        assert user_id == "user-1"
        assert document is result.documents[0]
        assert source == ExtractionSource.TEXT

    def test_parse_text_extraction_error(self, pipeline, mock_ai_service):
        mock_ai_service.extract_fields.side_effect = ExtractionError("No output from OpenAI.")

        result = pipeline.parse_text("some text")

        doc = result.documents[0]
        assert doc.error == "No output from OpenAI."
        assert doc.vendor == ""

    def test_parse_files_keeps_order(self, pipeline, mock_ai_service):
        mock_ai_service.extract_fields.side_effect = [
            {"vendor": "First"},
            ExtractionError("OpenAI request failed: timeout"),
            {"vendor": "Third"},
        ]

        result = pipeline.parse_files([pdf("a.pdf"), pdf("b.pdf"), pdf("c.pdf")])

        assert [d.filename for d in result.documents] == ["a.pdf", "b.pdf", "c.pdf"]
        assert result.documents[0].vendor == "First"
        assert result.documents[1].error == "OpenAI request failed: timeout"
        assert result.documents[2].vendor == "Third"

    def test_unsupported_file(self, pipeline, mock_ai_service, mock_text_service, mock_storage):
        result = pipeline.parse_files(
            [pdf("notes.txt", content_type="text/plain", data=b"hello")],
            user_id="user-1",
        )

        doc = result.documents[0]
        assert doc.filename == "notes.txt"
        assert doc.error == UNSUPPORTED_FILE_MESSAGE
        mock_text_service.extract_text_from_pdf.assert_not_called()
        mock_ai_service.extract_fields.assert_not_called()
        mock_storage.save_history.assert_not_called()
        assert result.history.saved is True

    def test_unreadable_pdf(self, pipeline, mock_ai_service, mock_text_service):
        mock_text_service.extract_text_from_pdf.side_effect = PdfTextError("EOF marker not found")

        result = pipeline.parse_files([pdf()])

        assert result.documents[0].error == "Could not read PDF: EOF marker not found"
        mock_ai_service.extract_fields.assert_not_called()

    def test_pdf_without_text(self, pipeline, mock_ai_service, mock_text_service, mock_storage):
        mock_text_service.extract_text_from_pdf.return_value = (" \n ", [" ", " "])

        result = pipeline.parse_files([pdf()], user_id="user-1")

        doc = result.documents[0]
        assert doc.error == NO_TEXT_MESSAGE
        mock_ai_service.extract_fields.assert_not_called()
        # Failed PDFs are still recorded in history
        _, document, source = mock_storage.save_history.call_args.args
        assert document.failed
        assert source == ExtractionSource.PDF

    def test_persist_failure_reported(self, pipeline, mock_storage):
        mock_storage.save_history.side_effect = [
            (True, None),
            (False, "duplicate key value"),
        ]

        result = pipeline.parse_files([pdf("a.pdf"), pdf("b.pdf")], user_id="user-1")

        assert len(result.documents) == 2
        assert not result.documents[1].failed
        assert result.history.saved is False
        assert result.history.error == "duplicate key value"

    def test_storage_not_configured(self, pipeline, mock_storage):
        mock_storage.save_history.return_value = (False, "Supabase not configured.")

        result = pipeline.parse_text("text", user_id="user-1")

        assert result.history.saved is False
        assert result.history.error == "Supabase not configured."
