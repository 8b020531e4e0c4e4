# SPDX-License-Identifier: AGPL-3.0-only

"""
Main extraction pipeline.

This module orchestrates text extraction, the LLM extraction adapter,
normalization and history persistence for a parse request.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional

from common.metrics import ParseMetrics
from storage.supabase_service import SupabaseService

from .ai_service import AIExtractionService, ExtractionError
from .models import ExtractedDocument, ExtractionSource, HistoryStatus, ParseResponse
from .normalizer import failed_document, to_document
from .text_service import PdfTextError, TextExtractionService, normalize_text

logger = logging.getLogger(__name__)

PASTED_TEXT_FILENAME = "pasted-text"
UNSUPPORTED_FILE_MESSAGE = "Unsupported file type"
NO_TEXT_MESSAGE = "No text could be extracted from the PDF."


class UploadedFile(NamedTuple):
    """An uploaded file read into memory."""
    filename: str
    content_type: str
    data: bytes


def is_pdf(upload: UploadedFile) -> bool:
    """Lenient PDF check: accept if either the MIME type or the extension says PDF."""
    mime = "pdf" in (upload.content_type or "").lower()
    ext = (upload.filename or "").lower().endswith(".pdf")
    return mime or ext


class ExtractionPipeline:
    """Main pipeline for invoice extraction."""

    def __init__(
        self,
        ai_service: AIExtractionService,
        text_service: TextExtractionService,
        storage: SupabaseService
    ):
        """
        Initialize the extraction pipeline.

        Args:
            ai_service: Service for LLM field extraction
            text_service: Service for PDF text extraction
            storage: Supabase adapter for history records
        """
        self.ai_service = ai_service
        self.text_service = text_service
        self.storage = storage

    def parse_text(self, text: str, user_id: Optional[str] = None) -> ParseResponse:
        """
        Extract fields from pasted text.

        Args:
            text: Raw pasted text
            user_id: Owning user; history is written only when set

        Returns:
            Parse response with a single document
        """
        metrics = ParseMetrics()
        document = self._extract(normalize_text(text), PASTED_TEXT_FILENAME, metrics)
        metrics.mark_stage("extracted")

        history = HistoryStatus(saved=True) if user_id else None
        if user_id:
            self._persist(user_id, document, ExtractionSource.TEXT, history, metrics)

        self._finish(metrics)
        return ParseResponse(documents=[document], history=history)

    def parse_files(self, uploads: Iterable[UploadedFile], user_id: Optional[str] = None) -> ParseResponse:
        """
        Extract fields from each uploaded file, in order.

        Per-file failures never abort the batch; they are reported on the
        document's error field.
        """
        metrics = ParseMetrics()
        history = HistoryStatus(saved=True) if user_id else None
        documents: List[ExtractedDocument] = []

        for upload in uploads:
            if not is_pdf(upload):
                document = failed_document(upload.filename or "unknown", UNSUPPORTED_FILE_MESSAGE)
                metrics.add_document(failed=True, error=document.error)
                documents.append(document)
                continue

            document = self.extract_pdf(upload, metrics)
            documents.append(document)
            if user_id:
                self._persist(user_id, document, ExtractionSource.PDF, history, metrics)

        metrics.mark_stage("extracted")
        self._finish(metrics)
        return ParseResponse(documents=documents, history=history)

    def extract_pdf(self, upload: UploadedFile, metrics: Optional[ParseMetrics] = None) -> ExtractedDocument:
        """Read a PDF upload and run it through the LLM adapter."""
        metrics = metrics or ParseMetrics()
        try:
            all_text, pages_text = self.text_service.extract_text_from_pdf(upload.data)
        except PdfTextError as e:
            logger.warning("Could not read PDF %s: %s", upload.filename, e)
            document = failed_document(upload.filename, f"Could not read PDF: {e}")
            metrics.add_document(failed=True, error=document.error)
            return document

        logger.debug("Text stats for %s: %s", upload.filename, self.text_service.get_text_statistics(pages_text))
        text = normalize_text(all_text)
        if not text:
            document = failed_document(upload.filename, NO_TEXT_MESSAGE)
            metrics.add_document(failed=True, error=document.error)
            return document

        return self._extract(text, upload.filename, metrics)

    def _extract(self, text: str, filename: str, metrics: ParseMetrics) -> ExtractedDocument:
        metrics.add_llm_call()
        try:
            payload = self.ai_service.extract_fields(text, filename)
        except ExtractionError as e:
            document = failed_document(filename, str(e))
        else:
            document = to_document(payload, filename)
        metrics.add_document(failed=document.failed, error=document.error)
        return document

    def _persist(self, user_id: str, document: ExtractedDocument, source: ExtractionSource,
                 history: HistoryStatus, metrics: ParseMetrics) -> None:
        ok, error = self.storage.save_history(user_id, document, source)
        if ok:
            metrics.add_persisted()
        elif error:
            history.saved = False
            history.error = error

    @staticmethod
    def _finish(metrics: ParseMetrics) -> None:
        metrics.finish()
        logger.info("Parse finished: %s", metrics.to_dict())
