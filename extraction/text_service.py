# SPDX-License-Identifier: AGPL-3.0-only

"""
Text extraction service for PDF documents.

This module pulls text out of uploaded PDF bytes (PyPDF2 first, pdfplumber as
a second extractor for files PyPDF2 cannot read text from) and normalizes raw
text before it is handed to the LLM.
"""

import io
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import pdfplumber
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

logger = logging.getLogger(__name__)

_HORIZONTAL_WS = re.compile(r"[ \t]+")


class PdfTextError(Exception):
    """Raised when a PDF cannot be opened or read."""


def normalize_text(text: str) -> str:
    """
    Normalize raw document text.

    Converts CRLF line endings to LF, collapses runs of spaces and tabs into a
    single space and trims the result. Newlines are preserved.
    """
    if not text:
        return ""
    return _HORIZONTAL_WS.sub(" ", text.replace("\r\n", "\n")).strip()


class TextExtractionService:
    """Service for extracting text from PDF documents."""

    def __init__(self, max_workers: int = 4):
        """
        Initialize the text extraction service.

        Args:
            max_workers: Maximum number of worker threads for per-page extraction
        """
        self.max_workers = max_workers

    def extract_text_from_pdf(self, data: bytes) -> Tuple[str, List[str]]:
        """
        Extract text from PDF bytes.

        Args:
            data: Raw PDF file content

        Returns:
            Tuple of (combined_text, pages_text)

        Raises:
            PdfTextError: If the bytes are not a readable PDF
        """
        if not data:
            raise PdfTextError("file is empty")

        all_text, pages_text = self._extract_native_text(data)
        if all_text.strip():
            return all_text, pages_text

        logger.info("PyPDF2 returned no text; retrying with pdfplumber")
        return self._extract_with_pdfplumber(data, pages_text)

    def _extract_native_text(self, data: bytes) -> Tuple[str, List[str]]:
        """Extract text with PyPDF2, one worker per page."""
        try:
            reader = PdfReader(io.BytesIO(data))
            page_count = len(reader.pages)
        except (PdfReadError, ValueError, OSError) as e:
            raise PdfTextError(str(e)) from e

        def _extract_page(i: int) -> str:
            try:
                return reader.pages[i].extract_text() or ""
            except Exception as e:
                logger.debug("Page %d text extraction failed: %s", i + 1, e)
                return ""

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            pages_text = list(executor.map(_extract_page, range(page_count)))

        return "\n".join(pages_text), pages_text

    def _extract_with_pdfplumber(self, data: bytes, fallback_pages: List[str]) -> Tuple[str, List[str]]:
        """Second extractor; keeps the PyPDF2 result when pdfplumber fails too."""
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages_text = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            logger.warning("pdfplumber extraction failed: %s", e)
            return "\n".join(fallback_pages), fallback_pages
        return "\n".join(pages_text), pages_text

    def get_text_statistics(self, pages_text: List[str]) -> dict:
        """
        Get basic statistics about the extracted text.

        Args:
            pages_text: List of text content for each page

        Returns:
            Dictionary with page and character counts
        """
        total_chars = sum(len(page) for page in pages_text)
        return {
            "total_pages": len(pages_text),
            "non_empty_pages": sum(1 for page in pages_text if page.strip()),
            "total_characters": total_chars,
        }
