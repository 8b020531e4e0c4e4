# SPDX-License-Identifier: AGPL-3.0-only

"""
AI service for invoice field extraction.

This module sends document text to the OpenAI Chat Completions API with a
fixed JSON schema and turns the model's reply into a plain dictionary.
Normalization of that dictionary lives in the normalizer module.
"""

import json
import logging
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from .config import get_config

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when the LLM call fails or its reply cannot be used."""


LINE_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "quantity": {"type": "string"},
        "unitPrice": {"type": "string"},
        "amount": {"type": "string"},
    },
    "required": ["description", "quantity", "unitPrice", "amount"],
    "additionalProperties": False,
}

INVOICE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "vendor": {"type": "string"},
        "invoiceNumber": {"type": "string"},
        "poNumber": {"type": "string"},
        "date": {"type": "string"},
        "dueDate": {"type": "string"},
        "total": {"type": "string"},
        "currency": {"type": "string"},
        "billTo": {"type": "string"},
        "documentType": {"type": "string"},
        "lineItems": {"type": "array", "items": LINE_ITEM_SCHEMA},
        "rawTextSummary": {"type": "string"},
    },
    "required": [
        "vendor", "invoiceNumber", "poNumber", "date", "dueDate", "total",
        "currency", "billTo", "documentType", "lineItems", "rawTextSummary",
    ],
    "additionalProperties": False,
}


def build_response_format() -> Dict[str, Any]:
    """Structured-output request block for the invoice schema."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "invoice_extraction",
            "schema": INVOICE_SCHEMA,
            "strict": True,
        },
    }


def parse_json_safely(text: str) -> Dict[str, Any]:
    """
    Parse JSON from an AI response.

    Args:
        text: Raw AI response text

    Returns:
        Parsed JSON dictionary

    Raises:
        ValueError: If no JSON object can be parsed
    """
    if not isinstance(text, str):
        raise ValueError("Response is not a string")

    cleaned = text.strip()

    # Remove common code fences
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()

    try:
        data = json.loads(cleaned)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Try to find first JSON object block
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(cleaned[start:end + 1])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise ValueError("Could not parse JSON from response")


class AIExtractionService:
    """Service for LLM-powered invoice field extraction."""

    SYSTEM_PROMPT = (
        "You extract invoice fields from raw text. Return only JSON that matches the schema."
    )

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        """
        Initialize the AI extraction service.

        Args:
            client: Preconfigured OpenAI client (built lazily from config when omitted)
            model: Model name override
        """
        config = get_config()
        self.ai_config = config.get_ai_config()
        self.max_text_length = config.max_text_length
        self.model = model or self.ai_config["model"]
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.ai_config["api_key"],
                timeout=self.ai_config["timeout"],
                max_retries=self.ai_config["max_retries"],
            )
        return self._client

    def is_configured(self) -> bool:
        return self._client is not None or bool(self.ai_config["api_key"])

    def extract_fields(self, text: str, filename: str) -> Dict[str, Any]:
        """
        Extract invoice fields from document text.

        Args:
            text: Normalized document text
            filename: Name shown to the model for context

        Returns:
            The parsed JSON payload (camelCase keys, as in INVOICE_SCHEMA)

        Raises:
            ExtractionError: On transport failure, empty output or unparseable output
        """
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": self._build_prompt(text, filename)},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format=build_response_format(),
                temperature=0,
            )
        except OpenAIError as e:
            logger.warning("OpenAI request failed for %s: %s", filename, e)
            raise ExtractionError(f"OpenAI request failed: {e}") from e

        output_text = self._output_text(response)
        if not output_text:
            raise ExtractionError("No output from OpenAI.")

        try:
            return parse_json_safely(output_text)
        except ValueError as e:
            logger.warning("Unparseable OpenAI output for %s: %.200s", filename, output_text)
            raise ExtractionError("Failed to parse OpenAI response.") from e

    def _build_prompt(self, text: str, filename: str) -> str:
        """Build the user message, truncating the document text."""
        return f"Filename: {filename}\n\nInvoice text:\n{(text or '')[:self.max_text_length]}"

    @staticmethod
    def _output_text(response: Any) -> str:
        """First choice content, or '' when the model returned nothing usable."""
        try:
            message = response.choices[0].message
        except (AttributeError, IndexError):
            return ""
        if getattr(message, "refusal", None):
            logger.warning("OpenAI refused extraction: %s", message.refusal)
            return ""
        return (message.content or "").strip()
