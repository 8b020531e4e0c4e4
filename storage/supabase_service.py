# SPDX-License-Identifier: AGPL-3.0-only

"""
Supabase persistence and auth adapter.

Talks to the Supabase auth (GoTrue) and REST (PostgREST) endpoints with the
service role key: resolves bearer tokens to users, writes scan and invoice
result records, and lists a user's scan history.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from extraction.config import get_config
from extraction.models import ExtractedDocument, ExtractionSource

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Supabase service role key missing. Restart the server after adding SUPABASE_SERVICE_ROLE_KEY."
)

HISTORY_SELECT = "id,filename,created_at,invoice_results(id,vendor,invoice_number,total,currency)"


class StorageError(Exception):
    """Raised when a Supabase call fails; the message is the upstream one."""


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Token from an 'Authorization: Bearer <token>' header, or None."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


class SupabaseService:
    """Client for the Supabase auth and REST APIs."""

    def __init__(self, url: Optional[str] = None, service_key: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        """
        Initialize the Supabase service.

        Args:
            url: Project URL (defaults to SUPABASE_URL)
            service_key: Service role key (defaults to SUPABASE_SERVICE_ROLE_KEY)
            timeout: Request timeout in seconds
            session: requests session to reuse (a new one is created when omitted)
        """
        storage_config = get_config().get_storage_config()
        self.url = (url or storage_config["url"] or "").rstrip("/")
        self.service_key = service_key or storage_config["service_key"]
        self.timeout = timeout or storage_config["timeout"]
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    def _headers(self, bearer: Optional[str] = None, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key or "",
            "Authorization": f"Bearer {bearer or self.service_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if not self.configured:
            raise StorageError(NOT_CONFIGURED_MESSAGE)
        try:
            response = self.session.request(method, f"{self.url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StorageError(str(e)) from e
        if response.status_code >= 400:
            raise StorageError(self._error_message(response))
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Best message from a PostgREST / GoTrue error body."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            for key in ("message", "msg", "error_description", "error"):
                if body.get(key):
                    return str(body[key])
        return f"HTTP {response.status_code}"

    # ── auth ────────────────────────────────────────────────────────

    def get_user(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Look up the user owning an access token.

        Returns:
            The auth user record, or None when there is no token, storage is
            not configured, or the token is rejected
        """
        if not token or not self.configured:
            return None
        try:
            response = self._request("GET", "/auth/v1/user", headers=self._headers(bearer=token))
        except StorageError as e:
            logger.info("Token rejected by Supabase auth: %s", e)
            return None
        user = response.json()
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return user

    def resolve_user_id(self, token: Optional[str]) -> Optional[str]:
        user = self.get_user(token)
        return str(user["id"]) if user else None

    # ── history writes ─────────────────────────────────────────────

    def insert_scan(self, user_id: str, source: ExtractionSource, filename: str, status: str) -> str:
        """Insert a scan header row and return its id."""
        response = self._request(
            "POST", "/rest/v1/scans",
            headers=self._headers(Prefer="return=representation"),
            json={
                "user_id": user_id,
                "source": ExtractionSource(source).value,
                "filename": filename,
                "status": status,
            },
        )
        rows = response.json()
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict) or not row.get("id"):
            raise StorageError("Failed to save scan.")
        return str(row["id"])

    def insert_invoice_result(self, scan_id: str, document: ExtractedDocument) -> None:
        """Insert the extracted fields for a scan."""
        self._request(
            "POST", "/rest/v1/invoice_results",
            headers=self._headers(Prefer="return=minimal"),
            json={
                "scan_id": scan_id,
                "vendor": document.vendor,
                "invoice_number": document.invoice_number,
                "po_number": document.po_number,
                "date": document.date,
                "due_date": document.due_date,
                "total": document.total,
                "currency": document.currency,
                "bill_to": document.bill_to,
                "raw_text_summary": document.raw_text_preview,
                "document_type": document.document_type.value,
                "line_items": [item.to_dict() for item in document.line_items],
            },
        )

    def save_history(self, user_id: str, document: ExtractedDocument,
                     source: ExtractionSource) -> Tuple[bool, Optional[str]]:
        """
        Persist a processed document as a scan plus its invoice result.

        Returns:
            (ok, error) where error is the upstream message on failure
        """
        if not self.configured:
            return False, "Supabase not configured."

        status = "failed" if document.failed else "parsed"
        try:
            scan_id = self.insert_scan(user_id, source, document.filename, status)
            self.insert_invoice_result(scan_id, document)
        except StorageError as e:
            logger.warning("Saving history for %s failed: %s", document.filename, e)
            return False, str(e)
        return True, None

    # ── history reads ──────────────────────────────────────────────

    def list_history(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        List a user's scans, newest first, with their invoice results.

        Raises:
            StorageError: If the query fails
        """
        response = self._request(
            "GET", "/rest/v1/scans",
            headers=self._headers(),
            params={
                "select": HISTORY_SELECT,
                "user_id": f"eq.{user_id}",
                "order": "created_at.desc",
                "limit": str(limit or get_config().history_limit),
            },
        )
        rows = response.json()
        return rows if isinstance(rows, list) else []
