# SPDX-License-Identifier: AGPL-3.0-only

"""
Flask endpoints for invoice parsing.
"""
import logging
import os

from flask import request, jsonify
from marshmallow import ValidationError

from sheet.rows import Sheet
from storage.supabase_service import extract_bearer_token
from validators import ParseTextSchema

from .pipeline import UploadedFile

logger = logging.getLogger(__name__)


def register_parse_endpoints(app, pipeline, storage, sheets):
    """Register the parse endpoint with the Flask app."""

    @app.post("/api/parse")
    def parse_documents():
        """Extract invoice fields from uploaded PDFs or pasted text.

        Input: multipart/form-data with 'files' (one or more PDFs) or 'text'
        Output: { documents: [...], sheet_id, history?: { saved, error } }
        """
        if not pipeline.ai_service.is_configured():
            return jsonify({"error": "Missing OPENAI_API_KEY."}), 500
        if not storage.configured:
            logger.warning("Supabase service role key missing. History will not be saved.")

        try:
            form = ParseTextSchema().load({"text": request.form.get("text")})
        except ValidationError as e:
            return jsonify({"error": e.messages}), 400

        token = extract_bearer_token(request.headers.get("Authorization"))
        user_id = storage.resolve_user_id(token)

        text = form.get("text")
        if text and text.strip():
            result = pipeline.parse_text(text, user_id)
        else:
            files = request.files.getlist("files")
            # 'files' parts sent as plain fields carry no file; they are reported as unsupported
            plain_parts = request.form.getlist("files")
            if not files and not plain_parts:
                return jsonify({"error": "No files uploaded."}), 400
            uploads = [
                UploadedFile(
                    filename=os.path.basename(f.filename or "") or "unknown",
                    content_type=f.mimetype or "",
                    data=f.read(),
                )
                for f in files
            ]
            uploads.extend(UploadedFile(filename="unknown", content_type="", data=b"") for _ in plain_parts)
            result = pipeline.parse_files(uploads, user_id)

        sheet = sheets.add(Sheet.from_documents(result.documents))
        result.sheet_id = sheet.id
        return jsonify(result.to_dict())
