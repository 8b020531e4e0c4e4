"""
Invoice2Sheet – pure API back-end

Endpoints
─────────
GET    /health                              → {"status": "ok"}
POST   /api/parse                           → extract invoice fields from PDFs / pasted text
GET    /api/history                         → signed-in user's recent scans
GET    /api/profile                         → signed-in user's display profile
POST   /api/sheets                          → create an editable sheet
GET    /api/sheets/<id>                     → sheet rows
PATCH  /api/sheets/<id>/rows/<index>        → edit one cell
POST   /api/sheets/<id>/rows                → append an empty row
DELETE /api/sheets/<id>/rows/<index>        → remove a row
GET    /api/sheets/<id>/export?format=...   → CSV / XLSX download
POST   /api/export/csv | /api/export/xlsx   → stateless export of posted rows
(no HTML rendered; the grid UI lives in the front-end)
"""

# SPDX-License-Identifier: AGPL-3.0-only

# ── imports ──────────────────────────────────────────────────────
import logging

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from marshmallow import ValidationError

from extraction.ai_service import AIExtractionService
from extraction.config import get_config
from extraction.endpoints import register_parse_endpoints
from extraction.pipeline import ExtractionPipeline
from extraction.text_service import TextExtractionService
from sheet.endpoints import register_sheet_endpoints
from sheet.export import EmptyExportError
from sheet.rows import SheetError, SheetStore
from storage.endpoints import register_account_endpoints
from storage.supabase_service import SupabaseService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(ai_service=None, storage=None, text_service=None, sheets=None) -> Flask:
    """
    Build the Flask application.

    Services default to ones built from configuration; tests pass mocks.
    """
    config = get_config()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_file_size

    CORS(
        app,
        resources={r"/api/*": {"origins": config.get_cors_origins()}}
    )

    ai_service = ai_service or AIExtractionService()
    storage = storage or SupabaseService()
    text_service = text_service or TextExtractionService(max_workers=config.max_workers)
    sheets = sheets or SheetStore(ttl_seconds=config.sheet_ttl_seconds)
    pipeline = ExtractionPipeline(ai_service=ai_service, text_service=text_service, storage=storage)

    logger.info(
        "AI service: model=%s key=%s; storage: %s",
        ai_service.model,
        "SET" if ai_service.is_configured() else "NOT SET",
        "configured" if storage.configured else "NOT CONFIGURED",
    )

    # ── ROUTES ───────────────────────────────────────────────────
    @app.get("/")
    def root():
        """Simple root for anyone hitting the API directly."""
        return {"service": "Invoice2Sheet API", "docs": "/health"}, 200

    @app.get("/health")
    def health():
        """Used by the front-end (and uptime checks) to verify API is alive."""
        return jsonify(status="ok"), 200

    @app.get("/api/ai-config")
    def ai_config():
        """Configuration flags for debugging; never exposes secrets."""
        return jsonify({
            "openai_api_key_set": ai_service.is_configured(),
            "openai_model": ai_service.model,
            "max_text_length": config.max_text_length,
            "storage_configured": storage.configured,
        }), 200

    register_parse_endpoints(app, pipeline, storage, sheets)
    register_account_endpoints(app, storage)
    register_sheet_endpoints(app, sheets)

    # ── error handlers ───────────────────────────────────────────
    @app.errorhandler(413)
    def file_too_large(e):
        limit_mb = config.max_file_size // (1024 * 1024)
        return jsonify(error=f"File too large (max {limit_mb} MB)"), 413

    @app.errorhandler(ValidationError)
    def invalid_request(e):
        return jsonify(error=e.messages), 400

    @app.errorhandler(SheetError)
    def invalid_sheet_operation(e):
        return jsonify(error=str(e)), 400

    @app.errorhandler(EmptyExportError)
    def nothing_to_export(e):
        return jsonify(error=str(e)), 400

    app.extensions["invoice2sheet"] = {
        "pipeline": pipeline,
        "storage": storage,
        "sheets": sheets,
    }
    return app


# Load environment variables from .env file
load_dotenv()

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8000)   # change port if needed
