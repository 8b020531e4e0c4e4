# SPDX-License-Identifier: AGPL-3.0-only

"""
Flask endpoints for the editable grid and spreadsheet export.
"""
import io

from flask import request, jsonify, send_file
from pydantic import ValidationError as ModelValidationError

from extraction.models import ExtractedDocument
from validators import CellUpdateSchema, ExportQuerySchema, ExportRequestSchema, SheetCreateSchema

from .export import (
    CSV_MIMETYPE, DEFAULT_CSV_NAME, DEFAULT_XLSX_NAME, XLSX_MIMETYPE,
    download_name, to_csv_text, to_xlsx_bytes,
)
from .rows import Sheet


def _send_csv(rows, filename=None):
    text = to_csv_text(rows)
    return send_file(
        io.BytesIO(text.encode("utf-8")),
        mimetype=CSV_MIMETYPE,
        as_attachment=True,
        download_name=download_name(filename, DEFAULT_CSV_NAME),
    )


def _send_xlsx(rows, line_items=None, filename=None):
    data = to_xlsx_bytes(rows, line_items)
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=download_name(filename, DEFAULT_XLSX_NAME),
    )


def register_sheet_endpoints(app, sheets):
    """Register grid and export endpoints with the Flask app."""

    def _load(schema, data):
        return schema.load(data or {})

    def _sheet_or_404(sheet_id):
        sheet = sheets.get(sheet_id)
        if sheet is None:
            return None, (jsonify({"error": "Sheet not found"}), 404)
        return sheet, None

    # ── sheets ─────────────────────────────────────────────────────

    @app.post("/api/sheets")
    def create_sheet():
        data = _load(SheetCreateSchema(), request.get_json(silent=True))
        if "documents" in data:
            try:
                documents = [ExtractedDocument.model_validate(d) for d in data["documents"]]
            except ModelValidationError as e:
                return jsonify({"error": f"Invalid document: {e.errors()[0]['msg']}"}), 400
            sheet = Sheet.from_documents(documents)
        else:
            sheet = Sheet.from_rows(data["rows"])
        sheets.add(sheet)
        return jsonify(sheet.to_dict()), 201

    @app.get("/api/sheets/<sheet_id>")
    def get_sheet(sheet_id: str):
        sheet, error = _sheet_or_404(sheet_id)
        if error:
            return error
        return jsonify(sheet.to_dict())

    @app.delete("/api/sheets/<sheet_id>")
    def delete_sheet(sheet_id: str):
        if not sheets.delete(sheet_id):
            return jsonify({"error": "Sheet not found"}), 404
        return jsonify({"deleted": True})

    @app.patch("/api/sheets/<sheet_id>/rows/<int(signed=True):index>")
    def update_cell(sheet_id: str, index: int):
        sheet, error = _sheet_or_404(sheet_id)
        if error:
            return error
        data = _load(CellUpdateSchema(), request.get_json(silent=True))
        row = sheet.update_cell(index, data["field"], data["value"])
        return jsonify({"index": index, "row": row})

    @app.post("/api/sheets/<sheet_id>/rows")
    def add_row(sheet_id: str):
        sheet, error = _sheet_or_404(sheet_id)
        if error:
            return error
        index, row = sheet.add_row()
        return jsonify({"index": index, "row": row}), 201

    @app.delete("/api/sheets/<sheet_id>/rows/<int(signed=True):index>")
    def remove_row(sheet_id: str, index: int):
        sheet, error = _sheet_or_404(sheet_id)
        if error:
            return error
        sheet.remove_row(index)
        return jsonify(sheet.to_dict())

    @app.get("/api/sheets/<sheet_id>/export")
    def export_sheet(sheet_id: str):
        sheet, error = _sheet_or_404(sheet_id)
        if error:
            return error
        query = _load(ExportQuerySchema(), request.args.to_dict())
        if query["format"] == "xlsx":
            return _send_xlsx(sheet.to_rows(), sheet.line_item_rows(), query.get("filename"))
        return _send_csv(sheet.to_rows(), query.get("filename"))

    # ── stateless export ───────────────────────────────────────────

    @app.post("/api/export/csv")
    def export_csv():
        data = _load(ExportRequestSchema(), request.get_json(silent=True))
        return _send_csv(data["rows"], data.get("filename"))

    @app.post("/api/export/xlsx")
    def export_xlsx():
        data = _load(ExportRequestSchema(), request.get_json(silent=True))
        return _send_xlsx(data["rows"], data["line_items"], data.get("filename"))
