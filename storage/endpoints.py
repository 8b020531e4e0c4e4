# SPDX-License-Identifier: AGPL-3.0-only

"""
Flask endpoints for scan history and the account profile.
"""
from flask import request, jsonify
from pydantic import ValidationError

from extraction.models import HistoryItem, UserProfile

from .supabase_service import NOT_CONFIGURED_MESSAGE, StorageError, extract_bearer_token


def register_account_endpoints(app, storage):
    """Register history and profile endpoints with the Flask app."""

    def _current_user():
        """(user, error_response) for the request's bearer token."""
        if not storage.configured:
            return None, (jsonify({"error": NOT_CONFIGURED_MESSAGE}), 500)
        token = extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            return None, (jsonify({"error": "Unauthorized."}), 401)
        user = storage.get_user(token)
        if not user:
            return None, (jsonify({"error": "Unauthorized."}), 401)
        return user, None

    @app.get("/api/history")
    def list_history():
        """Most recent scans of the signed-in user, newest first."""
        user, error = _current_user()
        if error:
            return error

        try:
            rows = storage.list_history(str(user["id"]))
        except StorageError as e:
            return jsonify({"error": f"Failed to load history: {e}"}), 500

        try:
            items = [HistoryItem.model_validate(row).model_dump() for row in rows]
        except ValidationError as e:
            return jsonify({"error": f"Failed to load history: {e.errors()[0]['msg']}"}), 500

        return jsonify({"history": items})

    @app.get("/api/profile")
    def get_profile():
        """Display profile for the signed-in user."""
        user, error = _current_user()
        if error:
            return error
        return jsonify(UserProfile.from_user(user).to_dict())
