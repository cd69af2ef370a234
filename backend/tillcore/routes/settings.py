from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_identity
from ..services import settings_service
from ..services.settings_service import SettingsError, SettingsNotFoundError
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


def _json_error(exc: Exception):
    if isinstance(exc, SettingsNotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (ValidationError, SettingsError)):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.exception("Pricing settings request failed")
    return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("/settings/pricing")
@require_identity
def get_pricing_settings():
    try:
        return jsonify(settings_service.get_pricing_settings(g.store_id))
    except Exception as exc:
        return _json_error(exc)


@settings_bp.put("/settings/pricing")
@require_identity
def put_pricing_settings():
    # Open cart sessions keep their snapshot until they refresh.
    payload = request.get_json(silent=True)
    try:
        data = settings_service.update_pricing_settings(g.store_id, payload, user_id=g.user_id)
        return jsonify(data)
    except Exception as exc:
        return _json_error(exc)
