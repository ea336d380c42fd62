# Overview: Flask API routes for shop settings; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_permission, require_json_object
from ..services import settings_service
from ..services.permission_service import PermissionDeniedError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    """Any member may read the shop profile (receipts need it)."""
    try:
        return jsonify(settings_service.get_shop_settings(g.shop_id))
    except settings_service.SettingsError as e:
        return jsonify({"error": str(e)}), 404


@settings_bp.put("")
@require_auth
@require_permission("MANAGE_SETTINGS")
@require_json_object
def update_settings_route():
    payload = request.get_json(silent=True) or {}
    try:
        shop = settings_service.update_shop_settings(
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            payload=payload,
        )
    except PermissionDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except settings_service.SettingsValidationError as e:
        return jsonify({"error": str(e)}), 400
    except settings_service.SettingsError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(shop)
