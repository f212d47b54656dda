from __future__ import annotations

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_role
from ..errors import InvalidRequestError, ValidationError
from ..services import settings_service
from ..services.settings_service import SettingsError
from ..services.transactions import run_in_transaction


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _parse_updates(payload) -> dict:
    """Body is a flat {key: value} object; values must be scalars."""
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid JSON payload")
    errors = [
        {"field": str(key), "message": "must be a string, number, boolean or null"}
        for key, value in payload.items()
        if isinstance(value, (dict, list))
    ]
    if errors:
        raise ValidationError(errors)
    return payload


@settings_bp.get("")
@require_auth
@require_role("admin")
def get_settings_route():
    settings = settings_service.get_all_settings()
    return jsonify({"settings": settings, "count": len(settings)})


@settings_bp.put("")
@require_auth
@require_role("admin")
def put_settings_route():
    updates = _parse_updates(request.get_json(silent=True))

    def _work():
        try:
            return settings_service.upsert_settings(updates, actor_user_id=g.current_user.id)
        except SettingsError as exc:
            raise InvalidRequestError(str(exc)) from exc

    updated = run_in_transaction(_work, label="settings update")
    return jsonify({"updated": updated, "settings": settings_service.get_all_settings()})
