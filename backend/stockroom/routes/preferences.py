"""
Current-user routes: UI preferences and role lookup.

Preferences belong to the user (g.user_id), not the organization, so none
of these routes need an active organization. The organization id is
recorded when the session has one.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..models import UserPreference
from ..services import auth_service, preferences_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_json_object,
    require_table_key,
    validate_payload,
)

PREFERENCES_POLICY = ModelValidationPolicy(
    writable_fields=set(preferences_service.PREFERENCE_SECTIONS),
)

user_bp = Blueprint("user", __name__, url_prefix="/api/user")


@user_bp.get("/role")
@require_auth
def get_role():
    return {
        "role": auth_service.get_current_user_role(g.claims),
        "is_admin": auth_service.is_admin(g.claims),
        "user_id": g.user_id,
        "org_id": g.org_id,
    }, 200


@user_bp.get("/preferences")
@require_auth
def get_preferences():
    return preferences_service.get_preferences(g.user_id, g.org_id), 200


@user_bp.route("/preferences", methods=["PUT", "PATCH"])
@require_auth
def update_preferences():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=UserPreference, payload=payload, policy=PREFERENCES_POLICY, partial=True)
        enforce_rules_json_object(patch, set(preferences_service.PREFERENCE_SECTIONS))
        return preferences_service.update_preferences(g.user_id, g.org_id, patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update preferences")
        return {"error": "Failed to update preferences"}, 500


@user_bp.get("/preferences/table/<table_key>")
@require_auth
def get_table_preferences(table_key: str):
    try:
        return preferences_service.get_table_preferences(g.user_id, g.org_id, table_key), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@user_bp.route("/preferences/table/<table_key>", methods=["PUT", "PATCH"])
@require_auth
def update_table_preferences(table_key: str):
    payload = request.get_json(silent=True)
    try:
        require_table_key(table_key)
        if not isinstance(payload, dict):
            raise ValidationError("Table preferences must be an object")
        return preferences_service.update_table_preferences(g.user_id, g.org_id, table_key, payload), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update table preferences")
        return {"error": "Failed to update table preferences"}, 500


@user_bp.delete("/preferences/table/<table_key>")
@require_auth
def reset_table_preferences(table_key: str):
    try:
        preferences_service.reset_table_preferences(g.user_id, g.org_id, table_key)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"success": True}, 200
