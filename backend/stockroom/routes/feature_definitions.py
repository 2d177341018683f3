from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import FeatureDefinition
from ..models.catalog import FEATURE_INPUT_TYPES
from ..services import feature_service
from ..services.tenant_service import NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_feature_definition,
    validate_payload,
)

FEATURE_DEFINITION_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id", "subcategory_id", "name", "input_type", "options",
        "unit", "is_required", "display_order",
    },
    required_on_create={"name", "input_type"},
    defaults_on_create={"is_required": False},
    choices={"input_type": FEATURE_INPUT_TYPES},
    uuid_fields={"category_id", "subcategory_id"},
    min_values={"display_order": 0},
)

feature_definitions_bp = Blueprint("feature_definitions", __name__, url_prefix="/api/feature-definitions")


@feature_definitions_bp.get("")
@require_auth
@require_org
def list_feature_definitions():
    return jsonify(feature_service.list_feature_definitions(
        g.org_id,
        category_id=request.args.get("category_id"),
        subcategory_id=request.args.get("subcategory_id"),
    )), 200


@feature_definitions_bp.post("")
@require_auth
@require_admin("create feature definitions")
def create_feature_definition():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=FeatureDefinition, payload=payload, policy=FEATURE_DEFINITION_POLICY, partial=False,
        )
        enforce_rules_feature_definition(patch, partial=False)
        created = feature_service.create_feature_definition(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create feature definition")
        return {"error": "Failed to create feature definition"}, 500
    return created, 201


@feature_definitions_bp.post("/reorder")
@require_auth
@require_admin("reorder feature definitions")
def reorder_feature_definitions():
    payload = request.get_json(silent=True) or {}
    try:
        rows = feature_service.reorder_feature_definitions(org_id=g.org_id, ids=payload.get("ids"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return jsonify(rows), 200


@feature_definitions_bp.get("/<definition_id>")
@require_auth
@require_org
def get_feature_definition(definition_id: str):
    try:
        return feature_service.get_feature_definition(g.org_id, definition_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@feature_definitions_bp.put("/<definition_id>")
@require_auth
@require_admin("update feature definitions")
def update_feature_definition(definition_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=FeatureDefinition, payload=payload, policy=FEATURE_DEFINITION_POLICY, partial=True,
        )
        enforce_rules_feature_definition(patch, partial=True)
        return feature_service.update_feature_definition(
            org_id=g.org_id, definition_id=definition_id, patch=patch,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update feature definition")
        return {"error": "Failed to update feature definition"}, 500


@feature_definitions_bp.delete("/<definition_id>")
@require_auth
@require_admin("delete feature definitions")
def delete_feature_definition(definition_id: str):
    try:
        feature_service.delete_feature_definition(org_id=g.org_id, definition_id=definition_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete feature definition")
        return {"error": "Failed to delete feature definition"}, 500
    return {"success": True}, 200
