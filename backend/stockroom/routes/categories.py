"""
Category and subcategory routes. Writes are admin-only.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Category, Subcategory
from ..models.catalog import CATEGORY_STATUSES
from ..services import category_service
from ..services.tenant_service import NotFoundError
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "status", "display_order"},
    required_on_create={"name"},
    defaults_on_create={"status": "active", "display_order": 0},
    choices={"status": CATEGORY_STATUSES},
    min_values={"display_order": 0},
)

SUBCATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "name", "description", "status", "display_order"},
    required_on_create={"category_id", "name"},
    defaults_on_create={"status": "active", "display_order": 0},
    choices={"status": CATEGORY_STATUSES},
    uuid_fields={"category_id"},
    min_values={"display_order": 0},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
subcategories_bp = Blueprint("subcategories", __name__, url_prefix="/api/subcategories")


@categories_bp.get("")
@require_auth
@require_org
def list_categories():
    return jsonify(category_service.list_categories(g.org_id, status=request.args.get("status"))), 200


@categories_bp.post("")
@require_auth
@require_admin("create categories")
def create_category():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = category_service.create_category(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return {"error": "Failed to create category"}, 500
    return created, 201


@categories_bp.get("/<category_id>")
@require_auth
@require_org
def get_category(category_id: str):
    try:
        return category_service.get_category(g.org_id, category_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.put("/<category_id>")
@require_auth
@require_admin("update categories")
def update_category(category_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        return category_service.update_category(org_id=g.org_id, category_id=category_id, patch=patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update category")
        return {"error": "Failed to update category"}, 500


@categories_bp.delete("/<category_id>")
@require_auth
@require_admin("delete categories")
def delete_category(category_id: str):
    try:
        category_service.delete_category(org_id=g.org_id, category_id=category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return {"error": "Failed to delete category"}, 500
    return {"success": True}, 200


@subcategories_bp.get("")
@require_auth
@require_org
def list_subcategories():
    category_id = request.args.get("category_id")
    return jsonify(category_service.list_subcategories(g.org_id, category_id=category_id)), 200


@subcategories_bp.post("")
@require_auth
@require_admin("create subcategories")
def create_subcategory():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Subcategory, payload=payload, policy=SUBCATEGORY_POLICY, partial=False)
        created = category_service.create_subcategory(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create subcategory")
        return {"error": "Failed to create subcategory"}, 500
    return created, 201


@subcategories_bp.get("/<subcategory_id>")
@require_auth
@require_org
def get_subcategory(subcategory_id: str):
    try:
        return category_service.get_subcategory(g.org_id, subcategory_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@subcategories_bp.put("/<subcategory_id>")
@require_auth
@require_admin("update subcategories")
def update_subcategory(subcategory_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Subcategory, payload=payload, policy=SUBCATEGORY_POLICY, partial=True)
        return category_service.update_subcategory(
            org_id=g.org_id, subcategory_id=subcategory_id, patch=patch,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update subcategory")
        return {"error": "Failed to update subcategory"}, 500


@subcategories_bp.delete("/<subcategory_id>")
@require_auth
@require_admin("delete subcategories")
def delete_subcategory(subcategory_id: str):
    try:
        category_service.delete_subcategory(org_id=g.org_id, subcategory_id=subcategory_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete subcategory")
        return {"error": "Failed to delete subcategory"}, 500
    return {"success": True}, 200
