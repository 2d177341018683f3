"""
Warehouse routes.

MULTI-TENANT: everything is scoped to g.org_id (set by @require_auth).
Reads need an organization; writes need the admin role.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Warehouse
from ..models.warehouses import WAREHOUSE_STATUSES, WAREHOUSE_TYPES
from ..services import warehouse_service
from ..services.tenant_service import NotFoundError
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "type", "status", "address", "city", "state_province",
        "postal_code", "country", "notes", "is_default",
    },
    required_on_create={"name", "type", "address", "city", "state_province", "postal_code", "country"},
    defaults_on_create={"status": "active", "is_default": False},
    choices={"type": WAREHOUSE_TYPES, "status": WAREHOUSE_STATUSES},
)

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
@require_org
def list_warehouses():
    status = request.args.get("status")
    return jsonify(warehouse_service.list_warehouses(g.org_id, status=status)), 200


@warehouses_bp.post("")
@require_auth
@require_admin("create warehouses")
def create_warehouse():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
        created = warehouse_service.create_warehouse(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return {"error": "Failed to create warehouse"}, 500
    return created, 201


@warehouses_bp.get("/<warehouse_id>")
@require_auth
@require_org
def get_warehouse(warehouse_id: str):
    try:
        return warehouse_service.get_warehouse(g.org_id, warehouse_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@warehouses_bp.put("/<warehouse_id>")
@require_auth
@require_admin("update warehouses")
def update_warehouse(warehouse_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)
        return warehouse_service.update_warehouse(org_id=g.org_id, warehouse_id=warehouse_id, patch=patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update warehouse")
        return {"error": "Failed to update warehouse"}, 500


@warehouses_bp.delete("/<warehouse_id>")
@require_auth
@require_admin("delete warehouses")
def delete_warehouse(warehouse_id: str):
    try:
        return warehouse_service.delete_warehouse(org_id=g.org_id, warehouse_id=warehouse_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete warehouse")
        return {"error": "Failed to delete warehouse"}, 500
