"""
Billable service and service category routes.

Reads are open to every member of the organization; writes are admin-only.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Service, ServiceCategory
from ..models.service_catalog import RATE_TYPES, SERVICE_STATUSES
from ..services import offering_service
from ..services.offering_service import CategoryInUseError
from ..services.tenant_service import NotFoundError
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "service_category_id", "rate", "rate_type", "unit", "status"},
    required_on_create={"name"},
    defaults_on_create={"rate": 0, "rate_type": "fixed", "status": "active"},
    choices={"rate_type": RATE_TYPES, "status": SERVICE_STATUSES},
    uuid_fields={"service_category_id"},
    min_values={"rate": 0},
)

SERVICE_CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "color", "icon", "display_order", "is_active"},
    required_on_create={"name"},
    defaults_on_create={"display_order": 0, "is_active": True},
    min_values={"display_order": 0},
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")
service_categories_bp = Blueprint("service_categories", __name__, url_prefix="/api/service-categories")


def _service_patch(payload: dict, *, partial: bool) -> dict:
    if not partial and isinstance(payload, dict) and not str(payload.get("name") or "").strip():
        raise ValidationError("Service name is required")
    if isinstance(payload, dict) and payload.get("rate") is None and "rate" in payload:
        # Blank rate in the form means "no rate yet"
        payload = {**payload, "rate": 0}
    return validate_payload(model=Service, payload=payload, policy=SERVICE_POLICY, partial=partial)


@services_bp.get("")
@require_auth
@require_org
def list_services():
    """
    Query params:
    - search: matches name, description or category label
    - category: legacy category label or service_category_id
    - status: active (default), inactive, or all
    """
    status = request.args.get("status") or "active"
    if status != "all" and status not in SERVICE_STATUSES:
        return {"error": f"status must be one of: all, {', '.join(sorted(SERVICE_STATUSES))}"}, 400
    return offering_service.list_services(
        g.org_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        status=status,
    ), 200


@services_bp.post("")
@require_auth
@require_admin("create services")
def create_service():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _service_patch(payload, partial=False)
        created = offering_service.create_service(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create service")
        return {"error": "Failed to create service"}, 500
    return created, 201


@services_bp.get("/<service_id>")
@require_auth
@require_org
def get_service(service_id: str):
    try:
        return offering_service.get_service(g.org_id, service_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@services_bp.route("/<service_id>", methods=["PATCH", "PUT"])
@require_auth
@require_admin("update services")
def update_service(service_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _service_patch(payload, partial=True)
        return offering_service.update_service(org_id=g.org_id, service_id=service_id, patch=patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update service")
        return {"error": "Failed to update service"}, 500


@services_bp.delete("/<service_id>")
@require_auth
@require_admin("delete services")
def delete_service(service_id: str):
    """Services used on a quote cannot be deleted (409)."""
    try:
        offering_service.delete_service(org_id=g.org_id, service_id=service_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete service")
        return {"error": "Failed to delete service"}, 500
    return {"success": True}, 200


# Service categories

@service_categories_bp.get("")
@require_auth
@require_org
def list_service_categories():
    """?active=true limits the list to active categories."""
    active_only = request.args.get("active") == "true"
    return jsonify(offering_service.list_service_categories(g.org_id, active_only=active_only)), 200


@service_categories_bp.post("")
@require_auth
@require_admin("create service categories")
def create_service_category():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=ServiceCategory, payload=payload, policy=SERVICE_CATEGORY_POLICY, partial=False,
        )
        created = offering_service.create_service_category(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create service category")
        return {"error": "Failed to create service category"}, 500
    return created, 201


@service_categories_bp.get("/<category_id>")
@require_auth
@require_org
def get_service_category(category_id: str):
    try:
        return offering_service.get_service_category(g.org_id, category_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@service_categories_bp.route("/<category_id>", methods=["PATCH", "PUT"])
@require_auth
@require_admin("update service categories")
def update_service_category(category_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=ServiceCategory, payload=payload, policy=SERVICE_CATEGORY_POLICY, partial=True,
        )
        return offering_service.update_service_category(
            org_id=g.org_id, category_id=category_id, patch=patch,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update service category")
        return {"error": "Failed to update service category"}, 500


@service_categories_bp.delete("/<category_id>")
@require_auth
@require_admin("delete service categories")
def delete_service_category(category_id: str):
    try:
        offering_service.delete_service_category(org_id=g.org_id, category_id=category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CategoryInUseError as e:
        return {"error": str(e), "service_count": e.service_count}, 409
    except Exception:
        current_app.logger.exception("Failed to delete service category")
        return {"error": "Failed to delete service category"}, 500
    return {"success": True}, 200
