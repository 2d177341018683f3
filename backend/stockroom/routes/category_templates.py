"""
Category template library and template import routes.

Templates are shared by every organization. Importing copies the selected
categories, subcategories and feature definitions into the caller's
organization as a job; the job advances each time its progress is polled.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_admin, require_auth, require_org
from ..models.templates import IMPORT_MODES
from ..services import template_service
from ..services.tenant_service import NotFoundError
from ..validation import ValidationError

category_templates_bp = Blueprint("category_templates", __name__, url_prefix="/api/category-templates")


@category_templates_bp.get("")
@require_auth
@require_org
def list_templates():
    return template_service.list_templates(), 200


@category_templates_bp.get("/<template_id>")
@require_auth
@require_org
def get_template(template_id: str):
    try:
        return template_service.get_template(template_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@category_templates_bp.post("/<template_id>/import")
@require_auth
@require_admin("import templates")
def import_template(template_id: str):
    """
    Body:
    {
      "importMode": "merge" | "replace",
      "selections": {"categories": [{
          "templateCategoryId": ..., "includeFeatures": bool, "featureIds": [...],
          "subcategories": [{"templateSubcategoryId": ..., "includeFeatures": bool, "featureIds": [...]}]
      }]}
    }
    Returns {"jobId", "message"}; poll /import-progress/<jobId>.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    import_mode = payload.get("importMode") or "merge"
    if import_mode not in IMPORT_MODES:
        return {"error": f"importMode must be one of: {', '.join(sorted(IMPORT_MODES))}"}, 400
    try:
        return template_service.start_import(
            org_id=g.org_id,
            user_id=g.user_id,
            user_name=g.user_name,
            template_id=template_id,
            selections=payload.get("selections"),
            import_mode=import_mode,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to import template")
        return {"error": "Failed to import template"}, 500


@category_templates_bp.get("/import-progress/<job_id>")
@require_auth
@require_org
def import_progress(job_id: str):
    try:
        return template_service.get_progress(g.org_id, job_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to fetch import progress")
        return {"error": "Failed to fetch import progress"}, 500


@category_templates_bp.delete("/import-progress/<job_id>")
@require_auth
@require_org
def cancel_import(job_id: str):
    try:
        return template_service.cancel_import(g.org_id, job_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
