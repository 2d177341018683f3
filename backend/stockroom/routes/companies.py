"""
Company and contact routes.

Reads are open to every member of the organization; creating, editing and
deleting companies or their contacts is admin-only.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Company, Contact
from ..models.crm import COMPANY_STATUSES, CONTACT_METHODS, CONTACT_STATUSES
from ..services import company_service
from ..services.tenant_service import NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_email,
    enforce_rules_tags,
    validate_payload,
)

ADDRESS_FIELDS = {"address", "city", "state_province", "postal_code", "country"}

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "website", "industry", "company_size", "tax_id", "notes", "tags", "status",
        *ADDRESS_FIELDS,
    },
    required_on_create={"name"},
    defaults_on_create={"status": "active", "tags": []},
    choices={"status": COMPANY_STATUSES},
    url_fields={"website"},
)

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "email", "phone", "mobile", "title", "department",
        "is_primary", "preferred_contact_method", "has_different_address",
        "notes", "birthday", "status",
        *ADDRESS_FIELDS,
    },
    required_on_create={"first_name", "last_name"},
    defaults_on_create={"status": "active", "is_primary": False, "has_different_address": False},
    choices={"status": CONTACT_STATUSES, "preferred_contact_method": CONTACT_METHODS},
)

companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


def _with_contacts() -> bool:
    return request.args.get("withContacts") == "true"


def _company_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=partial)
    enforce_rules_tags(patch)
    return patch


def _contact_patch(payload: dict, *, partial: bool) -> dict:
    if not partial and isinstance(payload, dict):
        if not str(payload.get("first_name") or "").strip() or not str(payload.get("last_name") or "").strip():
            raise ValidationError("First name and last name are required")
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=partial)
    enforce_rules_email(patch)
    return patch


@companies_bp.get("")
@require_auth
@require_org
def list_companies():
    """
    Query params:
    - search: matches name, website or industry
    - status: active | inactive | archived
    - tags: comma-separated; companies must carry all of them
    - withContacts=true: embed each company's contacts
    - limit (default 50), offset
    """
    limit = max(1, min(request.args.get("limit", default=50, type=int), 200))
    offset = max(0, request.args.get("offset", default=0, type=int))
    tags = [t.strip() for t in (request.args.get("tags") or "").split(",") if t.strip()]
    return company_service.list_companies(
        g.org_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        tags=tags,
        with_contacts=_with_contacts(),
        limit=limit,
        offset=offset,
    ), 200


@companies_bp.post("")
@require_auth
@require_admin("create companies")
def create_company():
    """
    Create a company. An optional primaryContact (or primary_contact)
    object becomes its first, primary contact.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    payload = dict(payload)
    contact_payload = payload.pop("primaryContact", None) or payload.pop("primary_contact", None)
    if not str(payload.get("name") or "").strip():
        return {"error": "Company name is required"}, 400

    try:
        patch = _company_patch(payload, partial=False)
        contact = _contact_patch(contact_payload, partial=False) if contact_payload else None
        created = company_service.create_company(
            org_id=g.org_id,
            user_id=g.user_id,
            user_name=g.user_name,
            patch=patch,
            primary_contact=contact,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create company")
        return {"error": "Failed to create company"}, 500
    return created, 201


@companies_bp.get("/<company_id>")
@require_auth
@require_org
def get_company(company_id: str):
    try:
        return company_service.get_company(g.org_id, company_id, with_contacts=_with_contacts()), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@companies_bp.route("/<company_id>", methods=["PATCH", "PUT"])
@require_auth
@require_admin("update companies")
def update_company(company_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _company_patch(payload, partial=True)
        return company_service.update_company(org_id=g.org_id, company_id=company_id, patch=patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update company")
        return {"error": "Failed to update company"}, 500


@companies_bp.delete("/<company_id>")
@require_auth
@require_admin("delete companies")
def delete_company(company_id: str):
    """Delete a company and its contacts. Companies with quotes are archived instead (400)."""
    try:
        company_service.delete_company(org_id=g.org_id, company_id=company_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete company")
        return {"error": "Failed to delete company"}, 500
    return {"success": True}, 200


# Contacts

@companies_bp.get("/<company_id>/contacts")
@require_auth
@require_org
def list_contacts(company_id: str):
    try:
        rows = company_service.list_contacts(g.org_id, company_id, status=request.args.get("status"))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return jsonify(rows), 200


@companies_bp.post("/<company_id>/contacts")
@require_auth
@require_admin("create contacts")
def create_contact(company_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _contact_patch(payload, partial=False)
        created = company_service.create_contact(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, company_id=company_id, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create contact")
        return {"error": "Failed to create contact"}, 500
    return created, 201


@companies_bp.get("/<company_id>/contacts/<contact_id>")
@require_auth
@require_org
def get_contact(company_id: str, contact_id: str):
    try:
        return company_service.get_contact(g.org_id, company_id, contact_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@companies_bp.route("/<company_id>/contacts/<contact_id>", methods=["PATCH", "PUT"])
@require_auth
@require_admin("update contacts")
def update_contact(company_id: str, contact_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _contact_patch(payload, partial=True)
        return company_service.update_contact(
            org_id=g.org_id, company_id=company_id, contact_id=contact_id, patch=patch,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update contact")
        return {"error": "Failed to update contact"}, 500


@companies_bp.delete("/<company_id>/contacts/<contact_id>")
@require_auth
@require_admin("delete contacts")
def delete_contact(company_id: str, contact_id: str):
    """The company's last contact cannot be deleted (400). Deleting the primary promotes another."""
    try:
        company_service.delete_contact(org_id=g.org_id, company_id=company_id, contact_id=contact_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete contact")
        return {"error": "Failed to delete contact"}, 500
    return {"success": True}, 200
