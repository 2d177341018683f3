"""
Quote routes, plus the public (token-authenticated) quote page.

MULTI-TENANT: /api/quotes is scoped to g.org_id. Any member may create
quotes and comment; editing a quote or adding lines needs the admin role
or being its creator or assignee; deleting is admin-only.

/api/public/quote/<token> needs no session. The access token created when
the quote is sent is the only credential.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Quote, QuoteItem
from ..models.quotes import DISCOUNT_TYPES, ITEM_TYPES, QUOTE_STATUSES
from ..services import auth_service, quote_service
from ..services.quote_service import QuotePermissionError
from ..services.tenant_service import NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_discount,
    normalize_keys,
    validate_payload,
)

QUOTE_ALIASES = {
    "clientId": "client_id",
    "companyId": "company_id",
    "assigned_to_clerk_user_id": "assigned_to_user_id",
    "assignedToUserId": "assigned_to_user_id",
    "assignedToName": "assigned_to_name",
}

QUOTE_POLICY = ModelValidationPolicy(
    writable_fields={
        "client_id", "company_id", "assigned_to_user_id", "assigned_to_name", "status",
        "valid_from", "valid_until", "discount_type", "discount_value", "tax_rate",
        "terms_and_conditions", "notes", "internal_notes",
    },
    required_on_create={"client_id"},
    defaults_on_create={"status": "draft"},
    choices={"status": QUOTE_STATUSES, "discount_type": DISCOUNT_TYPES},
    uuid_fields={"client_id", "company_id"},
    min_values={"tax_rate": 0},
)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "item_type", "product_id", "service_id", "warehouse_id", "name", "description", "sku",
        "quantity", "unit_price", "discount_type", "discount_value", "display_order",
    },
    required_on_create={"item_type"},
    choices={"discount_type": DISCOUNT_TYPES},
    uuid_fields={"product_id", "service_id", "warehouse_id"},
    min_values={"unit_price": 0, "display_order": 0},
)

quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")
public_quotes_bp = Blueprint("public_quotes", __name__, url_prefix="/api/public/quote")


def _quote_patch(payload, *, partial: bool) -> dict:
    payload = normalize_keys(payload, QUOTE_ALIASES)
    if not partial and isinstance(payload, dict) and not payload.get("client_id"):
        raise ValidationError("Client is required")
    patch = validate_payload(model=Quote, payload=payload, policy=QUOTE_POLICY, partial=partial)
    enforce_rules_discount(patch)
    if (patch.get("tax_rate") or 0) > 100:
        raise ValidationError("tax_rate cannot exceed 100")
    if patch.get("valid_from") and patch.get("valid_until") and patch["valid_until"] < patch["valid_from"]:
        raise ValidationError("valid_until cannot be before valid_from")
    return patch


def _item_patch(payload) -> dict:
    if isinstance(payload, dict) and payload.get("item_type") not in ITEM_TYPES:
        raise ValidationError("Invalid item type")
    patch = validate_payload(model=QuoteItem, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_discount(patch)
    return patch


@quotes_bp.get("")
@require_auth
@require_org
def list_quotes():
    """
    Query params:
    - status, client_id, assigned_to: optional filters
    - limit (default 50), offset
    """
    status = request.args.get("status")
    if status and status not in QUOTE_STATUSES:
        return {"error": f"status must be one of: {', '.join(sorted(QUOTE_STATUSES))}"}, 400
    limit = max(1, min(request.args.get("limit", default=50, type=int), 200))
    offset = max(0, request.args.get("offset", default=0, type=int))
    return quote_service.list_quotes(
        g.org_id,
        status=status,
        client_id=request.args.get("client_id"),
        assigned_to=request.args.get("assigned_to"),
        limit=limit,
        offset=offset,
    ), 200


@quotes_bp.post("")
@require_auth
@require_org
def create_quote():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _quote_patch(payload, partial=False)
        created = quote_service.create_quote(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return {"error": "Failed to create quote"}, 500
    return created, 201


@quotes_bp.get("/<quote_id>")
@require_auth
@require_org
def get_quote(quote_id: str):
    """Quote with client, items (with catalog rows), events and comments, newest first."""
    try:
        return quote_service.get_quote(g.org_id, quote_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@quotes_bp.route("/<quote_id>", methods=["PATCH", "PUT"])
@require_auth
@require_org
def update_quote(quote_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _quote_patch(payload, partial=True)
        return quote_service.update_quote(
            org_id=g.org_id,
            quote_id=quote_id,
            user_id=g.user_id,
            user_name=g.user_name,
            is_admin=auth_service.is_admin(g.claims),
            patch=patch,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except QuotePermissionError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update quote")
        return {"error": "Failed to update quote"}, 500


@quotes_bp.delete("/<quote_id>")
@require_auth
@require_admin("delete quotes")
def delete_quote(quote_id: str):
    """Delete a quote and everything under it. Stock held by an open quote is released first."""
    try:
        quote_service.delete_quote(org_id=g.org_id, quote_id=quote_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete quote")
        return {"error": "Failed to delete quote"}, 500
    return {"success": True}, 200


@quotes_bp.get("/<quote_id>/items")
@require_auth
@require_org
def list_items(quote_id: str):
    try:
        return jsonify(quote_service.list_items(g.org_id, quote_id)), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@quotes_bp.post("/<quote_id>/items")
@require_auth
@require_org
def add_item(quote_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _item_patch(payload)
        created = quote_service.add_item(
            org_id=g.org_id,
            quote_id=quote_id,
            user_id=g.user_id,
            is_admin=auth_service.is_admin(g.claims),
            patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except QuotePermissionError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to add quote item")
        return {"error": "Failed to add quote item"}, 500
    return created, 201


@quotes_bp.get("/<quote_id>/comments")
@require_auth
@require_org
def list_comments(quote_id: str):
    try:
        return jsonify(quote_service.list_comments(g.org_id, quote_id)), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@quotes_bp.post("/<quote_id>/comments")
@require_auth
@require_org
def add_comment(quote_id: str):
    """Any member may comment. Comments are internal unless is_internal is false."""
    payload = request.get_json(silent=True) or {}
    try:
        created = quote_service.add_comment(
            org_id=g.org_id,
            quote_id=quote_id,
            user_id=g.user_id,
            user_name=g.user_name,
            text=payload.get("comment"),
            is_internal=payload.get("is_internal") is not False,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to add comment")
        return {"error": "Failed to add comment"}, 500
    return created, 201


@quotes_bp.post("/<quote_id>/send")
@require_auth
@require_org
def send_quote(quote_id: str):
    try:
        return quote_service.send_quote(
            org_id=g.org_id,
            quote_id=quote_id,
            user_id=g.user_id,
            user_name=g.user_name,
            app_url=current_app.config["APP_URL"],
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to send quote")
        return {"error": "Failed to send quote"}, 500


# Public quote page

@public_quotes_bp.get("/<token>")
def public_quote(token: str):
    try:
        return quote_service.public_quote(token, dict(current_app.config["QUOTE_ORGANIZATION"])), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@public_quotes_bp.post("/<token>/view")
def record_view(token: str):
    try:
        quote_service.record_view(token)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"success": True}, 200


@public_quotes_bp.post("/<token>/approve")
def approve_quote(token: str):
    payload = request.get_json(silent=True) or {}
    try:
        return quote_service.approve(token, payload.get("comment")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to approve quote")
        return {"error": "Internal server error"}, 500


@public_quotes_bp.post("/<token>/decline")
def decline_quote(token: str):
    """The reason is read from "comment" (what the quote page sends) or "reason"."""
    payload = request.get_json(silent=True) or {}
    try:
        return quote_service.decline(token, payload.get("comment") or payload.get("reason")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to decline quote")
        return {"error": "Internal server error"}, 500


@public_quotes_bp.post("/<token>/comment")
def client_comment(token: str):
    payload = request.get_json(silent=True) or {}
    try:
        return quote_service.client_comment(token, payload.get("comment")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
