"""
Client routes (quote recipients).

Any member of the organization may list, create and edit clients; only
administrators may delete them.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Client
from ..services import client_service
from ..services.tenant_service import NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_email,
    enforce_rules_tags,
    validate_payload,
)

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "email", "phone", "company",
        "address", "city", "state_province", "postal_code", "country",
        "notes", "tags",
    },
    required_on_create={"name"},
    defaults_on_create={"tags": []},
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


def _tags_arg() -> list[str]:
    """?tags=a,b -> ["a", "b"]"""
    raw = request.args.get("tags") or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _page_args(default_limit: int = 50, max_limit: int = 200) -> tuple[int, int]:
    limit = request.args.get("limit", default=default_limit, type=int)
    offset = request.args.get("offset", default=0, type=int)
    return max(1, min(limit, max_limit)), max(0, offset)


def _validated_patch(payload: dict, *, partial: bool) -> dict:
    if not partial and isinstance(payload, dict) and not str(payload.get("name") or "").strip():
        raise ValidationError("Client name is required")
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=partial)
    enforce_rules_email(patch)
    enforce_rules_tags(patch)
    return patch


@clients_bp.get("")
@require_auth
@require_org
def list_clients():
    """
    Query params:
    - search: matches name, email, company or phone
    - tags: comma-separated; clients must carry all of them
    - limit (default 50), offset
    """
    limit, offset = _page_args()
    return client_service.list_clients(
        g.org_id,
        search=request.args.get("search"),
        tags=_tags_arg(),
        limit=limit,
        offset=offset,
    ), 200


@clients_bp.post("")
@require_auth
@require_org
def create_client():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validated_patch(payload, partial=False)
        created = client_service.create_client(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create client")
        return {"error": "Failed to create client"}, 500
    return created, 201


@clients_bp.get("/<client_id>")
@require_auth
@require_org
def get_client(client_id: str):
    try:
        return client_service.get_client(g.org_id, client_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@clients_bp.route("/<client_id>", methods=["PATCH", "PUT"])
@require_auth
@require_org
def update_client(client_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validated_patch(payload, partial=True)
        return client_service.update_client(org_id=g.org_id, client_id=client_id, patch=patch), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update client")
        return {"error": "Failed to update client"}, 500


@clients_bp.delete("/<client_id>")
@require_auth
@require_admin("delete clients")
def delete_client(client_id: str):
    try:
        client_service.delete_client(org_id=g.org_id, client_id=client_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete client")
        return {"error": "Failed to delete client"}, 500
    return {"success": True}, 200
