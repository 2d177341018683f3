"""
Stock movement log routes.

Completed movements are written by the inventory routes. This blueprint
reads the log, records manual 'pending' movements and cancels them.
"""
from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..export_utils import EXPORT_FORMATS, render_export
from ..models import StockMovement
from ..models.inventory import MOVEMENT_STATUSES, MOVEMENT_TYPES
from ..services import inventory_service
from ..services.tenant_service import NotFoundError
from ..time_utils import export_date_stamp, parse_iso_datetime
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_positive_quantity,
    normalize_keys,
    validate_payload,
)

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "movement_type", "quantity", "from_warehouse_id", "to_warehouse_id",
        "reason", "notes", "reference_number", "reference_type",
    },
    required_on_create={"product_id", "movement_type", "quantity"},
    choices={"movement_type": MOVEMENT_TYPES},
    uuid_fields={"product_id", "from_warehouse_id", "to_warehouse_id"},
)
MOVEMENT_ALIASES = {
    "productId": "product_id",
    "movementType": "movement_type",
    "fromWarehouseId": "from_warehouse_id",
    "toWarehouseId": "to_warehouse_id",
    "referenceNumber": "reference_number",
    "referenceType": "reference_type",
}

stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


def _movement_filters(args) -> dict:
    """Read list/export filters from the query string."""
    movement_type = args.get("movement_type") or args.get("type")
    if movement_type and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(sorted(MOVEMENT_TYPES))}")
    status = args.get("status")
    if status and status not in MOVEMENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(MOVEMENT_STATUSES))}")

    dates = {}
    for key in ("start_date", "end_date"):
        try:
            dates[key] = parse_iso_datetime(args.get(key))
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 datetime")

    return {
        "product_id": args.get("product_id"),
        "warehouse_id": args.get("warehouse_id"),
        "movement_type": movement_type,
        "status": status,
        **dates,
    }


@stock_movements_bp.get("")
@require_auth
@require_org
def list_movements():
    limit = request.args.get("limit", type=int)
    try:
        filters = _movement_filters(request.args)
    except ValidationError as e:
        return {"error": str(e)}, 400
    if limit is not None:
        filters["limit"] = max(1, min(limit, 1000))
    return jsonify(inventory_service.list_movements(g.org_id, **filters)), 200


@stock_movements_bp.get("/recent")
@require_auth
@require_org
def recent_movements():
    limit = request.args.get("limit", default=10, type=int)
    return jsonify(inventory_service.recent_movements(g.org_id, limit=limit)), 200


@stock_movements_bp.get("/export")
@require_auth
@require_org
def export_movements():
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        return {"error": "format must be csv or xlsx"}, 400
    try:
        filters = _movement_filters(request.args)
    except ValidationError as e:
        return {"error": str(e)}, 400

    rows = inventory_service.movement_export_rows(g.org_id, **filters)
    body, mimetype, ext = render_export(
        rows, inventory_service.MOVEMENT_EXPORT_COLUMNS, fmt, sheet_title="Stock Movements",
    )
    filename = f"stock_movements_{export_date_stamp()}.{ext}"
    return Response(body, mimetype=mimetype, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@stock_movements_bp.post("")
@require_auth
@require_admin("record stock movements")
def create_movement():
    payload = normalize_keys(request.get_json(silent=True) or {}, MOVEMENT_ALIASES)
    try:
        patch = validate_payload(model=StockMovement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
        enforce_rules_positive_quantity(patch)
        created = inventory_service.create_movement(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create stock movement")
        return {"error": "Failed to create stock movement"}, 500
    return created, 201


@stock_movements_bp.post("/<movement_id>/cancel")
@require_auth
@require_admin("cancel stock movements")
def cancel_movement(movement_id: str):
    try:
        return inventory_service.cancel_movement(
            org_id=g.org_id, movement_id=movement_id, user_id=g.user_id,
        ), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
