"""
Inventory routes: stock levels, adjustments, transfers, reservations.

MULTI-TENANT: products and warehouses named in a request must belong to
g.org_id; anything else is a 404. Writes need the admin role.

Adjust/transfer accept both snake_case bodies and the camelCase bodies
sent by the dashboard client (productId, warehouseId, quantity, ...).
"""
from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import Column, Integer, String, Text

from ..decorators import require_admin, require_auth, require_org
from ..export_utils import EXPORT_FORMATS, render_export
from ..models.inventory import ADJUSTMENT_MOVEMENT_TYPES
from ..services import inventory_service
from ..services.inventory_service import BATCH_ADJUST_TYPES, InsufficientStockError
from ..services.tenant_service import NotFoundError
from ..time_utils import export_date_stamp
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_inventory_adjust,
    enforce_rules_inventory_transfer,
    enforce_rules_positive_quantity,
    normalize_keys,
    payload_columns,
    validate_payload,
)

ADJUST_COLUMNS = payload_columns(
    Column("product_id", String(36), nullable=False),
    Column("warehouse_id", String(36), nullable=False),
    Column("quantity_change", Integer, nullable=False),
    Column("movement_type", String(16), nullable=False),
    Column("reason", String(255)),
    Column("notes", Text),
    Column("reference_number", String(100)),
    Column("reference_type", String(50)),
)
ADJUST_POLICY = ModelValidationPolicy(
    writable_fields=set(ADJUST_COLUMNS),
    required_on_create={"product_id", "warehouse_id", "quantity_change"},
    defaults_on_create={"movement_type": "adjustment"},
    choices={"movement_type": ADJUSTMENT_MOVEMENT_TYPES},
    uuid_fields={"product_id", "warehouse_id"},
)
ADJUST_ALIASES = {
    "productId": "product_id",
    "warehouseId": "warehouse_id",
    "quantity": "quantity_change",
    "quantityChange": "quantity_change",
    "movementType": "movement_type",
    "referenceNumber": "reference_number",
    "referenceType": "reference_type",
}

TRANSFER_COLUMNS = payload_columns(
    Column("product_id", String(36), nullable=False),
    Column("from_warehouse_id", String(36), nullable=False),
    Column("to_warehouse_id", String(36), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("reason", String(255)),
    Column("notes", Text),
    Column("reference_number", String(100)),
)
TRANSFER_POLICY = ModelValidationPolicy(
    writable_fields=set(TRANSFER_COLUMNS),
    required_on_create={"product_id", "from_warehouse_id", "to_warehouse_id", "quantity"},
    uuid_fields={"product_id", "from_warehouse_id", "to_warehouse_id"},
)
TRANSFER_ALIASES = {
    "productId": "product_id",
    "fromWarehouseId": "from_warehouse_id",
    "toWarehouseId": "to_warehouse_id",
    "referenceNumber": "reference_number",
}

RESERVATION_COLUMNS = payload_columns(
    Column("product_id", String(36), nullable=False),
    Column("warehouse_id", String(36), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("reference_number", String(100)),
)
RESERVE_POLICY = ModelValidationPolicy(
    writable_fields=set(RESERVATION_COLUMNS),
    required_on_create={"product_id", "warehouse_id", "quantity"},
    uuid_fields={"product_id", "warehouse_id"},
)
RELEASE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "warehouse_id", "quantity"},
    required_on_create={"product_id", "warehouse_id", "quantity"},
    uuid_fields={"product_id", "warehouse_id"},
)
RESERVATION_ALIASES = {
    "productId": "product_id",
    "warehouseId": "warehouse_id",
    "referenceNumber": "reference_number",
}

BATCH_ITEM_COLUMNS = payload_columns(
    Column("product_id", String(36), nullable=False),
    Column("warehouse_id", String(36), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("type", String(8), nullable=False),
    Column("reason", String(255)),
)
BATCH_ITEM_POLICY = ModelValidationPolicy(
    writable_fields=set(BATCH_ITEM_COLUMNS),
    required_on_create={"product_id", "warehouse_id", "quantity", "type"},
    choices={"type": BATCH_ADJUST_TYPES},
    uuid_fields={"product_id", "warehouse_id"},
    min_values={"quantity": 0},
)
BATCH_ITEM_ALIASES = {"productId": "product_id", "warehouseId": "warehouse_id"}

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _validate_batch_item(raw: dict) -> dict:
    item = validate_payload(
        model=BATCH_ITEM_COLUMNS,
        payload=normalize_keys(raw, BATCH_ITEM_ALIASES),
        policy=BATCH_ITEM_POLICY,
        partial=False,
    )
    if item["type"] != "set":
        enforce_rules_positive_quantity(item)
    return item


@inventory_bp.get("")
@require_auth
@require_org
def list_inventory():
    rows = inventory_service.list_inventory(
        g.org_id,
        warehouse_id=request.args.get("warehouse_id"),
        product_id=request.args.get("product_id"),
    )
    return jsonify(rows), 200


@inventory_bp.get("/summary/<product_id>")
@require_auth
@require_org
def product_summary(product_id: str):
    try:
        return inventory_service.get_product_summary(g.org_id, product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.get("/low-stock")
@require_auth
@require_org
def low_stock():
    limit = request.args.get("limit", type=int)
    return jsonify(inventory_service.list_low_stock(g.org_id, limit=limit)), 200


@inventory_bp.get("/export")
@require_auth
@require_org
def export_inventory():
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        return {"error": "format must be csv or xlsx"}, 400
    rows = inventory_service.inventory_export_rows(g.org_id, warehouse_id=request.args.get("warehouse_id"))
    body, mimetype, ext = render_export(
        rows, inventory_service.INVENTORY_EXPORT_COLUMNS, fmt, sheet_title="Inventory",
    )
    filename = f"inventory_{export_date_stamp()}.{ext}"
    return Response(body, mimetype=mimetype, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@inventory_bp.post("/adjust")
@require_auth
@require_admin("adjust inventory")
def adjust():
    payload = normalize_keys(request.get_json(silent=True) or {}, ADJUST_ALIASES)
    try:
        patch = validate_payload(model=ADJUST_COLUMNS, payload=payload, policy=ADJUST_POLICY, partial=False)
        enforce_rules_inventory_adjust(patch)
        result = inventory_service.adjust_inventory(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, **patch,
        )
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return {"error": "Failed to adjust inventory"}, 500
    return {"success": True, "data": result}, 200


@inventory_bp.post("/transfer")
@require_auth
@require_admin("transfer inventory")
def transfer():
    payload = normalize_keys(request.get_json(silent=True) or {}, TRANSFER_ALIASES)
    try:
        patch = validate_payload(model=TRANSFER_COLUMNS, payload=payload, policy=TRANSFER_POLICY, partial=False)
        enforce_rules_inventory_transfer(patch)
        result = inventory_service.transfer_inventory(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, **patch,
        )
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to transfer inventory")
        return {"error": "Failed to transfer inventory"}, 500
    return {"success": True, "data": result}, 200


@inventory_bp.post("/reserve")
@require_auth
@require_admin("reserve inventory")
def reserve():
    payload = normalize_keys(request.get_json(silent=True) or {}, RESERVATION_ALIASES)
    try:
        patch = validate_payload(model=RESERVATION_COLUMNS, payload=payload, policy=RESERVE_POLICY, partial=False)
        enforce_rules_positive_quantity(patch)
        result = inventory_service.reserve_inventory(org_id=g.org_id, **patch)
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to reserve inventory")
        return {"error": "Failed to reserve inventory"}, 500
    return {"success": True, "data": result}, 200


@inventory_bp.post("/release")
@require_auth
@require_admin("release reservations")
def release():
    payload = normalize_keys(request.get_json(silent=True) or {}, RESERVATION_ALIASES)
    try:
        patch = validate_payload(model=RESERVATION_COLUMNS, payload=payload, policy=RELEASE_POLICY, partial=False)
        enforce_rules_positive_quantity(patch)
        result = inventory_service.release_reservation(org_id=g.org_id, **patch)
    except (ValidationError, InsufficientStockError) as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to release reservation")
        return {"error": "Failed to release reservation"}, 500
    return {"success": True, "data": result}, 200


@inventory_bp.post("/batch-adjust")
@require_auth
@require_admin("adjust inventory")
def batch_adjust():
    payload = request.get_json(silent=True) or {}
    try:
        report = inventory_service.batch_adjust_inventory(
            org_id=g.org_id,
            user_id=g.user_id,
            user_name=g.user_name,
            items=payload.get("items"),
            validate=_validate_batch_item,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to batch adjust inventory")
        return {"error": "Failed to batch adjust inventory"}, 500
    return report, 200
