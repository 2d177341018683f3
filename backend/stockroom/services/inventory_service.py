"""
Stockroom inventory invariants (authoritative)

Inventory model:
- One Inventory row per (product, warehouse), holding quantity and
  reserved_quantity. Rows are created lazily on first stock-in.
- 0 <= reserved_quantity <= quantity at all times; available is the
  difference.

Movements:
- Every quantity change writes a StockMovement in the same DB transaction.
- StockMovement.quantity is a positive magnitude. Increases set
  to_warehouse_id, decreases set from_warehouse_id, transfers set both.
- Movements written here are 'completed'. Manually logged movements start
  'pending' and never touch quantities; they can be cancelled while pending.

Concurrency:
- Read-modify-write on Inventory rows goes through lock_for_update and
  run_with_retry; version_id on Inventory catches lost updates where
  row locks are not honored.

Tenancy:
- Products and warehouses referenced by a request must belong to the
  caller's organization (NotFoundError otherwise).
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import or_

from ..extensions import db
from ..models import Inventory, Product, StockMovement, Warehouse
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .batch_service import MAX_BATCH_ITEMS, process_in_batches
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import get_owned_or_404, scoped

logger = logging.getLogger(__name__)


class InsufficientStockError(ValueError):
    """Requested change would take quantity or availability below zero."""


def _require_product(org_id: str, product_id: str) -> Product:
    return get_owned_or_404(Product, product_id, org_id, label="Product")


def _require_warehouse(org_id: str, warehouse_id: str) -> Warehouse:
    return get_owned_or_404(Warehouse, warehouse_id, org_id, label="Warehouse")


def _locked_row(product_id: str, warehouse_id: str) -> Inventory | None:
    query = db.session.query(Inventory).filter_by(product_id=product_id, warehouse_id=warehouse_id)
    return lock_for_update(query).first()


def _get_or_create_row(*, org_id: str, user_id: str, user_name: str, product_id: str, warehouse_id: str) -> Inventory:
    row = _locked_row(product_id, warehouse_id)
    if row is None:
        row = Inventory(
            organization_id=org_id,
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=0,
            reserved_quantity=0,
            created_by_user_id=user_id,
            created_by_name=user_name,
        )
        db.session.add(row)
        db.session.flush()
    return row


def _movement_cost(product: Product, quantity: int) -> tuple[Decimal | None, Decimal | None]:
    if product.cost is None:
        return None, None
    unit = Decimal(product.cost)
    return unit, unit * quantity


# Adjust / transfer

def _adjust_inventory_inner(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    product_id: str,
    warehouse_id: str,
    quantity_change: int,
    movement_type: str = "adjustment",
    reason: str | None = None,
    notes: str | None = None,
    reference_number: str | None = None,
    reference_type: str | None = None,
) -> dict:
    """Core adjust logic without retry or commit. Shared with batch adjust."""
    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")

    product = _require_product(org_id, product_id)
    _require_warehouse(org_id, warehouse_id)

    if quantity_change > 0:
        row = _get_or_create_row(
            org_id=org_id, user_id=user_id, user_name=user_name,
            product_id=product_id, warehouse_id=warehouse_id,
        )
    else:
        row = _locked_row(product_id, warehouse_id)
        if row is None:
            raise InsufficientStockError("Insufficient stock")

    previous = row.quantity
    new_quantity = previous + quantity_change
    if new_quantity < 0:
        raise InsufficientStockError("Insufficient stock")
    if new_quantity < row.reserved_quantity:
        raise InsufficientStockError("Insufficient stock: quantity would drop below reserved quantity")

    row.quantity = new_quantity

    magnitude = abs(quantity_change)
    unit_cost, total_cost = _movement_cost(product, magnitude)
    movement = StockMovement(
        organization_id=org_id,
        product_id=product_id,
        movement_type=movement_type,
        quantity=magnitude,
        to_warehouse_id=warehouse_id if quantity_change > 0 else None,
        from_warehouse_id=warehouse_id if quantity_change < 0 else None,
        status="completed",
        reason=reason,
        notes=notes,
        reference_number=reference_number,
        reference_type=reference_type,
        unit_cost=unit_cost,
        total_cost=total_cost,
        created_by_user_id=user_id,
        created_by_name=user_name,
    )
    db.session.add(movement)
    db.session.flush()

    return {
        "inventory_id": row.id,
        "movement_id": movement.id,
        "previous_quantity": previous,
        "new_quantity": new_quantity,
        "quantity_change": quantity_change,
    }


def adjust_inventory(**kwargs) -> dict:
    """
    Apply a signed quantity change to one product in one warehouse.

    Accepts the keyword arguments of _adjust_inventory_inner.
    """
    def _op():
        result = _adjust_inventory_inner(**kwargs)
        db.session.commit()
        return result

    return run_with_retry(_op)


def transfer_inventory(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    product_id: str,
    from_warehouse_id: str,
    to_warehouse_id: str,
    quantity: int,
    reason: str | None = None,
    notes: str | None = None,
    reference_number: str | None = None,
) -> dict:
    """Move available stock between two warehouses as one 'transfer' movement."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")
    if from_warehouse_id == to_warehouse_id:
        raise ValidationError("Cannot transfer to the same warehouse")

    def _op():
        product = _require_product(org_id, product_id)
        _require_warehouse(org_id, from_warehouse_id)
        _require_warehouse(org_id, to_warehouse_id)

        source = _locked_row(product_id, from_warehouse_id)
        if source is None or source.available_quantity < quantity:
            raise InsufficientStockError("Insufficient available stock in source warehouse")

        dest = _get_or_create_row(
            org_id=org_id, user_id=user_id, user_name=user_name,
            product_id=product_id, warehouse_id=to_warehouse_id,
        )

        source.quantity -= quantity
        dest.quantity += quantity

        unit_cost, total_cost = _movement_cost(product, quantity)
        movement = StockMovement(
            organization_id=org_id,
            product_id=product_id,
            movement_type="transfer",
            quantity=quantity,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            status="completed",
            reason=reason,
            notes=notes,
            reference_number=reference_number,
            unit_cost=unit_cost,
            total_cost=total_cost,
            created_by_user_id=user_id,
            created_by_name=user_name,
        )
        db.session.add(movement)
        db.session.flush()

        result = {
            "movement_id": movement.id,
            "from_warehouse_id": from_warehouse_id,
            "to_warehouse_id": to_warehouse_id,
            "quantity_transferred": quantity,
            "from_new_quantity": source.quantity,
            "to_new_quantity": dest.quantity,
        }
        db.session.commit()
        return result

    return run_with_retry(_op)


# Reservations

def reserve_inventory(
    *,
    org_id: str,
    product_id: str,
    warehouse_id: str,
    quantity: int,
    reference_number: str | None = None,
) -> dict:
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    def _op():
        _require_product(org_id, product_id)
        _require_warehouse(org_id, warehouse_id)

        row = _locked_row(product_id, warehouse_id)
        if row is None or row.available_quantity < quantity:
            raise InsufficientStockError("Insufficient available stock to reserve")

        row.reserved_quantity += quantity
        result = {
            "inventory_id": row.id,
            "quantity": row.quantity,
            "reserved_quantity": row.reserved_quantity,
            "available_quantity": row.available_quantity,
            "reference_number": reference_number,
        }
        db.session.commit()
        logger.info("Reserved %s of product %s in %s (ref=%s)", quantity, product_id, warehouse_id, reference_number)
        return result

    return run_with_retry(_op)


def release_reservation(*, org_id: str, product_id: str, warehouse_id: str, quantity: int) -> dict:
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    def _op():
        _require_product(org_id, product_id)
        _require_warehouse(org_id, warehouse_id)

        row = _locked_row(product_id, warehouse_id)
        if row is None or row.reserved_quantity < quantity:
            raise InsufficientStockError("Cannot release more than the reserved quantity")

        row.reserved_quantity -= quantity
        result = {
            "inventory_id": row.id,
            "quantity": row.quantity,
            "reserved_quantity": row.reserved_quantity,
            "available_quantity": row.available_quantity,
        }
        db.session.commit()
        return result

    return run_with_retry(_op)


# Batch adjust

BATCH_ADJUST_TYPES = {"add", "remove", "set"}


def batch_adjust_inventory(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    items: list,
    validate: Callable[[dict], dict],
    chunk_size: int = 10,
) -> dict:
    """
    Apply a list of add/remove/set adjustments.

    Items are grouped by warehouse (stable within a warehouse) and each runs
    in its own transaction. validate turns a raw item into
    {product_id, warehouse_id, quantity, type, reason}.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if len(items) > MAX_BATCH_ITEMS:
        raise ValidationError(f"Cannot process more than {MAX_BATCH_ITEMS} items at once")

    def _warehouse_key(item):
        if isinstance(item, dict):
            return str(item.get("warehouse_id") or item.get("warehouseId") or "")
        return ""

    ordered = sorted(items, key=_warehouse_key)

    def _handle(raw) -> dict:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        item = validate(raw)

        def _op():
            current = 0
            if item["type"] == "set":
                _require_product(org_id, item["product_id"])
                _require_warehouse(org_id, item["warehouse_id"])
                row = _locked_row(item["product_id"], item["warehouse_id"])
                current = row.quantity if row else 0
                change = item["quantity"] - current
            elif item["type"] == "remove":
                change = -item["quantity"]
            else:
                change = item["quantity"]

            if change == 0:
                return {
                    "product_id": item["product_id"],
                    "warehouse_id": item["warehouse_id"],
                    "previous_quantity": current,
                    "new_quantity": current,
                    "quantity_change": 0,
                    "movement_id": None,
                }

            result = _adjust_inventory_inner(
                org_id=org_id,
                user_id=user_id,
                user_name=user_name,
                product_id=item["product_id"],
                warehouse_id=item["warehouse_id"],
                quantity_change=change,
                movement_type="adjustment",
                reason=item.get("reason") or f"Batch {item['type']}",
            )
            db.session.commit()
            return {"product_id": item["product_id"], "warehouse_id": item["warehouse_id"], **result}

        return run_with_retry(_op)

    return process_in_batches(ordered, _handle, chunk_size=chunk_size)


# Reads

def _detail_query(org_id: str):
    return (
        scoped(Inventory, org_id)
        .join(Product, Inventory.product_id == Product.id)
        .join(Warehouse, Inventory.warehouse_id == Warehouse.id)
    )


def list_inventory(org_id: str, *, warehouse_id: str | None = None, product_id: str | None = None) -> list[dict]:
    q = _detail_query(org_id)
    if warehouse_id:
        q = q.filter(Inventory.warehouse_id == warehouse_id)
    if product_id:
        q = q.filter(Inventory.product_id == product_id)
    rows = q.order_by(Product.name.asc(), Warehouse.name.asc()).all()
    return [r.to_detail_dict() for r in rows]


def get_product_summary(org_id: str, product_id: str) -> dict:
    """Totals across warehouses plus a per-warehouse breakdown."""
    product = _require_product(org_id, product_id)
    rows = (
        _detail_query(org_id)
        .filter(Inventory.product_id == product.id)
        .order_by(Warehouse.name.asc())
        .all()
    )

    total = sum(r.quantity for r in rows)
    reserved = sum(r.reserved_quantity for r in rows)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "product_sku": product.sku,
        "total_quantity": total,
        "total_reserved": reserved,
        "total_available": total - reserved,
        "warehouse_count": len(rows),
        "warehouses": [
            {
                "warehouse_id": r.warehouse_id,
                "warehouse_name": r.warehouse.name,
                "quantity": r.quantity,
                "reserved_quantity": r.reserved_quantity,
                "available_quantity": r.available_quantity,
            }
            for r in rows
        ],
    }


def list_low_stock(org_id: str, *, limit: int | None = None) -> list[dict]:
    """Rows at or below their product's low_stock_threshold, lowest quantity first."""
    q = (
        _detail_query(org_id)
        .filter(Product.low_stock_threshold.isnot(None))
        .filter(Product.status == "active")
        .filter(Inventory.quantity <= Product.low_stock_threshold)
        .order_by(Inventory.quantity.asc(), Product.name.asc())
    )
    if limit:
        q = q.limit(limit)
    return [r.to_detail_dict() for r in q.all()]


# Movements

def list_movements(
    org_id: str,
    *,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    movement_type: str | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int | None = None,
) -> list[dict]:
    q = scoped(StockMovement, org_id)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    if warehouse_id:
        q = q.filter(or_(
            StockMovement.from_warehouse_id == warehouse_id,
            StockMovement.to_warehouse_id == warehouse_id,
        ))
    if movement_type:
        q = q.filter(StockMovement.movement_type == movement_type)
    if status:
        q = q.filter(StockMovement.status == status)
    if start_date is not None:
        q = q.filter(StockMovement.created_at >= start_date)
    if end_date is not None:
        q = q.filter(StockMovement.created_at <= end_date)

    q = q.order_by(StockMovement.created_at.desc(), StockMovement.id.asc())
    if limit:
        q = q.limit(limit)
    return [m.to_detail_dict() for m in q.all()]


def recent_movements(org_id: str, *, limit: int = 10) -> list[dict]:
    return list_movements(org_id, limit=max(1, min(limit, 100)))


def create_movement(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    """
    Log a manual movement. It starts 'pending' and does not change
    inventory quantities.
    """
    _require_product(org_id, patch["product_id"])
    from_id = patch.get("from_warehouse_id")
    to_id = patch.get("to_warehouse_id")
    if from_id:
        _require_warehouse(org_id, from_id)
    if to_id:
        _require_warehouse(org_id, to_id)

    if patch["movement_type"] == "transfer":
        if not from_id or not to_id:
            raise ValidationError("Transfers need both from_warehouse_id and to_warehouse_id")
        if from_id == to_id:
            raise ValidationError("Cannot transfer to the same warehouse")
    elif not from_id and not to_id:
        raise ValidationError("Either from_warehouse_id or to_warehouse_id must be provided")

    movement = StockMovement(
        organization_id=org_id,
        status="pending",
        created_by_user_id=user_id,
        created_by_name=user_name,
        **patch,
    )
    db.session.add(movement)
    db.session.commit()
    return movement.to_detail_dict()


def cancel_movement(*, org_id: str, movement_id: str, user_id: str) -> dict:
    m = get_owned_or_404(StockMovement, movement_id, org_id, label="Stock movement")
    if m.status != "pending":
        raise ConflictError("Only pending movements can be cancelled")
    m.status = "cancelled"
    m.cancelled_at = utcnow()
    m.cancelled_by_user_id = user_id
    db.session.commit()
    return m.to_detail_dict()


# Export rows

INVENTORY_EXPORT_COLUMNS = [
    "Product", "SKU", "Warehouse", "Quantity", "Reserved", "Available", "Low Stock Threshold", "Updated",
]

MOVEMENT_EXPORT_COLUMNS = [
    "Date", "Type", "Product", "SKU", "Quantity", "From", "To", "Status", "Reason", "Reference", "Created By",
]


def inventory_export_rows(org_id: str, *, warehouse_id: str | None = None) -> list[dict]:
    return [
        {
            "Product": r["product_name"],
            "SKU": r["product_sku"],
            "Warehouse": r["warehouse_name"],
            "Quantity": r["quantity"],
            "Reserved": r["reserved_quantity"],
            "Available": r["available_quantity"],
            "Low Stock Threshold": r["low_stock_threshold"],
            "Updated": r["updated_at"],
        }
        for r in list_inventory(org_id, warehouse_id=warehouse_id)
    ]


def movement_export_rows(org_id: str, **filters) -> list[dict]:
    return [
        {
            "Date": m["created_at"],
            "Type": m["movement_type"],
            "Product": m["product_name"],
            "SKU": m["product_sku"],
            "Quantity": m["quantity"],
            "From": m["from_warehouse_name"],
            "To": m["to_warehouse_name"],
            "Status": m["status"],
            "Reason": m["reason"],
            "Reference": m["reference_number"],
            "Created By": m["created_by_name"],
        }
        for m in list_movements(org_id, **filters)
    ]

