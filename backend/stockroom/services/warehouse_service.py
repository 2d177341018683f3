"""
Warehouse service.

MULTI-TENANT: every function takes org_id and only touches that
organization's rows.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Inventory, StockMovement, Warehouse
from ..validation import ConflictError
from .tenant_service import get_owned_or_404, scoped


def list_warehouses(org_id: str, *, status: str | None = None) -> list[dict]:
    q = scoped(Warehouse, org_id)
    if status:
        q = q.filter(Warehouse.status == status)
    rows = q.order_by(Warehouse.is_default.desc(), Warehouse.name.asc()).all()
    return [w.to_dict() for w in rows]


def get_warehouse(org_id: str, warehouse_id: str) -> dict:
    return get_owned_or_404(Warehouse, warehouse_id, org_id, label="Warehouse").to_dict()


def _clear_other_defaults(org_id: str, keep_id: str | None) -> None:
    q = scoped(Warehouse, org_id).filter(Warehouse.is_default.is_(True))
    if keep_id:
        q = q.filter(Warehouse.id != keep_id)
    for w in q.all():
        w.is_default = False


def create_warehouse(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    w = Warehouse(
        organization_id=org_id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        **patch,
    )
    db.session.add(w)
    db.session.flush()
    if w.is_default:
        _clear_other_defaults(org_id, w.id)
    db.session.commit()
    return w.to_dict()


def update_warehouse(*, org_id: str, warehouse_id: str, patch: dict) -> dict:
    w = get_owned_or_404(Warehouse, warehouse_id, org_id, label="Warehouse")
    for k, v in patch.items():
        setattr(w, k, v)
    if patch.get("is_default"):
        _clear_other_defaults(org_id, w.id)
    db.session.commit()
    return w.to_dict()


def delete_warehouse(*, org_id: str, warehouse_id: str) -> dict:
    """
    Delete rules:
    - stock on hand -> ConflictError
    - movement history -> soft delete (status inactive), history stays intact
    - otherwise hard delete along with its empty inventory rows
    """
    w = get_owned_or_404(Warehouse, warehouse_id, org_id, label="Warehouse")

    on_hand = (
        db.session.query(func.coalesce(func.sum(Inventory.quantity), 0))
        .filter(Inventory.warehouse_id == w.id)
        .scalar()
    )
    if on_hand > 0:
        raise ConflictError("Cannot delete warehouse with existing inventory")

    has_history = (
        db.session.query(StockMovement.id)
        .filter(or_(StockMovement.from_warehouse_id == w.id, StockMovement.to_warehouse_id == w.id))
        .first()
        is not None
    )
    if has_history:
        w.status = "inactive"
        w.is_default = False
        db.session.commit()
        return {"deleted": False, "deactivated": True, "warehouse": w.to_dict()}

    db.session.query(Inventory).filter(Inventory.warehouse_id == w.id).delete(synchronize_session=False)
    db.session.delete(w)
    db.session.commit()
    return {"deleted": True, "deactivated": False}
