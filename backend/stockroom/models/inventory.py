from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import TenantOwnedMixin, decimal_or_none, new_id


MOVEMENT_TYPES = {"receipt", "sale", "transfer", "adjustment", "return", "damage", "production"}
ADJUSTMENT_MOVEMENT_TYPES = MOVEMENT_TYPES - {"transfer"}
MOVEMENT_STATUSES = {"pending", "completed", "cancelled"}


class Inventory(TenantOwnedMixin, db.Model):
    """
    Stock of one product in one warehouse.

    Invariants (enforced by inventory_service):
    - 0 <= reserved_quantity <= quantity
    - available = quantity - reserved_quantity
    - every change to quantity is accompanied by a StockMovement row written
      in the same DB transaction

    version_id gives optimistic locking on databases that ignore
    SELECT ... FOR UPDATE (SQLite).
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_nonnegative"),
        db.CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved_nonnegative"),
        db.Index("ix_inventory_org_warehouse", "organization_id", "warehouse_id"),
    )

    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.String(36), db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    location_details = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    since_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("inventory_rows", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("inventory_rows", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_quantity(self) -> int:
        return (self.quantity or 0) - (self.reserved_quantity or 0)

    def __repr__(self) -> str:
        return (
            f"<Inventory product_id={self.product_id} warehouse_id={self.warehouse_id} "
            f"qty={self.quantity} reserved={self.reserved_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity": self.quantity,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
            "location_details": self.location_details,
            "notes": self.notes,
            "since_date": to_utc_z(self.since_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_detail_dict(self) -> dict:
        """Flattened row joining product and warehouse columns (inventory detail view)."""
        product = self.product
        warehouse = self.warehouse
        return {
            **self.to_dict(),
            "product_name": product.name,
            "product_sku": product.sku,
            "product_price": decimal_or_none(product.price),
            "product_cost": decimal_or_none(product.cost),
            "category_id": product.category_id,
            "subcategory_id": product.subcategory_id,
            "low_stock_threshold": product.low_stock_threshold,
            "warehouse_name": warehouse.name,
            "warehouse_type": warehouse.type,
            "warehouse_status": warehouse.status,
            "created_by_name": self.created_by_name,
        }


class StockMovement(db.Model):
    """
    Audit trail of stock changes.

    quantity is always a positive magnitude; direction is carried by the
    warehouse columns:
    - increase into a warehouse: to_warehouse_id set
    - decrease out of a warehouse: from_warehouse_id set
    - transfer: both set

    Movements written by adjust/transfer are 'completed'. Manually created
    movements start 'pending' and may be cancelled while pending.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_org_created", "organization_id", "created_at"),
        db.Index("ix_stock_movements_org_product", "organization_id", "product_id"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    from_warehouse_id = db.Column(db.String(36), db.ForeignKey("warehouses.id"), nullable=True, index=True)
    to_warehouse_id = db.Column(db.String(36), db.ForeignKey("warehouses.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    reference_number = db.Column(db.String(100), nullable=True)
    reference_type = db.Column(db.String(50), nullable=True)

    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    total_cost = db.Column(db.Numeric(14, 2), nullable=True)

    created_by_user_id = db.Column(db.String(64), nullable=False)
    created_by_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.String(64), nullable=True)

    product = db.relationship("Product")
    from_warehouse = db.relationship("Warehouse", foreign_keys=[from_warehouse_id])
    to_warehouse = db.relationship("Warehouse", foreign_keys=[to_warehouse_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "from_warehouse_id": self.from_warehouse_id,
            "to_warehouse_id": self.to_warehouse_id,
            "status": self.status,
            "reason": self.reason,
            "notes": self.notes,
            "reference_number": self.reference_number,
            "reference_type": self.reference_type,
            "unit_cost": decimal_or_none(self.unit_cost),
            "total_cost": decimal_or_none(self.total_cost),
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancelled_by_user_id": self.cancelled_by_user_id,
        }

    def to_detail_dict(self) -> dict:
        """Movement plus product and warehouse names (stock movement detail view)."""
        return {
            **self.to_dict(),
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "from_warehouse_name": self.from_warehouse.name if self.from_warehouse else None,
            "to_warehouse_name": self.to_warehouse.name if self.to_warehouse else None,
        }
