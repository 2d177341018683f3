from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import TenantOwnedMixin


WAREHOUSE_TYPES = {"office", "vehicle", "other"}
WAREHOUSE_STATUSES = {"active", "inactive"}


class Warehouse(TenantOwnedMixin, db.Model):
    """
    A stocking location: an office, a service vehicle, or anything else that
    holds inventory.

    MULTI-TENANT: At most one warehouse per organization carries is_default.
    The service layer clears the flag on siblings when it is set.
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        db.Index("ix_warehouses_org_name", "organization_id", "name"),
    )

    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active")

    address = db.Column(db.String(200), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state_province = db.Column(db.String(100), nullable=False)
    postal_code = db.Column(db.String(20), nullable=False)
    country = db.Column(db.String(100), nullable=False)

    notes = db.Column(db.String(500), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} org={self.organization_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "address": self.address,
            "city": self.city,
            "state_province": self.state_province,
            "postal_code": self.postal_code,
            "country": self.country,
            "notes": self.notes,
            "is_default": self.is_default,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
