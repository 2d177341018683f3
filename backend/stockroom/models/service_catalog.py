from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import TenantOwnedMixin, decimal_or_none


SERVICE_STATUSES = {"active", "inactive"}
RATE_TYPES = {"hourly", "fixed", "custom"}


class ServiceCategory(TenantOwnedMixin, db.Model):
    """Grouping for billable services. Names are unique within an organization."""
    __tablename__ = "service_categories"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_service_categories_org_name"),
    )

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(16), nullable=True)
    icon = db.Column(db.String(50), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Service(TenantOwnedMixin, db.Model):
    """
    A billable service offered on quotes.

    category is the legacy free-text label; service_category_id links a
    ServiceCategory. Either may be set.
    """
    __tablename__ = "services"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_services_org_name"),
        db.Index("ix_services_org_status", "organization_id", "status"),
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    service_category_id = db.Column(
        db.String(36), db.ForeignKey("service_categories.id"), nullable=True, index=True,
    )

    rate = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    rate_type = db.Column(db.String(16), nullable=False, default="fixed")
    unit = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    service_category = db.relationship("ServiceCategory", backref=db.backref("services", lazy=True))

    def __repr__(self) -> str:
        return f"<Service id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "service_category_id": self.service_category_id,
            "service_category": self.service_category.to_dict() if self.service_category else None,
            "rate": decimal_or_none(self.rate),
            "rate_type": self.rate_type,
            "unit": self.unit,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
