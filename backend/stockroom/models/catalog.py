from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import TenantOwnedMixin, decimal_or_none, new_id


PRODUCT_STATUSES = {"active", "inactive", "discontinued"}
CATEGORY_STATUSES = {"active", "inactive"}
FEATURE_INPUT_TYPES = {"text", "number", "select", "boolean", "date"}


class Category(TenantOwnedMixin, db.Model):
    """Top level of the product taxonomy. Names are unique within an organization."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_categories_org_name"),
    )

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    display_order = db.Column(db.Integer, nullable=False, default=0)

    subcategories = db.relationship(
        "Subcategory",
        back_populates="category",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "display_order": self.display_order,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Subcategory(TenantOwnedMixin, db.Model):
    """Second level of the taxonomy. Names are unique within their category."""
    __tablename__ = "subcategories"
    __table_args__ = (
        db.UniqueConstraint("category_id", "name", name="uq_subcategories_category_name"),
    )

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    display_order = db.Column(db.Integer, nullable=False, default=0)

    category = db.relationship("Category", back_populates="subcategories")

    def __repr__(self) -> str:
        return f"<Subcategory id={self.id} name={self.name!r} category_id={self.category_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "display_order": self.display_order,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(TenantOwnedMixin, db.Model):
    """
    Product master data.

    MULTI-TENANT: SKUs are unique within an organization.

    Quantities are NOT stored here; they live on Inventory rows, one per
    (product, warehouse). low_stock_threshold is compared against each
    warehouse's quantity by the low-stock report.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_name", "organization_id", "name"),
        db.Index("ix_products_org_status", "organization_id", "status"),
    )

    sku = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)
    subcategory_id = db.Column(db.String(36), db.ForeignKey("subcategories.id"), nullable=True, index=True)

    cost = db.Column(db.Numeric(12, 2), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=True)

    photo_urls = db.Column(db.JSON, nullable=False, default=list)
    link = db.Column(db.String(2048), nullable=True)
    serial_number = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    category = db.relationship("Category", foreign_keys=[category_id])
    subcategory = db.relationship("Subcategory", foreign_keys=[subcategory_id])
    features = db.relationship(
        "ProductFeature",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductFeature.name",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self, *, include_relations: bool = False) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "cost": decimal_or_none(self.cost),
            "price": decimal_or_none(self.price),
            "photo_urls": list(self.photo_urls or []),
            "link": self.link,
            "serial_number": self.serial_number,
            "status": self.status,
            "low_stock_threshold": self.low_stock_threshold,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_relations:
            data["category"] = self.category.to_dict() if self.category else None
            data["subcategory"] = self.subcategory.to_dict() if self.subcategory else None
            data["features"] = [f.to_dict() for f in self.features]
        return data


class PriceHistory(db.Model):
    """Append-only record of price/cost changes on a product."""
    __tablename__ = "price_history"
    __table_args__ = (
        db.Index("ix_price_history_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    change_type = db.Column(db.String(16), nullable=False)  # price | cost | both
    old_price = db.Column(db.Numeric(12, 2), nullable=True)
    new_price = db.Column(db.Numeric(12, 2), nullable=True)
    old_cost = db.Column(db.Numeric(12, 2), nullable=True)
    new_cost = db.Column(db.Numeric(12, 2), nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    effective_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_by_user_id = db.Column(db.String(64), nullable=False)
    created_by_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "change_type": self.change_type,
            "old_price": decimal_or_none(self.old_price),
            "new_price": decimal_or_none(self.new_price),
            "old_cost": decimal_or_none(self.old_cost),
            "new_cost": decimal_or_none(self.new_cost),
            "reason": self.reason,
            "notes": self.notes,
            "effective_date": to_utc_z(self.effective_date),
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
        }


class FeatureDefinition(TenantOwnedMixin, db.Model):
    """
    A typed attribute that products in a category (or subcategory) carry,
    e.g. "Voltage" (number, unit V) or "Finish" (select: matte, gloss).
    """
    __tablename__ = "feature_definitions"
    __table_args__ = (
        db.Index("ix_feature_definitions_org_category", "organization_id", "category_id"),
        db.Index("ix_feature_definitions_org_subcategory", "organization_id", "subcategory_id"),
    )

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id", ondelete="CASCADE"), nullable=True)
    subcategory_id = db.Column(db.String(36), db.ForeignKey("subcategories.id", ondelete="CASCADE"), nullable=True)

    name = db.Column(db.String(100), nullable=False)
    input_type = db.Column(db.String(16), nullable=False)
    options = db.Column(db.JSON, nullable=True)
    unit = db.Column(db.String(32), nullable=True)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "name": self.name,
            "input_type": self.input_type,
            "options": self.options,
            "unit": self.unit,
            "is_required": self.is_required,
            "display_order": self.display_order,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductFeature(db.Model):
    """A feature value on one product. is_custom marks values without a definition."""
    __tablename__ = "product_features"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_product_features_product_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    feature_definition_id = db.Column(
        db.String(36),
        db.ForeignKey("feature_definitions.id", ondelete="SET NULL"),
        nullable=True,
    )

    name = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Text, nullable=False)
    is_custom = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", back_populates="features")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "feature_definition_id": self.feature_definition_id,
            "name": self.name,
            "value": self.value,
            "is_custom": self.is_custom,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
