from __future__ import annotations

import secrets

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import TenantOwnedMixin, decimal_or_none, new_id


QUOTE_STATUSES = {"draft", "sent", "viewed", "approved", "declined", "expired", "converted"}
ITEM_TYPES = {"product", "service", "custom"}
DISCOUNT_TYPES = {"percentage", "fixed"}
# Quotes the client can still act on; product items hold stock while here
OPEN_STATUSES = {"sent", "viewed"}


def new_access_token() -> str:
    return secrets.token_urlsafe(32)


def _date(value):
    return value.isoformat() if value else None


class Quote(TenantOwnedMixin, db.Model):
    """
    A priced offer to a client.

    Totals (subtotal, discount_amount, tax_amount, total) are derived from
    the items by quote_service.recalculate_totals and never written by
    clients directly.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "quote_number", name="uq_quotes_org_number"),
        db.Index("ix_quotes_org_status", "organization_id", "status"),
        db.Index("ix_quotes_org_created", "organization_id", "created_at"),
    )

    quote_number = db.Column(db.String(32), nullable=False)
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id"), nullable=False, index=True)
    company_id = db.Column(db.String(36), db.ForeignKey("companies.id"), nullable=True, index=True)

    assigned_to_user_id = db.Column(db.String(64), nullable=True, index=True)
    assigned_to_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft")
    valid_from = db.Column(db.Date, nullable=True)
    valid_until = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    terms_and_conditions = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=True)

    client = db.relationship("Client")
    items = db.relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.display_order",
        lazy=True,
    )
    events = db.relationship("QuoteEvent", cascade="all, delete-orphan", lazy=True)
    comments = db.relationship("QuoteComment", cascade="all, delete-orphan", lazy=True)
    access_tokens = db.relationship(
        "QuoteAccessToken", back_populates="quote", cascade="all, delete-orphan", lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Quote id={self.id} number={self.quote_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "quote_number": self.quote_number,
            "client_id": self.client_id,
            "company_id": self.company_id,
            "assigned_to_user_id": self.assigned_to_user_id,
            "assigned_to_name": self.assigned_to_name,
            "status": self.status,
            "valid_from": _date(self.valid_from),
            "valid_until": _date(self.valid_until),
            "subtotal": decimal_or_none(self.subtotal),
            "discount_type": self.discount_type,
            "discount_value": decimal_or_none(self.discount_value),
            "discount_amount": decimal_or_none(self.discount_amount),
            "tax_rate": decimal_or_none(self.tax_rate),
            "tax_amount": decimal_or_none(self.tax_amount),
            "total": decimal_or_none(self.total),
            "terms_and_conditions": self.terms_and_conditions,
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "sent_at": to_utc_z(self.sent_at),
            "approved_at": to_utc_z(self.approved_at),
            "declined_at": to_utc_z(self.declined_at),
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class QuoteItem(db.Model):
    """
    One line on a quote.

    reserved_quantity is the stock this line currently holds in its
    warehouse; it is non-zero only for product lines on open quotes.
    """
    __tablename__ = "quote_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    quote_id = db.Column(db.String(36), db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=True, index=True)
    service_id = db.Column(db.String(36), db.ForeignKey("services.id"), nullable=True, index=True)
    warehouse_id = db.Column(db.String(36), db.ForeignKey("warehouses.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(50), nullable=True)

    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    quote = db.relationship("Quote", back_populates="items")
    product = db.relationship("Product")
    service = db.relationship("Service")
    warehouse = db.relationship("Warehouse")

    def to_dict(self, *, include_relations: bool = False) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "quote_id": self.quote_id,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "warehouse_id": self.warehouse_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "quantity": decimal_or_none(self.quantity),
            "unit_price": decimal_or_none(self.unit_price),
            "discount_type": self.discount_type,
            "discount_value": decimal_or_none(self.discount_value),
            "subtotal": decimal_or_none(self.subtotal),
            "display_order": self.display_order,
            "reserved_quantity": self.reserved_quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_relations:
            p, s, w = self.product, self.service, self.warehouse
            data["product"] = (
                {
                    "id": p.id, "name": p.name, "sku": p.sku,
                    "price": decimal_or_none(p.price), "photo_urls": list(p.photo_urls or []),
                }
                if p else None
            )
            data["service"] = (
                {
                    "id": s.id, "name": s.name, "rate": decimal_or_none(s.rate),
                    "rate_type": s.rate_type, "unit": s.unit,
                }
                if s else None
            )
            data["warehouse"] = {"id": w.id, "name": w.name} if w else None
        return data


class QuoteEvent(db.Model):
    """Append-only activity log on a quote. user_type is 'team' or 'client'."""
    __tablename__ = "quote_events"
    __table_args__ = (
        db.Index("ix_quote_events_quote_created", "quote_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    quote_id = db.Column(db.String(36), db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)

    event_type = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.String(64), nullable=True)
    user_type = db.Column(db.String(16), nullable=False, default="team")
    user_name = db.Column(db.String(255), nullable=True)
    event_metadata = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "event_type": self.event_type,
            "user_id": self.user_id,
            "user_type": self.user_type,
            "user_name": self.user_name,
            "event_metadata": self.event_metadata,
            "created_at": to_utc_z(self.created_at),
        }


class QuoteComment(db.Model):
    """A note on a quote. Internal comments are never shown on the public page."""
    __tablename__ = "quote_comments"
    __table_args__ = (
        db.Index("ix_quote_comments_quote_created", "quote_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    quote_id = db.Column(db.String(36), db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)

    user_id = db.Column(db.String(64), nullable=True)
    user_type = db.Column(db.String(16), nullable=False, default="team")
    user_name = db.Column(db.String(255), nullable=True)
    comment = db.Column(db.Text, nullable=False)
    is_internal = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "user_id": self.user_id,
            "user_type": self.user_type,
            "user_name": self.user_name,
            "comment": self.comment,
            "is_internal": self.is_internal,
            "created_at": to_utc_z(self.created_at),
        }


class QuoteAccessToken(db.Model):
    """Bearer link that lets a client view and answer one quote without signing in."""
    __tablename__ = "quote_access_tokens"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    quote_id = db.Column(db.String(36), db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)

    token = db.Column(db.String(64), nullable=False, unique=True, default=new_access_token)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_accessed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    access_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    quote = db.relationship("Quote", back_populates="access_tokens")
