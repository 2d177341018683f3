"""
Quotes: numbering, line items, totals, sending and the client-facing link.

Quote lifecycle:
- draft -> sent (send_quote creates an access link) -> viewed (client
  opens the link) -> approved | declined. Team members may also move a
  quote to expired or converted.
- Product lines with a warehouse hold a reservation on that warehouse's
  stock while the quote is open (sent or viewed). Declining, expiring or
  deleting an open quote, or moving it back to draft, releases them.
- Reservations go through inventory_service, which commits on its own.
  The quote's own changes are committed before each reservation call so a
  failed reservation never rolls them back.

Totals:
- line subtotal = quantity * unit_price, less the line discount
  (percentage of that amount, or a fixed amount), never below zero
- quote discount applies to the sum of line subtotals; tax applies to
  what remains; total = discounted subtotal + tax
- every amount is rounded half-up to cents
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ..extensions import db
from ..models import (
    Client,
    Company,
    Product,
    Quote,
    QuoteAccessToken,
    QuoteComment,
    QuoteEvent,
    QuoteItem,
    Service,
    Warehouse,
)
from ..models.quotes import OPEN_STATUSES
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError
from .inventory_service import InsufficientStockError, release_reservation, reserve_inventory
from .tenant_service import NotFoundError, get_owned, get_owned_or_404, scoped

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEFAULT_VALIDITY_DAYS = 30
ACCESS_LINK_DAYS = 90
COMMENT_PREVIEW_CHARS = 100
# Moving an open quote into one of these gives its stock back
RELEASING_STATUSES = {"draft", "declined", "expired"}


class QuotePermissionError(PermissionError):
    """403: the caller may not change this quote."""


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP)


def _discounted(amount: Decimal, discount_type: str | None, discount_value) -> Decimal:
    value = Decimal(discount_value or 0)
    if discount_type == "percentage":
        amount -= amount * value / 100
    elif discount_type == "fixed":
        amount -= value
    return max(_money(amount), Decimal("0.00"))


def recalculate_totals(quote: Quote) -> None:
    """Recompute line subtotals and quote totals in place. Caller commits."""
    subtotal = Decimal("0.00")
    for item in quote.items:
        item.subtotal = _discounted(
            Decimal(item.quantity or 0) * Decimal(item.unit_price or 0),
            item.discount_type,
            item.discount_value,
        )
        subtotal += item.subtotal

    discounted = _discounted(subtotal, quote.discount_type, quote.discount_value)
    tax = _money(discounted * Decimal(quote.tax_rate or 0) / 100)

    quote.subtotal = _money(subtotal)
    quote.discount_amount = _money(subtotal - discounted)
    quote.tax_amount = tax
    quote.total = _money(discounted + tax)


def next_quote_number(org_id: str, today: date | None = None) -> str:
    """Q-<year>-<4-digit sequence>, restarting each year per organization."""
    year = (today or utcnow().date()).year
    prefix = f"Q-{year}-"
    numbers = (
        scoped(Quote, org_id)
        .filter(Quote.quote_number.like(f"{prefix}%"))
        .with_entities(Quote.quote_number)
        .all()
    )
    highest = 0
    for (number,) in numbers:
        tail = number[len(prefix):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{prefix}{highest + 1:04d}"


def _record_event(
    quote: Quote,
    event_type: str,
    *,
    user_id: str | None,
    user_name: str | None,
    user_type: str = "team",
    metadata: dict | None = None,
) -> None:
    db.session.add(QuoteEvent(
        organization_id=quote.organization_id,
        quote_id=quote.id,
        event_type=event_type,
        user_id=user_id,
        user_type=user_type,
        user_name=user_name,
        event_metadata=metadata,
    ))


def _require_quote(org_id: str, quote_id: str) -> Quote:
    return get_owned_or_404(Quote, quote_id, org_id, label="Quote")


def _check_can_edit(quote: Quote, user_id: str, is_admin: bool) -> None:
    if is_admin or user_id in {quote.created_by_user_id, quote.assigned_to_user_id}:
        return
    raise QuotePermissionError("You don't have permission to edit this quote")


def _require_client(org_id: str, client_id: str | None) -> Client:
    client = get_owned(Client, client_id, org_id)
    if client is None:
        raise ValidationError("Client not found")
    return client


def _require_company(org_id: str, company_id: str | None) -> None:
    if company_id and get_owned(Company, company_id, org_id) is None:
        raise ValidationError("Company not found")


# Reservations

def _reserve_items(quote: Quote) -> None:
    for item in quote.items:
        if item.item_type != "product" or not item.product_id or not item.warehouse_id:
            continue
        needed = int(item.quantity) - item.reserved_quantity
        if needed <= 0:
            continue
        try:
            reserve_inventory(
                org_id=quote.organization_id,
                product_id=item.product_id,
                warehouse_id=item.warehouse_id,
                quantity=needed,
                reference_number=quote.quote_number,
            )
        except (InsufficientStockError, NotFoundError) as e:
            logger.warning("Could not reserve %s for quote %s line %s: %s", needed, quote.id, item.id, e)
            continue
        item.reserved_quantity += needed
        db.session.commit()


def _release_items(quote: Quote) -> None:
    for item in quote.items:
        if item.reserved_quantity <= 0:
            continue
        try:
            release_reservation(
                org_id=quote.organization_id,
                product_id=item.product_id,
                warehouse_id=item.warehouse_id,
                quantity=item.reserved_quantity,
            )
        except (InsufficientStockError, NotFoundError) as e:
            logger.warning("Releasing quote %s line %s found less reserved than expected: %s", quote.id, item.id, e)
        item.reserved_quantity = 0
        db.session.commit()


# Serialization

def _quote_with_relations(quote: Quote, *, detail: bool = False) -> dict:
    data = quote.to_dict()
    data["client"] = quote.client.summary() if quote.client else None
    data["items"] = [i.to_dict(include_relations=detail) for i in quote.items]
    if detail:
        events = sorted(quote.events, key=lambda e: e.created_at, reverse=True)
        comments = sorted(quote.comments, key=lambda c: c.created_at, reverse=True)
        data["events"] = [e.to_dict() for e in events]
        data["comments"] = [c.to_dict() for c in comments]
    return data


# Quotes

def list_quotes(
    org_id: str,
    *,
    status: str | None = None,
    client_id: str | None = None,
    assigned_to: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    q = scoped(Quote, org_id)
    if status:
        q = q.filter(Quote.status == status)
    if client_id:
        q = q.filter(Quote.client_id == client_id)
    if assigned_to:
        q = q.filter(Quote.assigned_to_user_id == assigned_to)
    count = q.count()
    rows = q.order_by(Quote.created_at.desc()).offset(offset).limit(limit).all()
    return {"data": [_quote_with_relations(r) for r in rows], "count": count, "limit": limit, "offset": offset}


def get_quote(org_id: str, quote_id: str) -> dict:
    return _quote_with_relations(_require_quote(org_id, quote_id), detail=True)


def create_quote(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _require_client(org_id, patch.get("client_id"))
    _require_company(org_id, patch.get("company_id"))

    today = utcnow().date()
    patch.setdefault("valid_from", today)
    patch.setdefault("valid_until", today + timedelta(days=DEFAULT_VALIDITY_DAYS))
    if not patch.get("assigned_to_user_id"):
        patch["assigned_to_user_id"] = user_id
        patch["assigned_to_name"] = patch.get("assigned_to_name") or user_name

    quote = Quote(
        organization_id=org_id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        quote_number=next_quote_number(org_id, today),
        **patch,
    )
    db.session.add(quote)
    db.session.flush()
    recalculate_totals(quote)
    _record_event(quote, "created", user_id=user_id, user_name=user_name)
    db.session.commit()
    return _quote_with_relations(quote)


def update_quote(
    *,
    org_id: str,
    quote_id: str,
    user_id: str,
    user_name: str,
    is_admin: bool,
    patch: dict,
) -> dict:
    quote = _require_quote(org_id, quote_id)
    _check_can_edit(quote, user_id, is_admin)
    if "client_id" in patch:
        _require_client(org_id, patch["client_id"])
    if "company_id" in patch:
        _require_company(org_id, patch["company_id"])

    old_status = quote.status
    for k, v in patch.items():
        setattr(quote, k, v)
    recalculate_totals(quote)

    _record_event(quote, "updated", user_id=user_id, user_name=user_name, metadata={"changes": sorted(patch)})
    new_status = patch.get("status")
    if new_status and new_status != old_status:
        _record_event(quote, new_status, user_id=user_id, user_name=user_name)
    db.session.commit()

    if old_status in OPEN_STATUSES and quote.status in RELEASING_STATUSES:
        _release_items(quote)
    elif old_status not in OPEN_STATUSES and quote.status in OPEN_STATUSES:
        _reserve_items(quote)
    return _quote_with_relations(quote)


def delete_quote(*, org_id: str, quote_id: str) -> None:
    quote = _require_quote(org_id, quote_id)
    if quote.status in OPEN_STATUSES:
        _release_items(quote)
    db.session.delete(quote)
    db.session.commit()


# Items

def list_items(org_id: str, quote_id: str) -> list[dict]:
    quote = _require_quote(org_id, quote_id)
    return [i.to_dict(include_relations=True) for i in quote.items]


def add_item(
    *,
    org_id: str,
    quote_id: str,
    user_id: str,
    is_admin: bool,
    patch: dict,
) -> dict:
    """
    Add a line. Product and service lines copy name, description, SKU and
    price from the catalog unless the request supplies them.
    """
    quote = _require_quote(org_id, quote_id)
    _check_can_edit(quote, user_id, is_admin)

    item_type = patch["item_type"]
    if item_type == "product":
        if not patch.get("product_id"):
            raise ValidationError("Product ID is required for product items")
        product = get_owned(Product, patch["product_id"], org_id)
        if product is None:
            raise ValidationError("Product not found")
        patch.setdefault("name", product.name)
        patch.setdefault("description", product.description)
        patch.setdefault("sku", product.sku)
        if patch.get("unit_price") is None:
            patch["unit_price"] = product.price or 0
        if patch.get("quantity") is not None and patch["quantity"] != int(patch["quantity"]):
            raise ValidationError("Product quantity must be a whole number")
    elif item_type == "service":
        if not patch.get("service_id"):
            raise ValidationError("Service ID is required for service items")
        service = get_owned(Service, patch["service_id"], org_id)
        if service is None:
            raise ValidationError("Service not found")
        patch.setdefault("name", service.name)
        patch.setdefault("description", service.description)
        if patch.get("unit_price") is None:
            patch["unit_price"] = service.rate
    if not patch.get("name"):
        raise ValidationError("Item name is required")

    if patch.get("quantity") is not None and patch["quantity"] <= 0:
        raise ValidationError("Quantity must be a positive number")
    if patch.get("warehouse_id") and get_owned(Warehouse, patch["warehouse_id"], org_id) is None:
        raise ValidationError("Warehouse not found")
    if patch.get("quantity") is None:
        patch["quantity"] = Decimal("1")
    if patch.get("unit_price") is None:
        patch["unit_price"] = Decimal("0")

    item = QuoteItem(organization_id=org_id, quote_id=quote.id, **patch)
    quote.items.append(item)
    recalculate_totals(quote)
    db.session.commit()

    if quote.status in OPEN_STATUSES:
        _reserve_items(quote)
    return item.to_dict(include_relations=True)


# Sending

def send_quote(*, org_id: str, quote_id: str, user_id: str, user_name: str, app_url: str) -> dict:
    """Open the quote to its client: create an access link, mark it sent and reserve stock."""
    quote = _require_quote(org_id, quote_id)
    if not quote.items:
        raise ValidationError("Cannot send a quote without items")
    if not (quote.client and quote.client.email):
        raise ValidationError("Client must have an email address")

    now = utcnow()
    link = QuoteAccessToken(
        organization_id=org_id,
        quote_id=quote.id,
        expires_at=now + timedelta(days=ACCESS_LINK_DAYS),
    )
    db.session.add(link)
    quote.status = "sent"
    quote.sent_at = now
    db.session.flush()
    _record_event(
        quote, "sent",
        user_id=user_id,
        user_name=user_name,
        metadata={"recipient": quote.client.email, "token": link.token},
    )
    db.session.commit()

    _reserve_items(quote)
    logger.info("Quote %s sent to %s", quote.quote_number, quote.client.email)
    return {
        "success": True,
        "access_url": f"{app_url.rstrip('/')}/quote/{link.token}",
        "token": link.token,
        "expires_at": to_utc_z(link.expires_at),
        "message": "Quote sent successfully",
    }


# Comments

def list_comments(org_id: str, quote_id: str) -> list[dict]:
    quote = _require_quote(org_id, quote_id)
    return [c.to_dict() for c in sorted(quote.comments, key=lambda c: c.created_at, reverse=True)]


def _clean_comment(text) -> str:
    comment = text.strip() if isinstance(text, str) else ""
    if not comment:
        raise ValidationError("Comment cannot be empty")
    return comment


def add_comment(*, org_id: str, quote_id: str, user_id: str, user_name: str, text, is_internal: bool = True) -> dict:
    quote = _require_quote(org_id, quote_id)
    comment = QuoteComment(
        organization_id=org_id,
        quote_id=quote.id,
        user_id=user_id,
        user_type="team",
        user_name=user_name,
        comment=_clean_comment(text),
        is_internal=is_internal,
    )
    db.session.add(comment)
    _record_event(
        quote, "commented",
        user_id=user_id,
        user_name=user_name,
        metadata={"comment_preview": comment.comment[:COMMENT_PREVIEW_CHARS], "is_internal": is_internal},
    )
    db.session.commit()
    return comment.to_dict()


# Client-facing link

def _open_link(token: str) -> QuoteAccessToken:
    link = db.session.query(QuoteAccessToken).filter_by(token=token).first()
    if link is None:
        raise NotFoundError("Invalid or expired link")
    if link.expires_at < utcnow():
        raise NotFoundError("This link has expired")
    return link


def _client_name(quote: Quote) -> str:
    return quote.client.name if quote.client and quote.client.name else "Client"


def _client_comment(quote: Quote, text: str) -> None:
    db.session.add(QuoteComment(
        organization_id=quote.organization_id,
        quote_id=quote.id,
        user_id=None,
        user_type="client",
        user_name=_client_name(quote),
        comment=text,
        is_internal=False,
    ))


def public_quote(token: str, organization: dict) -> dict:
    """What the client sees: no internal notes, no internal comments."""
    quote = _open_link(token).quote
    data = quote.to_dict()
    fields = (
        "id", "quote_number", "status", "created_at", "valid_from", "valid_until",
        "subtotal", "discount_type", "discount_value", "discount_amount",
        "tax_rate", "tax_amount", "total", "terms_and_conditions", "notes",
    )
    response = {k: data[k] for k in fields}
    client = quote.client
    response["client"] = {"name": client.name, "email": client.email, "company": client.company}
    response["items"] = [
        {
            "id": i.id,
            "type": i.item_type,
            "name": i.name,
            "description": i.description,
            "quantity": float(i.quantity),
            "unit_price": float(i.unit_price),
            "discount_type": i.discount_type,
            "discount_value": float(i.discount_value or 0),
            "subtotal": float(i.subtotal),
        }
        for i in quote.items
    ]
    response["comments"] = [
        c.to_dict() for c in sorted(quote.comments, key=lambda c: c.created_at) if not c.is_internal
    ]
    response["organization"] = organization
    return response


def record_view(token: str) -> None:
    link = _open_link(token)
    quote = link.quote
    if quote.status == "sent":
        quote.status = "viewed"
        _record_event(quote, "viewed", user_id=None, user_type="client", user_name=_client_name(quote))
    link.last_accessed_at = utcnow()
    link.access_count = (link.access_count or 0) + 1
    db.session.commit()


def approve(token: str, comment: str | None = None) -> dict:
    quote = _open_link(token).quote
    if quote.status not in OPEN_STATUSES:
        raise ValidationError("This quote cannot be approved in its current state")

    text = comment.strip() if isinstance(comment, str) else ""
    quote.status = "approved"
    quote.approved_at = utcnow()
    _record_event(
        quote, "approved",
        user_id=None,
        user_type="client",
        user_name=_client_name(quote),
        metadata={"comment": text} if text else None,
    )
    if text:
        _client_comment(quote, text)
    db.session.commit()
    return {"success": True, "message": "Quote approved successfully"}


def decline(token: str, reason) -> dict:
    quote = _open_link(token).quote
    text = reason.strip() if isinstance(reason, str) else ""
    if not text:
        raise ValidationError("A reason for declining is required")
    if quote.status not in OPEN_STATUSES:
        raise ValidationError("This quote cannot be declined in its current state")

    quote.status = "declined"
    quote.declined_at = utcnow()
    _record_event(
        quote, "declined",
        user_id=None,
        user_type="client",
        user_name=_client_name(quote),
        metadata={"reason": text},
    )
    _client_comment(quote, f"Declined: {text}")
    db.session.commit()

    _release_items(quote)
    return {"success": True, "message": "Quote declined"}


def client_comment(token: str, text) -> dict:
    quote = _open_link(token).quote
    comment = _clean_comment(text)
    _client_comment(quote, comment)
    _record_event(
        quote, "commented",
        user_id=None,
        user_type="client",
        user_name=_client_name(quote),
        metadata={"comment_preview": comment[:COMMENT_PREVIEW_CHARS]},
    )
    db.session.commit()
    return {"success": True, "message": "Comment added"}
