"""
Products service.

MULTI-TENANT: products are scoped by organization_id; SKUs are unique per
organization. Quantities live on Inventory rows, never on Product.
"""
from __future__ import annotations

from typing import Callable

from sqlalchemy import func

from ..extensions import db
from ..models import Inventory, PriceHistory, Product, StockMovement
from ..validation import ConflictError, ValidationError
from .batch_service import MAX_BATCH_ITEMS, process_in_batches
from .category_service import resolve_taxonomy
from .storage_service import remove_product_objects
from .tenant_service import NotFoundError, get_owned_or_404, scoped


def _ensure_sku_free(org_id: str, sku: str, exclude_id: str | None = None) -> None:
    q = scoped(Product, org_id).filter(Product.sku == sku)
    if exclude_id:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A product with this SKU already exists")


def list_products(
    org_id: str,
    *,
    status: str | None = None,
    category_id: str | None = None,
    subcategory_id: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing, newest first, with optional pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = scoped(Product, org_id)
    if status:
        base_query = base_query.filter(Product.status == status)
    if category_id:
        base_query = base_query.filter(Product.category_id == category_id)
    if subcategory_id:
        base_query = base_query.filter(Product.subcategory_id == subcategory_id)
    base_query = base_query.order_by(Product.created_at.desc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict(include_relations=True) for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict(include_relations=True) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(org_id: str, product_id: str) -> dict:
    return get_owned_or_404(Product, product_id, org_id, label="Product").to_dict(include_relations=True)


def get_product_by_sku(org_id: str, sku: str) -> dict:
    p = scoped(Product, org_id).filter(Product.sku == sku).first()
    if p is None:
        raise NotFoundError("Product not found")
    return p.to_dict(include_relations=True)


def create_product(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    resolve_taxonomy(org_id, patch.get("category_id"), patch.get("subcategory_id"))
    _ensure_sku_free(org_id, patch["sku"])

    p = Product(
        organization_id=org_id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        **patch,
    )
    db.session.add(p)
    db.session.commit()
    return p.to_dict(include_relations=True)


def _record_price_change(p: Product, patch: dict, *, user_id: str, user_name: str) -> PriceHistory | None:
    price_changed = "price" in patch and patch["price"] != p.price
    cost_changed = "cost" in patch and patch["cost"] != p.cost
    if not price_changed and not cost_changed:
        return None

    if price_changed and cost_changed:
        change_type = "both"
    elif price_changed:
        change_type = "price"
    else:
        change_type = "cost"

    entry = PriceHistory(
        organization_id=p.organization_id,
        product_id=p.id,
        change_type=change_type,
        old_price=p.price,
        new_price=patch.get("price", p.price),
        old_cost=p.cost,
        new_cost=patch.get("cost", p.cost),
        created_by_user_id=user_id,
        created_by_name=user_name,
    )
    db.session.add(entry)
    return entry


def _apply_update(org_id: str, product_id: str, patch: dict, *, user_id: str, user_name: str) -> Product:
    p = get_owned_or_404(Product, product_id, org_id, label="Product")

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_free(org_id, patch["sku"], exclude_id=p.id)
    if "category_id" in patch or "subcategory_id" in patch:
        resolve_taxonomy(
            org_id,
            patch.get("category_id", p.category_id),
            patch.get("subcategory_id", p.subcategory_id),
        )

    _record_price_change(p, patch, user_id=user_id, user_name=user_name)
    for k, v in patch.items():
        setattr(p, k, v)
    return p


def update_product(*, org_id: str, product_id: str, patch: dict, user_id: str, user_name: str) -> dict:
    p = _apply_update(org_id, product_id, patch, user_id=user_id, user_name=user_name)
    db.session.commit()
    return p.to_dict(include_relations=True)


def update_low_stock_threshold(*, org_id: str, product_id: str, threshold: int) -> dict:
    p = get_owned_or_404(Product, product_id, org_id, label="Product")
    p.low_stock_threshold = threshold
    db.session.commit()
    return p.to_dict()


def delete_product(*, org_id: str, product_id: str) -> dict:
    """
    Delete rules:
    - stock on hand in any warehouse -> ConflictError
    - movement history -> soft delete (status discontinued)
    - otherwise hard delete with its empty inventory rows, price history
      and stored photos
    """
    p = get_owned_or_404(Product, product_id, org_id, label="Product")

    on_hand = (
        db.session.query(func.coalesce(func.sum(Inventory.quantity), 0))
        .filter(Inventory.product_id == p.id)
        .scalar()
    )
    if on_hand > 0:
        raise ConflictError(
            "Cannot delete product with existing inventory. Please adjust inventory to 0 first."
        )

    has_history = db.session.query(StockMovement.id).filter(StockMovement.product_id == p.id).first() is not None
    if has_history:
        p.status = "discontinued"
        db.session.commit()
        return {"deleted": False, "discontinued": True, "product": p.to_dict()}

    db.session.query(Inventory).filter(Inventory.product_id == p.id).delete(synchronize_session=False)
    db.session.query(PriceHistory).filter(PriceHistory.product_id == p.id).delete(synchronize_session=False)
    photos = list(p.photo_urls or [])
    db.session.delete(p)
    db.session.commit()
    remove_product_objects(photos)
    return {"deleted": True, "discontinued": False}


def list_price_history(org_id: str, product_id: str, *, limit: int = 100) -> list[dict]:
    p = get_owned_or_404(Product, product_id, org_id, label="Product")
    rows = (
        db.session.query(PriceHistory)
        .filter(PriceHistory.product_id == p.id)
        .order_by(PriceHistory.created_at.desc(), PriceHistory.id.asc())
        .limit(limit)
        .all()
    )
    return [r.to_dict() for r in rows]


def batch_update_products(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    items: list,
    validate: Callable[[dict], dict],
    chunk_size: int = 10,
) -> dict:
    """
    Apply [{"id", "updates"}] item by item; validate turns raw updates into a patch.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if len(items) > MAX_BATCH_ITEMS:
        raise ValidationError(f"Cannot process more than {MAX_BATCH_ITEMS} items at once")

    def _handle(item) -> dict:
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            raise ValidationError("Each item needs an id")
        patch = validate(item.get("updates") or {})
        p = _apply_update(org_id, item["id"], patch, user_id=user_id, user_name=user_name)
        db.session.commit()
        return p.to_dict()

    return process_in_batches(items, _handle, chunk_size=chunk_size)
