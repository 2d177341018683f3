from __future__ import annotations

from sqlalchemy import func, or_

from ..models import Product, Service
from .tenant_service import scoped

MIN_QUERY_LENGTH = 3
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SEARCH_TYPES = {"product", "service", "all"}
# Candidates pulled from the DB before ranking
CANDIDATE_FACTOR = 5


def _rank(hit: dict, needle: str) -> tuple:
    name = (hit["name"] or "").lower()
    if name == needle:
        bucket = 0
    elif name.startswith(needle):
        bucket = 1
    else:
        bucket = 2
    return bucket, name


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ilike_any(pattern: str, *columns):
    return or_(*(func.lower(c).like(pattern, escape="\\") for c in columns))


def _product_hit(p: Product, org_id: str) -> dict:
    rows = [r for r in p.inventory_rows if r.organization_id == org_id]
    photos = list(p.photo_urls or [])
    return {
        "id": p.id,
        "type": "product",
        "name": p.name,
        "description": p.description,
        "sku": p.sku,
        "price": float(p.price) if p.price is not None else None,
        "category": p.category.name if p.category else None,
        "subcategory": p.subcategory.name if p.subcategory else None,
        "availability": [
            {
                "warehouse_id": r.warehouse_id,
                "warehouse_name": r.warehouse.name,
                "available_quantity": r.available_quantity,
                "reserved_quantity": r.reserved_quantity,
            }
            for r in sorted(rows, key=lambda r: r.warehouse.name)
        ],
        "photo_url": photos[0] if photos else None,
    }


def _service_hit(s: Service) -> dict:
    return {
        "id": s.id,
        "type": "service",
        "name": s.name,
        "description": s.description,
        "rate": float(s.rate) if s.rate is not None else None,
        "rate_type": s.rate_type,
        "unit": s.unit,
        "category": s.category or (s.service_category.name if s.service_category else None),
    }


def search(org_id: str, query: str, *, kind: str | None = None, limit: int = DEFAULT_LIMIT) -> dict:
    """
    Quick search over active products (name, SKU, description) and active
    services (name, description, category label).

    kind limits the search to "product" or "service"; "all" or None
    searches both. Ranking: exact name match, then name prefix, then
    alphabetical. Product hits carry per-warehouse availability and their
    first photo.
    """
    q = (query or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return {
            "results": [],
            "total": 0,
            "hasMore": False,
            "message": f"Please enter at least {MIN_QUERY_LENGTH} characters to search",
        }

    limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))
    needle = q.lower()
    pattern = f"%{escape_like(needle)}%"
    candidates = limit * CANDIDATE_FACTOR

    hits: list[dict] = []
    total = 0

    if kind in (None, "all", "product"):
        products = scoped(Product, org_id).filter(
            Product.status == "active",
            _ilike_any(pattern, Product.name, Product.sku, Product.description),
        )
        total += products.count()
        hits.extend(
            _product_hit(p, org_id)
            for p in products.order_by(Product.name.asc()).limit(candidates).all()
        )

    if kind in (None, "all", "service"):
        services = scoped(Service, org_id).filter(
            Service.status == "active",
            _ilike_any(pattern, Service.name, Service.description, Service.category),
        )
        total += services.count()
        hits.extend(_service_hit(s) for s in services.order_by(Service.name.asc()).limit(candidates).all())

    ranked = sorted(hits, key=lambda h: _rank(h, needle))[:limit]
    return {"results": ranked, "total": total, "hasMore": total > len(ranked)}
