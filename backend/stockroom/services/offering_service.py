"""
Billable services and service categories.

Service names are unique per organization, as are service category
names. A service used on a quote, or a category that still has services,
cannot be deleted.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import QuoteItem, Service, ServiceCategory
from ..validation import ConflictError, ValidationError
from .search_service import escape_like
from .tenant_service import get_owned, get_owned_or_404, scoped


class CategoryInUseError(ConflictError):
    """409 with the number of services still in the category."""

    def __init__(self, service_count: int):
        super().__init__("Cannot delete category with existing services")
        self.service_count = service_count


# Service categories

def _ensure_category_name_free(org_id: str, name: str, exclude_id: str | None = None) -> None:
    q = scoped(ServiceCategory, org_id).filter(func.lower(ServiceCategory.name) == name.lower())
    if exclude_id:
        q = q.filter(ServiceCategory.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A category with this name already exists")


def _service_count(category_id: str) -> int:
    return db.session.query(Service).filter(Service.service_category_id == category_id).count()


def list_service_categories(org_id: str, *, active_only: bool = False) -> list[dict]:
    q = scoped(ServiceCategory, org_id)
    if active_only:
        q = q.filter(ServiceCategory.is_active.is_(True))
    rows = q.order_by(ServiceCategory.display_order.asc(), ServiceCategory.created_at.asc()).all()
    return [c.to_dict() for c in rows]


def get_service_category(org_id: str, category_id: str) -> dict:
    c = get_owned_or_404(ServiceCategory, category_id, org_id, label="Service category")
    data = c.to_dict()
    data["service_count"] = _service_count(c.id)
    return data


def create_service_category(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _ensure_category_name_free(org_id, patch["name"])
    c = ServiceCategory(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(c)
    db.session.commit()
    return c.to_dict()


def update_service_category(*, org_id: str, category_id: str, patch: dict) -> dict:
    c = get_owned_or_404(ServiceCategory, category_id, org_id, label="Service category")
    if not patch:
        raise ValidationError("No valid fields to update")
    if "name" in patch and patch["name"].lower() != c.name.lower():
        _ensure_category_name_free(org_id, patch["name"], exclude_id=c.id)
    for k, v in patch.items():
        setattr(c, k, v)
    db.session.commit()
    return c.to_dict()


def delete_service_category(*, org_id: str, category_id: str) -> None:
    c = get_owned_or_404(ServiceCategory, category_id, org_id, label="Service category")
    count = _service_count(c.id)
    if count:
        raise CategoryInUseError(count)
    db.session.delete(c)
    db.session.commit()


# Services

def _ensure_service_name_free(org_id: str, name: str, exclude_id: str | None = None) -> None:
    q = scoped(Service, org_id).filter(func.lower(Service.name) == name.lower())
    if exclude_id:
        q = q.filter(Service.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A service with this name already exists in your organization")


def _require_service_category(org_id: str, category_id: str | None) -> None:
    if category_id and get_owned(ServiceCategory, category_id, org_id) is None:
        raise ValidationError("Service category not found")


def list_services(
    org_id: str,
    *,
    search: str | None = None,
    category: str | None = None,
    status: str | None = "active",
) -> dict:
    """
    Services matching the filters, plus the active service categories.

    category matches either the legacy label or a service_category_id.
    status "all" (or None) disables the status filter.
    """
    q = scoped(Service, org_id)
    if status and status != "all":
        q = q.filter(Service.status == status)
    if category:
        q = q.filter(or_(Service.category == category, Service.service_category_id == category))
    if search:
        pattern = f"%{escape_like(search.lower())}%"
        q = q.filter(or_(
            func.lower(Service.name).like(pattern, escape="\\"),
            func.lower(Service.description).like(pattern, escape="\\"),
            func.lower(Service.category).like(pattern, escape="\\"),
        ))
    rows = q.order_by(Service.name.asc()).all()
    return {
        "data": [s.to_dict() for s in rows],
        "categories": list_service_categories(org_id, active_only=True),
    }


def get_service(org_id: str, service_id: str) -> dict:
    return get_owned_or_404(Service, service_id, org_id, label="Service").to_dict()


def create_service(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _ensure_service_name_free(org_id, patch["name"])
    _require_service_category(org_id, patch.get("service_category_id"))
    s = Service(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(s)
    db.session.commit()
    return s.to_dict()


def update_service(*, org_id: str, service_id: str, patch: dict) -> dict:
    s = get_owned_or_404(Service, service_id, org_id, label="Service")
    if "name" in patch and patch["name"].lower() != s.name.lower():
        _ensure_service_name_free(org_id, patch["name"], exclude_id=s.id)
    if "service_category_id" in patch:
        _require_service_category(org_id, patch["service_category_id"])
    for k, v in patch.items():
        setattr(s, k, v)
    db.session.commit()
    return s.to_dict()


def delete_service(*, org_id: str, service_id: str) -> None:
    s = get_owned_or_404(Service, service_id, org_id, label="Service")
    if db.session.query(QuoteItem.id).filter(QuoteItem.service_id == s.id).first() is not None:
        raise ConflictError("Cannot delete service that is used in quotes. Please remove it from quotes first.")
    db.session.delete(s)
    db.session.commit()
