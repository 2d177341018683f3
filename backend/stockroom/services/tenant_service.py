"""
Tenant scoping helpers.

Every tenant-owned row carries organization_id. Lookups by id always go
through get_owned_or_404 so a row belonging to another organization is
indistinguishable from a missing one.

USAGE:
    from .tenant_service import get_owned_or_404

    warehouse = get_owned_or_404(Warehouse, warehouse_id, g.org_id, label="Warehouse")
"""
from __future__ import annotations

import logging

from ..extensions import db

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """404: the row does not exist in the caller's organization."""


def get_owned(model, obj_id: str, org_id: str):
    """Return the row if it exists in org_id, else None. Logs cross-tenant hits."""
    if not obj_id:
        return None
    obj = db.session.get(model, obj_id)
    if obj is None:
        return None
    if obj.organization_id != org_id:
        # Don't reveal that it exists in another org
        logger.warning(
            "Cross-tenant access attempt: %s %s belongs to %s, requested by %s",
            model.__name__, obj_id, obj.organization_id, org_id,
        )
        return None
    return obj


def get_owned_or_404(model, obj_id: str, org_id: str, *, label: str | None = None):
    obj = get_owned(model, obj_id, org_id)
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def scoped(model, org_id: str):
    """Base query for model restricted to one organization."""
    return db.session.query(model).filter(model.organization_id == org_id)
