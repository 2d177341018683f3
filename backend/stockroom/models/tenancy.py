from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class TenantOwnedMixin:
    """
    Columns shared by every tenant-owned table.

    MULTI-TENANT: organization_id is the hosted auth provider's organization
    identifier (e.g. "org_2abc..."). There is no local organizations table;
    the provider owns organizations and memberships. Every query against a
    tenant-owned table must filter on organization_id.
    """
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)

    created_by_user_id = db.Column(db.String(64), nullable=False)
    created_by_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


def decimal_or_none(value):
    """Numeric columns come back as Decimal; JSON bodies carry floats."""
    if value is None:
        return None
    return float(value)
