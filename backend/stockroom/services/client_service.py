"""
Clients (quote recipients).

Emails are unique per organization when present. A client with quotes
cannot be deleted.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Client, Quote
from ..time_utils import to_utc_z
from ..validation import ConflictError
from .search_service import escape_like
from .tenant_service import get_owned_or_404, scoped

RECENT_QUOTES = 5


def filter_by_tags(rows: list, tags: list[str]) -> list:
    """Rows carrying every one of tags. JSON columns are filtered here, not in SQL."""
    if not tags:
        return rows
    wanted = set(tags)
    return [r for r in rows if wanted.issubset(set(r.tags or []))]


def _ensure_email_free(org_id: str, email: str | None, exclude_id: str | None = None) -> None:
    if not email:
        return
    q = scoped(Client, org_id).filter(func.lower(Client.email) == email.lower())
    if exclude_id:
        q = q.filter(Client.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A client with this email already exists in your organization")


def list_clients(
    org_id: str,
    *,
    search: str | None = None,
    tags: list[str] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    q = scoped(Client, org_id)
    if search:
        pattern = f"%{escape_like(search.lower())}%"
        q = q.filter(or_(
            func.lower(Client.name).like(pattern, escape="\\"),
            func.lower(Client.email).like(pattern, escape="\\"),
            func.lower(Client.company).like(pattern, escape="\\"),
            func.lower(Client.phone).like(pattern, escape="\\"),
        ))
    rows = filter_by_tags(q.order_by(Client.created_at.desc()).all(), tags or [])
    page = rows[offset:offset + limit]
    return {"data": [c.to_dict() for c in page], "count": len(rows), "limit": limit, "offset": offset}


def get_client(org_id: str, client_id: str) -> dict:
    """Client with quote statistics and its most recent quotes."""
    c = get_owned_or_404(Client, client_id, org_id, label="Client")
    quotes = (
        scoped(Quote, org_id)
        .filter(Quote.client_id == c.id)
        .order_by(Quote.created_at.desc())
        .all()
    )

    approved = [q for q in quotes if q.status in {"approved", "converted"}]
    pending = [q for q in quotes if q.status in {"sent", "viewed"}]
    total_value = sum(float(q.total or 0) for q in approved)
    rate = (len(approved) / len(quotes) * 100) if quotes else 0.0

    data = c.to_dict()
    data["stats"] = {
        "total_quotes": len(quotes),
        "approved_quotes": len(approved),
        "pending_quotes": len(pending),
        "total_value": round(total_value, 2),
        "conversion_rate": f"{rate:.1f}",
    }
    data["recent_quotes"] = [
        {
            "id": q.id,
            "quote_number": q.quote_number,
            "status": q.status,
            "total": float(q.total or 0),
            "created_at": to_utc_z(q.created_at),
        }
        for q in quotes[:RECENT_QUOTES]
    ]
    return data


def create_client(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _ensure_email_free(org_id, patch.get("email"))
    c = Client(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(c)
    db.session.commit()
    return c.to_dict()


def update_client(*, org_id: str, client_id: str, patch: dict) -> dict:
    c = get_owned_or_404(Client, client_id, org_id, label="Client")
    if patch.get("email") and (patch["email"] or "").lower() != (c.email or "").lower():
        _ensure_email_free(org_id, patch["email"], exclude_id=c.id)
    for k, v in patch.items():
        setattr(c, k, v)
    db.session.commit()
    return c.to_dict()


def delete_client(*, org_id: str, client_id: str) -> None:
    c = get_owned_or_404(Client, client_id, org_id, label="Client")
    if db.session.query(Quote.id).filter(Quote.client_id == c.id).first() is not None:
        raise ConflictError("Cannot delete client with existing quotes. Please delete or reassign quotes first.")
    db.session.delete(c)
    db.session.commit()
