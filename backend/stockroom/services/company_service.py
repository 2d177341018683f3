"""
Companies and their contacts.

Company names are unique per organization. Contact emails are unique
within their company. Each company keeps at most one primary contact,
and its last contact cannot be removed.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Company, Contact, Quote
from ..models.crm import sorted_contacts
from ..validation import ConflictError, ValidationError
from .client_service import filter_by_tags
from .search_service import escape_like
from .tenant_service import NotFoundError, get_owned, get_owned_or_404, scoped


def _ensure_company_name_free(org_id: str, name: str, exclude_id: str | None = None) -> None:
    q = scoped(Company, org_id).filter(func.lower(Company.name) == name.lower())
    if exclude_id:
        q = q.filter(Company.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A company with this name already exists in your organization")


def _has_quotes(company: Company) -> bool:
    return db.session.query(Quote.id).filter(Quote.company_id == company.id).first() is not None


def list_companies(
    org_id: str,
    *,
    search: str | None = None,
    status: str | None = None,
    tags: list[str] | None = None,
    with_contacts: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    q = scoped(Company, org_id)
    if search:
        pattern = f"%{escape_like(search.lower())}%"
        q = q.filter(or_(
            func.lower(Company.name).like(pattern, escape="\\"),
            func.lower(Company.website).like(pattern, escape="\\"),
            func.lower(Company.industry).like(pattern, escape="\\"),
        ))
    if status:
        q = q.filter(Company.status == status)
    rows = filter_by_tags(q.order_by(Company.name.asc()).all(), tags or [])
    page = rows[offset:offset + limit]
    return {
        "data": [c.to_dict(include_contacts=with_contacts) for c in page],
        "count": len(rows),
        "limit": limit,
        "offset": offset,
    }


def get_company(org_id: str, company_id: str, *, with_contacts: bool = False) -> dict:
    return get_owned_or_404(Company, company_id, org_id, label="Company").to_dict(include_contacts=with_contacts)


def create_company(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    patch: dict,
    primary_contact: dict | None = None,
) -> dict:
    """Create a company, optionally with its first (primary) contact in the same transaction."""
    _ensure_company_name_free(org_id, patch["name"])
    c = Company(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(c)
    db.session.flush()

    contact = None
    if primary_contact is not None:
        contact = Contact(
            organization_id=org_id,
            created_by_user_id=user_id,
            created_by_name=user_name,
            company_id=c.id,
            **{**primary_contact, "is_primary": True},
        )
        db.session.add(contact)

    db.session.commit()
    data = c.to_dict()
    if contact is not None:
        data["contacts"] = [contact.to_dict()]
    return data


def update_company(*, org_id: str, company_id: str, patch: dict) -> dict:
    c = get_owned_or_404(Company, company_id, org_id, label="Company")
    if "name" in patch and patch["name"].lower() != c.name.lower():
        _ensure_company_name_free(org_id, patch["name"], exclude_id=c.id)
    for k, v in patch.items():
        setattr(c, k, v)
    db.session.commit()
    return c.to_dict()


def delete_company(*, org_id: str, company_id: str) -> None:
    c = get_owned_or_404(Company, company_id, org_id, label="Company")
    if _has_quotes(c):
        raise ValidationError("Cannot delete company with existing quotes. Please archive it instead.")
    db.session.delete(c)  # contacts go with it (delete-orphan)
    db.session.commit()


# Contacts

def _require_company(org_id: str, company_id: str) -> Company:
    return get_owned_or_404(Company, company_id, org_id, label="Company")


def _get_contact(org_id: str, company_id: str, contact_id: str) -> Contact:
    contact = get_owned(Contact, contact_id, org_id)
    if contact is None or contact.company_id != company_id:
        raise NotFoundError("Contact not found")
    return contact


def _ensure_contact_email_free(company_id: str, email: str | None, exclude_id: str | None = None) -> None:
    if not email:
        return
    q = db.session.query(Contact).filter(
        Contact.company_id == company_id,
        func.lower(Contact.email) == email.lower(),
    )
    if exclude_id:
        q = q.filter(Contact.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A contact with this email already exists for this company")


def _clear_other_primaries(company_id: str, keep_id: str) -> None:
    db.session.query(Contact).filter(
        Contact.company_id == company_id,
        Contact.id != keep_id,
        Contact.is_primary.is_(True),
    ).update({"is_primary": False}, synchronize_session=False)


def list_contacts(org_id: str, company_id: str, *, status: str | None = None) -> list[dict]:
    company = _require_company(org_id, company_id)
    rows = [c for c in company.contacts if not status or c.status == status]
    return [c.to_dict() for c in sorted_contacts(rows)]


def get_contact(org_id: str, company_id: str, contact_id: str) -> dict:
    _require_company(org_id, company_id)
    return _get_contact(org_id, company_id, contact_id).to_dict()


def create_contact(*, org_id: str, user_id: str, user_name: str, company_id: str, patch: dict) -> dict:
    company = _require_company(org_id, company_id)
    _ensure_contact_email_free(company.id, patch.get("email"))

    # A company's first contact is its primary
    if not company.contacts:
        patch["is_primary"] = True

    contact = Contact(
        organization_id=org_id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        company_id=company.id,
        **patch,
    )
    db.session.add(contact)
    db.session.flush()
    if contact.is_primary:
        _clear_other_primaries(company.id, contact.id)
    db.session.commit()
    return contact.to_dict()


def update_contact(*, org_id: str, company_id: str, contact_id: str, patch: dict) -> dict:
    _require_company(org_id, company_id)
    contact = _get_contact(org_id, company_id, contact_id)
    if patch.get("email") and patch["email"].lower() != (contact.email or "").lower():
        _ensure_contact_email_free(company_id, patch["email"], exclude_id=contact.id)
    for k, v in patch.items():
        setattr(contact, k, v)
    if patch.get("is_primary"):
        _clear_other_primaries(company_id, contact.id)
    db.session.commit()
    return contact.to_dict()


def delete_contact(*, org_id: str, company_id: str, contact_id: str) -> None:
    company = _require_company(org_id, company_id)
    contact = _get_contact(org_id, company_id, contact_id)
    others = [c for c in company.contacts if c.id != contact.id]
    if not others:
        raise ValidationError("Cannot delete the only contact for a company")

    if contact.is_primary:
        sorted_contacts(others)[0].is_primary = True
    db.session.delete(contact)
    db.session.commit()
