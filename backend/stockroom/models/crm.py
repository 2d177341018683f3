from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import TenantOwnedMixin


COMPANY_STATUSES = {"active", "inactive", "archived"}
CONTACT_STATUSES = {"active", "inactive"}
CONTACT_METHODS = {"email", "phone", "mobile"}


def _address(row) -> dict:
    return {
        "address": row.address,
        "city": row.city,
        "state_province": row.state_province,
        "postal_code": row.postal_code,
        "country": row.country,
    }


class Client(TenantOwnedMixin, db.Model):
    """
    A quote recipient. Emails are unique within an organization when set.

    company is free text; structured companies live in Company.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_org_email", "organization_id", "email"),
        db.Index("ix_clients_org_created", "organization_id", "created_at"),
    )

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    company = db.Column(db.String(255), nullable=True)

    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state_province = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            **_address(self),
            "notes": self.notes,
            "tags": list(self.tags or []),
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "company": self.company}


class Company(TenantOwnedMixin, db.Model):
    """A business account. Names are unique within an organization."""
    __tablename__ = "companies"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_companies_org_name"),
    )

    name = db.Column(db.String(255), nullable=False)
    website = db.Column(db.String(2048), nullable=True)
    industry = db.Column(db.String(100), nullable=True)
    company_size = db.Column(db.String(50), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)

    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state_province = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.String(16), nullable=False, default="active")

    contacts = db.relationship(
        "Contact",
        back_populates="company",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self, *, include_contacts: bool = False) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "website": self.website,
            "industry": self.industry,
            "company_size": self.company_size,
            "tax_id": self.tax_id,
            **_address(self),
            "notes": self.notes,
            "tags": list(self.tags or []),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_contacts:
            data["contacts"] = [c.to_dict() for c in sorted_contacts(self.contacts)]
        return data


def sorted_contacts(contacts) -> list:
    """Primary contact first, then newest first."""
    newest = sorted(contacts, key=lambda c: c.created_at, reverse=True)
    return sorted(newest, key=lambda c: not c.is_primary)


class Contact(TenantOwnedMixin, db.Model):
    """
    A person at a company. At most one contact per company is primary.

    Emails are unique within the company when set. Contacts may carry
    their own address when has_different_address is true.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.Index("ix_contacts_company_email", "company_id", "email"),
    )

    company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    mobile = db.Column(db.String(50), nullable=True)
    title = db.Column(db.String(100), nullable=True)
    department = db.Column(db.String(100), nullable=True)

    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    preferred_contact_method = db.Column(db.String(16), nullable=True)

    has_different_address = db.Column(db.Boolean, nullable=False, default=False)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state_province = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    birthday = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    company = db.relationship("Company", back_populates="contacts")

    def __repr__(self) -> str:
        return f"<Contact id={self.id} name={self.first_name!r} {self.last_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "company_id": self.company_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "title": self.title,
            "department": self.department,
            "is_primary": self.is_primary,
            "preferred_contact_method": self.preferred_contact_method,
            "has_different_address": self.has_different_address,
            **_address(self),
            "notes": self.notes,
            "birthday": self.birthday.isoformat() if self.birthday else None,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
