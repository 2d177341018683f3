"""
Categories and subcategories.

Category names are unique per organization; subcategory names are unique
per category. Either may be deleted only while no product references it.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, FeatureDefinition, Product, ProductFeature, Subcategory
from ..validation import ConflictError, ValidationError
from .tenant_service import get_owned, get_owned_or_404, scoped


def _ensure_category_name_free(org_id: str, name: str, exclude_id: str | None = None) -> None:
    q = scoped(Category, org_id).filter(Category.name == name)
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A category with this name already exists")


def _ensure_subcategory_name_free(category_id: str, name: str, exclude_id: str | None = None) -> None:
    q = db.session.query(Subcategory).filter(
        Subcategory.category_id == category_id,
        Subcategory.name == name,
    )
    if exclude_id:
        q = q.filter(Subcategory.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A subcategory with this name already exists in this category")


def list_categories(org_id: str, *, status: str | None = None) -> list[dict]:
    q = scoped(Category, org_id)
    if status:
        q = q.filter(Category.status == status)
    rows = q.order_by(Category.display_order.asc(), Category.name.asc()).all()
    return [c.to_dict() for c in rows]


def get_category(org_id: str, category_id: str) -> dict:
    c = get_owned_or_404(Category, category_id, org_id, label="Category")
    data = c.to_dict()
    data["subcategories"] = [
        s.to_dict() for s in sorted(c.subcategories, key=lambda s: (s.display_order, s.name))
    ]
    return data


def create_category(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _ensure_category_name_free(org_id, patch["name"])
    c = Category(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(c)
    db.session.commit()
    return c.to_dict()


def update_category(*, org_id: str, category_id: str, patch: dict) -> dict:
    c = get_owned_or_404(Category, category_id, org_id, label="Category")
    if "name" in patch and patch["name"] != c.name:
        _ensure_category_name_free(org_id, patch["name"], exclude_id=c.id)
    for k, v in patch.items():
        setattr(c, k, v)
    db.session.commit()
    return c.to_dict()


def delete_category(*, org_id: str, category_id: str) -> None:
    c = get_owned_or_404(Category, category_id, org_id, label="Category")
    sub_ids = [s.id for s in c.subcategories]

    conditions = [Product.category_id == c.id]
    if sub_ids:
        conditions.append(Product.subcategory_id.in_(sub_ids))
    referenced = db.session.query(Product.id).filter(or_(*conditions))
    if referenced.first() is not None:
        raise ConflictError("Cannot delete category with existing products")

    _delete_feature_definitions(category_ids=[c.id], subcategory_ids=sub_ids)
    db.session.delete(c)  # subcategories go with it (delete-orphan)
    db.session.commit()


def _delete_feature_definitions(*, category_ids: list[str], subcategory_ids: list[str]) -> None:
    conditions = []
    if category_ids:
        conditions.append(FeatureDefinition.category_id.in_(category_ids))
    if subcategory_ids:
        conditions.append(FeatureDefinition.subcategory_id.in_(subcategory_ids))
    if not conditions:
        return
    def_ids = [row.id for row in db.session.query(FeatureDefinition.id).filter(or_(*conditions))]
    if not def_ids:
        return
    # Values survive as custom features once their definition is gone
    db.session.query(ProductFeature).filter(ProductFeature.feature_definition_id.in_(def_ids)).update(
        {"feature_definition_id": None, "is_custom": True}, synchronize_session=False
    )
    db.session.query(FeatureDefinition).filter(FeatureDefinition.id.in_(def_ids)).delete(synchronize_session=False)


# Subcategories

def list_subcategories(org_id: str, *, category_id: str | None = None) -> list[dict]:
    q = scoped(Subcategory, org_id)
    if category_id:
        q = q.filter(Subcategory.category_id == category_id)
    rows = q.order_by(Subcategory.display_order.asc(), Subcategory.name.asc()).all()
    return [s.to_dict() for s in rows]


def get_subcategory(org_id: str, subcategory_id: str) -> dict:
    return get_owned_or_404(Subcategory, subcategory_id, org_id, label="Subcategory").to_dict()


def _require_category(org_id: str, category_id: str) -> Category:
    c = get_owned(Category, category_id, org_id)
    if c is None:
        raise ValidationError("Category not found")
    return c


def create_subcategory(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    _require_category(org_id, patch["category_id"])
    _ensure_subcategory_name_free(patch["category_id"], patch["name"])
    s = Subcategory(organization_id=org_id, created_by_user_id=user_id, created_by_name=user_name, **patch)
    db.session.add(s)
    db.session.commit()
    return s.to_dict()


def update_subcategory(*, org_id: str, subcategory_id: str, patch: dict) -> dict:
    s = get_owned_or_404(Subcategory, subcategory_id, org_id, label="Subcategory")
    category_id = patch.get("category_id", s.category_id)
    if category_id != s.category_id:
        _require_category(org_id, category_id)
    name = patch.get("name", s.name)
    if name != s.name or category_id != s.category_id:
        _ensure_subcategory_name_free(category_id, name, exclude_id=s.id)
    for k, v in patch.items():
        setattr(s, k, v)
    db.session.commit()
    return s.to_dict()


def delete_subcategory(*, org_id: str, subcategory_id: str) -> None:
    s = get_owned_or_404(Subcategory, subcategory_id, org_id, label="Subcategory")
    if db.session.query(Product.id).filter(Product.subcategory_id == s.id).first() is not None:
        raise ConflictError("Cannot delete subcategory with existing products")
    _delete_feature_definitions(category_ids=[], subcategory_ids=[s.id])
    db.session.delete(s)
    db.session.commit()


def resolve_taxonomy(org_id: str, category_id: str | None, subcategory_id: str | None) -> None:
    """
    Check that referenced category/subcategory exist in org_id and agree.

    Raises ValidationError for references outside the organization.
    """
    if category_id:
        _require_category(org_id, category_id)
    if subcategory_id:
        s = get_owned(Subcategory, subcategory_id, org_id)
        if s is None:
            raise ValidationError("Subcategory not found")
        if category_id and s.category_id != category_id:
            raise ValidationError("Subcategory does not belong to the selected category")
