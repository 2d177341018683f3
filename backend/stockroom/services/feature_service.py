"""
Feature definitions (per category/subcategory attribute schemas) and the
feature values stored on products.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import FeatureDefinition, Product, ProductFeature, Subcategory
from ..validation import ConflictError, ValidationError
from .category_service import resolve_taxonomy
from .tenant_service import get_owned, get_owned_or_404, scoped


def list_feature_definitions(
    org_id: str,
    *,
    category_id: str | None = None,
    subcategory_id: str | None = None,
) -> list[dict]:
    """
    Definitions for a category or subcategory.

    A subcategory filter also returns the parent category's definitions,
    since products in the subcategory carry both.
    """
    q = scoped(FeatureDefinition, org_id)
    if subcategory_id:
        conditions = [FeatureDefinition.subcategory_id == subcategory_id]
        sub = get_owned(Subcategory, subcategory_id, org_id)
        if sub is not None:
            conditions.append(FeatureDefinition.category_id == sub.category_id)
        q = q.filter(or_(*conditions))
    elif category_id:
        q = q.filter(FeatureDefinition.category_id == category_id)

    rows = q.order_by(FeatureDefinition.display_order.asc(), FeatureDefinition.name.asc()).all()
    return [d.to_dict() for d in rows]


def get_feature_definition(org_id: str, definition_id: str) -> dict:
    return get_owned_or_404(FeatureDefinition, definition_id, org_id, label="Feature definition").to_dict()


def _ensure_name_free(org_id: str, *, name: str, category_id, subcategory_id, exclude_id=None) -> None:
    q = scoped(FeatureDefinition, org_id).filter(
        FeatureDefinition.name == name,
        FeatureDefinition.category_id.is_(None) if category_id is None else FeatureDefinition.category_id == category_id,
        FeatureDefinition.subcategory_id.is_(None) if subcategory_id is None else FeatureDefinition.subcategory_id == subcategory_id,
    )
    if exclude_id:
        q = q.filter(FeatureDefinition.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A feature with this name already exists")


def create_feature_definition(*, org_id: str, user_id: str, user_name: str, patch: dict) -> dict:
    category_id = patch.get("category_id")
    subcategory_id = patch.get("subcategory_id")
    resolve_taxonomy(org_id, category_id, subcategory_id)
    _ensure_name_free(org_id, name=patch["name"], category_id=category_id, subcategory_id=subcategory_id)

    if "display_order" not in patch:
        count = scoped(FeatureDefinition, org_id).filter(
            FeatureDefinition.category_id == category_id if category_id else FeatureDefinition.category_id.is_(None),
            FeatureDefinition.subcategory_id == subcategory_id if subcategory_id else FeatureDefinition.subcategory_id.is_(None),
        ).count()
        patch["display_order"] = count

    d = FeatureDefinition(
        organization_id=org_id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        **patch,
    )
    db.session.add(d)
    db.session.commit()
    return d.to_dict()


def update_feature_definition(*, org_id: str, definition_id: str, patch: dict) -> dict:
    d = get_owned_or_404(FeatureDefinition, definition_id, org_id, label="Feature definition")

    category_id = patch.get("category_id", d.category_id)
    subcategory_id = patch.get("subcategory_id", d.subcategory_id)
    if not category_id and not subcategory_id:
        raise ValidationError("Either category_id or subcategory_id must be provided")
    if "category_id" in patch or "subcategory_id" in patch:
        resolve_taxonomy(org_id, category_id, subcategory_id)

    name = patch.get("name", d.name)
    if name != d.name or category_id != d.category_id or subcategory_id != d.subcategory_id:
        _ensure_name_free(
            org_id, name=name, category_id=category_id, subcategory_id=subcategory_id, exclude_id=d.id,
        )

    for k, v in patch.items():
        setattr(d, k, v)
    if d.input_type == "select" and not d.options:
        db.session.rollback()
        raise ValidationError("options are required for select features")
    db.session.commit()
    return d.to_dict()


def delete_feature_definition(*, org_id: str, definition_id: str) -> None:
    d = get_owned_or_404(FeatureDefinition, definition_id, org_id, label="Feature definition")
    db.session.query(ProductFeature).filter(ProductFeature.feature_definition_id == d.id).update(
        {"feature_definition_id": None, "is_custom": True}, synchronize_session=False
    )
    db.session.delete(d)
    db.session.commit()


def reorder_feature_definitions(*, org_id: str, ids: list[str]) -> list[dict]:
    """Set display_order to each id's position in the list."""
    if not isinstance(ids, list) or not ids or not all(isinstance(i, str) for i in ids):
        raise ValidationError("ids must be a non-empty list of feature definition ids")
    if len(set(ids)) != len(ids):
        raise ValidationError("ids must be unique")

    rows = scoped(FeatureDefinition, org_id).filter(FeatureDefinition.id.in_(ids)).all()
    by_id = {d.id: d for d in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise ValidationError(f"Feature definition not found: {missing[0]}")

    for position, def_id in enumerate(ids):
        by_id[def_id].display_order = position
    db.session.commit()
    return [by_id[i].to_dict() for i in ids]


# Product feature values

def list_product_features(org_id: str, product_id: str) -> list[dict]:
    product = get_owned_or_404(Product, product_id, org_id, label="Product")
    return [f.to_dict() for f in product.features]


def _clean_feature_items(org_id: str, items) -> list[dict]:
    if not isinstance(items, list):
        raise ValidationError("features must be a list")

    cleaned = []
    seen = set()
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"features[{idx}] must be an object")
        name = item.get("name")
        value = item.get("value")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"features[{idx}].name is required")
        name = name.strip()
        if len(name) > 100:
            raise ValidationError(f"features[{idx}].name exceeds max length 100")
        if value is None:
            raise ValidationError(f"features[{idx}].value is required")
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            raise ValidationError(f"features[{idx}].value must be a scalar")
        if name in seen:
            raise ValidationError(f"Duplicate feature name: {name}")
        seen.add(name)

        definition_id = item.get("feature_definition_id")
        if definition_id is not None and get_owned(FeatureDefinition, definition_id, org_id) is None:
            raise ValidationError(f"features[{idx}].feature_definition_id not found")

        is_custom = item.get("is_custom")
        if is_custom is None:
            is_custom = definition_id is None
        elif not isinstance(is_custom, bool):
            raise ValidationError(f"features[{idx}].is_custom must be a boolean")

        cleaned.append({
            "name": name,
            "value": str(value).strip(),
            "feature_definition_id": definition_id,
            "is_custom": is_custom,
        })
    return cleaned


def replace_product_features(*, org_id: str, product_id: str, items) -> list[dict]:
    """Replace the product's whole feature set with items."""
    product = get_owned_or_404(Product, product_id, org_id, label="Product")
    cleaned = _clean_feature_items(org_id, items)

    product.features.clear()
    db.session.flush()
    for item in cleaned:
        product.features.append(ProductFeature(organization_id=org_id, product_id=product.id, **item))
    db.session.commit()
    return [f.to_dict() for f in sorted(product.features, key=lambda f: f.name)]
