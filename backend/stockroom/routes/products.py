"""
Product management routes.

MULTI-TENANT: all product operations are scoped to the caller's organization
(g.org_id, set by @require_auth). Reads need an organization; writes need
the admin role.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, require_org
from ..models import Product
from ..models.catalog import PRODUCT_STATUSES
from ..services import feature_service, products_service, storage_service
from ..services.storage_service import StorageError
from ..services.tenant_service import NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "subcategory_id", "cost", "price",
        "photo_urls", "link", "serial_number", "status", "low_stock_threshold",
    },
    required_on_create={"sku", "name"},
    defaults_on_create={"status": "active"},
    choices={"status": PRODUCT_STATUSES},
    uuid_fields={"category_id", "subcategory_id"},
    url_fields={"link"},
    min_values={"low_stock_threshold": 0},
)

THRESHOLD_POLICY = ModelValidationPolicy(writable_fields={"low_stock_threshold"}, min_values={"low_stock_threshold": 0})

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _validated_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


@products_bp.get("")
@require_auth
@require_org
def list_products():
    """
    List the organization's products, newest first.

    Query params:
    - status, category_id, subcategory_id: optional filters
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    status = request.args.get("status")
    if status and status not in PRODUCT_STATUSES:
        return {"error": f"status must be one of: {', '.join(sorted(PRODUCT_STATUSES))}"}, 400

    return products_service.list_products(
        g.org_id,
        status=status,
        category_id=request.args.get("category_id"),
        subcategory_id=request.args.get("subcategory_id"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    ), 200


@products_bp.post("")
@require_auth
@require_admin("create products")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validated_patch(payload, partial=False)
        created = products_service.create_product(
            org_id=g.org_id, user_id=g.user_id, user_name=g.user_name, patch=patch,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500
    return created, 201


@products_bp.post("/batch")
@require_auth
@require_admin("update products")
def batch_update_products_route():
    payload = request.get_json(silent=True) or {}
    try:
        report = products_service.batch_update_products(
            org_id=g.org_id,
            user_id=g.user_id,
            user_name=g.user_name,
            items=payload.get("items"),
            validate=lambda updates: _validated_patch(updates, partial=True),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to batch update products")
        return {"error": "Failed to batch update products"}, 500
    return report, 200


@products_bp.get("/sku/<sku>")
@require_auth
@require_org
def get_product_by_sku(sku: str):
    try:
        return products_service.get_product_by_sku(g.org_id, sku), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/<product_id>")
@require_auth
@require_org
def get_product(product_id: str):
    try:
        return products_service.get_product(g.org_id, product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.put("/<product_id>")
@require_auth
@require_admin("update products")
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validated_patch(payload, partial=True)
        return products_service.update_product(
            org_id=g.org_id, product_id=product_id, patch=patch, user_id=g.user_id, user_name=g.user_name,
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Failed to update product"}, 500


@products_bp.patch("/<product_id>/low-stock-threshold")
@require_auth
@require_admin("update low stock thresholds")
def update_low_stock_threshold(product_id: str):
    payload = request.get_json(silent=True) or {}
    # A threshold is cleared by product update, never here
    if payload.get("low_stock_threshold") is None:
        return {"error": "Invalid low stock threshold value"}, 400
    try:
        patch = validate_payload(model=Product, payload=payload, policy=THRESHOLD_POLICY, partial=True)
        return products_service.update_low_stock_threshold(
            org_id=g.org_id, product_id=product_id, threshold=patch["low_stock_threshold"],
        ), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.delete("/<product_id>")
@require_auth
@require_admin("delete products")
def delete_product_route(product_id: str):
    """
    Delete a product.

    - 409 while any warehouse holds stock of it
    - products with movement history are marked discontinued instead
    """
    try:
        return products_service.delete_product(org_id=g.org_id, product_id=product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Failed to delete product"}, 500


@products_bp.get("/<product_id>/price-history")
@require_auth
@require_org
def price_history(product_id: str):
    limit = request.args.get("limit", default=100, type=int)
    try:
        rows = products_service.list_price_history(g.org_id, product_id, limit=max(1, min(limit, 500)))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return jsonify(rows), 200


@products_bp.get("/<product_id>/features")
@require_auth
@require_org
def list_product_features(product_id: str):
    try:
        return jsonify(feature_service.list_product_features(g.org_id, product_id)), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.put("/<product_id>/features")
@require_auth
@require_admin("update product features")
def replace_product_features(product_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        rows = feature_service.replace_product_features(
            org_id=g.org_id, product_id=product_id, items=payload.get("features"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product features")
        return {"error": "Failed to update product features"}, 500
    return jsonify(rows), 200


@products_bp.get("/<product_id>/photos")
@require_auth
@require_org
def list_product_photos(product_id: str):
    expires_in = request.args.get("expires_in", default=storage_service.DEFAULT_SIGNED_URL_TTL, type=int)
    try:
        photos = storage_service.list_product_photos(
            org_id=g.org_id, product_id=product_id, expires_in=max(60, min(expires_in, 7 * 24 * 3600)),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return jsonify(photos), 200


@products_bp.post("/<product_id>/photos")
@require_auth
@require_admin("upload product photos")
def upload_product_photo(product_id: str):
    upload = request.files.get("file")
    if upload is None:
        return {"error": "No file provided"}, 400
    try:
        result = storage_service.upload_product_photo(
            org_id=g.org_id,
            product_id=product_id,
            data=upload.read(),
            filename=upload.filename,
            content_type=upload.mimetype,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StorageError as e:
        current_app.logger.warning("Photo upload failed: %s", e)
        return {"error": "Upload failed"}, 502
    return result, 201


@products_bp.delete("/<product_id>/photos")
@require_auth
@require_admin("delete product photos")
def delete_product_photo(product_id: str):
    payload = request.get_json(silent=True) or {}
    path = payload.get("path")
    if not isinstance(path, str) or not path:
        return {"error": "path is required"}, 400
    try:
        result = storage_service.delete_product_photo(org_id=g.org_id, product_id=product_id, path=path)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StorageError as e:
        current_app.logger.warning("Photo delete failed: %s", e)
        return {"error": "Delete failed"}, 502
    return result, 200
