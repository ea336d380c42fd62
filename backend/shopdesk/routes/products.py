# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopdesk/routes/products.py
"""
Product and category management routes.

MULTI-TENANT: All operations are scoped to the session's shop (g.shop_id,
set by @require_auth). Ids from another shop answer 404.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..services.products_service import CategoryNotFoundError
from ..services.inventory_service import ProductNotFoundError
from ..services.tenant_service import note_missing_entity
from ..models import Product, Category
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission, require_json_object

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price_cents", "cost_cents", "stock_quantity",
        "low_stock_threshold", "barcode", "image_url", "category_id", "is_active",
    },
    required_on_create={"sku", "name", "price_cents"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    Query params:
    - include_inactive: "1"/"true" to include soft-deleted products
    - category_id: int (optional)
    """
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    category_id = request.args.get("category_id", type=int)

    items = products_service.list_products(
        g.shop_id,
        include_inactive=include_inactive,
        category_id=category_id,
    )
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(g.shop_id, product_id)
    except ProductNotFoundError as e:
        note_missing_entity(Product, product_id)
        return {"error": str(e), "details": e.details}, 404


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@require_json_object
def create_product_route():
    """
    Create a new product in the caller's shop.

    stock_quantity (optional) is the opening stock and is logged as a restock.
    """
    payload = request.get_json(silent=True) or {}
    payload.setdefault("low_stock_threshold", current_app.config.get("LOW_STOCK_THRESHOLD_DEFAULT", 10))

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(shop_id=g.shop_id, user_id=g.current_user.id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@require_json_object
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(shop_id=g.shop_id, product_id=product_id, patch=patch)
    except ProductNotFoundError as e:
        note_missing_entity(Product, product_id)
        return {"error": str(e), "details": e.details}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete (is_active=False)."""
    try:
        products_service.delete_product(shop_id=g.shop_id, product_id=product_id)
    except ProductNotFoundError as e:
        note_missing_entity(Product, product_id)
        return {"error": str(e), "details": e.details}, 404

    return {"ok": True}, 200


@categories_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_categories():
    items = products_service.list_categories(g.shop_id)
    return {"items": items, "count": len(items)}


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@require_json_object
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = products_service.create_category(shop_id=g.shop_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created, 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@require_json_object
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        updated = products_service.update_category(shop_id=g.shop_id, category_id=category_id, patch=patch)
    except CategoryNotFoundError as e:
        note_missing_entity(Category, category_id)
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return updated, 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_category_route(category_id: int):
    """Products in the category are kept and become uncategorized."""
    try:
        detached = products_service.delete_category(shop_id=g.shop_id, category_id=category_id)
    except CategoryNotFoundError as e:
        note_missing_entity(Category, category_id)
        return {"error": str(e)}, 404

    return {"ok": True, "products_detached": detached}, 200
