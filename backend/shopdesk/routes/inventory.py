# backend/shopdesk/routes/inventory.py
"""
Inventory management routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY permission
- Adjust operations require ADJUST_INVENTORY permission

Stock only changes through these adjustments and through recorded sales;
both append an InventoryLog row.
"""
from flask import Blueprint, request, g, current_app

from ..models import InventoryLog, Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_stock_adjust,
)
from ..services import inventory_service
from ..services.inventory_service import InsufficientStockError, ProductNotFoundError
from ..services.tenant_service import note_missing_entity
from ..decorators import require_auth, require_permission, require_json_object


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

STOCK_ADJUST_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity_change", "notes"},
    required_on_create={"product_id", "quantity_change"},
)


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
@require_json_object
def adjust_stock_route():
    """
    Apply a signed stock change.

    Body: {product_id, quantity_change, notes?}
    Positive changes are logged as 'restock', zero or negative as 'adjustment'.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryLog,
            payload=payload,
            policy=STOCK_ADJUST_POLICY,
            partial=False,
        )
        enforce_rules_stock_adjust(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        log = inventory_service.adjust_stock(
            shop_id=g.shop_id,
            product_id=patch["product_id"],
            delta=patch["quantity_change"],
            user_id=g.current_user.id,
            notes=patch.get("notes") or None,
        )
    except ProductNotFoundError as e:
        note_missing_entity(Product, patch["product_id"])
        return {"error": str(e), "details": e.details}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return {"log": log.to_dict(), "stock_quantity": log.quantity_after}, 201


@inventory_bp.get("/<int:product_id>/stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def stock_level_route(product_id: int):
    try:
        qty = inventory_service.get_stock_level(g.shop_id, product_id)
    except ProductNotFoundError as e:
        note_missing_entity(Product, product_id)
        return {"error": str(e), "details": e.details}, 404

    return {"product_id": product_id, "stock_quantity": qty}


@inventory_bp.get("/logs")
@require_auth
@require_permission("VIEW_INVENTORY")
def inventory_logs_route():
    """
    Query params:
    - product_id: int (optional)
    - limit: int (default 100, max 500)
    """
    product_id = request.args.get("product_id", type=int)
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)

    try:
        logs = inventory_service.list_inventory_logs(shop_id=g.shop_id, product_id=product_id, limit=limit)
    except ProductNotFoundError as e:
        note_missing_entity(Product, product_id)
        return {"error": str(e), "details": e.details}, 404

    return {"items": [log.to_dict() for log in logs], "count": len(logs)}


@inventory_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    products = inventory_service.list_low_stock_products(g.shop_id)
    return {"items": [p.to_dict() for p in products], "count": len(products)}
