# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopdesk/routes/sales.py
"""Sales API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g
from flask import current_app

from ..models import Sale
from ..services import sales_service
from ..services.sales_service import (
    SaleError,
    UnauthenticatedError,
    SaleValidationError,
    SaleNotFoundError,
    PersistenceError,
)
from ..services.inventory_service import InsufficientStockError, ProductNotFoundError
from ..services.tenant_service import note_missing_entity
from ..decorators import require_auth, require_permission, require_json_object


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_ERROR_STATUS = {
    UnauthenticatedError: 401,
    SaleValidationError: 400,
    SaleNotFoundError: 404,
    PersistenceError: 500,
}


def _sale_error_response(e: SaleError):
    status = SALE_ERROR_STATUS.get(type(e), 400)
    return jsonify({"error": str(e), "details": e.details}), status


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
@require_json_object
def create_sale_route():
    """
    Record a completed sale: items, stock deduction and inventory logs in
    one transaction.

    Body:
    {
      "items": [{"product_id", "quantity", "unit_price_cents", "product_name"?, "product_sku"?}],
      "payment_method": "cash|card|digital|upi|other",
      "payment_reference"?, "customer_name"?, "customer_phone"?, "customer_email"?,
      "tax_amount_cents"?, "discount_amount_cents"?, "notes"?
    }

    Requires: CREATE_SALE permission
    Available to: admin, cashier
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.record_sale(
            shop_id=g.shop_id,
            user_id=g.current_user.id,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            payment_reference=data.get("payment_reference"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_email=data.get("customer_email"),
            tax_amount_cents=data.get("tax_amount_cents", 0),
            discount_amount_cents=data.get("discount_amount_cents", 0),
            notes=data.get("notes"),
        )
    except SaleError as e:
        return _sale_error_response(e)
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except ProductNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Query params:
    - start, end: ISO-8601 bounds (inclusive); both or neither
    - limit: int (default 50, max 500) when no range is given
    """
    start = request.args.get("start")
    end = request.args.get("end")
    try:
        if start or end:
            if not (start and end):
                raise SaleValidationError("start and end must be given together")
            sales = sales_service.list_sales_by_date_range(g.shop_id, start, end)
        else:
            limit = min(max(request.args.get("limit", 50, type=int), 1), 500)
            sales = sales_service.list_sales(g.shop_id, limit=limit)
    except SaleError as e:
        return _sale_error_response(e)

    return jsonify({
        "items": [s.to_dict(include_items=True) for s in sales],
        "count": len(sales),
    }), 200


@sales_bp.get("/today")
@require_auth
@require_permission("VIEW_SALES")
def daily_sales_route():
    return jsonify(sales_service.get_daily_sales(g.shop_id).to_dict()), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.shop_id, sale_id)
    except SaleNotFoundError as e:
        note_missing_entity(Sale, sale_id)
        return _sale_error_response(e)

    return jsonify({"sale": sale.to_dict(include_items=True)}), 200
