# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Dashboard headline numbers, top sellers, a daily revenue chart and the most
recent sales. All figures are computed from persisted sales at request time.

An optional ?shop_id= must match the session's shop; anything else answers
404 and is logged as a cross-tenant attempt.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..services.tenant_service import require_shop_access, TenantAccessError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _shop_id() -> int:
    return require_shop_access(request.args.get("shop_id", type=int))


@analytics_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_ANALYTICS")
def dashboard_route():
    try:
        stats = reporting_service.dashboard_stats(_shop_id())
    except TenantAccessError:
        return jsonify({"error": "Shop not found"}), 404
    return jsonify(stats.to_dict())


@analytics_bp.get("/top-products")
@require_auth
@require_permission("VIEW_ANALYTICS")
def top_products_route():
    try:
        products = reporting_service.top_selling_products(
            _shop_id(),
            limit=request.args.get("limit", 10, type=int),
            days=request.args.get("days", 30, type=int),
        )
    except TenantAccessError:
        return jsonify({"error": "Shop not found"}), 404
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": [p.to_dict() for p in products]})


@analytics_bp.get("/sales-chart")
@require_auth
@require_permission("VIEW_ANALYTICS")
def sales_chart_route():
    try:
        points = reporting_service.sales_chart(_shop_id(), days=request.args.get("days", 7, type=int))
    except TenantAccessError:
        return jsonify({"error": "Shop not found"}), 404
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": [p.to_dict() for p in points]})


@analytics_bp.get("/recent-sales")
@require_auth
@require_permission("VIEW_ANALYTICS")
def recent_sales_route():
    try:
        sales = reporting_service.recent_sales(_shop_id(), limit=request.args.get("limit", 5, type=int))
    except TenantAccessError:
        return jsonify({"error": "Shop not found"}), 404
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": [s.to_dict() for s in sales]})
