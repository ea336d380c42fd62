# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta

from sqlalchemy import func

from shopdesk.extensions import db
from shopdesk.models import Sale, SaleItem, Product
from shopdesk.time_utils import utcnow


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


@dataclass
class DashboardStats:
    today_revenue_cents: int
    today_sales_count: int
    week_revenue_cents: int
    week_sales_count: int
    month_revenue_cents: int
    month_sales_count: int
    total_products: int
    low_stock_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TopProduct:
    product_id: int
    product_name: str
    product_sku: str
    image_url: str | None
    total_quantity: int
    total_revenue_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ChartPoint:
    date: str
    revenue_cents: int
    sales: int

    def to_dict(self) -> dict:
        return asdict(self)


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _one_month_before(dt: datetime) -> datetime:
    """Same day last month, clamped to that month's length (Mar 31 -> Feb 28/29)."""
    year, month = (dt.year, dt.month - 1) if dt.month > 1 else (dt.year - 1, 12)
    day = min(dt.day, monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _positive(name: str, value: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1 or value > maximum:
        raise ReportError(f"{name} must be an integer between 1 and {maximum}")
    return value


def _completed_totals(shop_id: int, start: datetime, end: datetime | None = None) -> tuple[int, int]:
    query = db.session.query(
        func.coalesce(func.sum(Sale.total_amount_cents), 0),
        func.count(Sale.id),
    ).filter(
        Sale.shop_id == shop_id,
        Sale.status == "completed",
        Sale.created_at >= start,
    )
    if end is not None:
        query = query.filter(Sale.created_at < end)
    revenue, count = query.one()
    return int(revenue), int(count)


def dashboard_stats(shop_id: int, now: datetime | None = None) -> DashboardStats:
    """
    Headline numbers for the dashboard.

    Windows start at UTC midnight today: today, the 7 days before it, and
    the same date one calendar month earlier. Only completed sales count.
    """
    today = _start_of_day(now or utcnow())
    tomorrow = today + timedelta(days=1)

    today_revenue, today_count = _completed_totals(shop_id, today, tomorrow)
    week_revenue, week_count = _completed_totals(shop_id, today - timedelta(days=7))
    month_revenue, month_count = _completed_totals(shop_id, _one_month_before(today))

    active = db.session.query(Product).filter(
        Product.shop_id == shop_id,
        Product.is_active.is_(True),
    )
    total_products = active.count()
    low_stock_count = active.filter(Product.stock_quantity < Product.low_stock_threshold).count()

    return DashboardStats(
        today_revenue_cents=today_revenue,
        today_sales_count=today_count,
        week_revenue_cents=week_revenue,
        week_sales_count=week_count,
        month_revenue_cents=month_revenue,
        month_sales_count=month_count,
        total_products=total_products,
        low_stock_count=low_stock_count,
    )


def top_selling_products(shop_id: int, limit: int = 10, days: int = 30, now: datetime | None = None) -> list[TopProduct]:
    """
    Best sellers by units over the last `days` days.

    Grouped by product id (a renamed product stays one row, labelled with
    its most recent snapshot name). Ties on quantity break on revenue, then
    product id.
    """
    limit = _positive("limit", limit, 100)
    days = _positive("days", days, 366)
    since = (now or utcnow()) - timedelta(days=days)

    rows = (
        db.session.query(SaleItem, Product.image_url)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .filter(
            SaleItem.shop_id == shop_id,
            Sale.status == "completed",
            SaleItem.created_at >= since,
        )
        .order_by(SaleItem.id.asc())
        .all()
    )

    by_product: dict[int, TopProduct] = {}
    for item, image_url in rows:
        entry = by_product.get(item.product_id)
        if entry is None:
            by_product[item.product_id] = TopProduct(
                product_id=item.product_id,
                product_name=item.product_name,
                product_sku=item.product_sku,
                image_url=image_url,
                total_quantity=item.quantity,
                total_revenue_cents=item.subtotal_cents,
            )
            continue
        entry.product_name = item.product_name
        entry.product_sku = item.product_sku
        entry.total_quantity += item.quantity
        entry.total_revenue_cents += item.subtotal_cents

    ranked = sorted(
        by_product.values(),
        key=lambda p: (-p.total_quantity, -p.total_revenue_cents, p.product_id),
    )
    return ranked[:limit]


def sales_chart(shop_id: int, days: int = 7, now: datetime | None = None) -> list[ChartPoint]:
    """One point per UTC day, oldest first, ending today; days without sales are zero."""
    days = _positive("days", days, 366)
    end = _start_of_day(now or utcnow()) + timedelta(days=1)
    start = end - timedelta(days=days)

    points = {
        (start + timedelta(days=i)).date().isoformat(): ChartPoint(
            date=(start + timedelta(days=i)).date().isoformat(),
            revenue_cents=0,
            sales=0,
        )
        for i in range(days)
    }

    rows = (
        db.session.query(Sale.created_at, Sale.total_amount_cents)
        .filter(
            Sale.shop_id == shop_id,
            Sale.status == "completed",
            Sale.created_at >= start,
            Sale.created_at < end,
        )
        .all()
    )
    for created_at, total in rows:
        point = points.get(created_at.date().isoformat())
        if point is not None:
            point.revenue_cents += total
            point.sales += 1

    return list(points.values())


def recent_sales(shop_id: int, limit: int = 5) -> list[Sale]:
    limit = _positive("limit", limit, 100)
    return (
        db.session.query(Sale)
        .filter(Sale.shop_id == shop_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
