# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service - single-transaction sale recording

WHY: A sale touches four tables (sales, sale_items, products,
inventory_logs). They are written in one database transaction so that a
Sale row exists if and only if its items, stock deductions and 'sale' log
rows were committed with it. Nothing is compensated after the fact.

CONCURRENCY:
- SQLite: BEGIN IMMEDIATE serializes writers for the whole unit of work.
- Other engines: each product row is locked (SELECT ... FOR UPDATE) before
  the conditional decrement.
- The decrement itself is UPDATE ... WHERE stock_quantity >= qty, so the
  floor holds even without the lock.
- Lock contention is retried with backoff; business errors never are.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem, User, PAYMENT_METHODS
from ..validation import MAX_PRICE_CENTS, MAX_QUANTITY, ValidationError, coerce_int
from shopdesk.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write_transaction, run_with_retry
from .document_service import DocumentSequenceError, next_invoice_number
from .inventory_service import (
    InsufficientStockError,
    ProductNotFoundError,
    deduct_stock_for_sale,
    get_product_in_shop,
    record_sale_log,
)
from .tenant_service import scoped_query


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class UnauthenticatedError(SaleError):
    """No acting user, or the user is deactivated."""


class SaleValidationError(SaleError):
    """Sale input is malformed; nothing was written."""


class SaleNotFoundError(SaleError):
    """Sale does not exist in the shop."""


class PersistenceError(SaleError):
    """The database rejected a write; the whole sale was rolled back."""
    def __init__(self, step: str, message: str | None = None):
        super().__init__(message or f"Failed to record sale at step: {step}", details={"step": step})
        self.step = step


@dataclass
class SaleLineInput:
    product_id: int
    quantity: int
    unit_price_cents: int
    product_name: str | None = None
    product_sku: str | None = None

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass
class DailySales:
    date: str
    total_revenue_cents: int
    sale_count: int
    sales: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "total_revenue_cents": self.total_revenue_cents,
            "sale_count": self.sale_count,
            "sales": [s.to_dict() for s in self.sales],
        }


def _validation_int(key: str, value) -> int:
    try:
        return coerce_int(key, value)
    except ValidationError as e:
        raise SaleValidationError(str(e), details={"field": key})


def _optional_text(key: str, value, max_len: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SaleValidationError(f"{key} must be a string", details={"field": key})
    value = value.strip()
    if len(value) > max_len:
        raise SaleValidationError(f"{key} exceeds max length {max_len}", details={"field": key})
    return value or None


def parse_sale_items(items) -> list[SaleLineInput]:
    """Validate raw line items (dicts) into SaleLineInput values."""
    if not isinstance(items, list) or not items:
        raise SaleValidationError("Sale must contain at least one item")

    lines = []
    for index, raw in enumerate(items):
        if isinstance(raw, SaleLineInput):
            raw = raw.__dict__
        if not isinstance(raw, dict):
            raise SaleValidationError("Each item must be an object", details={"index": index})

        for key in ("product_id", "quantity", "unit_price_cents"):
            if raw.get(key) is None:
                raise SaleValidationError(f"items[{index}].{key} is required", details={"index": index})

        quantity = _validation_int("quantity", raw["quantity"])
        if quantity <= 0:
            raise SaleValidationError(
                "Quantity must be a positive integer",
                details={"index": index, "quantity": quantity},
            )
        if quantity > MAX_QUANTITY:
            raise SaleValidationError(f"Quantity cannot exceed {MAX_QUANTITY}", details={"index": index})

        unit_price = _validation_int("unit_price_cents", raw["unit_price_cents"])
        if unit_price < 0 or unit_price > MAX_PRICE_CENTS:
            raise SaleValidationError(
                "unit_price_cents must be between 0 and %d" % MAX_PRICE_CENTS,
                details={"index": index, "unit_price_cents": unit_price},
            )

        lines.append(SaleLineInput(
            product_id=_validation_int("product_id", raw["product_id"]),
            quantity=quantity,
            unit_price_cents=unit_price,
            product_name=_optional_text("product_name", raw.get("product_name"), 255),
            product_sku=_optional_text("product_sku", raw.get("product_sku"), 64),
        ))
    return lines


def _require_user(user_id) -> User:
    if user_id is None:
        raise UnauthenticatedError("Not authenticated")
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthenticatedError("Not authenticated")
    return user


def _quantities_by_product(lines: list[SaleLineInput]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def record_sale(
    *,
    shop_id: int,
    user_id: int | None,
    items,
    payment_method: str,
    payment_reference: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    tax_amount_cents=0,
    discount_amount_cents=0,
    notes: str | None = None,
) -> Sale:
    """
    Record a completed sale, all or nothing.

    Raises:
        UnauthenticatedError: no active acting user
        SaleValidationError: bad items, payment method, tax or discount
        ProductNotFoundError: product missing, inactive or in another shop
        InsufficientStockError: a product has less stock than requested
        PersistenceError: the database failed; .step names where
    """
    user = _require_user(user_id)

    lines = parse_sale_items(items)

    if payment_method not in PAYMENT_METHODS:
        raise SaleValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"field": "payment_method"},
        )

    tax = _validation_int("tax_amount_cents", tax_amount_cents or 0)
    discount = _validation_int("discount_amount_cents", discount_amount_cents or 0)
    if tax < 0:
        raise SaleValidationError("tax_amount_cents must be >= 0", details={"field": "tax_amount_cents"})
    if discount < 0:
        raise SaleValidationError("discount_amount_cents must be >= 0", details={"field": "discount_amount_cents"})

    subtotal = sum(line.subtotal_cents for line in lines)
    total = subtotal + tax - discount
    if total < 0:
        raise SaleValidationError(
            "Discount cannot exceed subtotal plus tax",
            details={"subtotal_cents": subtotal, "tax_amount_cents": tax, "discount_amount_cents": discount},
        )

    header = {
        "payment_reference": _optional_text("payment_reference", payment_reference, 128),
        "customer_name": _optional_text("customer_name", customer_name, 255),
        "customer_phone": _optional_text("customer_phone", customer_phone, 32),
        "customer_email": _optional_text("customer_email", customer_email, 255),
        "notes": _optional_text("notes", notes, 5000),
    }

    quantities = _quantities_by_product(lines)
    state = {"step": "begin"}

    def _op():
        state["step"] = "begin"
        begin_write_transaction()

        state["step"] = "invoice"
        invoice_number = next_invoice_number(shop_id)

        # Lock and decrement in product id order so concurrent sales never
        # wait on each other in opposite orders.
        state["step"] = "stock"
        levels: dict[int, tuple[int, int]] = {}
        products = {}
        for product_id in sorted(quantities):
            product = get_product_in_shop(shop_id, product_id, require_active=True)
            products[product_id] = product
            levels[product_id] = deduct_stock_for_sale(
                shop_id=shop_id,
                product_id=product_id,
                quantity=quantities[product_id],
                product_name=product.name,
            )

        state["step"] = "sale"
        sale = Sale(
            shop_id=shop_id,
            invoice_number=invoice_number,
            subtotal_cents=subtotal,
            tax_amount_cents=tax,
            discount_amount_cents=discount,
            total_amount_cents=total,
            payment_method=payment_method,
            status="completed",
            cashier_id=user.id,
            **header,
        )
        db.session.add(sale)
        db.session.flush()

        state["step"] = "items"
        db.session.add_all([
            SaleItem(
                sale_id=sale.id,
                shop_id=shop_id,
                product_id=line.product_id,
                product_name=line.product_name or products[line.product_id].name,
                product_sku=line.product_sku or products[line.product_id].sku,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=line.subtotal_cents,
            )
            for line in lines
        ])
        db.session.flush()

        state["step"] = "inventory_log"
        for product_id in sorted(quantities):
            record_sale_log(
                shop_id=shop_id,
                product_id=product_id,
                sale_id=sale.id,
                quantity=quantities[product_id],
                quantity_before=levels[product_id][0],
                user_id=user.id,
                notes=f"Sale {invoice_number}",
            )
        db.session.flush()

        state["step"] = "commit"
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except (InsufficientStockError, ProductNotFoundError):
        current_app.logger.info("Sale rejected for shop %s at step %s", shop_id, state["step"])
        raise
    except DocumentSequenceError as e:
        raise PersistenceError("invoice", str(e)) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Sale persistence failed for shop %s at step %s", shop_id, state["step"])
        raise PersistenceError(state["step"]) from e

    current_app.logger.info(
        "Recorded sale %s (%s) shop=%s items=%s total_cents=%s",
        sale.id, sale.invoice_number, shop_id, len(lines), sale.total_amount_cents,
    )
    return sale


def get_sale(shop_id: int, sale_id: int) -> Sale:
    sale = scoped_query(Sale, shop_id).filter_by(id=sale_id).first()
    if sale is None:
        raise SaleNotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(shop_id: int, limit: int = 50) -> list[Sale]:
    """Newest first; items load with each sale."""
    return (
        scoped_query(Sale, shop_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def _as_datetime(key: str, value) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        dt = parse_iso_datetime(value)
    except (TypeError, ValueError):
        dt = None
    if dt is None:
        raise SaleValidationError(f"{key} must be an ISO-8601 datetime", details={"field": key})
    return dt


def list_sales_by_date_range(shop_id: int, start, end) -> list[Sale]:
    """Sales with start <= created_at <= end, newest first."""
    start_dt = _as_datetime("start", start)
    end_dt = _as_datetime("end", end)
    if end_dt < start_dt:
        raise SaleValidationError("end must not be before start")

    return (
        scoped_query(Sale, shop_id)
        .filter(
            Sale.created_at >= start_dt,
            Sale.created_at <= end_dt,
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def get_daily_sales(shop_id: int, day: datetime | None = None) -> DailySales:
    """Completed sales for one UTC day (today by default)."""
    start = (day or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)

    sales = (
        scoped_query(Sale, shop_id)
        .filter(
            Sale.status == "completed",
            Sale.created_at >= start,
            Sale.created_at < end,
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
    return DailySales(
        date=start.date().isoformat(),
        total_revenue_cents=sum(s.total_amount_cents for s in sales),
        sale_count=len(sales),
        sales=sales,
    )
