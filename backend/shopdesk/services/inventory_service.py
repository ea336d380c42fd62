# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/shopdesk/services/inventory_service.py
"""
ShopDesk Stock Ledger Invariants (authoritative)

Inventory model:
- Product.stock_quantity is the current on-hand quantity for a product in a shop.
- It is never negative: every decrement is either an atomic conditional
  UPDATE (stock >= qty) or a read-modify-write under a row/database lock.
- Every mutation appends an InventoryLog row in the same DB transaction:
  quantity_after == quantity_before + quantity_change.

Actions:
- sale: decrement recorded by the Sale Recorder (sales_service.record_sale)
- restock: manual adjustment with delta > 0
- adjustment: manual adjustment with delta <= 0 (delta == 0 is an audited no-op)
- return: reserved for customer returns

Tenancy:
- Every lookup filters by shop_id. A product in another shop is reported as
  not found, never as "belongs to another shop".
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, InventoryLog
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .tenant_service import scoped_query


class InventoryError(Exception):
    """Raised for stock ledger errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFoundError(InventoryError):
    """Referenced product does not exist in the shop (or is inactive)."""


class InsufficientStockError(InventoryError):
    """A stock mutation would drive stock_quantity below zero."""
    def __init__(self, *, product_id: int, product_name: str | None, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name or f'product {product_id}'}. Available: {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


def get_product_in_shop(
    shop_id: int,
    product_id: int,
    *,
    require_active: bool = False,
    lock: bool = False,
) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, shop_id=shop_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise ProductNotFoundError("Product not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductNotFoundError("Product is inactive", details={"product_id": product_id})
    return product


def get_stock_level(shop_id: int, product_id: int) -> int:
    """Current stock straight from the database (bypasses the identity map)."""
    qty = (
        db.session.query(Product.stock_quantity)
        .filter_by(id=product_id, shop_id=shop_id)
        .scalar()
    )
    if qty is None:
        raise ProductNotFoundError("Product not found", details={"product_id": product_id})
    return int(qty)


def _append_log(
    *,
    shop_id: int,
    product_id: int,
    action: str,
    quantity_before: int,
    quantity_change: int,
    user_id: int,
    notes: str | None = None,
    sale_id: int | None = None,
) -> InventoryLog:
    log = InventoryLog(
        shop_id=shop_id,
        product_id=product_id,
        sale_id=sale_id,
        action=action,
        quantity_change=quantity_change,
        quantity_before=quantity_before,
        quantity_after=quantity_before + quantity_change,
        user_id=user_id,
        notes=notes,
    )
    db.session.add(log)
    return log


def deduct_stock_for_sale(
    *,
    shop_id: int,
    product_id: int,
    quantity: int,
    product_name: str | None = None,
) -> tuple[int, int]:
    """
    Atomically decrement stock with a floor check.

    Emits UPDATE products SET stock_quantity = stock_quantity - :qty
    WHERE id = :id AND shop_id = :shop AND stock_quantity >= :qty and checks
    the affected row count, so two concurrent sales can never both take the
    last unit. Never commits; the caller owns the transaction.

    Returns (quantity_before, quantity_after).
    """
    product = get_product_in_shop(shop_id, product_id, require_active=True, lock=True)

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.shop_id == shop_id,
            Product.stock_quantity >= quantity,
        )
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    after = get_stock_level(shop_id, product_id)
    if result.rowcount != 1:
        raise InsufficientStockError(
            product_id=product_id,
            product_name=product_name or product.name,
            available=after,
            requested=quantity,
        )

    # Keep the loaded instance in step with the row we just changed
    db.session.expire(product, ["stock_quantity"])
    return after + quantity, after


def record_sale_log(
    *,
    shop_id: int,
    product_id: int,
    sale_id: int,
    quantity: int,
    quantity_before: int,
    user_id: int,
    notes: str | None = None,
) -> InventoryLog:
    """Append the 'sale' log row for a deduction made by deduct_stock_for_sale."""
    return _append_log(
        shop_id=shop_id,
        product_id=product_id,
        action="sale",
        quantity_before=quantity_before,
        quantity_change=-quantity,
        user_id=user_id,
        notes=notes,
        sale_id=sale_id,
    )


def adjust_stock(
    *,
    shop_id: int,
    product_id: int,
    delta: int,
    user_id: int,
    notes: str | None = None,
) -> InventoryLog:
    """
    Manually change stock by delta and log it.

    delta > 0 is logged as 'restock', delta <= 0 as 'adjustment'. A delta of
    zero leaves stock untouched and writes a single no-op 'adjustment' log.
    Raises InsufficientStockError (stock unchanged) if the result would be
    negative.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValueError("delta must be an integer")

    def _op():
        begin_write_transaction()
        product = get_product_in_shop(shop_id, product_id, lock=True)

        before = product.stock_quantity
        after = before + delta
        if after < 0:
            raise InsufficientStockError(
                product_id=product_id,
                product_name=product.name,
                available=before,
                requested=-delta,
            )

        if delta != 0:
            product.stock_quantity = after

        log = _append_log(
            shop_id=shop_id,
            product_id=product_id,
            action="restock" if delta > 0 else "adjustment",
            quantity_before=before,
            quantity_change=delta,
            user_id=user_id,
            notes=notes,
        )

        db.session.commit()
        return log

    log = run_with_retry(_op)
    current_app.logger.info(
        "Stock adjusted shop=%s product=%s delta=%s before=%s after=%s",
        shop_id, product_id, delta, log.quantity_before, log.quantity_after,
    )
    return log


def list_inventory_logs(shop_id: int, product_id: int | None = None, limit: int = 100) -> list[InventoryLog]:
    if product_id is not None:
        get_product_in_shop(shop_id, product_id)

    q = scoped_query(InventoryLog, shop_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)

    return (
        q.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .limit(limit)
        .all()
    )


def list_low_stock_products(shop_id: int) -> list[Product]:
    """Active products whose stock is below their low-stock threshold."""
    return (
        scoped_query(Product, shop_id)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity < Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )
