from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("cash", "card", "digital", "upi", "other")
SALE_STATUSES = ("completed", "refunded", "partial_refund")


class Sale(db.Model):
    """
    Completed sale header.

    Created in the same transaction as its items, stock deductions and
    inventory logs; immutable afterwards. All amounts in cents.
    total_amount_cents = subtotal_cents + tax_amount_cents - discount_amount_cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_number", name="uq_sales_shop_invoice"),
        # Composite index for shop-scoped queries by status and date
        db.Index("ix_sales_shop_status_created", "shop_id", "status", "created_at"),
        db.CheckConstraint(
            "payment_method IN ('cash', 'card', 'digital', 'upi', 'other')",
            name="ck_sales_payment_method",
        ),
        db.CheckConstraint(
            "status IN ('completed', 'refunded', 'partial_refund')",
            name="ck_sales_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # Human-readable invoice number (e.g., "INV-000123"), unique per shop
    invoice_number = db.Column(db.String(64), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "invoice_number": self.invoice_number,
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "notes": self.notes,
            "cashier_id": self.cashier_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale with a snapshot of the product name and SKU."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_items_price_non_negative"),
        db.Index("ix_sale_items_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }
