from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


INVENTORY_ACTIONS = ("sale", "restock", "adjustment", "return")


class Category(db.Model):
    """Product grouping, unique by name within a shop."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "name", name="uq_categories_shop_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    shop = db.relationship("Shop", backref=db.backref("categories", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data with its current stock level.

    MULTI-TENANT: Products are scoped to shops via shop_id. SKUs are unique
    within a shop, not globally.

    STOCK: stock_quantity is the stock ledger. It is only mutated by
    inventory_service (adjustments and sale deductions), always under a row
    lock or an atomic conditional update, and every mutation appends an
    InventoryLog row. The CHECK constraint is the last line against
    negative stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sku", name="uq_products_shop_sku"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_shop_name", "shop_id", "name"),
        db.Index("ix_products_shop_active", "shop_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    barcode = db.Column(db.String(64), nullable=True, index=True)
    image_url = db.Column(db.String(1024), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    shop = db.relationship("Shop", backref=db.backref("products", lazy=True))
    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} shop_id={self.shop_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity < self.low_stock_threshold

    def to_dict(self, include_category: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "category_id": self.category_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "barcode": self.barcode,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_category:
            data["category"] = self.category.to_dict() if self.category else None
        return data


class InventoryLog(db.Model):
    """
    Append-only audit record of a stock mutation.

    IMMUTABLE: Never updated or deleted. quantity_after always equals
    quantity_before + quantity_change.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_shop_product_created", "shop_id", "product_id", "created_at"),
        db.CheckConstraint(
            "action IN ('sale', 'restock', 'adjustment', 'return')",
            name="ck_inventory_logs_action",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    action = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "sale_id": self.sale_id,
            "action": self.action,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "user_id": self.user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
