from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


SHOP_ROLES = ("admin", "cashier", "inventory_manager")


class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    All categories, products, sales and inventory logs carry shop_id and
    every query touching them is filtered by it.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, unique=True, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    address = db.Column(db.String(512), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    logo_url = db.Column(db.String(1024), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    owner = db.relationship("User", foreign_keys=[owner_id], backref=db.backref("owned_shops", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "owner_id": self.owner_id,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "tax_id": self.tax_id,
            "currency": self.currency,
            "logo_url": self.logo_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ShopMember(db.Model):
    """User role within a shop (admin, cashier, inventory_manager)."""
    __tablename__ = "shop_members"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "user_id", name="uq_shop_members_shop_user"),
        db.CheckConstraint(
            "role IN ('admin', 'cashier', 'inventory_manager')",
            name="ck_shop_members_role",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    shop = db.relationship("Shop", backref=db.backref("members", lazy=True))
    user = db.relationship("User", backref=db.backref("memberships", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
