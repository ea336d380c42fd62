# backend/shopdesk/services/products_service.py
"""
Products and Categories Service with Multi-Tenant Support

MULTI-TENANT: All catalog operations take the caller's shop_id and filter by
it. A product or category in another shop is reported as not found.

STOCK: stock_quantity may be set once, at creation. Later changes go through
inventory_service.adjust_stock so that every movement is logged.
"""
from __future__ import annotations
from sqlalchemy import update
from ..extensions import db
from ..models import Product, Category
from ..validation import ConflictError, ValidationError
from .inventory_service import ProductNotFoundError, get_product_in_shop, _append_log
from .tenant_service import scoped_query

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "price_cents", "cost_cents",
    "low_stock_threshold", "barcode", "image_url", "category_id", "is_active",
}
CATEGORY_MUTABLE_FIELDS = {"name", "description"}


class CategoryNotFoundError(ValidationError):
    """Referenced category does not exist in the shop."""


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(shop_id: int, category_id: int | None) -> Category | None:
    if category_id is None:
        return None
    category = db.session.query(Category).filter_by(id=category_id, shop_id=shop_id).first()
    if category is None:
        raise CategoryNotFoundError("Category not found")
    return category


def _ensure_unique_sku(shop_id: int, sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.shop_id == shop_id, Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists for this shop.")


def list_products(shop_id: int, *, include_inactive: bool = False, category_id: int | None = None) -> list[dict]:
    """Shop products with their category, ordered by name."""
    q = scoped_query(Product, shop_id)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    products = q.order_by(Product.name.asc(), Product.id.asc()).all()
    return [p.to_dict(include_category=True) for p in products]


def get_product(shop_id: int, product_id: int) -> dict:
    return get_product_in_shop(shop_id, product_id).to_dict(include_category=True)


def create_product(*, shop_id: int, user_id: int, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    An initial stock_quantity above zero is written to the stock ledger as a
    'restock' so the log accounts for every unit on hand.

    Raises:
        ConflictError: If SKU already exists in the shop
        CategoryNotFoundError: If category_id is not one of the shop's categories
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")

    _ensure_unique_sku(shop_id, sku)
    _require_category(shop_id, patch.get("category_id"))

    initial_stock = patch.get("stock_quantity") or 0

    p = Product(shop_id=shop_id, stock_quantity=initial_stock)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before the log row

    if initial_stock > 0:
        _append_log(
            shop_id=shop_id,
            product_id=p.id,
            action="restock",
            quantity_before=0,
            quantity_change=initial_stock,
            user_id=user_id,
            notes="Initial stock",
        )

    db.session.commit()
    return p.to_dict(include_category=True)


def update_product(*, shop_id: int, product_id: int, patch: dict) -> dict:
    if "stock_quantity" in patch:
        raise ValidationError("stock_quantity cannot be edited directly; use a stock adjustment")

    p = get_product_in_shop(shop_id, product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_unique_sku(shop_id, patch["sku"], exclude_id=p.id)
    if "category_id" in patch:
        _require_category(shop_id, patch["category_id"])

    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict(include_category=True)


def delete_product(*, shop_id: int, product_id: int) -> bool:
    """
    Soft delete: the product disappears from listings and cannot be sold,
    but past sale items and logs keep pointing at it.
    """
    p = get_product_in_shop(shop_id, product_id)
    if not p.is_active:
        return False

    p.is_active = False
    db.session.commit()
    return True


# --- Categories ---

def list_categories(shop_id: int) -> list[dict]:
    categories = (
        scoped_query(Category, shop_id)
        .order_by(Category.name.asc())
        .all()
    )
    return [c.to_dict() for c in categories]


def _ensure_unique_category_name(shop_id: int, name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Category.id).filter(Category.shop_id == shop_id, Category.name == name)
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A category with this name already exists.")


def create_category(*, shop_id: int, patch: dict) -> dict:
    name = patch.get("name")
    if not name:
        raise ValidationError("name is required")
    _ensure_unique_category_name(shop_id, name)

    category = Category(shop_id=shop_id)
    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.add(category)
    db.session.commit()
    return category.to_dict()


def update_category(*, shop_id: int, category_id: int, patch: dict) -> dict:
    category = _require_category(shop_id, category_id)

    if "name" in patch and patch["name"] != category.name:
        _ensure_unique_category_name(shop_id, patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.commit()
    return category.to_dict()


def delete_category(*, shop_id: int, category_id: int) -> int:
    """
    Delete a category. Its products stay in the catalog, uncategorized.

    Returns the number of products detached.
    """
    category = _require_category(shop_id, category_id)

    detached = db.session.execute(
        update(Product)
        .where(Product.shop_id == shop_id, Product.category_id == category.id)
        .values(category_id=None)
        .execution_options(synchronize_session=False)
    ).rowcount

    db.session.delete(category)
    db.session.commit()
    return detached


__all__ = [
    "CategoryNotFoundError",
    "ProductNotFoundError",
    "list_products",
    "get_product",
    "create_product",
    "update_product",
    "delete_product",
    "list_categories",
    "create_category",
    "update_category",
    "delete_category",
]
