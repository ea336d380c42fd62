# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and Shop Registration Service

WHY: Every sale and stock movement must be attributable to a user.
Uses bcrypt for password hashing and validates password strength.

MULTI-TENANT: Registration creates the owner account and its shop in one
transaction: user, shop (with a unique slug), admin membership and the
shop's invoice counter. Further staff are added as ShopMember rows.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Shop, ShopMember, SHOP_ROLES
from ..validation import ConflictError, ValidationError
from .document_service import ensure_invoice_sequence
from .session_service import revoke_all_user_sessions
from shopdesk.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Malformed hashes verify as False rather than raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required")
    return email


def slugify(name: str) -> str:
    """'Joe's Corner Shop!' -> 'joe-s-corner-shop'"""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "shop"


def _unique_slug(name: str) -> str:
    base = slugify(name)
    slug = base
    suffix = 2
    while db.session.query(Shop.id).filter_by(slug=slug).first() is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def create_user(email: str, password: str, full_name: str | None = None) -> User:
    """
    Create a user (no commit).

    Raises PasswordValidationError, ValidationError or ConflictError.
    """
    email = normalize_email(email)
    if db.session.query(User.id).filter_by(email=email).first() is not None:
        raise ConflictError("An account with this email already exists")

    user = User(
        email=email,
        full_name=(full_name or "").strip() or None,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register_shop_owner(
    *,
    email: str,
    password: str,
    full_name: str | None,
    shop_name: str,
    currency: str | None = None,
) -> tuple[User, Shop]:
    """
    Self-service registration: owner account + shop in one transaction.
    """
    shop_name = (shop_name or "").strip()
    if not shop_name:
        raise ValidationError("shop_name is required")
    if len(shop_name) > 255:
        raise ValidationError("shop_name exceeds max length 255")

    try:
        user = create_user(email, password, full_name)

        shop = Shop(
            name=shop_name,
            slug=_unique_slug(shop_name),
            owner_id=user.id,
            currency=(currency or current_app.config.get("DEFAULT_CURRENCY", "USD")).upper(),
            is_active=True,
        )
        db.session.add(shop)
        db.session.flush()

        db.session.add(ShopMember(shop_id=shop.id, user_id=user.id, role="admin"))
        ensure_invoice_sequence(shop.id)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Registered shop %s (%s) for user %s", shop.id, shop.slug, user.id)
    return user, shop


def add_shop_member(*, shop_id: int, user_id: int, role: str) -> ShopMember:
    """Grant a user a role in a shop, or change their existing role."""
    if role not in SHOP_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(SHOP_ROLES)}")

    member = db.session.query(ShopMember).filter_by(shop_id=shop_id, user_id=user_id).first()
    if member is None:
        member = ShopMember(shop_id=shop_id, user_id=user_id, role=role)
        db.session.add(member)
    else:
        member.role = role

    db.session.commit()
    return member


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    email = (email or "").strip().lower()
    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_password(user: User, current_password: str, new_password: str) -> None:
    """
    Change password after re-checking the current one.

    All existing sessions are revoked; the caller issues a fresh one.
    """
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    revoke_all_user_sessions(user.id, reason="Password changed")


def update_email(user: User, new_email: str) -> User:
    email = normalize_email(new_email)
    existing = db.session.query(User).filter_by(email=email).first()
    if existing is not None and existing.id != user.id:
        raise ConflictError("An account with this email already exists")

    user.email = email
    db.session.commit()
    return user


def list_user_shops(user_id: int) -> list[dict]:
    """Active shops the user owns or belongs to, with their role."""
    rows = (
        db.session.query(Shop, ShopMember.role)
        .join(ShopMember, ShopMember.shop_id == Shop.id)
        .filter(ShopMember.user_id == user_id, Shop.is_active.is_(True))
        .order_by(Shop.id.asc())
        .all()
    )
    shops = []
    for shop, role in rows:
        data = shop.to_dict()
        data["role"] = "admin" if shop.owner_id == user_id else role
        shops.append(data)
    return shops
