"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request acts on exactly one shop (the one its session is bound to),
and cross-tenant access must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.shop_context set by @require_auth
2. A shop_id from client input must equal the session's shop_id
3. Queries touching shop-owned data filter by shop_id
4. Cross-tenant access attempts are logged as security events

USAGE:
    from shopdesk.services.tenant_service import require_shop_access, scoped_query

    shop_id = require_shop_access(request_shop_id)
    products = scoped_query(Product, shop_id).filter_by(is_active=True).all()
"""

from flask import g, request, has_request_context
from ..extensions import db
from ..models import Shop
from .permission_service import log_security_event, get_member_role


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_context():
    """
    Get the request's ShopContext.

    SECURITY: Raises TenantAccessError if it is not set. This should never
    happen after @require_auth, but is a safety check.
    """
    context = getattr(g, "shop_context", None)
    if context is None:
        raise TenantAccessError("Tenant context not established")
    return context


def get_current_shop_id() -> int:
    return get_current_context().shop_id


def require_shop_access(shop_id: int | None) -> int:
    """
    Validate a client-supplied shop_id against the session's shop.

    None means "the current shop". Returns the shop_id to use.

    Raises TenantAccessError (and logs it) on mismatch. The error message
    never reveals whether the other shop exists.
    """
    current = get_current_shop_id()
    if shop_id is None:
        return current

    if shop_id != current:
        _log_cross_tenant_attempt(
            f"Session bound to shop {current}, request targeted shop {shop_id}",
            shop_id=current,
        )
        raise TenantAccessError("Shop not found")

    return current


def validate_shop_active(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)

    if not shop:
        raise TenantAccessError("Shop not found")

    if not shop.is_active:
        raise TenantAccessError("Shop is not active")

    return shop


def scoped_query(model, shop_id: int | None = None):
    """
    Base query for a shop-owned model, filtered to one shop.

    Args:
        model: SQLAlchemy model class (must have a shop_id column)
        shop_id: Shop ID (defaults to the request's shop)
    """
    if shop_id is None:
        shop_id = get_current_shop_id()

    return db.session.query(model).filter(model.shop_id == shop_id)


def _log_cross_tenant_attempt(reason: str, shop_id: int | None = None) -> None:
    """
    Log a cross-tenant access attempt as a security event.
    """
    context = getattr(g, "shop_context", None)
    user_id = context.user.id if context else None

    in_request = has_request_context()
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        shop_id=shop_id,
    )


def require_shop_member(user_id: int, shop_id: int) -> str:
    """
    Return the user's role in an active shop.

    Raises TenantAccessError("Shop not found") when the user has no
    membership there, so foreign shops look the same as missing ones.
    """
    validate_shop_active(shop_id)

    role = get_member_role(user_id, shop_id)
    if role is None:
        _log_cross_tenant_attempt(
            f"User {user_id} is not a member of shop {shop_id}",
            shop_id=shop_id,
        )
        raise TenantAccessError("Shop not found")
    return role


def note_missing_entity(model, entity_id: int) -> None:
    """
    Called when a shop-scoped lookup came back empty.

    If the id exists in a different shop, the probe is recorded as a
    cross-tenant attempt. The caller still answers "not found".
    """
    context = getattr(g, "shop_context", None)
    if context is None:
        return

    owner_shop_id = (
        db.session.query(model.shop_id)
        .filter(model.id == entity_id)
        .scalar()
    )
    if owner_shop_id is not None and owner_shop_id != context.shop_id:
        _log_cross_tenant_attempt(
            f"{model.__name__} {entity_id} belongs to another shop",
            shop_id=context.shop_id,
        )
