# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging with Multi-Tenant Support

WHY: Enforce role-based access control and create an audit trail.

MULTI-TENANT: A user's permissions are resolved per shop from their
ShopMember role. The shop owner is always treated as an admin of their shop.
Security events carry shop_id for tenant-scoped auditing.

DESIGN PRINCIPLES:
- Fail closed: no membership means no permissions
- Log denials only: permission grants are not logged
"""

from flask import current_app

from ..extensions import db
from ..models import Shop, ShopMember, SecurityEvent
from ..permissions import permissions_for_role
from shopdesk.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    shop_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        shop_id=shop_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    if not success:
        current_app.logger.warning(
            "Security event %s user=%s shop=%s resource=%s reason=%s",
            event_type, user_id, shop_id, resource, reason,
        )

    return event


def get_member_role(user_id: int, shop_id: int) -> str | None:
    """Role of the user in the shop, or None if not a member."""
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        return None
    if shop.owner_id == user_id:
        return "admin"

    member = db.session.query(ShopMember).filter_by(user_id=user_id, shop_id=shop_id).first()
    return member.role if member else None


def get_user_permissions(user_id: int, shop_id: int) -> set[str]:
    """
    Get all permission codes for a user within one shop.

    Returns set of permission codes (e.g., {"CREATE_SALE", "VIEW_SALES"}).
    """
    role = get_member_role(user_id, shop_id)
    if role is None:
        return set()
    return set(permissions_for_role(role))


def user_has_permission(user_id: int, shop_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id, shop_id)


def require_permission(
    *,
    user_id: int,
    shop_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError (and log it) if the user lacks the permission.
    """
    if user_has_permission(user_id, shop_id, permission_code):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        shop_id=shop_id,
    )
    raise PermissionDeniedError(f"Missing permission: {permission_code}")
