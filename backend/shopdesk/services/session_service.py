# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service with Multi-Tenant Support

WHY: Secure session management with automatic timeout and revocation.
Tokens are random, hashed in the database, and time-limited.

MULTI-TENANT: A session is bound to exactly one shop at creation time.
validate_session returns a ShopContext (user, session, shop_id, role) that
request handlers receive explicitly; there is no process-wide or
client-persisted "current shop". Switching shops revokes the session and
issues a new one, so nothing is carried across tenants.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout, 2-hour idle timeout
- Revocable on logout, shop switch, user or shop deactivation
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User, Shop, ShopMember
from .permission_service import get_member_role
from shopdesk.time_utils import utcnow


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


class SessionError(Exception):
    """Raised when a session cannot be created for a user/shop pair."""
    pass


@dataclass
class ShopContext:
    """
    Request-scoped tenant context built from a validated session.

    All fields come from the session record and the membership table at
    validation time; nothing is cached between requests.
    """
    user: User
    session: SessionToken
    shop_id: int
    role: str

    @property
    def user_id(self) -> int:
        return self.user.id


def generate_token() -> str:
    """Generate a 64-character hex token (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens (unlike passwords)."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _default_shop_id(user_id: int) -> int | None:
    owned = (
        db.session.query(Shop.id)
        .filter_by(owner_id=user_id, is_active=True)
        .order_by(Shop.id.asc())
        .first()
    )
    if owned:
        return owned.id

    member = (
        db.session.query(ShopMember.shop_id)
        .join(Shop, Shop.id == ShopMember.shop_id)
        .filter(ShopMember.user_id == user_id, Shop.is_active.is_(True))
        .order_by(ShopMember.shop_id.asc())
        .first()
    )
    return member.shop_id if member else None


def create_session(
    user_id: int,
    shop_id: int | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for a user acting in one shop.

    When shop_id is omitted the user's own shop (or first membership) is used.
    Returns (session_record, plaintext_token); only the hash is stored.

    Raises SessionError if the user is not a member of an active shop.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise SessionError("User not found")

    if shop_id is None:
        shop_id = _default_shop_id(user_id)
    if shop_id is None:
        raise SessionError("User does not belong to any shop")

    shop = db.session.get(Shop, shop_id)
    if not shop or not shop.is_active:
        raise SessionError("Shop is not active")

    if get_member_role(user_id, shop_id) is None:
        raise SessionError("User is not a member of this shop")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        shop_id=shop_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> ShopContext | None:
    """
    Validate session token and return a ShopContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account or shop is deactivated
    - User is no longer a member of the session's shop

    Updates last_used_at on successful validation.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    shop = session.shop
    if not shop or not shop.is_active:
        _revoke(session, "Shop deactivated")
        return None

    role = get_member_role(user.id, session.shop_id)
    if role is None:
        _revoke(session, "Shop membership removed")
        return None

    session.last_used_at = now
    db.session.commit()

    return ShopContext(
        user=user,
        session=session,
        shop_id=session.shop_id,
        role=role,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def switch_shop(
    context: ShopContext,
    shop_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Move the caller to another shop they belong to.

    The new session is created before the old one is revoked so a failed
    switch leaves the caller logged in where they were.
    """
    session, token = create_session(
        context.user.id,
        shop_id=shop_id,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    _revoke(context.session, f"Switched to shop {shop_id}")
    return session, token


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke all active sessions for a user. Returns count revoked."""
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)
