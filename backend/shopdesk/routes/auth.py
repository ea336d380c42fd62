# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopdesk/routes/auth.py
"""
Authentication API routes

- Self-service registration of a shop owner and their shop
- Login / logout with bearer session tokens
- Shop switching (new session per shop)
- Profile changes (password, email)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.auth_service import PasswordValidationError
from ..services.session_service import SessionError
from ..services.tenant_service import TenantAccessError, require_shop_member
from ..validation import ValidationError, ConflictError, coerce_int
from ..permissions import describe_permissions
from ..decorators import require_auth, require_json_object, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    role = permission_service.get_member_role(user.id, session.shop_id)
    return {
        "user": user.to_dict(),
        "shop": session.shop.to_dict(),
        "role": role,
        "permissions": sorted(permission_service.get_user_permissions(user.id, session.shop_id)),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
@require_json_object
def register_route():
    """
    Create a shop owner account and its shop, then log in.

    Body: {email, password, full_name, shop_name}
    """
    data = request.get_json(silent=True) or {}
    try:
        user, shop = auth_service.register_shop_owner(
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            shop_name=data.get("shop_name"),
            currency=data.get("currency"),
        )
        session, token = session_service.create_session(
            user_id=user.id,
            shop_id=shop.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except (PasswordValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register shop owner")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(user, session, token)), 201


@auth_bp.post("/login")
@require_json_object
def login_route():
    """
    Authenticate user and create session token.

    Optional shop_id picks the shop for the session; otherwise the user's
    own shop (or first membership) is used.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    try:
        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason="Invalid credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        shop_id = data.get("shop_id")
        if shop_id is not None:
            shop_id = coerce_int("shop_id", shop_id)

        session, token = session_service.create_session(
            user_id=user.id,
            shop_id=shop_id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SessionError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(user, session, token)), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token(), reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.shop_context
    codes = permission_service.get_user_permissions(context.user_id, context.shop_id)
    return jsonify({
        "user": context.user.to_dict(),
        "shop": context.session.shop.to_dict(),
        "role": context.role,
        "permissions": describe_permissions(codes),
    }), 200


@auth_bp.get("/shops")
@require_auth
def my_shops_route():
    """Shops the caller can switch to."""
    return jsonify({"items": auth_service.list_user_shops(g.current_user.id)}), 200


@auth_bp.post("/switch-shop")
@require_auth
@require_json_object
def switch_shop_route():
    data = request.get_json(silent=True) or {}
    try:
        shop_id = coerce_int("shop_id", data.get("shop_id"))
        require_shop_member(g.current_user.id, shop_id)
        session, token = session_service.switch_shop(
            g.shop_context,
            shop_id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (TenantAccessError, SessionError):
        return jsonify({"error": "Shop not found"}), 404
    except Exception:
        current_app.logger.exception("Failed to switch shop")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(g.current_user, session, token)), 200


@auth_bp.put("/password")
@require_auth
@require_json_object
def change_password_route():
    """Revokes every session of the user and returns a fresh token."""
    data = request.get_json(silent=True) or {}
    try:
        auth_service.update_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
        )
        session, token = session_service.create_session(
            user_id=g.current_user.id,
            shop_id=g.shop_id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except (PasswordValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(g.current_user, session, token)), 200


@auth_bp.put("/email")
@require_auth
@require_json_object
def change_email_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_email(g.current_user, data.get("email"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to change email")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 200
