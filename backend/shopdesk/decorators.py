# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def bearer_token() -> str | None:
    """Token from an "Authorization: Bearer <token>" header, if any."""
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer":
        return None
    return token.strip() or None


def require_auth(f):
    """
    Resolve the bearer token into a ShopContext before the view runs.

    MULTI-TENANT: the session is bound to exactly one shop, so every view
    behind this decorator reads the tenant from g and never from the request:
    - g.current_user: the acting User
    - g.shop_id: the shop the session is bound to
    - g.shop_context: the full ShopContext (user, shop, role, session)

    Missing, unknown, expired or revoked tokens answer 401, as do sessions
    whose user, shop or membership has since been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.shop_context = context
        g.current_user = context.user
        g.shop_id = context.shop_id
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Gate a view on one permission code in the session's shop.

    Stack below @require_auth. A denial is written to security_events and
    answers 403 with the missing code in details.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            context = getattr(g, "shop_context", None)
            if context is None:
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    user_id=context.user_id,
                    shop_id=context.shop_id,
                    permission_code=permission_code,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "message": str(e),
                    "details": {"required_permission": permission_code},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_json_object(f):
    """
    Reject a request body that is JSON but not an object.

    An empty or non-JSON body passes through (views treat it as {}), so
    required-field checks still answer with their own messages.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True)
        if data is not None and not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        return f(*args, **kwargs)

    return decorated_function
