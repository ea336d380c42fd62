from __future__ import annotations

from ..extensions import db
from ..models import Shop
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_shop,
    validate_payload,
)
from . import permission_service


SHOP_SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "tax_id", "currency", "logo_url"},
)


class SettingsError(ValueError):
    pass


class SettingsValidationError(SettingsError):
    pass


def get_shop_settings(shop_id: int) -> dict:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise SettingsError("Shop not found")
    return shop.to_dict()


def update_shop_settings(*, shop_id: int, user_id: int, payload: dict) -> dict:
    """
    Patch the shop's profile. Only the owner or an admin member may do this.

    Raises PermissionDeniedError for other roles and SettingsValidationError
    for bad input.
    """
    if not permission_service.user_has_permission(user_id, shop_id, "MANAGE_SETTINGS"):
        raise permission_service.PermissionDeniedError("Only the shop owner or an admin can change settings")

    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise SettingsError("Shop not found")

    try:
        patch = validate_payload(model=Shop, payload=payload, policy=SHOP_SETTINGS_POLICY, partial=True)
        enforce_rules_shop(patch)
    except ValidationError as e:
        raise SettingsValidationError(str(e))

    for key, value in patch.items():
        # Optional text fields clear to NULL rather than ""
        setattr(shop, key, value if value != "" else None)

    db.session.commit()
    return shop.to_dict()
