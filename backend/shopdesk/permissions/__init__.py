# Overview: Permission catalogue and shop role matrix.

from .categories import PermissionCategory
from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_permission_definition,
    describe_permissions,
    permissions_for_role,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_permission_definition",
    "describe_permissions",
    "permissions_for_role",
]
