# Overview: Default permission sets for each shop role.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    "admin": {perm[0] for perm in PERMISSION_DEFINITIONS},
    "cashier": {
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
    },
    "inventory_manager": {
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "ADJUST_INVENTORY",
        "VIEW_SALES",
    },
}
