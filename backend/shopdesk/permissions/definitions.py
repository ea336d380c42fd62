# Overview: Catalogue of shop permissions.
# Entries are (code, name, description, category); codes are what roles grant
# and what @require_permission checks.

from .categories import PermissionCategory as C


PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View Inventory",
     "View products, categories, stock levels and inventory logs", C.INVENTORY),
    ("MANAGE_PRODUCTS", "Manage Products",
     "Create, edit and deactivate products and categories", C.INVENTORY),
    ("ADJUST_INVENTORY", "Adjust Inventory",
     "Restock or correct product stock quantities", C.INVENTORY),

    ("CREATE_SALE", "Create Sale", "Record sales at the point of sale", C.SALES),
    ("VIEW_SALES", "View Sales", "View sales history and receipts", C.SALES),

    ("VIEW_ANALYTICS", "View Analytics",
     "View dashboard statistics, top sellers and revenue charts", C.ANALYTICS),

    ("MANAGE_SETTINGS", "Manage Shop Settings",
     "Edit shop profile, contact details and currency", C.SETTINGS),
]
