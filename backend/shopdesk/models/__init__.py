from .tenancy import Shop, ShopMember, SHOP_ROLES
from .auth import User, SessionToken
from .inventory import Category, Product, InventoryLog, INVENTORY_ACTIONS
from .sales import Sale, SaleItem, PAYMENT_METHODS, SALE_STATUSES
from .documents import InvoiceSequence
from .security import SecurityEvent

__all__ = [
    'Shop', 'ShopMember', 'SHOP_ROLES',
    'User', 'SessionToken',
    'Category', 'Product', 'InventoryLog', 'INVENTORY_ACTIONS',
    'Sale', 'SaleItem', 'PAYMENT_METHODS', 'SALE_STATUSES',
    'InvoiceSequence',
    'SecurityEvent',
]
