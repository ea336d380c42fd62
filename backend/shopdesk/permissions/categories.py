# Overview: Groups used to present permissions to shop admins.


class PermissionCategory:
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    ANALYTICS = "ANALYTICS"
    SETTINGS = "SETTINGS"
