"""
Role definitions and the vegetarian / non-vegetarian access partition.

Admins are split by the `is_vegetarian` flag of the resource they touch:
veg-admins manage vegetarian resources, non-veg-admins the rest, and the
super-admin manages everything. Customers and guests never pass an admin
check.
"""

SUPER_ADMIN = "super-admin"
VEG_ADMIN = "veg-admin"
NON_VEG_ADMIN = "non-veg-admin"
CUSTOMER = "customer"
GUEST = "guest"

ALL_ROLES = [SUPER_ADMIN, VEG_ADMIN, NON_VEG_ADMIN, CUSTOMER, GUEST]
ADMIN_ROLES = [SUPER_ADMIN, VEG_ADMIN, NON_VEG_ADMIN]

ACTIONS = ("view", "create", "update", "delete")

# Coarse permissions, checked before any per-resource predicate
VIEW_CATALOG = "view_catalog"
MANAGE_CATALOG = "manage_catalog"
VIEW_ALL_ORDERS = "view_all_orders"
UPDATE_ORDER_STATUS = "update_order_status"
VIEW_ANALYTICS = "view_analytics"
EXPORT_REPORTS = "export_reports"
VIEW_ALL_USERS = "view_all_users"
UPDATE_USER_ROLES = "update_user_roles"
MANAGE_MARKETING = "manage_marketing"

_PARTITION_ADMIN_PERMISSIONS = [
    VIEW_CATALOG,
    MANAGE_CATALOG,
    VIEW_ALL_ORDERS,
    UPDATE_ORDER_STATUS,
    VIEW_ANALYTICS,
]

ROLE_PERMISSIONS = {
    SUPER_ADMIN: _PARTITION_ADMIN_PERMISSIONS + [
        EXPORT_REPORTS,
        VIEW_ALL_USERS,
        UPDATE_USER_ROLES,
        MANAGE_MARKETING,
    ],
    VEG_ADMIN: list(_PARTITION_ADMIN_PERMISSIONS),
    NON_VEG_ADMIN: list(_PARTITION_ADMIN_PERMISSIONS),
    CUSTOMER: [],
    GUEST: [],
}

ROLE_DISPLAY_NAMES = {
    SUPER_ADMIN: "Super Administrator",
    VEG_ADMIN: "Vegetarian Admin",
    NON_VEG_ADMIN: "Non-Vegetarian Admin",
    CUSTOMER: "Customer",
    GUEST: "Guest",
}


def has_permission(role: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, [])


def is_admin_role(role: str) -> bool:
    return role in ADMIN_ROLES


def can_perform_action(role: str, action: str, is_vegetarian: bool) -> bool:
    """Decide whether `role` may perform `action` on a resource.

    The super-admin has full read and write access. Partition admins are
    allowed only on their own side of the vegetarian flag, whatever the
    action. Everyone else is denied.
    """
    if role == SUPER_ADMIN:
        return True
    if role == VEG_ADMIN:
        return is_vegetarian is True
    if role == NON_VEG_ADMIN:
        return is_vegetarian is False
    return False


def get_role_based_filter(role: str) -> dict:
    """Query fragment that scopes list endpoints to the caller's partition."""
    if role == VEG_ADMIN:
        return {"is_vegetarian": True}
    if role == NON_VEG_ADMIN:
        return {"is_vegetarian": False}
    return {}


def get_role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, "Unknown Role")


def get_all_roles() -> list:
    return [
        {
            "value": role,
            "label": get_role_display_name(role),
            "permissions": list(ROLE_PERMISSIONS.get(role, [])),
        }
        for role in ALL_ROLES
    ]


def partition_label(is_vegetarian: bool) -> str:
    return "vegetarian" if is_vegetarian else "non-vegetarian"
