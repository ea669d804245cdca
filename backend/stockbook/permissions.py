"""
Permission System Constants and Definitions

Centralized permission codes and the static role -> permission mapping.
Every user has exactly one role; a role's permissions never change at
runtime.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Categories group related permissions for display
- Default role mappings follow principle of least privilege
- Admin has all permissions
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    DIRECTORY = "DIRECTORY"
    USERS = "USERS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # INVENTORY PERMISSIONS
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products, lots and remaining quantities",
        PermissionCategory.INVENTORY
    ),
    (
        "RECEIVE_INVENTORY",
        "Receive Inventory",
        "Record batch and purchase receipts, credit and retire lots",
        PermissionCategory.INVENTORY
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and deactivate catalog products",
        PermissionCategory.INVENTORY
    ),
    (
        "VIEW_REPORTS",
        "View Reports",
        "View stock report and stock value",
        PermissionCategory.INVENTORY
    ),

    # SALES PERMISSIONS
    (
        "CREATE_SALE",
        "Create Sale",
        "Create invoices (decrements stock)",
        PermissionCategory.SALES
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "List invoices and print them",
        PermissionCategory.SALES
    ),

    # DIRECTORY PERMISSIONS
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create, edit and deactivate directory customers",
        PermissionCategory.DIRECTORY
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create and edit suppliers",
        PermissionCategory.DIRECTORY
    ),

    # USER PERMISSIONS
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create users and assign roles",
        PermissionCategory.USERS
    ),
]

ALL_PERMISSIONS = [code for code, _, _, _ in PERMISSION_DEFINITIONS]


# =============================================================================
# DEFAULT ROLE PERMISSIONS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "admin": list(ALL_PERMISSIONS),

    "manager": [
        "VIEW_INVENTORY",
        "RECEIVE_INVENTORY",
        "MANAGE_PRODUCTS",
        "VIEW_REPORTS",
        "CREATE_SALE",
        "VIEW_SALES",
        "MANAGE_CUSTOMERS",
        "MANAGE_SUPPLIERS",
    ],

    "cashier": [
        # Cashier: sell and look up stock only
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
    ],
}

ROLES = tuple(DEFAULT_ROLE_PERMISSIONS)


def role_permissions(role: str) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))


def has_permission(role: str, permission_code: str) -> bool:
    return permission_code in role_permissions(role)
