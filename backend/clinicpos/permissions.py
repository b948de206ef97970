"""
Permission Constants and Role Mappings

All permission codes and the static role -> permission map live here.
Roles are the clinic staff roles; a user's role is a plain column on User.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- Admin has all permissions
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    CLIENTS = "CLIENTS"
    SYSTEM = "SYSTEM"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View items, stock levels and stock movements",
        PermissionCategory.INVENTORY
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Create, edit, delete items and adjust stock",
        PermissionCategory.INVENTORY
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View invoices, receipts and totals previews",
        PermissionCategory.SALES
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Create and edit invoices and receipts (POS access)",
        PermissionCategory.SALES
    ),
    (
        "TAKE_PAYMENT",
        "Take Payment",
        "Record payments against invoices",
        PermissionCategory.SALES
    ),
    (
        "VOID_SALE",
        "Void Sale",
        "Delete (void) a sale and reverse its stock",
        PermissionCategory.SALES
    ),
    (
        "MANAGE_CLIENTS",
        "Manage Clients",
        "Register clients that sales can reference",
        PermissionCategory.CLIENTS
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "Change numbering patterns and issue numbers manually",
        PermissionCategory.SYSTEM
    ),
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "Read the clinic activity log",
        PermissionCategory.SYSTEM
    ),
]


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

ROLE_ADMIN = "Admin"
ROLE_VETERINARIAN = "Veterinarian"
ROLE_VET_ASSISTANT = "Veterinary Assistant"
ROLE_RECEPTIONIST = "Receptionist"
ROLE_ACCOUNTANT = "Accountant"

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: [code for code, _, _, _ in PERMISSION_DEFINITIONS],

    ROLE_VETERINARIAN: [
        "VIEW_INVENTORY",
        "VIEW_SALES",
        "CREATE_SALE",
        "TAKE_PAYMENT",
        "MANAGE_CLIENTS",
    ],

    ROLE_VET_ASSISTANT: [
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "VIEW_SALES",
        "MANAGE_CLIENTS",
    ],

    ROLE_RECEPTIONIST: [
        "VIEW_INVENTORY",
        "VIEW_SALES",
        "CREATE_SALE",
        "TAKE_PAYMENT",
        "MANAGE_CLIENTS",
    ],

    ROLE_ACCOUNTANT: [
        "VIEW_INVENTORY",
        "VIEW_SALES",
        "TAKE_PAYMENT",
        "VOID_SALE",
        "VIEW_AUDIT_LOG",
    ],
}

ROLES = tuple(DEFAULT_ROLE_PERMISSIONS)


def get_all_permission_codes():
    return [code for code, _, _, _ in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    if code not in get_all_permission_codes():
        raise ValueError(f"Unknown permission code: {code}")


def role_has_permission(role: str, permission_code: str) -> bool:
    return permission_code in DEFAULT_ROLE_PERMISSIONS.get(role, ())
