"""Role-based permissions for the booking marketplace.

Each role has a default permission set defined here.  Admins can grant or
revoke single permissions per user through ``User.custom_permissions``
({perm: True/False}).  The effective set is embedded in the access token,
so route checks do not hit the database.

Permission naming: ``<resource>.<action>``
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # Pricing
    "pricing.read",           # view a warehouse's rate tables
    "pricing.write",          # edit rate tables, free storage, discounts

    # Availability
    "availability.read",

    # Bookings
    "booking.read",           # view own / warehouse bookings
    "booking.create",         # place a booking
    "booking.manage",         # staff status changes, proposals, cancel

    # Warehouse operations
    "warehouse.write",
    "tasks.manage",
}


# ── Role → default permissions ──────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "admin": ALL_PERMISSIONS.copy(),

    "warehouse_owner": {
        "pricing.read", "pricing.write",
        "availability.read",
        "booking.read", "booking.manage",
        "warehouse.write",
        "tasks.manage",
    },

    "warehouse_staff": {
        "pricing.read",
        "availability.read",
        "booking.read", "booking.manage",
        "tasks.manage",
    },

    "customer": {
        "pricing.read",
        "availability.read",
        "booking.read", "booking.create",
    },
}


# ── Resolution ──────────────────────────────────────────────

def resolve_permissions(
    role: str,
    custom_overrides: dict[str, bool] | None = None,
) -> list[str]:
    """Role defaults with overrides applied, sorted for stable token claims."""
    base = ROLE_DEFAULTS.get(role, set()).copy()

    if custom_overrides:
        for perm, granted in custom_overrides.items():
            if perm not in ALL_PERMISSIONS:
                continue
            if granted:
                base.add(perm)
            else:
                base.discard(perm)

    return sorted(base)


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    return required in user_permissions
