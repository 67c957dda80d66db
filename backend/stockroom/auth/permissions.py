"""Permission names checked by the API.

Permissions arrive as a list claim in the identity provider's token.
Naming: `<resource>.<action>`; the single `*` grant allows everything.
"""

from __future__ import annotations

WILDCARD = "*"

ALL_PERMISSIONS: set[str] = {
    "catalog.read",
    "catalog.write",         # categories, products, warehouses
    "stock.read",            # stock levels, movements, reconciliation
    "operations.read",
    "operations.write",      # create, add lines, status changes
    "operations.process",    # apply an operation to stock
    "reports.read",          # dashboard KPIs
}


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return WILDCARD in user_permissions or required in user_permissions
