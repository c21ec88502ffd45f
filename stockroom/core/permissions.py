from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from stockroom.core.errors import PermissionDenied

ALL_OUTLETS = "all"


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    STOREKEEPER = "storekeeper"


class Permission(str, Enum):
    """Actions the API protects. Routes check permissions, never raw roles."""
    MANAGE_OUTLETS = "manage_outlets"
    ADD_PRODUCTS = "add_products"
    MANAGE_RECIPES = "manage_recipes"
    MANAGE_THRESHOLDS = "manage_thresholds"
    VIEW_INVENTORY = "view_inventory"
    ADD_INVENTORY = "add_inventory"
    REDUCE_INVENTORY = "reduce_inventory"
    MANAGE_INVENTORY = "manage_inventory"   # audits and audit corrections
    OUTLET_TRANSFER = "outlet_transfer"
    ADD_MANUAL_ORDERS = "add_manual_orders"
    DELETE_MANUAL_ORDERS = "delete_manual_orders"
    CREATE_PO = "create_po"
    UPLOAD_HYGIENE = "upload_hygiene"
    REVIEW_HYGIENE = "review_hygiene"
    VIEW_REPORTS = "view_reports"


_MANAGER = frozenset({
    Permission.ADD_PRODUCTS,
    Permission.MANAGE_THRESHOLDS,
    Permission.VIEW_INVENTORY,
    Permission.ADD_INVENTORY,
    Permission.REDUCE_INVENTORY,
    Permission.MANAGE_INVENTORY,
    Permission.OUTLET_TRANSFER,
    Permission.ADD_MANUAL_ORDERS,
    Permission.DELETE_MANUAL_ORDERS,
    Permission.CREATE_PO,
    Permission.UPLOAD_HYGIENE,
    Permission.VIEW_REPORTS,
})

_ADMIN = _MANAGER | {Permission.MANAGE_RECIPES, Permission.REVIEW_HYGIENE}

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Permission]] = {
    Role.SUPER_ADMIN: frozenset(Permission),
    Role.ADMIN: _ADMIN,
    Role.MANAGER: _MANAGER,
    Role.STOREKEEPER: frozenset({
        Permission.VIEW_INVENTORY,
        Permission.ADD_INVENTORY,
        Permission.ADD_MANUAL_ORDERS,
        Permission.UPLOAD_HYGIENE,
    }),
}


@dataclass(frozen=True)
class Principal:
    role: Role
    outlet_ids: FrozenSet[str] = field(default_factory=frozenset)


class Authorizer:
    def __init__(self, capabilities: Optional[Dict[Role, FrozenSet[Permission]]] = None):
        self.capabilities = capabilities or ROLE_CAPABILITIES

    def can(self, role: Role, action: Permission) -> bool:
        return action in self.capabilities.get(role, frozenset())

    def can_access_outlet(self, principal: Principal, outlet_id: str) -> bool:
        if principal.role == Role.SUPER_ADMIN or ALL_OUTLETS in principal.outlet_ids:
            return True
        return outlet_id in principal.outlet_ids

    def require(self, principal: Principal, action: Permission, *outlet_ids: str) -> None:
        if not self.can(principal.role, action):
            raise PermissionDenied(
                f"Role {principal.role.value} may not {action.value}.",
                details={"role": principal.role.value, "action": action.value},
            )
        for outlet_id in outlet_ids:
            if not self.can_access_outlet(principal, outlet_id):
                raise PermissionDenied(
                    f"Outlet {outlet_id} is not assigned to this user.",
                    details={"outlet_id": outlet_id},
                )
