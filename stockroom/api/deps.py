from typing import Optional
from fastapi import Header, Request
from stockroom.core.errors import PermissionDenied
from stockroom.core.permissions import Principal, Role
from stockroom.services.kitchen import Kitchen


def get_kitchen(request: Request) -> Kitchen:
    """The deployment's wired stores, built at startup in stockroom.main."""
    return request.app.state.kitchen


def get_principal(
    x_role: Optional[str] = Header(None, description="super_admin, admin, manager or storekeeper"),
    x_outlets: Optional[str] = Header(None, description="Comma separated outlet ids, or 'all'"),
) -> Principal:
    """Caller identity as forwarded by the authenticating gateway."""
    if not x_role:
        raise PermissionDenied("Missing X-Role header.")
    try:
        role = Role(x_role)
    except ValueError:
        raise PermissionDenied(f"Unknown role {x_role}.", details={"role": x_role})
    outlet_ids = frozenset(o.strip() for o in (x_outlets or "").split(",") if o.strip())
    return Principal(role=role, outlet_ids=outlet_ids)
