import pytest

from stockroom.core.errors import PermissionDenied
from stockroom.core.permissions import ALL_OUTLETS, Authorizer, Permission, Principal, Role


@pytest.fixture
def authorizer():
    return Authorizer()


class TestAuthorizer:
    def test_super_admin_can_do_everything(self, authorizer):
        assert all(authorizer.can(Role.SUPER_ADMIN, p) for p in Permission)

    def test_storekeeper_cannot_waste_or_transfer(self, authorizer):
        assert authorizer.can(Role.STOREKEEPER, Permission.ADD_INVENTORY)
        assert not authorizer.can(Role.STOREKEEPER, Permission.REDUCE_INVENTORY)
        assert not authorizer.can(Role.STOREKEEPER, Permission.OUTLET_TRANSFER)

    def test_only_admins_edit_recipes(self, authorizer):
        assert authorizer.can(Role.ADMIN, Permission.MANAGE_RECIPES)
        assert not authorizer.can(Role.MANAGER, Permission.MANAGE_RECIPES)

    def test_outlet_scope(self, authorizer):
        manager = Principal(Role.MANAGER, frozenset({"central"}))
        authorizer.require(manager, Permission.VIEW_INVENTORY, "central")
        with pytest.raises(PermissionDenied) as exc:
            authorizer.require(manager, Permission.VIEW_INVENTORY, "cafe")
        assert exc.value.details == {"outlet_id": "cafe"}

    def test_all_outlets_marker(self, authorizer):
        admin = Principal(Role.ADMIN, frozenset({ALL_OUTLETS}))
        assert authorizer.can_access_outlet(admin, "anywhere")

    def test_missing_capability(self, authorizer):
        keeper = Principal(Role.STOREKEEPER, frozenset({"cafe"}))
        with pytest.raises(PermissionDenied):
            authorizer.require(keeper, Permission.CREATE_PO, "cafe")
