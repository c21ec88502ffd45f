from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from stockroom.api.deps import get_kitchen
from stockroom.main import app
from stockroom.models.outbox import OutboxEvent
from stockroom.schemas.inventory import Outlet, Product, Unit
from stockroom.schemas.order import MenuIngredient, MenuItem
from stockroom.services.kitchen import build_kitchen
from stockroom.testing.testing_mocks import FrozenClock, in_transaction

NOW = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)

MANAGER = {"X-Role": "manager", "X-Outlets": "central,cafe"}
STOREKEEPER = {"X-Role": "storekeeper", "X-Outlets": "cafe"}
SUPER_ADMIN = {"X-Role": "super_admin", "X-Outlets": "all"}


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def kitchen(clock):
    """Two outlets, four products and two dishes; no stock yet."""
    k = build_kitchen(clock=clock, recipients=["owner@example.com"])
    k.outlets.add(Outlet(id="central", name="Central Kitchen", type="cloud_kitchen"))
    k.outlets.add(Outlet(id="cafe", name="Station Road Cafe", type="qsr"))
    k.products.add(Product(id="paneer", name="Paneer", unit=Unit.KG, is_perishable=True, default_price=Decimal("300")))
    k.products.add(Product(id="rice", name="Basmati Rice", unit=Unit.KG))
    k.products.add(Product(id="wraps", name="Wheat Wraps", unit=Unit.PIECES))
    k.products.add(Product(id="milk", name="Milk", unit=Unit.L, auto_reorder_quantity=Decimal("50")))
    k.menu.add(MenuItem(
        id="paneer-wrap", name="Paneer Wrap",
        ingredients=[
            MenuIngredient(product_id="paneer", quantity=Decimal("120"), unit=Unit.G),
            MenuIngredient(product_id="wraps", quantity=Decimal("1"), unit=Unit.PIECES),
        ],
        cost_per_plate=Decimal("62"), selling_price=Decimal("149"),
    ))
    k.menu.add(MenuItem(
        id="paneer-rice", name="Chili Paneer Rice",
        ingredients=[
            MenuIngredient(product_id="paneer", quantity=Decimal("150"), unit=Unit.G),
            MenuIngredient(product_id="rice", quantity=Decimal("200"), unit=Unit.G),
        ],
        cost_per_plate=Decimal("78"), selling_price=Decimal("199"),
    ))
    return k


@pytest.fixture
def outbox():
    """Captures outbox writes instead of hitting the database."""
    with patch("stockroom.events.outbox_utility.in_transaction", in_transaction), \
            patch.object(OutboxEvent, "create", new_callable=AsyncMock) as mock_create:
        yield mock_create


@pytest.fixture
def client(kitchen, outbox):
    app.dependency_overrides[get_kitchen] = lambda: kitchen
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def failing_client(kitchen, outbox):
    """Client whose outbox writes fail, with server errors returned as 500s."""
    outbox.side_effect = RuntimeError("database unavailable")
    app.dependency_overrides[get_kitchen] = lambda: kitchen
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def event_types(outbox_mock):
    return [c.kwargs["event_type"] for c in outbox_mock.call_args_list]
