import threading
from datetime import date
from decimal import Decimal

import pytest

from stockroom.core.errors import InsufficientStock, UnknownRecord
from stockroom.schemas.order import OrderItem, OrderSource


def wrap(quantity=1):
    return [OrderItem(menu_item_id="paneer-wrap", quantity=quantity)]


class TestManualOrderBook:
    def test_create_prices_and_deducts(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)

        order = kitchen.orders.create_order("central", wrap(2), source=OrderSource.ZOMATO, customer_name="Asha")

        assert order.total_amount == Decimal("298")
        assert order.source == OrderSource.ZOMATO
        assert {p.product_id for p in order.consumed} == {"paneer", "wraps"}
        assert kitchen.orders.get(order.id) == order
        assert kitchen.ledger.get_stock("wraps", "central") == Decimal("8")

    def test_rejected_order_is_not_stored(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        with pytest.raises(InsufficientStock):
            kitchen.orders.create_order("central", wrap())
        assert kitchen.orders.list("central") == []
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("1")

    def test_delete_restores_and_forgets(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)
        order = kitchen.orders.create_order("central", wrap(3))

        kitchen.orders.delete_order(order.id)

        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("1")
        assert kitchen.ledger.get_stock("wraps", "central") == Decimal("10")
        with pytest.raises(UnknownRecord):
            kitchen.orders.get(order.id)
        with pytest.raises(UnknownRecord):
            kitchen.orders.delete_order(order.id)

    def test_concurrent_orders_never_oversell(self, kitchen):
        kitchen.movements.receive("paneer", "central", 10)
        kitchen.movements.receive("wraps", "central", 5)
        accepted, rejected = [], []

        def place():
            try:
                accepted.append(kitchen.orders.create_order("central", wrap()))
            except InsufficientStock:
                rejected.append(1)

        threads = [threading.Thread(target=place) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(accepted) == 5
        assert len(rejected) == 7
        assert kitchen.ledger.get_stock("wraps", "central") == 0
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("9.40")

    def test_list_filters_by_source_and_date(self, kitchen, clock):
        kitchen.movements.receive("paneer", "central", 2)
        kitchen.movements.receive("wraps", "central", 10)
        first = kitchen.orders.create_order("central", wrap(), source=OrderSource.ZOMATO)
        clock.advance(days=1)
        second = kitchen.orders.create_order("central", wrap(), source=OrderSource.WHATSAPP)

        assert kitchen.orders.list("central", source=OrderSource.ZOMATO) == [first]
        assert kitchen.orders.list("central", date_from=date(2024, 1, 11)) == [second]
        assert kitchen.orders.list("central", date_to=date(2024, 1, 10)) == [first]
        assert kitchen.orders.list("central", date_from=date(2024, 1, 10), date_to=date(2024, 1, 11)) == [first, second]
        assert kitchen.orders.list("cafe") == []

    def test_discard_returns_ingredients(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)
        order = kitchen.orders.create_order("central", wrap(2))

        kitchen.orders.discard(order)

        assert kitchen.orders.list() == []
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("1")
        assert kitchen.ledger.get_stock("wraps", "central") == Decimal("10")

    def test_reinstate_after_delete(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)
        order = kitchen.orders.create_order("central", wrap(2))
        kitchen.orders.delete_order(order.id)

        kitchen.orders.reinstate(order)

        assert kitchen.orders.get(order.id) == order
        assert kitchen.ledger.get_stock("wraps", "central") == Decimal("8")
