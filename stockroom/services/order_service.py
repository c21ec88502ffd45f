import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from stockroom.core.errors import UnknownRecord
from stockroom.schemas.order import ManualOrder, OrderItem, OrderSource
from stockroom.services.movements import StockMovements

log = logging.getLogger("stockroom.orders")


class ManualOrderBook:
    """Manual orders (WhatsApp, aggregators, walk-ins) and the stock they consumed.

    Creating an order deducts its recipe ingredients; deleting it restores
    exactly the plans recorded on the order.
    """

    def __init__(self, movements: StockMovements):
        self.movements = movements
        self._orders: Dict[str, ManualOrder] = {}

    def price(self, items: List[OrderItem]) -> Decimal:
        total = Decimal("0")
        for item in items:
            menu_item = self.movements.menu.get(item.menu_item_id)
            unit_price = menu_item.selling_price if menu_item.selling_price is not None else menu_item.cost_per_plate
            total += unit_price * item.quantity
        return total

    def create_order(
        self,
        outlet_id: str,
        items: List[OrderItem],
        source: OrderSource = OrderSource.DIRECT,
        customer_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ManualOrder:
        total = self.price(items)
        order = ManualOrder(
            outlet_id=outlet_id,
            source=source,
            customer_name=customer_name,
            items=items,
            total_amount=total,
            notes=notes,
            created_at=self.movements.clock(),
        )
        with self.movements.locks.hold(outlet_id):
            order.consumed = self.movements.fulfill_order(items, outlet_id, reference_id=order.id)
            self._orders[order.id] = order

        log.info(f"Manual order {order.id} ({source.value}) placed at {outlet_id}, total {total}")
        return order

    def get(self, order_id: str) -> ManualOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise UnknownRecord(order_id)
        return order

    def list(
        self,
        outlet_id: Optional[str] = None,
        source: Optional[OrderSource] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[ManualOrder]:
        """Orders matching every given filter; the date range is inclusive."""
        return [
            o for o in list(self._orders.values())
            if (outlet_id is None or o.outlet_id == outlet_id)
            and (source is None or o.source == source)
            and (date_from is None or o.created_at.date() >= date_from)
            and (date_to is None or o.created_at.date() <= date_to)
        ]

    def delete_order(self, order_id: str) -> ManualOrder:
        order = self.get(order_id)
        with self.movements.locks.hold(order.outlet_id):
            # Re-read under the lock so a concurrent delete cannot restore twice.
            order = self.get(order_id)
            self.movements.reverse_order(order.consumed, reference_id=order.id)
            del self._orders[order_id]

        log.info(f"Manual order {order_id} deleted, ingredients restored")
        return order

    def discard(self, order: ManualOrder) -> None:
        """Takes back a just-created order and returns its ingredients."""
        with self.movements.locks.hold(order.outlet_id):
            self.movements.revert_order(order.consumed, order.id)
            self._orders.pop(order.id, None)
        log.warning(f"Manual order {order.id} discarded")

    def reinstate(self, order: ManualOrder) -> None:
        """Brings back a just-deleted order and consumes its ingredients again."""
        with self.movements.locks.hold(order.outlet_id):
            self.movements.reapply_order(order.consumed, order.id)
            self._orders[order.id] = order
        log.warning(f"Manual order {order.id} reinstated")
