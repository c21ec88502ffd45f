from typing import Iterable, List, Tuple
from stockroom.events.outbox_utility import EventSpec, record_event
from stockroom.services.monitor import StockMonitor


def low_stock_events(monitor: StockMonitor, touched: Iterable[Tuple[str, str]]) -> List[EventSpec]:
    """Alert events for the (product_id, outlet_id) pairs a movement just lowered."""
    events = []
    for product_id, outlet_id in dict.fromkeys(touched):
        alert = monitor.check_product(product_id, outlet_id)
        if alert is not None:
            events.append(record_event(
                "inventory", "inventory.low_stock_alert.v1", alert,
                aggregate_id=product_id,
            ))
    return events
