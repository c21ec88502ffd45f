from collections import defaultdict
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from stockroom.core.config import EXPIRING_SOON_DAYS
from stockroom.schemas.monitor import ExpiryStatus
from stockroom.schemas.order import ManualOrder, MenuItem
from stockroom.schemas.purchase import PurchaseOrder, PurchaseOrderStatus
from stockroom.schemas.report import DashboardMetrics, ManualOrdersReport, RecipeProfitability, VendorPerformance
from stockroom.services.ledger import ZERO
from stockroom.services.monitor import StockMonitor
from stockroom.services.movements import MovementJournal

TWOPLACES = Decimal("0.01")


def dashboard_metrics(monitor: StockMonitor, journal: MovementJournal, outlet_id: str, now: datetime) -> DashboardMetrics:
    ledger = monitor.ledger
    expiry = monitor.expiry_report(outlet_id, now)
    return DashboardMetrics(
        outlet_id=outlet_id,
        total_items=len(ledger.batches(outlet_id)),
        low_stock_items=len(monitor.check_low_stock(outlet_id)),
        near_expiry_items=sum(1 for item in expiry if item.status != ExpiryStatus.FRESH),
        total_wastage=sum((w.quantity for w in journal.wastage_for(outlet_id)), ZERO),
        current_stock_value=ledger.stock_value(outlet_id),
        items_expiring_soon=sum(1 for item in expiry if item.days_until_expiry <= EXPIRING_SOON_DAYS),
    )


def recipe_profitability(menu_items: Iterable[MenuItem]) -> List[RecipeProfitability]:
    """Profit per plate for active dishes, best margin first. Unpriced dishes sort last."""
    rows = []
    for item in menu_items:
        if not item.is_active:
            continue
        profit = margin = None
        if item.selling_price is not None:
            profit = item.selling_price - item.cost_per_plate
            if item.selling_price > 0:
                margin = (profit / item.selling_price * 100).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        rows.append(RecipeProfitability(
            menu_item_id=item.id,
            name=item.name,
            cost_per_plate=item.cost_per_plate,
            selling_price=item.selling_price,
            profit=profit,
            margin_percent=margin,
        ))
    rows.sort(key=lambda r: (r.margin_percent is None, -(r.margin_percent or ZERO)))
    return rows


def vendor_performance(purchase_orders: Iterable[PurchaseOrder]) -> List[VendorPerformance]:
    """On-time delivery per supplier.

    A received order is on time when it was received on or before its
    expected delivery date; orders without one never count as on time.
    """
    by_supplier = defaultdict(list)
    for po in purchase_orders:
        by_supplier[po.supplier_id].append(po)

    rows = []
    for supplier_id in sorted(by_supplier):
        orders = by_supplier[supplier_id]
        received = [po for po in orders if po.status == PurchaseOrderStatus.RECEIVED]
        on_time = sum(
            1 for po in received
            if po.expected_delivery_date is not None and po.updated_at.date() <= po.expected_delivery_date
        )
        rate = Decimal(on_time * 100) / len(received) if received else ZERO
        rows.append(VendorPerformance(
            supplier_id=supplier_id,
            total_orders=len(orders),
            received_orders=len(received),
            on_time_deliveries=on_time,
            on_time_delivery_rate=rate.quantize(TWOPLACES, rounding=ROUND_HALF_UP),
        ))
    return rows


def manual_orders_report(
    orders: List[ManualOrder],
    outlet_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> ManualOrdersReport:
    """Totals over an already filtered list of orders."""
    revenue = sum((o.total_amount for o in orders), ZERO)
    by_source = defaultdict(int)
    for order in orders:
        by_source[order.source.value] += 1
    average = revenue / len(orders) if orders else ZERO
    return ManualOrdersReport(
        outlet_id=outlet_id,
        date_from=date_from,
        date_to=date_to,
        total_orders=len(orders),
        total_revenue=revenue,
        average_order_value=average.quantize(TWOPLACES, rounding=ROUND_HALF_UP),
        ingredient_cost=sum((plan.cost for o in orders for plan in o.consumed), ZERO),
        orders_by_source=dict(by_source),
    )
