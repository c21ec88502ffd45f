import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from stockroom.schemas.inventory import MovementKind
from stockroom.schemas.report import DailySummary
from stockroom.services.catalog import OutletRegistry, ProductCatalog
from stockroom.services.ledger import ZERO, InventoryLedger
from stockroom.services.movements import MovementJournal

log = logging.getLogger("stockroom.summary")

# (product_id, outlet_id, as_of) -> unit price
PriceLookup = Callable[[str, str, datetime], Decimal]


class LedgerPriceLookup:
    """Unit price from the product's list price, else the weighted purchase price on hand."""

    def __init__(self, products: ProductCatalog, ledger: InventoryLedger):
        self.products = products
        self.ledger = ledger

    def __call__(self, product_id: str, outlet_id: str, as_of: datetime) -> Decimal:
        product = self.products.get(product_id)
        if product.default_price is not None:
            return product.default_price
        average = self.ledger.average_price(product_id, outlet_id)
        return average if average is not None else ZERO


class DailySummaryAggregator:
    def __init__(
        self,
        journal: MovementJournal,
        outlets: OutletRegistry,
        price_lookup: PriceLookup,
        pending_pos: Callable[[str], int],
        hygiene_status: Callable[[str, date], str],
        clock: Callable[[], datetime],
        recipients: Optional[List[str]] = None,
    ):
        self.journal = journal
        self.outlets = outlets
        self.price_lookup = price_lookup
        self.pending_pos = pending_pos
        self.hygiene_status = hygiene_status
        self.clock = clock
        self.recipients = recipients or []

    def stock_consumed(self, outlet_id: str, day: date) -> Decimal:
        """Recipe consumption for the day, net of orders deleted the same day.

        Deleting an order placed on an earlier day does not reduce this day's
        figure; that consumption was already reported on its own day.
        """
        movements = self.journal.movements_on(outlet_id, day, (MovementKind.CONSUMPTION, MovementKind.RESTORATION))
        consumed_today = {m.reference_id for m in movements if m.kind == MovementKind.CONSUMPTION}
        total = ZERO
        for movement in movements:
            if movement.kind == MovementKind.CONSUMPTION:
                total += movement.quantity
            elif movement.reference_id is not None and movement.reference_id in consumed_today:
                total -= movement.quantity
        return max(total, ZERO)

    def generate_summary(self, outlet_id: str, day: date) -> DailySummary:
        self.outlets.get(outlet_id)
        wastage = self.journal.wastage_on(outlet_id, day)
        summary = DailySummary(
            outlet_id=outlet_id,
            day=day,
            total_stock_consumed=self.stock_consumed(outlet_id, day),
            pending_pos=self.pending_pos(outlet_id),
            total_wastage_value=sum(
                (w.quantity * self.price_lookup(w.product_id, w.outlet_id, w.created_at) for w in wastage),
                ZERO,
            ),
            total_wastage_weight=sum((w.quantity for w in wastage), ZERO),
            hygiene_status=self.hygiene_status(outlet_id, day),
            generated_at=self.clock(),
            sent_to=list(self.recipients),
        )
        log.info(f"Daily summary generated for {outlet_id} on {day}")
        return summary
