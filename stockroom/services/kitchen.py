from dataclasses import dataclass
from typing import List, Optional

from stockroom.core.config import SUMMARY_RECIPIENTS
from stockroom.core.permissions import Authorizer
from stockroom.services.catalog import MenuCatalog, OutletRegistry, ProductCatalog
from stockroom.services.hygiene import HygieneLogBook
from stockroom.services.ledger import BatchStore, Clock, InventoryLedger, utcnow
from stockroom.services.locks import OutletLocks
from stockroom.services.monitor import StockMonitor, ThresholdStore
from stockroom.services.movements import MovementJournal, StockMovements
from stockroom.services.order_service import ManualOrderBook
from stockroom.services.purchasing import PurchaseOrderBook
from stockroom.services.summary import DailySummaryAggregator, LedgerPriceLookup, PriceLookup


@dataclass
class Kitchen:
    """Every store and service of one deployment, wired together explicitly."""
    outlets: OutletRegistry
    products: ProductCatalog
    menu: MenuCatalog
    ledger: InventoryLedger
    thresholds: ThresholdStore
    journal: MovementJournal
    movements: StockMovements
    orders: ManualOrderBook
    purchase_orders: PurchaseOrderBook
    hygiene: HygieneLogBook
    monitor: StockMonitor
    summaries: DailySummaryAggregator
    authorizer: Authorizer

    @property
    def clock(self) -> Clock:
        return self.ledger.clock


def build_kitchen(
    clock: Clock = utcnow,
    store: Optional[BatchStore] = None,
    price_lookup: Optional[PriceLookup] = None,
    recipients: Optional[List[str]] = None,
) -> Kitchen:
    outlets = OutletRegistry()
    products = ProductCatalog()
    menu = MenuCatalog()
    ledger = InventoryLedger(store or BatchStore(), clock)
    thresholds = ThresholdStore(clock)
    journal = MovementJournal()
    movements = StockMovements(ledger, products, menu, outlets, OutletLocks(), journal)
    purchase_orders = PurchaseOrderBook(movements)
    hygiene = HygieneLogBook(outlets, clock)

    return Kitchen(
        outlets=outlets,
        products=products,
        menu=menu,
        ledger=ledger,
        thresholds=thresholds,
        journal=journal,
        movements=movements,
        orders=ManualOrderBook(movements),
        purchase_orders=purchase_orders,
        hygiene=hygiene,
        monitor=StockMonitor(ledger, thresholds, products),
        summaries=DailySummaryAggregator(
            journal,
            outlets,
            price_lookup or LedgerPriceLookup(products, ledger),
            pending_pos=purchase_orders.pending_count,
            hygiene_status=hygiene.status_for,
            clock=clock,
            recipients=SUMMARY_RECIPIENTS if recipients is None else recipients,
        ),
        authorizer=Authorizer(),
    )
