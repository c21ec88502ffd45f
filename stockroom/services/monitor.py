import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from stockroom.core.config import NEAR_EXPIRY_DAYS
from stockroom.core.errors import InvalidQuantity, UnknownRecord
from stockroom.schemas.inventory import InventoryBatch, LowStockThreshold
from stockroom.schemas.monitor import AlertSeverity, ExpiryItem, ExpiryStatus, LowStockAlert
from stockroom.services.catalog import ProductCatalog
from stockroom.services.ledger import Clock, InventoryLedger, as_quantity, utcnow


class ThresholdStore:
    """Low-stock thresholds per (product, outlet), kept apart from the product record."""

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._thresholds: Dict[Tuple[str, str], LowStockThreshold] = {}

    def set(self, product_id: str, outlet_id: str, threshold, reason: Optional[str] = None) -> LowStockThreshold:
        threshold = as_quantity(threshold)
        if threshold < 0:
            raise InvalidQuantity(threshold, field="threshold")
        record = LowStockThreshold(
            product_id=product_id, outlet_id=outlet_id, threshold=threshold,
            reason=reason, updated_at=self.clock(),
        )
        self._thresholds[(product_id, outlet_id)] = record
        return record

    def get(self, product_id: str, outlet_id: str) -> Optional[LowStockThreshold]:
        return self._thresholds.get((product_id, outlet_id))

    def remove(self, product_id: str, outlet_id: str) -> LowStockThreshold:
        record = self._thresholds.pop((product_id, outlet_id), None)
        if record is None:
            raise UnknownRecord(f"{product_id}@{outlet_id}")
        return record

    def list(self, outlet_id: Optional[str] = None) -> List[LowStockThreshold]:
        return [t for t in list(self._thresholds.values()) if outlet_id is None or t.outlet_id == outlet_id]

    def seed_from_catalog(self, products: ProductCatalog, outlet_id: str) -> List[LowStockThreshold]:
        """Registers each product's catalog threshold for an outlet that has none yet."""
        return [
            self.set(p.id, outlet_id, p.min_stock_threshold, reason="catalog default")
            for p in products.list()
            if self.get(p.id, outlet_id) is None
        ]


def days_until_expiry(expiry_date: date, now: datetime) -> int:
    expires_at = datetime.combine(expiry_date, time.min, tzinfo=now.tzinfo)
    return math.ceil((expires_at - now) / timedelta(days=1))


def expiry_status(days: int, window: int = NEAR_EXPIRY_DAYS) -> ExpiryStatus:
    if days < 0:
        return ExpiryStatus.EXPIRED
    if days <= window:
        return ExpiryStatus.NEAR_EXPIRY
    return ExpiryStatus.FRESH


def classify_expiry(batches: Iterable[InventoryBatch], now: datetime, window: int = NEAR_EXPIRY_DAYS) -> List[ExpiryItem]:
    """Classifies every dated batch, soonest (or longest expired) first."""
    items = []
    for batch in batches:
        if batch.expiry_date is None:
            continue
        days = days_until_expiry(batch.expiry_date, now)
        items.append(ExpiryItem(
            batch_id=batch.id,
            product_id=batch.product_id,
            outlet_id=batch.outlet_id,
            quantity=batch.quantity,
            purchase_price=batch.purchase_price,
            expiry_date=batch.expiry_date,
            days_until_expiry=days,
            status=expiry_status(days, window),
        ))
    items.sort(key=lambda item: item.days_until_expiry)
    return items


class StockMonitor:
    """Read-side alerts recomputed from the ledger on every call."""

    def __init__(self, ledger: InventoryLedger, thresholds: ThresholdStore, products: ProductCatalog):
        self.ledger = ledger
        self.thresholds = thresholds
        self.products = products

    def check_low_stock(self, outlet_id: Optional[str] = None) -> List[LowStockAlert]:
        now = self.ledger.clock()
        alerts = []
        for entry in self.thresholds.list(outlet_id):
            alert = self.alert_for(entry, now)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def check_product(self, product_id: str, outlet_id: str) -> Optional[LowStockAlert]:
        entry = self.thresholds.get(product_id, outlet_id)
        if entry is None:
            return None
        return self.alert_for(entry, self.ledger.clock())

    def alert_for(self, entry: LowStockThreshold, now: datetime) -> Optional[LowStockAlert]:
        current = self.ledger.get_stock(entry.product_id, entry.outlet_id)
        if current > entry.threshold:
            return None
        product = self.products.get(entry.product_id)
        return LowStockAlert(
            product_id=entry.product_id,
            outlet_id=entry.outlet_id,
            current_stock=current,
            threshold=entry.threshold,
            suggested_reorder=max(entry.threshold * 2, product.auto_reorder_quantity or Decimal("0")),
            severity=AlertSeverity.CRITICAL if current == 0 else AlertSeverity.WARNING,
            created_at=now,
        )

    def expiry_report(self, outlet_id: Optional[str] = None, now: Optional[datetime] = None) -> List[ExpiryItem]:
        return classify_expiry(self.ledger.batches(outlet_id), now or self.ledger.clock())
