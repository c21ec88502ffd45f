import logging
import threading
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from stockroom.core.errors import InsufficientStock, InvalidQuantity, RestorationMismatch
from stockroom.schemas.inventory import BatchSource, DeductionLine, DeductionPlan, InventoryBatch

log = logging.getLogger("stockroom.ledger")

ZERO = Decimal("0")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_quantity(value) -> Decimal:
    """Coerces ints, strings and floats to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class BatchStore:
    """In-memory batch table keyed by batch id.

    Shared by every outlet, so row inserts and deletes take the store lock and
    ``find`` returns a snapshot list. Readers never hold an outlet lock.
    """

    def __init__(self, batches: Optional[List[InventoryBatch]] = None):
        self._lock = threading.Lock()
        self._rows: Dict[str, InventoryBatch] = {}
        for batch in batches or []:
            self.put(batch)

    def get(self, batch_id: str) -> Optional[InventoryBatch]:
        return self._rows.get(batch_id)

    def put(self, batch: InventoryBatch) -> None:
        with self._lock:
            self._rows[batch.id] = batch

    def delete(self, batch_id: str) -> None:
        with self._lock:
            self._rows.pop(batch_id, None)

    def find(self, product_id: Optional[str] = None, outlet_id: Optional[str] = None) -> List[InventoryBatch]:
        with self._lock:
            rows = list(self._rows.values())
        return [
            b for b in rows
            if (product_id is None or b.product_id == product_id)
            and (outlet_id is None or b.outlet_id == outlet_id)
        ]


def draw_order(batch: InventoryBatch):
    # Earliest expiry first, undated batches last, then by creation time.
    return (batch.expiry_date is None, batch.expiry_date or date.max, batch.created_at)


class InventoryLedger:
    """Per-outlet, per-product batches and the aggregate stock derived from them.

    The ledger does no locking of its own; callers that mutate it hold the
    outlet lock (see ``OutletLocks``).
    """

    def __init__(self, store: BatchStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def get_stock(self, product_id: str, outlet_id: str) -> Decimal:
        return sum((b.quantity for b in self.store.find(product_id, outlet_id)), ZERO)

    def batches(self, outlet_id: Optional[str] = None, product_id: Optional[str] = None) -> List[InventoryBatch]:
        return sorted(self.store.find(product_id, outlet_id), key=draw_order)

    def add_batch(
        self,
        product_id: str,
        outlet_id: str,
        quantity,
        expiry_date: Optional[date] = None,
        purchase_price: Optional[Decimal] = None,
        source: BatchSource = BatchSource.RECEIVED,
        notes: Optional[str] = None,
    ) -> str:
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(quantity)

        now = self.clock()
        batch = InventoryBatch(
            product_id=product_id,
            outlet_id=outlet_id,
            quantity=quantity,
            expiry_date=expiry_date,
            purchase_price=purchase_price,
            source=source,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.store.put(batch)
        log.debug(f"Batch {batch.id} added: {quantity} of {product_id} at {outlet_id}")
        return batch.id

    def deduct(self, product_id: str, outlet_id: str, quantity) -> DeductionPlan:
        """Draws ``quantity`` down from the batches, earliest expiry first.

        Nothing is touched unless the full amount is available. Batches that
        reach zero are removed; the returned plan keeps a snapshot of each so
        ``restore`` can bring them back unchanged.
        """
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(quantity)

        available = self.get_stock(product_id, outlet_id)
        if available < quantity:
            raise InsufficientStock(product_id, outlet_id, available, quantity)

        now = self.clock()
        plan = DeductionPlan(product_id=product_id, outlet_id=outlet_id, created_at=now)
        remaining = quantity
        for batch in self.batches(outlet_id, product_id):
            if remaining <= 0:
                break
            take = min(batch.quantity, remaining)
            if take <= 0:
                continue
            plan.lines.append(DeductionLine(batch_id=batch.id, amount=take, batch=batch.model_copy()))
            batch.quantity -= take
            batch.updated_at = now
            remaining -= take
            if batch.quantity == 0:
                self.store.delete(batch.id)

        return plan

    def check_restorable(self, plan: DeductionPlan) -> None:
        for line in plan.lines:
            if line.amount <= 0:
                raise RestorationMismatch(
                    f"Deduction line for batch {line.batch_id} has non-positive amount {line.amount}.",
                    details={"batch_id": line.batch_id},
                )
            if (line.batch.product_id, line.batch.outlet_id) != (plan.product_id, plan.outlet_id):
                raise RestorationMismatch(
                    f"Batch {line.batch_id} snapshot does not belong to {plan.product_id}@{plan.outlet_id}.",
                    details={"batch_id": line.batch_id},
                )
            current = self.store.get(line.batch_id)
            if current is not None and (current.product_id, current.outlet_id) != (plan.product_id, plan.outlet_id):
                raise RestorationMismatch(
                    f"Batch {line.batch_id} now belongs to {current.product_id}@{current.outlet_id}.",
                    details={"batch_id": line.batch_id},
                )

    def restore(self, plan: DeductionPlan) -> None:
        """Re-applies the exact inverse of ``plan``.

        Callers guarantee a plan is restored at most once.
        """
        self.check_restorable(plan)
        now = self.clock()
        for line in plan.lines:
            current = self.store.get(line.batch_id)
            if current is None:
                revived = line.batch.model_copy(update={"quantity": line.amount, "updated_at": now})
                self.store.put(revived)
            else:
                current.quantity += line.amount
                current.updated_at = now

    def remove_batch(self, batch_id: str, quantity) -> None:
        """Takes back a batch added by ``add_batch``; it must still hold ``quantity``."""
        quantity = as_quantity(quantity)
        batch = self.store.get(batch_id)
        if batch is None or batch.quantity < quantity:
            raise RestorationMismatch(
                f"Batch {batch_id} no longer holds the {quantity} it was created with.",
                details={"batch_id": batch_id},
            )
        batch.quantity -= quantity
        batch.updated_at = self.clock()
        if batch.quantity == 0:
            self.store.delete(batch_id)

    def reapply(self, plan: DeductionPlan) -> None:
        """Draws a restored plan down again from the same batches."""
        for line in plan.lines:
            current = self.store.get(line.batch_id)
            if current is None or current.quantity < line.amount:
                raise RestorationMismatch(
                    f"Batch {line.batch_id} cannot cover {line.amount} again.",
                    details={"batch_id": line.batch_id},
                )
        now = self.clock()
        for line in plan.lines:
            current = self.store.get(line.batch_id)
            current.quantity -= line.amount
            current.updated_at = now
            if current.quantity == 0:
                self.store.delete(line.batch_id)

    def reset(self, product_id: str, outlet_id: str) -> List[InventoryBatch]:
        """Administrative removal of every batch for a product at an outlet."""
        removed = self.store.find(product_id, outlet_id)
        for batch in removed:
            self.store.delete(batch.id)
        log.warning(f"Ledger reset for {product_id} at {outlet_id}: {len(removed)} batches removed")
        return removed

    def stock_value(self, outlet_id: str) -> Decimal:
        return sum(
            (b.quantity * (b.purchase_price or ZERO) for b in self.store.find(outlet_id=outlet_id)),
            ZERO,
        )

    def average_price(self, product_id: str, outlet_id: str) -> Optional[Decimal]:
        priced = [b for b in self.store.find(product_id, outlet_id) if b.purchase_price is not None]
        total_qty = sum((b.quantity for b in priced), ZERO)
        if total_qty == 0:
            return None
        return sum((b.quantity * b.purchase_price for b in priced), ZERO) / total_qty
