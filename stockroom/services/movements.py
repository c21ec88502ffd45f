import logging
import threading
from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from stockroom.core.errors import (
    InsufficientStock,
    InvalidQuantity,
    InvalidStateTransition,
    InvalidTransfer,
    UnknownRecord,
)
from stockroom.schemas.inventory import (
    BatchSource,
    DeductionPlan,
    GoodsReceipt,
    MovementKind,
    OutletTransfer,
    StockAudit,
    StockMovement,
    WastageEntry,
)
from stockroom.schemas.order import OrderItem
from stockroom.services.catalog import MenuCatalog, OutletRegistry, ProductCatalog
from stockroom.services.ledger import ZERO, InventoryLedger, as_quantity
from stockroom.services.locks import OutletLocks
from stockroom.services.units import convert

log = logging.getLogger("stockroom.movements")


class MovementJournal:
    """History of committed movements plus the records each operation emitted.

    Writers on different outlets share the journal, so every write takes the
    journal lock and every read works over a snapshot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.movements: List[StockMovement] = []
        self.receipts: Dict[str, GoodsReceipt] = {}
        self.transfers: Dict[str, OutletTransfer] = {}
        self.wastage: Dict[str, WastageEntry] = {}
        self.audits: Dict[str, StockAudit] = {}

    def record(self, kind: MovementKind, product_id: str, outlet_id: str, quantity: Decimal,
               reference_id: Optional[str], at: datetime) -> StockMovement:
        movement = StockMovement(
            kind=kind, product_id=product_id, outlet_id=outlet_id,
            quantity=quantity, reference_id=reference_id, created_at=at,
        )
        with self._lock:
            self.movements.append(movement)
        return movement

    def keep(self, table: Dict[str, Any], record) -> None:
        with self._lock:
            table[record.id] = record

    def forget(self, table: Dict[str, Any], reference_id: str) -> None:
        """Drops a record and every movement it wrote."""
        with self._lock:
            table.pop(reference_id, None)
            self.movements = [m for m in self.movements if m.reference_id != reference_id]

    def forget_movements(self, reference_id: str, kinds: Iterable[MovementKind]) -> None:
        kinds = set(kinds)
        with self._lock:
            self.movements = [
                m for m in self.movements
                if not (m.reference_id == reference_id and m.kind in kinds)
            ]

    def movements_for(self, reference_id: str, kind: MovementKind) -> List[StockMovement]:
        with self._lock:
            rows = list(self.movements)
        return [m for m in rows if m.reference_id == reference_id and m.kind == kind]

    def movements_on(self, outlet_id: str, day: date, kinds: Optional[Iterable[MovementKind]] = None) -> List[StockMovement]:
        kinds = set(kinds) if kinds is not None else None
        with self._lock:
            rows = list(self.movements)
        return [
            m for m in rows
            if m.outlet_id == outlet_id
            and m.created_at.date() == day
            and (kinds is None or m.kind in kinds)
        ]

    def wastage_for(self, outlet_id: str) -> List[WastageEntry]:
        with self._lock:
            rows = list(self.wastage.values())
        return [w for w in rows if w.outlet_id == outlet_id]

    def wastage_on(self, outlet_id: str, day: date) -> List[WastageEntry]:
        return [w for w in self.wastage_for(outlet_id) if w.created_at.date() == day]

    def get_audit(self, audit_id: str) -> StockAudit:
        audit = self.audits.get(audit_id)
        if audit is None:
            raise UnknownRecord(audit_id)
        return audit


class StockMovements:
    """The business operations that move stock through the ledger.

    Every operation validates its references before touching the ledger, holds
    the lock of each outlet it mutates, and either commits in full or leaves
    the ledger exactly as it found it.
    """

    def __init__(
        self,
        ledger: InventoryLedger,
        products: ProductCatalog,
        menu: MenuCatalog,
        outlets: OutletRegistry,
        locks: OutletLocks,
        journal: MovementJournal,
    ):
        self.ledger = ledger
        self.products = products
        self.menu = menu
        self.outlets = outlets
        self.locks = locks
        self.journal = journal

    @property
    def clock(self):
        return self.ledger.clock

    # ----------- Goods receiving -----------

    def receive(
        self,
        product_id: str,
        outlet_id: str,
        quantity,
        price: Optional[Decimal] = None,
        source: BatchSource = BatchSource.RECEIVED,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> GoodsReceipt:
        self.products.get(product_id)
        self.outlets.get(outlet_id)
        quantity = as_quantity(quantity)

        with self.locks.hold(outlet_id):
            batch_id = self.ledger.add_batch(
                product_id, outlet_id, quantity,
                expiry_date=expiry_date, purchase_price=price, source=source, notes=notes,
            )
            receipt = GoodsReceipt(
                batch_id=batch_id, product_id=product_id, outlet_id=outlet_id, quantity=quantity,
                price=price, source=source, expiry_date=expiry_date, created_at=self.clock(),
            )
            self.journal.keep(self.journal.receipts, receipt)
            self.journal.record(MovementKind.RECEIPT, product_id, outlet_id, quantity, receipt.id, receipt.created_at)

        log.info(f"Received {quantity} of {product_id} at {outlet_id} (batch {batch_id})")
        return receipt

    # ----------- Order fulfilment -----------

    def requirements(self, items: List[OrderItem]) -> "OrderedDict[str, Decimal]":
        """Expands order lines into per-product quantities in the product's stock unit."""
        if not items:
            raise InvalidQuantity(0, field="order item count")

        required: "OrderedDict[str, Decimal]" = OrderedDict()
        for item in items:
            if item.quantity <= 0:
                raise InvalidQuantity(item.quantity)
            menu_item = self.menu.get(item.menu_item_id)
            for ingredient in menu_item.ingredients:
                product = self.products.get(ingredient.product_id)
                per_plate = convert(ingredient.quantity, ingredient.unit, product.unit, product.id)
                required[product.id] = required.get(product.id, ZERO) + per_plate * item.quantity
        return required

    def fulfill_order(self, items: List[OrderItem], outlet_id: str, reference_id: Optional[str] = None) -> List[DeductionPlan]:
        """Deducts every ingredient the order needs, all or nothing.

        If any ingredient is short, the deductions already applied are
        restored before the error is raised.
        """
        self.outlets.get(outlet_id)
        required = self.requirements(items)

        with self.locks.hold(outlet_id):
            applied: List[DeductionPlan] = []
            try:
                for product_id, quantity in required.items():
                    applied.append(self.ledger.deduct(product_id, outlet_id, quantity))
            except Exception as e:
                for plan in reversed(applied):
                    self.ledger.restore(plan)
                log.warning(f"Order at {outlet_id} rejected, {len(applied)} deductions rolled back: {e}")
                raise

            now = self.clock()
            for plan in applied:
                self.journal.record(MovementKind.CONSUMPTION, plan.product_id, outlet_id, plan.total, reference_id, now)

        return applied

    def reverse_order(self, plans: List[DeductionPlan], reference_id: Optional[str] = None) -> None:
        """Restores the plans of a fulfilled order. Each plan must be restored at most once."""
        outlet_ids = {plan.outlet_id for plan in plans}
        with self.locks.hold(*outlet_ids):
            for plan in plans:
                self.ledger.check_restorable(plan)
            now = self.clock()
            for plan in reversed(plans):
                self.ledger.restore(plan)
                self.journal.record(MovementKind.RESTORATION, plan.product_id, plan.outlet_id, plan.total, reference_id, now)

    # ----------- Outlet transfer -----------

    def transfer(
        self,
        from_outlet_id: str,
        to_outlet_id: str,
        product_id: str,
        quantity,
        transfer_price: Optional[Decimal] = None,
    ) -> OutletTransfer:
        if from_outlet_id == to_outlet_id:
            raise InvalidTransfer(
                "Source and destination outlet must differ.",
                details={"outlet_id": from_outlet_id},
            )
        self.products.get(product_id)
        self.outlets.get(from_outlet_id)
        self.outlets.get(to_outlet_id)
        quantity = as_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(quantity)

        with self.locks.hold(from_outlet_id, to_outlet_id):
            available = self.ledger.get_stock(product_id, from_outlet_id)
            if available < quantity:
                raise InsufficientStock(product_id, from_outlet_id, available, quantity)

            plan = self.ledger.deduct(product_id, from_outlet_id, quantity)
            price = transfer_price if transfer_price is not None else _carried_price(plan)
            expiry_dates = [line.batch.expiry_date for line in plan.lines if line.batch.expiry_date]
            try:
                batch_id = self.ledger.add_batch(
                    product_id, to_outlet_id, quantity,
                    expiry_date=min(expiry_dates) if expiry_dates else None,
                    purchase_price=price,
                    source=BatchSource.TRANSFER,
                    notes=f"Transfer from {from_outlet_id}",
                )
            except Exception:
                self.ledger.restore(plan)
                log.error(f"Transfer of {product_id} into {to_outlet_id} failed, source deduction restored")
                raise

            record = OutletTransfer(
                from_outlet_id=from_outlet_id, to_outlet_id=to_outlet_id, product_id=product_id,
                quantity=quantity, transfer_price=price, batch_id=batch_id, plan=plan, created_at=self.clock(),
            )
            self.journal.keep(self.journal.transfers, record)
            self.journal.record(MovementKind.TRANSFER_OUT, product_id, from_outlet_id, quantity, record.id, record.created_at)
            self.journal.record(MovementKind.TRANSFER_IN, product_id, to_outlet_id, quantity, record.id, record.created_at)

        log.info(f"Transferred {quantity} of {product_id} from {from_outlet_id} to {to_outlet_id}")
        return record

    # ----------- Wastage -----------

    def record_wastage(self, product_id: str, outlet_id: str, quantity, reason: str) -> WastageEntry:
        self.products.get(product_id)
        self.outlets.get(outlet_id)

        with self.locks.hold(outlet_id):
            plan = self.ledger.deduct(product_id, outlet_id, quantity)
            entry = WastageEntry(
                product_id=product_id, outlet_id=outlet_id, quantity=plan.total,
                reason=reason, plan=plan, created_at=self.clock(),
            )
            self.journal.keep(self.journal.wastage, entry)
            self.journal.record(MovementKind.WASTAGE, product_id, outlet_id, entry.quantity, entry.id, entry.created_at)

        log.info(f"Wastage of {entry.quantity} {product_id} at {outlet_id}: {reason}")
        return entry

    # ----------- Stock audit -----------

    def audit(self, product_id: str, outlet_id: str, actual_quantity, notes: Optional[str] = None) -> StockAudit:
        """Records a physical count against the ledger. Does not change stock."""
        self.products.get(product_id)
        self.outlets.get(outlet_id)
        actual_quantity = as_quantity(actual_quantity)
        if actual_quantity < 0:
            raise InvalidQuantity(actual_quantity, field="actual_quantity")

        with self.locks.hold(outlet_id):
            system_quantity = self.ledger.get_stock(product_id, outlet_id)
            record = StockAudit(
                outlet_id=outlet_id, product_id=product_id,
                system_quantity=system_quantity, actual_quantity=actual_quantity,
                difference=actual_quantity - system_quantity, notes=notes, created_at=self.clock(),
            )
            self.journal.keep(self.journal.audits, record)
        return record

    def apply_audit_correction(self, audit_id: str) -> StockAudit:
        """Brings the ledger to the counted quantity of an audit.

        The correction is relative to the stock at the time of the call, so
        movements recorded after the count are kept.
        """
        audit = self.journal.get_audit(audit_id)
        if audit.corrected_at is not None:
            raise InvalidStateTransition(
                f"Audit {audit_id} was already applied at {audit.corrected_at}.",
                details={"audit_id": audit_id},
            )

        with self.locks.hold(audit.outlet_id):
            current = self.ledger.get_stock(audit.product_id, audit.outlet_id)
            delta = audit.actual_quantity - current
            updates = {"corrected_at": self.clock()}
            if delta > 0:
                updates["correction_batch_id"] = self.ledger.add_batch(
                    audit.product_id, audit.outlet_id, delta,
                    purchase_price=self.ledger.average_price(audit.product_id, audit.outlet_id),
                    source=BatchSource.OTHER,
                    notes=f"Audit correction {audit_id}",
                )
            elif delta < 0:
                updates["correction_plan"] = self.ledger.deduct(audit.product_id, audit.outlet_id, -delta)

            corrected = audit.model_copy(update=updates)
            self.journal.keep(self.journal.audits, corrected)
            if delta != 0:
                self.journal.record(
                    MovementKind.AUDIT_CORRECTION, audit.product_id, audit.outlet_id,
                    delta, audit_id, updates["corrected_at"],
                )

        log.info(f"Audit {audit_id} applied to {audit.product_id}@{audit.outlet_id}: delta {delta}")
        return corrected


    # ----------- Reverting committed operations -----------
    # Used when the outbox write for an operation fails after the ledger
    # changed. Each revert erases the operation's records and movements.

    def revert_receipt(self, receipt: GoodsReceipt) -> None:
        with self.locks.hold(receipt.outlet_id):
            self.ledger.remove_batch(receipt.batch_id, receipt.quantity)
            self.journal.forget(self.journal.receipts, receipt.id)
        log.warning(f"Receipt {receipt.id} of {receipt.product_id} at {receipt.outlet_id} reverted")

    def revert_wastage(self, entry: WastageEntry) -> None:
        with self.locks.hold(entry.outlet_id):
            self.ledger.restore(entry.plan)
            self.journal.forget(self.journal.wastage, entry.id)
        log.warning(f"Wastage {entry.id} of {entry.product_id} at {entry.outlet_id} reverted")

    def revert_transfer(self, record: OutletTransfer) -> None:
        with self.locks.hold(record.from_outlet_id, record.to_outlet_id):
            self.ledger.remove_batch(record.batch_id, record.quantity)
            self.ledger.restore(record.plan)
            self.journal.forget(self.journal.transfers, record.id)
        log.warning(f"Transfer {record.id} of {record.product_id} reverted")

    def revert_audit(self, record: StockAudit) -> None:
        self.journal.forget(self.journal.audits, record.id)

    def revert_audit_correction(self, corrected: StockAudit) -> None:
        """Undoes the correction and puts the audit back to unapplied."""
        with self.locks.hold(corrected.outlet_id):
            if corrected.correction_batch_id is not None:
                added = sum(
                    (m.quantity for m in self.journal.movements_for(corrected.id, MovementKind.AUDIT_CORRECTION)),
                    ZERO,
                )
                self.ledger.remove_batch(corrected.correction_batch_id, added)
            elif corrected.correction_plan is not None:
                self.ledger.restore(corrected.correction_plan)
            self.journal.forget_movements(corrected.id, [MovementKind.AUDIT_CORRECTION])
            self.journal.keep(self.journal.audits, corrected.model_copy(update={
                "corrected_at": None, "correction_batch_id": None, "correction_plan": None,
            }))
        log.warning(f"Correction of audit {corrected.id} reverted")

    def revert_order(self, plans: List[DeductionPlan], reference_id: str) -> None:
        """Undoes ``fulfill_order`` without leaving restoration movements behind."""
        outlet_ids = {plan.outlet_id for plan in plans}
        with self.locks.hold(*outlet_ids):
            for plan in plans:
                self.ledger.check_restorable(plan)
            for plan in reversed(plans):
                self.ledger.restore(plan)
            self.journal.forget_movements(reference_id, [MovementKind.CONSUMPTION])

    def reapply_order(self, plans: List[DeductionPlan], reference_id: str) -> None:
        """Undoes ``reverse_order``, drawing the same batches down again."""
        outlet_ids = {plan.outlet_id for plan in plans}
        with self.locks.hold(*outlet_ids):
            for plan in plans:
                self.ledger.reapply(plan)
            self.journal.forget_movements(reference_id, [MovementKind.RESTORATION])


def _carried_price(plan: DeductionPlan) -> Optional[Decimal]:
    priced = [line for line in plan.lines if line.batch.purchase_price is not None]
    quantity = sum((line.amount for line in priced), ZERO)
    if quantity == 0:
        return None
    return sum((line.amount * line.batch.purchase_price for line in priced), ZERO) / quantity
