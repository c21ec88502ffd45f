import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from stockroom.core.errors import InvalidStateTransition, UnknownRecord
from stockroom.schemas.inventory import BatchSource
from stockroom.schemas.purchase import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from stockroom.services.movements import StockMovements

log = logging.getLogger("stockroom.purchasing")

# Allowed status changes; received and cancelled are final.
TRANSITIONS = {
    PurchaseOrderStatus.DRAFT: {PurchaseOrderStatus.SENT, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.SENT: {PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.RECEIVED: set(),
    PurchaseOrderStatus.CANCELLED: set(),
}


class PurchaseOrderBook:
    def __init__(self, movements: StockMovements):
        self.movements = movements
        self._orders: Dict[str, PurchaseOrder] = {}
        self._sequence = 0

    def create(
        self,
        outlet_id: str,
        supplier_id: str,
        items: List[PurchaseOrderItem],
        expected_delivery_date: Optional[date] = None,
    ) -> PurchaseOrder:
        self.movements.outlets.get(outlet_id)
        for item in items:
            self.movements.products.get(item.product_id)

        now = self.movements.clock()
        self._sequence += 1
        po = PurchaseOrder(
            po_number=f"PO-{now:%Y%m%d}-{self._sequence:04d}",
            outlet_id=outlet_id,
            supplier_id=supplier_id,
            items=items,
            expected_delivery_date=expected_delivery_date,
            total_amount=sum((item.total_price for item in items), Decimal("0")),
            created_at=now,
            updated_at=now,
        )
        self._orders[po.id] = po
        log.info(f"Purchase order {po.po_number} drafted for {outlet_id}")
        return po

    def get(self, po_id: str) -> PurchaseOrder:
        po = self._orders.get(po_id)
        if po is None:
            raise UnknownRecord(po_id)
        return po

    def list(self, outlet_id: Optional[str] = None, status: Optional[PurchaseOrderStatus] = None) -> List[PurchaseOrder]:
        return [
            po for po in list(self._orders.values())
            if (outlet_id is None or po.outlet_id == outlet_id)
            and (status is None or po.status == status)
        ]

    def pending_count(self, outlet_id: str) -> int:
        return len(self.list(outlet_id, PurchaseOrderStatus.SENT))

    def _move(self, po_id: str, status: PurchaseOrderStatus, **updates) -> PurchaseOrder:
        po = self.get(po_id)
        if status not in TRANSITIONS[po.status]:
            raise InvalidStateTransition(
                f"Purchase order {po.po_number} cannot move from {po.status.value} to {status.value}.",
                details={"po_id": po_id, "status": po.status.value},
            )
        updated = po.model_copy(update={"status": status, "updated_at": self.movements.clock(), **updates})
        self._orders[po_id] = updated
        return updated

    def send(self, po_id: str) -> PurchaseOrder:
        return self._move(po_id, PurchaseOrderStatus.SENT)

    def cancel(self, po_id: str) -> PurchaseOrder:
        return self._move(po_id, PurchaseOrderStatus.CANCELLED)

    def mark_received(self, po_id: str) -> PurchaseOrder:
        """Receives every line into the ledger and closes the order."""
        po = self.get(po_id)
        if PurchaseOrderStatus.RECEIVED not in TRANSITIONS[po.status]:
            raise InvalidStateTransition(
                f"Purchase order {po.po_number} is {po.status.value} and cannot be received.",
                details={"po_id": po_id, "status": po.status.value},
            )
        self.movements.outlets.get(po.outlet_id)
        for item in po.items:
            self.movements.products.get(item.product_id)

        with self.movements.locks.hold(po.outlet_id):
            receipts = [
                self.movements.receive(
                    item.product_id, po.outlet_id, item.quantity,
                    price=item.unit_price, source=BatchSource.RECEIVED,
                    expiry_date=item.expiry_date, notes=f"Purchase order {po.po_number}",
                )
                for item in po.items
            ]
            received = self._move(po_id, PurchaseOrderStatus.RECEIVED, receipt_ids=[r.id for r in receipts])

        log.info(f"Purchase order {po.po_number} received: {len(receipts)} lines")
        return received

    def reopen(self, previous: PurchaseOrder) -> None:
        """Undoes ``mark_received``: drops its batches and restores the earlier status."""
        received = self.get(previous.id)
        with self.movements.locks.hold(previous.outlet_id):
            for receipt_id in reversed(received.receipt_ids):
                self.movements.revert_receipt(self.movements.journal.receipts[receipt_id])
            self._orders[previous.id] = previous
        log.warning(f"Purchase order {previous.po_number} reopened as {previous.status.value}")
