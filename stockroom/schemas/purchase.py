import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"           # waiting for delivery, counted as pending
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PurchaseOrderItem(BaseModel):
    product_id: str
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    expiry_date: Optional[date] = None

    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price


class PurchaseOrder(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    po_number: str
    outlet_id: str
    supplier_id: str
    items: List[PurchaseOrderItem]
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    expected_delivery_date: Optional[date] = None
    total_amount: Decimal
    receipt_ids: List[str] = []
    created_at: datetime
    updated_at: datetime


class PurchaseOrderRequest(BaseModel):
    outlet_id: str
    supplier_id: str
    items: List[PurchaseOrderItem] = Field(..., min_length=1)
    expected_delivery_date: Optional[date] = None
