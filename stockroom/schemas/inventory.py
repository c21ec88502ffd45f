import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def _id() -> str:
    return str(uuid.uuid4())


class Unit(str, Enum):
    KG = "kg"
    G = "g"
    L = "l"
    ML = "ml"
    PIECES = "pieces"


class BatchSource(str, Enum):
    RECEIVED = "received"
    TRANSFER = "transfer"
    OTHER = "other"


class MovementKind(str, Enum):
    RECEIPT = "receipt"
    CONSUMPTION = "consumption"   # recipe deduction for a manual order
    RESTORATION = "restoration"   # inverse of a consumption when an order is deleted
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    WASTAGE = "wastage"
    AUDIT_CORRECTION = "audit_correction"


class Outlet(BaseModel):
    id: str = Field(default_factory=_id)
    name: str
    type: str = "restaurant"
    is_active: bool = True


class Product(BaseModel):
    id: str = Field(default_factory=_id)
    name: str
    category: str = "general"
    unit: Unit
    is_perishable: bool = False
    min_stock_threshold: Decimal = Decimal("0")
    auto_reorder_quantity: Decimal = Decimal("0")
    default_price: Optional[Decimal] = None


class InventoryBatch(BaseModel):
    """One ledger row. Quantity never goes below zero."""
    id: str = Field(default_factory=_id)
    product_id: str
    outlet_id: str
    quantity: Decimal
    expiry_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    source: BatchSource = BatchSource.RECEIVED
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DeductionLine(BaseModel):
    batch_id: str
    amount: Decimal
    # Batch as it was before the draw-down; used to recreate it on restore.
    batch: InventoryBatch


class DeductionPlan(BaseModel):
    product_id: str
    outlet_id: str
    lines: List[DeductionLine] = []
    created_at: datetime

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))

    @property
    def cost(self) -> Decimal:
        return sum(
            (line.amount * (line.batch.purchase_price or Decimal("0")) for line in self.lines),
            Decimal("0"),
        )


class GoodsReceipt(BaseModel):
    id: str = Field(default_factory=_id)
    batch_id: str
    product_id: str
    outlet_id: str
    quantity: Decimal
    price: Optional[Decimal] = None
    source: BatchSource = BatchSource.RECEIVED
    expiry_date: Optional[date] = None
    created_at: datetime


class OutletTransfer(BaseModel):
    id: str = Field(default_factory=_id)
    from_outlet_id: str
    to_outlet_id: str
    product_id: str
    quantity: Decimal
    transfer_price: Optional[Decimal] = None
    batch_id: str
    plan: DeductionPlan
    created_at: datetime


class WastageEntry(BaseModel):
    id: str = Field(default_factory=_id)
    product_id: str
    outlet_id: str
    quantity: Decimal
    reason: str
    plan: DeductionPlan
    created_at: datetime


class StockAudit(BaseModel):
    id: str = Field(default_factory=_id)
    outlet_id: str
    product_id: str
    system_quantity: Decimal
    actual_quantity: Decimal
    difference: Decimal
    notes: Optional[str] = None
    corrected_at: Optional[datetime] = None
    # Set by an explicit audit correction: a new batch or a deduction plan
    correction_batch_id: Optional[str] = None
    correction_plan: Optional[DeductionPlan] = None
    created_at: datetime


class StockMovement(BaseModel):
    """History entry appended by every committed movement."""
    id: str = Field(default_factory=_id)
    kind: MovementKind
    product_id: str
    outlet_id: str
    quantity: Decimal
    reference_id: Optional[str] = None
    created_at: datetime


class LowStockThreshold(BaseModel):
    product_id: str
    outlet_id: str
    threshold: Decimal
    reason: Optional[str] = None
    updated_at: datetime


# ----------- API request bodies -----------

class OutletRequest(BaseModel):
    name: str = Field(..., description="Name of the outlet.")
    type: str = Field("restaurant", description="cloud_kitchen, qsr, hotel or restaurant.")
    is_active: bool = Field(True, description="Whether the outlet is currently active.")


class ProductRequest(BaseModel):
    name: str = Field(..., description="Name of the product (e.g., Paneer).")
    category: str = Field("general")
    unit: Unit
    is_perishable: bool = False
    min_stock_threshold: Decimal = Field(Decimal("0"), ge=0)
    auto_reorder_quantity: Decimal = Field(Decimal("0"), ge=0)
    default_price: Optional[Decimal] = Field(None, ge=0)


class ProductReorderUpdate(BaseModel):
    min_stock_threshold: Optional[Decimal] = Field(None, ge=0)
    auto_reorder_quantity: Optional[Decimal] = Field(None, ge=0)
    default_price: Optional[Decimal] = Field(None, ge=0)


class ThresholdRequest(BaseModel):
    product_id: str
    outlet_id: str
    threshold: Decimal = Field(..., ge=0, description="Stock level at or below which an alert is raised.")
    reason: Optional[str] = None


class ReceiveRequest(BaseModel):
    product_id: str
    outlet_id: str
    quantity: Decimal
    price: Optional[Decimal] = Field(None, ge=0)
    source: BatchSource = BatchSource.RECEIVED
    expiry_date: Optional[date] = None


class WastageRequest(BaseModel):
    product_id: str
    outlet_id: str
    quantity: Decimal
    reason: str = Field(..., description="Why the stock was wasted (spoilage, spill, ...).")


class TransferRequest(BaseModel):
    from_outlet_id: str
    to_outlet_id: str
    product_id: str
    quantity: Decimal
    transfer_price: Optional[Decimal] = Field(None, ge=0)


class AuditRequest(BaseModel):
    product_id: str
    outlet_id: str
    actual_quantity: Decimal = Field(..., ge=0, description="Counted quantity on the shelf.")
    notes: Optional[str] = None
