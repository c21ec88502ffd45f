import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DailySummary(BaseModel):
    """Snapshot of one outlet's day. Immutable once generated."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    outlet_id: str
    day: date
    total_stock_consumed: Decimal
    pending_pos: int
    total_wastage_value: Decimal
    total_wastage_weight: Decimal
    hygiene_status: str
    generated_at: datetime
    sent_to: List[str] = []


class DashboardMetrics(BaseModel):
    outlet_id: str
    total_items: int
    low_stock_items: int
    near_expiry_items: int
    total_wastage: Decimal
    current_stock_value: Decimal
    items_expiring_soon: int


class RecipeProfitability(BaseModel):
    menu_item_id: str
    name: str
    cost_per_plate: Decimal
    selling_price: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None


class VendorPerformance(BaseModel):
    supplier_id: str
    total_orders: int
    received_orders: int
    on_time_deliveries: int
    on_time_delivery_rate: Decimal


class ManualOrdersReport(BaseModel):
    outlet_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    # Purchase cost of the batches the orders drew from
    ingredient_cost: Decimal
    orders_by_source: Dict[str, int] = {}
