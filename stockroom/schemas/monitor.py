from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"   # out of stock


class ExpiryStatus(str, Enum):
    FRESH = "fresh"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"


class LowStockAlert(BaseModel):
    product_id: str
    outlet_id: str
    current_stock: Decimal
    threshold: Decimal
    suggested_reorder: Decimal
    severity: AlertSeverity
    created_at: datetime


class ExpiryItem(BaseModel):
    batch_id: str
    product_id: str
    outlet_id: str
    quantity: Decimal
    purchase_price: Optional[Decimal] = None
    expiry_date: date
    days_until_expiry: int
    status: ExpiryStatus
