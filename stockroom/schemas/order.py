import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from stockroom.schemas.inventory import DeductionPlan, Unit


class OrderSource(str, Enum):
    WHATSAPP = "whatsapp"
    ZOMATO = "zomato"
    SWIGGY = "swiggy"
    ONDC = "ondc"
    DIRECT = "direct"


class MenuIngredient(BaseModel):
    product_id: str
    quantity: Decimal = Field(..., gt=0)
    unit: Unit


class MenuItem(BaseModel):
    """A dish and the ingredients one plate of it consumes."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    category: str = "main"
    ingredients: List[MenuIngredient]
    cost_per_plate: Decimal = Decimal("0")
    selling_price: Optional[Decimal] = None
    is_active: bool = True


class OrderItem(BaseModel):
    """Schema for a single line of a manual order."""
    menu_item_id: str
    quantity: int = Field(..., gt=0)


class ManualOrder(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    outlet_id: str
    source: OrderSource = OrderSource.DIRECT
    customer_name: Optional[str] = None
    items: List[OrderItem]
    total_amount: Decimal
    notes: Optional[str] = None
    # Exactly what fulfilment deducted; deleting the order restores these plans.
    consumed: List[DeductionPlan] = []
    created_at: datetime


# ----------- API request bodies -----------

class MenuItemRequest(BaseModel):
    name: str = Field(..., description="Name of the dish (e.g., Paneer Wrap).")
    category: str = "main"
    ingredients: List[MenuIngredient] = Field(..., min_length=1)
    cost_per_plate: Decimal = Field(Decimal("0"), ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True


class OrderRequest(BaseModel):
    """Schema for the manual order entry body."""
    outlet_id: str
    source: OrderSource = OrderSource.DIRECT
    customer_name: Optional[str] = None
    items: List[OrderItem]
    notes: Optional[str] = None
