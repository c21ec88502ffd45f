from typing import Optional
from fastapi import APIRouter, Depends
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.schemas.monitor import ExpiryStatus
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

router = APIRouter()


@router.get("/{outlet_id}/low-stock", response_model=SuccessResponse)
async def low_stock(outlet_id: str, kitchen: Kitchen = Depends(get_kitchen),
                    principal: Principal = Depends(get_principal)):
    """Products at or below their threshold, recomputed from current stock."""
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    alerts = kitchen.monitor.check_low_stock(outlet_id)
    return SuccessResponse(data=[a.model_dump(mode="json") for a in alerts])


@router.get("/{outlet_id}/expiry", response_model=SuccessResponse)
async def expiry(outlet_id: str, status: Optional[ExpiryStatus] = None, kitchen: Kitchen = Depends(get_kitchen),
                 principal: Principal = Depends(get_principal)):
    """Dated batches, soonest expiry first. Filter with ?status=near_expiry."""
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    items = kitchen.monitor.expiry_report(outlet_id)
    if status is not None:
        items = [item for item in items if item.status == status]
    return SuccessResponse(data=[item.model_dump(mode="json") for item in items])
