import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.events.outbox_utility import publish_or_revert, record_event
from stockroom.schemas.purchase import PurchaseOrderRequest, PurchaseOrderStatus
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_purchase_order(body: PurchaseOrderRequest, kitchen: Kitchen = Depends(get_kitchen),
                                principal: Principal = Depends(get_principal)):
    """Drafts a purchase order. Stock is untouched until it is received."""
    kitchen.authorizer.require(principal, Permission.CREATE_PO, body.outlet_id)
    po = kitchen.purchase_orders.create(
        body.outlet_id, body.supplier_id, body.items,
        expected_delivery_date=body.expected_delivery_date,
    )
    return SuccessResponse(data=po.model_dump(mode="json"), message=f"Purchase order {po.po_number} drafted.")


@router.get("/", response_model=SuccessResponse)
async def list_purchase_orders(outlet_id: str, po_status: Optional[PurchaseOrderStatus] = None,
                               kitchen: Kitchen = Depends(get_kitchen),
                               principal: Principal = Depends(get_principal)):
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    orders = kitchen.purchase_orders.list(outlet_id, po_status)
    return SuccessResponse(data=[po.model_dump(mode="json") for po in orders])


@router.post("/{po_id}/send", response_model=SuccessResponse)
async def send_purchase_order(po_id: str, kitchen: Kitchen = Depends(get_kitchen),
                              principal: Principal = Depends(get_principal)):
    po = kitchen.purchase_orders.get(po_id)
    kitchen.authorizer.require(principal, Permission.CREATE_PO, po.outlet_id)
    po = kitchen.purchase_orders.send(po_id)
    return SuccessResponse(data=po.model_dump(mode="json"), message="Purchase order sent to supplier.")


@router.post("/{po_id}/receive", response_model=SuccessResponse)
async def receive_purchase_order(po_id: str, kitchen: Kitchen = Depends(get_kitchen),
                                 principal: Principal = Depends(get_principal)):
    """Receives every line as a new batch and closes the order."""
    po = kitchen.purchase_orders.get(po_id)
    kitchen.authorizer.require(principal, Permission.ADD_INVENTORY, po.outlet_id)
    previous = po
    po = kitchen.purchase_orders.mark_received(po_id)
    await publish_or_revert(
        [record_event("purchase_order", "purchase_order.received.v1", po)],
        lambda: kitchen.purchase_orders.reopen(previous),
    )
    log.info(f"Purchase order {po.po_number} received into {po.outlet_id}.")
    return SuccessResponse(data=po.model_dump(mode="json"), message="Purchase order received.")


@router.post("/{po_id}/cancel", response_model=SuccessResponse)
async def cancel_purchase_order(po_id: str, kitchen: Kitchen = Depends(get_kitchen),
                                principal: Principal = Depends(get_principal)):
    po = kitchen.purchase_orders.get(po_id)
    kitchen.authorizer.require(principal, Permission.CREATE_PO, po.outlet_id)
    po = kitchen.purchase_orders.cancel(po_id)
    return SuccessResponse(data=po.model_dump(mode="json"), message="Purchase order cancelled.")
