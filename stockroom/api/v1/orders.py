import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, status
from stockroom.api.deps import get_kitchen, get_principal
from stockroom.core.permissions import Permission, Principal
from stockroom.events.inventory_events import low_stock_events
from stockroom.events.outbox_utility import publish_or_revert, record_event
from stockroom.schemas.order import OrderRequest, OrderSource
from stockroom.schemas.response import SuccessResponse
from stockroom.services.kitchen import Kitchen

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest, kitchen: Kitchen = Depends(get_kitchen),
                                principal: Principal = Depends(get_principal)):
    """
    Enters a manual order and deducts the recipe ingredients of every dish.
    Rejected as a whole when any ingredient is short.
    """
    kitchen.authorizer.require(principal, Permission.ADD_MANUAL_ORDERS, request_data.outlet_id)
    order = kitchen.orders.create_order(
        request_data.outlet_id,
        request_data.items,
        source=request_data.source,
        customer_name=request_data.customer_name,
        notes=request_data.notes,
    )
    touched = [(plan.product_id, plan.outlet_id) for plan in order.consumed]
    await publish_or_revert(
        [record_event("order", "order.created.v1", order)]
        + low_stock_events(kitchen.monitor, touched),
        lambda: kitchen.orders.discard(order),
    )
    log.info(f"Order {order.id} placed at {order.outlet_id}.")
    return SuccessResponse(data=order.model_dump(mode="json"), message="Order recorded and stock deducted.")


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(outlet_id: str, source: Optional[OrderSource] = None,
                               date_from: Optional[date] = None, date_to: Optional[date] = None,
                               kitchen: Kitchen = Depends(get_kitchen), principal: Principal = Depends(get_principal)):
    """Orders at an outlet, optionally by source and by creation date (inclusive)."""
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, outlet_id)
    orders = kitchen.orders.list(outlet_id, source=source, date_from=date_from, date_to=date_to)
    return SuccessResponse(data=[o.model_dump(mode="json") for o in orders])


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: str, kitchen: Kitchen = Depends(get_kitchen),
                             principal: Principal = Depends(get_principal)):
    """Fetches an order with the deduction plans it applied."""
    order = kitchen.orders.get(order_id)
    kitchen.authorizer.require(principal, Permission.VIEW_INVENTORY, order.outlet_id)
    return SuccessResponse(data=order.model_dump(mode="json"))


@router.delete("/{order_id}", response_model=SuccessResponse)
async def delete_order_endpoint(order_id: str, kitchen: Kitchen = Depends(get_kitchen),
                                principal: Principal = Depends(get_principal)):
    """
    Deletes the order and restores exactly the ingredients it consumed.
    """
    order = kitchen.orders.get(order_id)
    kitchen.authorizer.require(principal, Permission.DELETE_MANUAL_ORDERS, order.outlet_id)
    order = kitchen.orders.delete_order(order_id)
    await publish_or_revert(
        [record_event("order", "order.deleted.v1", order)],
        lambda: kitchen.orders.reinstate(order),
    )
    return SuccessResponse(data={"order_id": order.id}, message="Order deleted. Ingredients restored.")
